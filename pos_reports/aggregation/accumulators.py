"""
Metric Accumulators

A metric is accumulated per bucket by one of a small, tagged set of
accumulator kinds, each compiled to a polars aggregation expression. Sums
are taken over the bucket's contributions in sorted order, so bucket totals
do not depend on the order records arrive in.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

import polars as pl

from .fields import Record, to_number


class AccumulatorKind(str, Enum):
    """Supported accumulation strategies"""
    SUM = "sum"
    COUNT = "count"
    DISTINCT_COUNT = "distinct_count"
    MAX = "max"


@dataclass(frozen=True)
class MetricSpec:
    """
    Named metric accumulated per bucket.

    ``extract`` maps a record to its contribution; COUNT metrics need none.
    """
    name: str
    kind: AccumulatorKind
    extract: Optional[Callable[[Record], Any]] = None

    def __post_init__(self) -> None:
        if self.kind != AccumulatorKind.COUNT and self.extract is None:
            raise ValueError(f"Metric '{self.name}' of kind {self.kind.value} needs an extractor")

    @property
    def needs_column(self) -> bool:
        """COUNT is the group length; every other kind reads its own column"""
        return self.kind != AccumulatorKind.COUNT

    def contribution(self, record: Record) -> Any:
        value = self.extract(record)
        if self.kind == AccumulatorKind.SUM:
            return to_number(value)
        return value

    def series(self, contributions: List[Any]) -> pl.Series:
        """Per-record contributions as a column named after the metric"""
        if self.kind == AccumulatorKind.SUM:
            return pl.Series(self.name, contributions, dtype=pl.Float64)
        return pl.Series(self.name, contributions, strict=False)

    def aggregation(self) -> pl.Expr:
        """Per-bucket aggregation expression for ``group_by().agg()``"""
        column = pl.col(self.name)
        if self.kind == AccumulatorKind.COUNT:
            return pl.len().alias(self.name)
        if self.kind == AccumulatorKind.SUM:
            return column.sort().sum().alias(self.name)
        if self.kind == AccumulatorKind.DISTINCT_COUNT:
            return column.n_unique().alias(self.name)
        # max skips nulls; a bucket with none stays null
        return column.max().alias(self.name)
