"""
Reporting Aggregator

Generic group-by / accumulate / derive / sort / truncate pipeline shared by
every report view. A report table is described declaratively by an
``AggregationSpec``; ``Aggregator.aggregate`` lays the records out as a
polars DataFrame (bucket identity, label and sort value plus one
contribution column per metric), groups it in first-seen order and turns the buckets into ordered,
immutable ``ReportRow`` objects.

The aggregator never fails on malformed records: missing dimensions fall
back to sentinel keys and unreadable numbers contribute zero.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import polars as pl
import structlog

from .accumulators import AccumulatorKind, MetricSpec
from .derived import DerivedField, Formula
from .fields import BucketKey, KeyExtractor, Record, UNKNOWN, to_label

logger = structlog.get_logger(__name__)

Records = Union[Iterable[Record], pl.DataFrame]

# Bucket columns carried next to the metrics
IDENTITY = "__identity"
LABEL = "__label"
SORT_VALUE = "__sort_value"
FALLBACK = "__fallback"


@dataclass(frozen=True)
class SortSpec:
    """Ordering of output rows; ``field=None`` orders by bucket key"""
    field: Optional[str] = None
    descending: bool = False


@dataclass(frozen=True)
class ReportRow:
    """One finalized bucket: key, accumulated metrics and derived fields"""
    key_name: str
    bucket: BucketKey
    values: Mapping[str, Any]

    @property
    def key(self) -> str:
        return self.bucket.label

    def __getitem__(self, name: str) -> Any:
        if name == self.key_name:
            return self.bucket.label
        return self.values[name]

    def get(self, name: str, default: Any = None) -> Any:
        if name == self.key_name:
            return self.bucket.label
        return self.values.get(name, default)

    def as_dict(self) -> Dict[str, Any]:
        return {self.key_name: self.bucket.label, **self.values}


@dataclass
class AggregationResult:
    """Ordered output of one aggregation pass"""
    name: str
    key_name: str
    columns: List[str]
    rows: List[ReportRow] = field(default_factory=list)
    totals: Dict[str, float] = field(default_factory=dict)
    input_rows: int = 0
    bucket_count: int = 0
    fallback_count: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[ReportRow]:
        return iter(self.rows)

    @property
    def truncated(self) -> bool:
        """True when top-N dropped buckets"""
        return self.bucket_count > len(self.rows)

    def get(self, label: str) -> Optional[ReportRow]:
        for row in self.rows:
            if row.key == label:
                return row
        return None

    def column(self, name: str) -> List[Any]:
        return [row.get(name) for row in self.rows]

    def labels(self) -> List[str]:
        return [row.key for row in self.rows]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [row.as_dict() for row in self.rows]

    def to_frame(self) -> pl.DataFrame:
        """Rows as a polars DataFrame for chart/table consumers"""
        if not self.rows:
            schema = {self.key_name: pl.Utf8}
            schema.update({name: pl.Float64 for name in self.columns})
            return pl.DataFrame(schema=schema)
        return pl.DataFrame(self.to_dicts(), infer_schema_length=None)


class AggregationSpec:
    """
    Declarative description of one report table.

    Example:
        spec = (
            AggregationSpec("products", key=dimension("product_name", UNKNOWN_PRODUCT), key_name="product")
            .add_sum("revenue", number("total_price"))
            .add_count("sales_count")
            .sort_by("revenue", descending=True)
            .limit(10)
        )
    """

    def __init__(
        self,
        name: str,
        key: KeyExtractor,
        key_name: str,
        fallback: str = UNKNOWN,
    ):
        self.name = name
        self.key = key
        self.key_name = key_name
        self.fallback = fallback
        self.metrics: List[MetricSpec] = []
        self.derived: List[DerivedField] = []
        self.sort: Optional[SortSpec] = None
        self.top_n: Optional[int] = None

    def _check_name(self, name: str) -> None:
        taken = {self.key_name, *self.columns}
        if name in taken:
            raise ValueError(f"Duplicate field '{name}' in aggregation '{self.name}'")

    @property
    def columns(self) -> List[str]:
        return [m.name for m in self.metrics] + [d.name for d in self.derived]

    def add_metric(self, metric: MetricSpec) -> "AggregationSpec":
        self._check_name(metric.name)
        self.metrics.append(metric)
        return self

    def add_sum(self, name: str, extract: Callable[[Record], Any]) -> "AggregationSpec":
        return self.add_metric(MetricSpec(name, AccumulatorKind.SUM, extract))

    def add_count(self, name: str) -> "AggregationSpec":
        return self.add_metric(MetricSpec(name, AccumulatorKind.COUNT))

    def add_distinct_count(self, name: str, extract: Callable[[Record], Any]) -> "AggregationSpec":
        return self.add_metric(MetricSpec(name, AccumulatorKind.DISTINCT_COUNT, extract))

    def add_max(self, name: str, extract: Callable[[Record], Any]) -> "AggregationSpec":
        return self.add_metric(MetricSpec(name, AccumulatorKind.MAX, extract))

    def add_derived(self, name: str, formula: Formula) -> "AggregationSpec":
        self._check_name(name)
        self.derived.append(DerivedField(name, formula))
        return self

    def sort_by(self, field_name: str, descending: bool = True) -> "AggregationSpec":
        self.sort = SortSpec(field=field_name, descending=descending)
        return self

    def sort_by_key(self, descending: bool = False) -> "AggregationSpec":
        self.sort = SortSpec(field=None, descending=descending)
        return self

    def limit(self, top_n: int) -> "AggregationSpec":
        if top_n < 0:
            raise ValueError("top_n must be non-negative")
        self.top_n = top_n
        return self


def _iter_records(records: Records) -> Iterable[Record]:
    if isinstance(records, pl.DataFrame):
        return records.iter_rows(named=True)
    return records


def bucket_frame(buckets: Sequence[BucketKey], columns: Sequence[pl.Series] = ()) -> pl.DataFrame:
    """Bucket keys (identity, label, sort value, fallback flag) alongside value columns"""
    return pl.DataFrame([
        pl.Series(IDENTITY, [b.identity for b in buckets], dtype=pl.Utf8),
        pl.Series(LABEL, [b.label for b in buckets], dtype=pl.Utf8),
        pl.Series(SORT_VALUE, [b.sort_value for b in buckets], strict=False),
        pl.Series(FALLBACK, [b.fallback for b in buckets], dtype=pl.Boolean),
        *columns,
    ])


def _column_totals(frame: pl.DataFrame, columns: Sequence[str]) -> Dict[str, float]:
    # only fully numeric columns are totalled; a max column with empty buckets is not
    totals: Dict[str, float] = {}
    for name in columns:
        column = frame.get_column(name)
        if column.dtype.is_numeric() and column.null_count() == 0:
            totals[name] = float(column.sort().sum())
    return totals


def build_result(
    name: str,
    key_name: str,
    frame: pl.DataFrame,
    metric_columns: Sequence[str],
    derived: Sequence[DerivedField] = (),
    sort: Optional[SortSpec] = None,
    top_n: Optional[int] = None,
    input_rows: int = 0,
    fallback_count: int = 0,
) -> AggregationResult:
    """
    Finalize accumulated buckets: derive, total, sort, truncate.

    ``frame`` holds one row per bucket (see ``bucket_frame``) in first-seen
    order; that order only matters for breaking ties in the explicit sort.
    """
    totals = _column_totals(frame, metric_columns)

    for derived_field in derived:
        frame = derived_field.apply(frame, totals)

    derived_names = [d.name for d in derived]
    totals.update(_column_totals(frame, derived_names))

    order = sort or SortSpec(field=None, descending=False)
    by = SORT_VALUE if order.field is None or order.field == key_name else order.field
    frame = frame.sort(by, descending=order.descending, nulls_last=order.descending, maintain_order=True)

    bucket_count = frame.height
    if top_n is not None:
        frame = frame.head(top_n)

    columns = [*metric_columns, *derived_names]
    rows = [
        ReportRow(
            key_name=key_name,
            bucket=BucketKey(
                label=row[LABEL],
                sort_value=row[SORT_VALUE],
                fallback=row[FALLBACK],
                identity=row[IDENTITY],
            ),
            values=MappingProxyType({column: row[column] for column in columns}),
        )
        for row in frame.iter_rows(named=True)
    ]

    return AggregationResult(
        name=name,
        key_name=key_name,
        columns=columns,
        rows=rows,
        totals=totals,
        input_rows=input_rows,
        bucket_count=bucket_count,
        fallback_count=fallback_count,
    )


class Aggregator:
    """
    Stateless executor for aggregation specs.

    Example:
        result = Aggregator().aggregate(records, spec)
        for row in result:
            print(row.as_dict())
    """

    def _bucket_key(self, spec: AggregationSpec, record: Record) -> BucketKey:
        raw = spec.key(record)
        if isinstance(raw, BucketKey):
            return raw
        label = to_label(raw)
        if label is None:
            return BucketKey(label=spec.fallback, fallback=True)
        return BucketKey(label=label)

    def _to_frame(self, records: Records, spec: AggregationSpec) -> pl.DataFrame:
        """One row per record: its bucket key and each metric's contribution"""
        buckets: List[BucketKey] = []
        metrics = [metric for metric in spec.metrics if metric.needs_column]
        contributions: Dict[str, List[Any]] = {metric.name: [] for metric in metrics}

        for record in _iter_records(records):
            buckets.append(self._bucket_key(spec, record))
            for metric in metrics:
                contributions[metric.name].append(metric.contribution(record))

        return bucket_frame(buckets, [metric.series(contributions[metric.name]) for metric in metrics])

    def aggregate(self, records: Records, spec: AggregationSpec) -> AggregationResult:
        """
        Group records into buckets and finalize them per ``spec``.

        Args:
            records: Flat query rows (mappings) or a polars DataFrame
            spec: Aggregation description

        Returns:
            AggregationResult with rows ordered by the spec's sort
        """
        frame = self._to_frame(records, spec)
        input_rows = frame.height
        fallback_count = int(frame.get_column(FALLBACK).sum() or 0)

        grouped = frame.group_by(IDENTITY, maintain_order=True).agg([
            pl.col(LABEL).first(),
            pl.col(SORT_VALUE).first(),
            pl.col(FALLBACK).first(),
            *(metric.aggregation() for metric in spec.metrics),
        ])

        result = build_result(
            name=spec.name,
            key_name=spec.key_name,
            frame=grouped,
            metric_columns=[m.name for m in spec.metrics],
            derived=spec.derived,
            sort=spec.sort,
            top_n=spec.top_n,
            input_rows=input_rows,
            fallback_count=fallback_count,
        )

        if fallback_count:
            logger.info(
                "Records bucketed under fallback key",
                aggregation=spec.name,
                records=fallback_count,
            )
        logger.debug(
            "Aggregation complete",
            aggregation=spec.name,
            input_rows=input_rows,
            buckets=result.bucket_count,
            output_rows=len(result),
        )
        return result


def aggregate(records: Records, spec: AggregationSpec) -> AggregationResult:
    """Convenience wrapper around ``Aggregator().aggregate``"""
    return Aggregator().aggregate(records, spec)
