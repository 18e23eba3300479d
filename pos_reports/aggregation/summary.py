"""
Summary Statistics

Headline numbers over a column of report rows. Every statistic of an empty
column is 0 rather than NaN or an error.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

import polars as pl

from .fields import to_number


@dataclass(frozen=True)
class FieldSummary:
    total: float = 0.0
    maximum: float = 0.0
    minimum: float = 0.0
    mean: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _value(row: Any, field: str) -> Any:
    if hasattr(row, "get"):
        return row.get(field)
    return getattr(row, field, None)


def column_values(rows: Iterable[Any], field: str) -> List[float]:
    """Numeric values of ``field`` across rows (ReportRow or mapping)"""
    return [to_number(_value(row, field)) for row in rows]


def summarize(rows: Iterable[Any], field: str) -> FieldSummary:
    values = pl.Series(field, column_values(rows, field), dtype=pl.Float64)
    if values.is_empty():
        return FieldSummary()

    total = float(values.sort().sum())
    return FieldSummary(
        total=total,
        maximum=float(values.max()),
        minimum=float(values.min()),
        mean=total / values.len(),
        count=values.len(),
    )


def safe_mean(values: Iterable[Any]) -> float:
    """Arithmetic mean, 0.0 for no values"""
    series = pl.Series("value", [to_number(v) for v in values], dtype=pl.Float64)
    if series.is_empty():
        return 0.0
    return float(series.sort().sum()) / series.len()
