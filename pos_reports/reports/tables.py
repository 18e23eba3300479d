"""
Shared table shapes

Building blocks reused across report configurations: time-series specs,
stock status classification and headline helpers.
"""

from typing import Any, Dict, Optional

from pos_reports.aggregation.dates import Granularity, date_bucket
from pos_reports.aggregation.derived import safe_divide
from pos_reports.aggregation.engine import AggregationResult, AggregationSpec
from pos_reports.aggregation.fields import BucketKey, Record, get_field, to_number

from .registry import ReportContext


def time_series(
    name: str,
    context: ReportContext,
    timestamp_field: str,
    granularity: Granularity = Granularity.DAY,
) -> AggregationSpec:
    """Spec keyed by day (``date``) or month (``month``), chronological"""
    key_name = "month" if granularity == Granularity.MONTH else "date"
    return AggregationSpec(
        name,
        key=date_bucket(timestamp_field, granularity, context.tz),
        key_name=key_name,
    ).sort_by_key()


def total(result: AggregationResult, column: str) -> float:
    """Pre-truncation column total, 0.0 when absent"""
    return float(result.totals.get(column, 0.0))


def average(result: AggregationResult, numerator: str, denominator: str) -> float:
    return safe_divide(total(result, numerator), total(result, denominator))


def row_value(result: AggregationResult, label: str, column: str, default: float = 0) -> Any:
    row = result.get(label)
    if row is None:
        return default
    return row.get(column, default)


# =============================================================================
# STOCK STATUS
# =============================================================================

IN_STOCK = "in_stock"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"
OVERSTOCKED = "overstocked"

STATUS_ORDER = (IN_STOCK, LOW_STOCK, OUT_OF_STOCK, OVERSTOCKED)


def stock_status(
    current: Any,
    minimum: Any,
    maximum: Any = 0,
    track_overstock: bool = True,
) -> str:
    """
    Classify a product's stock level.

    Out of stock at or below zero, low at or below the minimum, overstocked
    above a positive maximum; anything else is in stock.
    """
    current = to_number(current)
    if current <= 0:
        return OUT_OF_STOCK
    if current <= to_number(minimum):
        return LOW_STOCK
    maximum = to_number(maximum)
    if track_overstock and maximum > 0 and current > maximum:
        return OVERSTOCKED
    return IN_STOCK


def status_of(record: Record, track_overstock: bool = True) -> str:
    return stock_status(
        get_field(record, "current_stock"),
        get_field(record, "min_stock"),
        get_field(record, "max_stock"),
        track_overstock=track_overstock,
    )


def status_bucket(track_overstock: bool = True):
    """Key extractor grouping products by stock status, in a fixed order"""
    def extract(record: Record) -> BucketKey:
        status = status_of(record, track_overstock)
        return BucketKey(label=status, sort_value=STATUS_ORDER.index(status))

    return extract


def status_counts(result: AggregationResult, column: str = "products") -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for status in STATUS_ORDER:
        counts[status] = int(row_value(result, status, column, 0))
    return counts


def date_text(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    isoformat = getattr(value, "isoformat", None)
    return isoformat() if isoformat else str(value)
