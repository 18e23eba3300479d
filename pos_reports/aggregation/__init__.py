"""
Aggregation Layer

Generic grouping, accumulation and derivation shared by all report views.
"""

from .accumulators import AccumulatorKind, MetricSpec
from .compare import compare_results, compare_totals, merge_results
from .dates import Granularity, bucket_date, date_bucket, parse_timestamp
from .derived import (
    DerivedField,
    difference,
    margin,
    percentage,
    ratio,
    safe_divide,
    share_of_total,
    total_of,
)
from .engine import (
    AggregationResult,
    AggregationSpec,
    Aggregator,
    ReportRow,
    SortSpec,
    aggregate,
)
from .fields import (
    BucketKey,
    NEVER,
    UNCATEGORIZED,
    UNKNOWN,
    UNKNOWN_DATE,
    UNKNOWN_METHOD,
    UNKNOWN_PRODUCT,
    UNKNOWN_SUPPLIER,
    WALK_IN_CUSTOMER,
    dimension,
    entity,
    get_field,
    label_of,
    number,
    product_of,
    to_number,
)
from .summary import FieldSummary, safe_mean, summarize

__all__ = [
    "AccumulatorKind",
    "MetricSpec",
    "compare_results",
    "compare_totals",
    "merge_results",
    "Granularity",
    "bucket_date",
    "date_bucket",
    "parse_timestamp",
    "DerivedField",
    "difference",
    "margin",
    "percentage",
    "ratio",
    "safe_divide",
    "share_of_total",
    "total_of",
    "AggregationResult",
    "AggregationSpec",
    "Aggregator",
    "ReportRow",
    "SortSpec",
    "aggregate",
    "BucketKey",
    "NEVER",
    "UNCATEGORIZED",
    "UNKNOWN",
    "UNKNOWN_DATE",
    "UNKNOWN_METHOD",
    "UNKNOWN_PRODUCT",
    "UNKNOWN_SUPPLIER",
    "WALK_IN_CUSTOMER",
    "dimension",
    "entity",
    "get_field",
    "label_of",
    "number",
    "product_of",
    "to_number",
    "FieldSummary",
    "safe_mean",
    "summarize",
]
