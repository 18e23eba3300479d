"""
Cross-Entity Comparison

Outer-joins independently aggregated results over a shared key space
(sales-by-date against purchases-by-date, revenue against expenses...).
A key missing from one side contributes 0 to that side's metrics.
"""

from typing import List, Mapping, Optional, Sequence, Tuple

import polars as pl
import structlog

from .derived import DerivedField, Formula, difference, ratio
from .engine import FALLBACK, IDENTITY, LABEL, SORT_VALUE, AggregationResult, SortSpec, bucket_frame, build_result
from .fields import BucketKey

logger = structlog.get_logger(__name__)

# (result, {source metric -> merged column})
Side = Tuple[AggregationResult, Mapping[str, str]]

SEEN = "__seen"


def _side_frame(result: AggregationResult, fields: Mapping[str, str]) -> pl.DataFrame:
    return bucket_frame(
        [row.bucket for row in result.rows],
        [
            pl.Series(target, [row.values.get(source, 0.0) for row in result.rows], strict=False)
            for source, target in fields.items()
        ],
    )


def merge_results(
    sides: Sequence[Side],
    key_name: str,
    name: str = "merged",
    derived: Sequence[Tuple[str, Formula]] = (),
    sort: Optional[SortSpec] = None,
    limit: Optional[int] = None,
) -> AggregationResult:
    """
    Merge any number of aggregation results on bucket identity.

    Args:
        sides: Results paired with the metric renames to take from each
        key_name: Semantic name of the merged key column
        name: Name of the merged result
        derived: (name, formula) pairs evaluated on merged rows
        sort: Output ordering; chronological/key order when omitted
        limit: Optional top-N truncation

    Returns:
        AggregationResult keyed by the union of all sides' buckets
    """
    if limit is not None and limit < 0:
        raise ValueError("limit must be non-negative")

    columns: List[str] = []
    for _, fields in sides:
        for target in fields.values():
            if target in columns or target == key_name:
                raise ValueError(f"Duplicate merged column '{target}'")
            columns.append(target)

    for result, _ in sides:
        if result.truncated:
            logger.warning(
                "Merging a truncated result",
                result=result.name,
                kept=len(result),
                buckets=result.bucket_count,
            )

    frames = [_side_frame(result, fields) for result, fields in sides]

    # union of buckets in first-seen order, first side's label and sort value win
    keys = bucket_frame([])
    if frames:
        keys = pl.concat(
            [frame.select(IDENTITY, LABEL, SORT_VALUE, FALLBACK) for frame in frames],
            how="vertical_relaxed",
        )
    merged = keys.unique(subset=IDENTITY, keep="first", maintain_order=True).with_row_index(SEEN)

    for frame in frames:
        merged = merged.join(frame.drop(LABEL, SORT_VALUE, FALLBACK), on=IDENTITY, how="full", coalesce=True)
    merged = merged.sort(SEEN).drop(SEEN)
    if columns:
        merged = merged.with_columns(pl.col(columns).fill_null(0))

    return build_result(
        name=name,
        key_name=key_name,
        frame=merged,
        metric_columns=columns,
        derived=[DerivedField(field_name, formula) for field_name, formula in derived],
        sort=sort,
        top_n=limit,
        input_rows=sum(result.input_rows for result, _ in sides),
        fallback_count=sum(result.fallback_count for result, _ in sides),
    )


def compare_results(
    left: AggregationResult,
    right: AggregationResult,
    metric: str,
    left_name: str,
    right_name: str,
    key_name: Optional[str] = None,
    name: Optional[str] = None,
) -> AggregationResult:
    """
    Two-sided merge of one metric with ``difference`` and ``ratio`` columns.

    ``ratio`` is left / right and is 0.0 where the right side is 0.
    """
    return merge_results(
        [(left, {metric: left_name}), (right, {metric: right_name})],
        key_name=key_name or left.key_name,
        name=name or f"{left_name}_vs_{right_name}",
        derived=[
            ("difference", difference(left_name, right_name)),
            ("ratio", ratio(left_name, right_name)),
        ],
    )


def _from_mapping(values: Mapping[str, float], key_name: str, metric: str) -> AggregationResult:
    frame = bucket_frame(
        [BucketKey(label=label) for label in values],
        [pl.Series(metric, list(values.values()), dtype=pl.Float64, strict=False)],
    )
    return build_result(name=metric, key_name=key_name, frame=frame, metric_columns=[metric])


def compare_totals(
    left: Mapping[str, float],
    right: Mapping[str, float],
    key_name: str = "date",
    left_name: str = "left",
    right_name: str = "right",
) -> AggregationResult:
    """
    Compare two plain ``{label: value}`` maps.

    Example:
        compare_totals({"2024-01-01": 100}, {"2024-01-02": 40},
                       left_name="sales", right_name="purchases")
    """
    return compare_results(
        _from_mapping(left, key_name, "value"),
        _from_mapping(right, key_name, "value"),
        metric="value",
        left_name=left_name,
        right_name=right_name,
        key_name=key_name,
    )
