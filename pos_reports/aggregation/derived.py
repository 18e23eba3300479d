"""
Derived Fields

Formulas evaluated once a bucket's metrics are complete. Every ratio is
zero-guarded: a zero denominator, or any non-finite result, yields 0.0.

The stock formulas (``ratio``, ``share_of_total``, ``margin``,
``difference``, ``total_of``) are polars expressions applied with
``with_columns``. Any other callable ``formula(values, totals)`` is
evaluated row by row.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union
import math

import polars as pl

from .fields import to_number

Values = Mapping[str, Any]
Formula = Union[pl.Expr, Callable[[Values, Values], Any]]


@dataclass(frozen=True, eq=False)
class DerivedField:
    """
    Named formula over a bucket's values.

    A callable ``formula(values, totals)`` receives the bucket's metrics (plus
    derived fields declared before this one) and the column totals of the
    result. An expression sees the same columns.
    """
    name: str
    formula: Formula

    def apply(self, frame: pl.DataFrame, totals: Values) -> pl.DataFrame:
        if isinstance(self.formula, pl.Expr):
            return frame.with_columns(self.formula.alias(self.name))
        values = [self.formula(row, totals) for row in frame.iter_rows(named=True)]
        return frame.with_columns(pl.Series(self.name, values, strict=False))


def safe_divide(numerator: Any, denominator: Any) -> float:
    """numerator / denominator, or 0.0 when undefined"""
    num = to_number(numerator)
    den = to_number(denominator)
    if den == 0:
        return 0.0
    result = num / den
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def percentage(part: Any, whole: Any) -> float:
    """part as a percentage of whole, 0.0 when whole is 0"""
    return safe_divide(part, whole) * 100


def _number(name: str) -> pl.Expr:
    return pl.col(name).cast(pl.Float64, strict=False).fill_nan(0.0).fill_null(0.0)


def _guarded(numerator: pl.Expr, denominator: pl.Expr) -> pl.Expr:
    quotient = numerator / denominator
    return (
        pl.when(denominator == 0)
        .then(0.0)
        .when(quotient.is_finite())
        .then(quotient)
        .otherwise(0.0)
    )


def ratio(numerator: str, denominator: str, scale: float = 1.0) -> pl.Expr:
    """numerator / denominator * scale"""
    return _guarded(_number(numerator), _number(denominator)) * scale


def share_of_total(field: str) -> pl.Expr:
    """Bucket's share of the column total, in percent"""
    return _guarded(_number(field), _number(field).sort().sum()) * 100.0


def margin(profit: str, revenue: str) -> pl.Expr:
    """profit / revenue, in percent"""
    return ratio(profit, revenue, scale=100.0)


def difference(minuend: str, subtrahend: str) -> pl.Expr:
    return _number(minuend) - _number(subtrahend)


def total_of(*fields: str) -> pl.Expr:
    return pl.sum_horizontal(*(_number(f) for f in fields))
