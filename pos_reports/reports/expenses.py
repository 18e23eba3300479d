"""
Expense Reports

Expense report and expense tax report. Headline maxima are taken over
individual expenses, not over daily buckets.
"""

from pos_reports.aggregation.dates import Granularity
from pos_reports.aggregation.derived import percentage, ratio, share_of_total
from pos_reports.aggregation.engine import AggregationSpec, aggregate
from pos_reports.aggregation.fields import UNCATEGORIZED, dimension, number
from pos_reports.aggregation.summary import summarize
from pos_reports.ingestion.sources import Dataset

from .registry import ReportContext, Records, register_report
from .tables import time_series


@register_report("expenses", "Expense Report", [Dataset.EXPENSES])
def expenses_report(data: Records, context: ReportContext):
    expenses = context.records(data, Dataset.EXPENSES)

    daily = aggregate(expenses, (
        time_series("daily", context, "expense_date")
        .add_sum("amount", number("amount"))
        .add_count("count")
    ))

    categories = aggregate(expenses, (
        AggregationSpec("categories", key=dimension("category_name", UNCATEGORIZED), key_name="category")
        .add_sum("amount", number("amount"))
        .add_count("count")
        .add_derived("percentage", share_of_total("amount"))
        .sort_by("amount")
    ))

    monthly = aggregate(expenses, (
        time_series("monthly", context, "expense_date", Granularity.MONTH)
        .add_sum("amount", number("amount"))
        .add_count("count")
    ))

    amounts = summarize(expenses, "amount")
    summary = {
        "total_expenses": amounts.total,
        "expense_count": amounts.count,
        "average_expense": amounts.mean,
        "max_expense": amounts.maximum,
    }
    tables = {"daily": daily, "categories": categories, "monthly": monthly}
    return tables, summary


def _tax_series(name, context, granularity=Granularity.DAY):
    return (
        time_series(name, context, "expense_date", granularity)
        .add_sum("tax_amount", number("tax_amount"))
        .add_sum("expense_amount", number("amount"))
        .add_derived("tax_rate", ratio("tax_amount", "expense_amount", scale=100.0))
    )


@register_report("expense_tax", "Expense Tax Report", [Dataset.EXPENSES])
def expense_tax(data: Records, context: ReportContext):
    expenses = context.records(data, Dataset.EXPENSES)

    daily = aggregate(expenses, _tax_series("daily", context))

    categories = aggregate(expenses, (
        AggregationSpec("categories", key=dimension("category_name", UNCATEGORIZED), key_name="category")
        .add_sum("total_expenses", number("amount"))
        .add_sum("total_tax", number("tax_amount"))
        .add_count("expense_count")
        .add_derived("avg_tax_rate", ratio("total_tax", "total_expenses", scale=100.0))
        .sort_by("total_tax")
        .limit(15)
    ))

    monthly = aggregate(expenses, _tax_series("monthly", context, Granularity.MONTH))

    taxes = summarize(expenses, "tax_amount")
    amounts = summarize(expenses, "amount")
    summary = {
        "total_tax": taxes.total,
        "total_expenses": amounts.total,
        "average_tax_rate": percentage(taxes.total, amounts.total),
        "max_tax": taxes.maximum,
    }
    tables = {"daily": daily, "categories": categories, "monthly": monthly}
    return tables, summary
