"""
Payment Reports

Sales payments (customer side) and supplier payments. A payment row carries
the total of the document it settles; ``pending`` is that total minus what
was paid in the bucket.
"""

from pos_reports.aggregation.dates import local_date
from pos_reports.aggregation.derived import difference, percentage
from pos_reports.aggregation.engine import AggregationSpec, aggregate
from pos_reports.aggregation.fields import (
    NEVER,
    UNKNOWN_METHOD,
    UNKNOWN_SUPPLIER,
    WALK_IN_CUSTOMER,
    dimension,
    get_field,
    number,
)
from pos_reports.ingestion.sources import Dataset

from .registry import ReportContext, Records, register_report
from .tables import date_text, time_series, total


def _daily(records, context: ReportContext, document_total: str):
    return aggregate(records, (
        time_series("daily", context, "payment_date")
        .add_sum("paid", number("amount"))
        .add_sum("total", number(document_total))
        .add_derived("pending", difference("total", "paid"))
    ))


def _methods(records):
    return aggregate(records, (
        AggregationSpec("methods", key=dimension("payment_method", UNKNOWN_METHOD), key_name="method")
        .add_sum("amount", number("amount"))
        .add_count("count")
        .sort_by("amount")
    ))


def _summary(daily):
    total_paid = total(daily, "paid")
    total_amount = total(daily, "total")
    return {
        "total_paid": total_paid,
        "total_pending": total(daily, "pending"),
        "total_amount": total_amount,
        "payment_rate": percentage(total_paid, total_amount),
    }


@register_report("sales_payments", "Sales Payment Report", [Dataset.SALE_PAYMENTS])
def sales_payments(data: Records, context: ReportContext):
    payments = context.records(data, Dataset.SALE_PAYMENTS)

    daily = _daily(payments, context, "sale_total")

    customers = aggregate(payments, (
        AggregationSpec("customers", key=dimension("customer_name", WALK_IN_CUSTOMER), key_name="customer")
        .add_sum("total_sales", number("sale_total"))
        .add_sum("total_paid", number("amount"))
        .add_count("payment_count")
        .add_derived("pending_amount", difference("total_sales", "total_paid"))
        .sort_by("total_sales")
        .limit(10)
    ))

    tables = {"daily": daily, "customers": customers, "methods": _methods(payments)}
    return tables, _summary(daily)


def _last_payment(values, totals):
    return date_text(values.get("latest_payment_date")) or NEVER


@register_report("supplier_payments", "Supplier Payment Report", [Dataset.PURCHASE_PAYMENTS])
def supplier_payments(data: Records, context: ReportContext):
    payments = context.records(data, Dataset.PURCHASE_PAYMENTS)

    daily = _daily(payments, context, "purchase_total")

    suppliers = aggregate(payments, (
        AggregationSpec("suppliers", key=dimension("supplier_name", UNKNOWN_SUPPLIER), key_name="supplier")
        .add_sum("total_purchases", number("purchase_total"))
        .add_sum("total_paid", number("amount"))
        .add_count("payment_count")
        .add_max("latest_payment_date", lambda record: local_date(get_field(record, "payment_date"), context.tz))
        .add_derived("pending_amount", difference("total_purchases", "total_paid"))
        .add_derived("last_payment", _last_payment)
        .sort_by("total_purchases")
        .limit(15)
    ))

    tables = {"daily": daily, "suppliers": suppliers, "methods": _methods(payments)}
    return tables, _summary(daily)
