"""
Purchase Reports

Purchase report and product purchase report, the supplier-side mirror of
the sales reports.
"""

from pos_reports.aggregation.dates import Granularity
from pos_reports.aggregation.derived import ratio
from pos_reports.aggregation.engine import AggregationSpec, aggregate
from pos_reports.aggregation.fields import (
    UNKNOWN_PRODUCT,
    UNKNOWN_SUPPLIER,
    dimension,
    label_of,
    number,
    product_of,
)
from pos_reports.ingestion.sources import Dataset

from .registry import ReportContext, Records, register_report
from .tables import average, time_series, total


@register_report("purchases", "Purchase Report", [Dataset.PURCHASES, Dataset.PURCHASE_ITEMS])
def purchases_report(data: Records, context: ReportContext):
    purchases = context.records(data, Dataset.PURCHASES)
    items = context.records(data, Dataset.PURCHASE_ITEMS)

    daily = aggregate(purchases, (
        time_series("daily", context, "created_at")
        .add_count("purchases")
        .add_sum("amount", number("total_amount"))
    ))

    suppliers = aggregate(purchases, (
        AggregationSpec("suppliers", key=dimension("supplier_name", UNKNOWN_SUPPLIER), key_name="supplier")
        .add_count("purchases")
        .add_sum("amount", number("total_amount"))
        .sort_by("amount")
        .limit(10)
    ))

    products = aggregate(items, (
        AggregationSpec("products", key=dimension("product_name", UNKNOWN_PRODUCT), key_name="product")
        .add_sum("quantity", number("quantity"))
        .add_sum("amount", number("total_price"))
        .sort_by("amount")
        .limit(10)
    ))

    summary = {
        "total_amount": total(daily, "amount"),
        "total_purchases": total(daily, "purchases"),
        "average_purchase": average(daily, "amount", "purchases"),
    }
    tables = {"daily": daily, "suppliers": suppliers, "products": products}
    return tables, summary


@register_report("product_purchases", "Product Purchase Report", [Dataset.PURCHASE_ITEMS])
def product_purchases(data: Records, context: ReportContext):
    items = context.records(data, Dataset.PURCHASE_ITEMS)

    products = aggregate(items, (
        AggregationSpec("products", key=dimension("product_name", UNKNOWN_PRODUCT), key_name="product")
        .add_sum("quantity", number("quantity"))
        .add_sum("amount", number("total_price"))
        .add_sum("line_value", product_of("unit_price", "quantity"))
        .add_count("purchase_count")
        .add_derived("avg_price", ratio("line_value", "quantity"))
        .sort_by("amount")
        .limit(15)
    ))

    suppliers = aggregate(items, (
        AggregationSpec("suppliers", key=dimension("supplier_name", UNKNOWN_SUPPLIER), key_name="supplier")
        .add_distinct_count("products", label_of("product_name", UNKNOWN_PRODUCT))
        .add_sum("total_amount", number("total_price"))
        .sort_by("total_amount")
        .limit(10)
    ))

    monthly = aggregate(items, (
        time_series("monthly", context, "created_at", Granularity.MONTH)
        .add_sum("quantity", number("quantity"))
        .add_sum("amount", number("total_price"))
    ))

    summary = {
        "total_amount": total(products, "amount"),
        "total_quantity": total(products, "quantity"),
        "average_price": average(products, "line_value", "quantity"),
    }
    tables = {"products": products, "suppliers": suppliers, "monthly": monthly}
    return tables, summary
