"""
Sales Reports

Overview dashboard, sales report and product sales report. Revenue of a
receipt is its ``total_amount``; revenue of a line is its ``total_price``.
"""

from pos_reports.aggregation.dates import Granularity
from pos_reports.aggregation.derived import ratio, share_of_total
from pos_reports.aggregation.engine import AggregationSpec, aggregate
from pos_reports.aggregation.fields import (
    UNCATEGORIZED,
    UNKNOWN_PRODUCT,
    WALK_IN_CUSTOMER,
    dimension,
    label_of,
    number,
    product_of,
)
from pos_reports.ingestion.sources import Dataset

from .registry import ReportContext, Records, register_report
from .tables import average, time_series, total


def daily_sales(records, context: ReportContext):
    spec = (
        time_series("daily", context, "created_at")
        .add_count("sales")
        .add_sum("revenue", number("total_amount"))
    )
    return aggregate(records, spec)


def sales_summary(daily):
    return {
        "total_revenue": total(daily, "revenue"),
        "total_sales": total(daily, "sales"),
        "average_sale": average(daily, "revenue", "sales"),
    }


@register_report("overview", "Reports Overview", [Dataset.SALES, Dataset.SALE_ITEMS])
def overview(data: Records, context: ReportContext):
    sales = context.records(data, Dataset.SALES)
    items = context.records(data, Dataset.SALE_ITEMS)

    daily = daily_sales(sales, context)

    top_products = aggregate(items, (
        AggregationSpec("top_products", key=dimension("product_name", UNKNOWN_PRODUCT), key_name="product")
        .add_sum("quantity_sold", number("quantity"))
        .add_sum("revenue", number("total_price"))
        .sort_by("revenue")
        .limit(10)
    ))

    categories = aggregate(items, (
        AggregationSpec("categories", key=dimension("category_name", UNCATEGORIZED), key_name="category")
        .add_sum("sales", number("quantity"))
        .add_sum("revenue", number("total_price"))
        .add_derived("percentage", share_of_total("revenue"))
        .sort_by("revenue")
    ))

    tables = {"daily": daily, "top_products": top_products, "categories": categories}
    return tables, sales_summary(daily)


@register_report("sales", "Sales Report", [Dataset.SALES, Dataset.SALE_ITEMS])
def sales_report(data: Records, context: ReportContext):
    sales = context.records(data, Dataset.SALES)
    items = context.records(data, Dataset.SALE_ITEMS)

    daily = daily_sales(sales, context)

    customers = aggregate(sales, (
        AggregationSpec("customers", key=dimension("customer_name", WALK_IN_CUSTOMER), key_name="customer")
        .add_count("sales")
        .add_sum("revenue", number("total_amount"))
        .sort_by("revenue")
        .limit(10)
    ))

    products = aggregate(items, (
        AggregationSpec("products", key=dimension("product_name", UNKNOWN_PRODUCT), key_name="product")
        .add_sum("quantity", number("quantity"))
        .add_sum("revenue", number("total_price"))
        .sort_by("revenue")
        .limit(10)
    ))

    tables = {"daily": daily, "customers": customers, "products": products}
    return tables, sales_summary(daily)


@register_report("product_sales", "Product Sales Report", [Dataset.SALE_ITEMS])
def product_sales(data: Records, context: ReportContext):
    items = context.records(data, Dataset.SALE_ITEMS)

    products = aggregate(items, (
        AggregationSpec("products", key=dimension("product_name", UNKNOWN_PRODUCT), key_name="product")
        .add_sum("quantity", number("quantity"))
        .add_sum("revenue", number("total_price"))
        .add_sum("line_value", product_of("unit_price", "quantity"))
        .add_count("sales_count")
        .add_derived("avg_price", ratio("line_value", "quantity"))
        .sort_by("revenue")
        .limit(15)
    ))

    customers = aggregate(items, (
        AggregationSpec("customers", key=dimension("customer_name", WALK_IN_CUSTOMER), key_name="customer")
        .add_distinct_count("products", label_of("product_name", UNKNOWN_PRODUCT))
        .add_sum("total_revenue", number("total_price"))
        .sort_by("total_revenue")
        .limit(10)
    ))

    monthly = aggregate(items, (
        time_series("monthly", context, "created_at", Granularity.MONTH)
        .add_sum("quantity", number("quantity"))
        .add_sum("revenue", number("total_price"))
    ))

    summary = {
        "total_revenue": total(products, "revenue"),
        "total_quantity": total(products, "quantity"),
        "average_price": average(products, "line_value", "quantity"),
    }
    tables = {"products": products, "customers": customers, "monthly": monthly}
    return tables, summary
