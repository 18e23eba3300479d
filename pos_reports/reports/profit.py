"""
Profit Reports

Profit & loss and sales-vs-purchases. Both merge independently aggregated
series that share only their bucket keys; a key missing on one side counts
as zero there.
"""

from pos_reports.aggregation.compare import compare_results, merge_results
from pos_reports.aggregation.dates import Granularity
from pos_reports.aggregation.derived import difference, margin, total_of
from pos_reports.aggregation.engine import AggregationSpec, SortSpec, aggregate
from pos_reports.aggregation.fields import UNCATEGORIZED, UNKNOWN_PRODUCT, dimension, number, product_of
from pos_reports.aggregation.summary import summarize
from pos_reports.ingestion.sources import Dataset

from .registry import ReportContext, Records, register_report
from .tables import time_series, total

PROFIT_FIELDS = [
    ("expenses", total_of("cost_of_goods", "operating_expenses")),
    ("profit", difference("revenue", "expenses")),
    ("margin", margin("profit", "revenue")),
]


def _profit_loss_series(data: Records, context: ReportContext, name: str, granularity: Granularity):
    revenue = aggregate(context.records(data, Dataset.SALES), (
        time_series("revenue", context, "created_at", granularity)
        .add_sum("revenue", number("total_amount"))
    ))
    cost = aggregate(context.records(data, Dataset.SALE_ITEMS), (
        time_series("cost_of_goods", context, "created_at", granularity)
        .add_sum("cost", product_of("quantity", "cost_price"))
    ))
    expenses = aggregate(context.records(data, Dataset.EXPENSES), (
        time_series("operating_expenses", context, "expense_date", granularity)
        .add_sum("amount", number("amount"))
    ))

    return merge_results(
        [
            (revenue, {"revenue": "revenue"}),
            (cost, {"cost": "cost_of_goods"}),
            (expenses, {"amount": "operating_expenses"}),
        ],
        key_name=revenue.key_name,
        name=name,
        derived=PROFIT_FIELDS,
    )


@register_report(
    "profit_loss",
    "Profit & Loss Report",
    [Dataset.SALES, Dataset.SALE_ITEMS, Dataset.EXPENSES],
)
def profit_loss(data: Records, context: ReportContext):
    daily = _profit_loss_series(data, context, "daily", Granularity.DAY)
    monthly = _profit_loss_series(data, context, "monthly", Granularity.MONTH)

    categories = aggregate(context.records(data, Dataset.SALE_ITEMS), (
        AggregationSpec("categories", key=dimension("category_name", UNCATEGORIZED), key_name="category")
        .add_sum("revenue", product_of("quantity", "unit_price"))
        .add_sum("cost", product_of("quantity", "cost_price"))
        .add_derived("profit", difference("revenue", "cost"))
        .add_derived("margin", margin("profit", "revenue"))
        .sort_by("profit")
        .limit(10)
    ))

    summary = {
        "total_revenue": total(daily, "revenue"),
        "total_expenses": total(daily, "expenses"),
        "total_profit": total(daily, "profit"),
        "average_margin": summarize(daily, "margin").mean,
    }
    tables = {"daily": daily, "monthly": monthly, "categories": categories}
    return tables, summary


def _by_dimension(records, name, path, fallback, key_name, amount_name, quantity_name=None):
    spec = AggregationSpec(name, key=dimension(path, fallback), key_name=key_name)
    spec.add_sum(amount_name, number("total_price"))
    if quantity_name:
        spec.add_sum(quantity_name, number("quantity"))
    return aggregate(records, spec)


@register_report(
    "sales_vs_purchases",
    "Sales vs Purchase Report",
    [Dataset.SALES, Dataset.PURCHASES, Dataset.SALE_ITEMS, Dataset.PURCHASE_ITEMS],
)
def sales_vs_purchases(data: Records, context: ReportContext):
    sale_items = context.records(data, Dataset.SALE_ITEMS)
    purchase_items = context.records(data, Dataset.PURCHASE_ITEMS)

    sales_daily = aggregate(context.records(data, Dataset.SALES), (
        time_series("sales", context, "created_at").add_sum("amount", number("total_amount"))
    ))
    purchases_daily = aggregate(context.records(data, Dataset.PURCHASES), (
        time_series("purchases", context, "created_at").add_sum("amount", number("total_amount"))
    ))
    daily = compare_results(
        sales_daily,
        purchases_daily,
        metric="amount",
        left_name="sales",
        right_name="purchases",
        name="daily",
    )

    products = merge_results(
        [
            (_by_dimension(sale_items, "sales", "product_name", UNKNOWN_PRODUCT, "product", "amount", "quantity"),
             {"amount": "sales_amount", "quantity": "sales_quantity"}),
            (_by_dimension(purchase_items, "purchases", "product_name", UNKNOWN_PRODUCT, "product", "amount", "quantity"),
             {"amount": "purchase_amount", "quantity": "purchase_quantity"}),
        ],
        key_name="product",
        name="products",
        derived=[
            ("profit", difference("sales_amount", "purchase_amount")),
            ("margin", margin("profit", "sales_amount")),
        ],
        sort=SortSpec(field="sales_amount", descending=True),
        limit=15,
    )

    categories = merge_results(
        [
            (_by_dimension(sale_items, "sales", "category_name", UNCATEGORIZED, "category", "amount"),
             {"amount": "sales"}),
            (_by_dimension(purchase_items, "purchases", "category_name", UNCATEGORIZED, "category", "amount"),
             {"amount": "purchases"}),
        ],
        key_name="category",
        name="categories",
        derived=[("profit", difference("sales", "purchases"))],
        sort=SortSpec(field="sales", descending=True),
    )

    summary = {
        "total_sales": total(daily, "sales"),
        "total_purchases": total(daily, "purchases"),
        "total_profit": total(daily, "difference"),
        "average_ratio": summarize(daily, "ratio").mean,
    }
    tables = {"daily": daily, "products": products, "categories": categories}
    return tables, summary
