"""
Stock Reports

Inventory snapshot reports. Products are not filtered by the date window;
stock value is current stock times cost price. Product rows are keyed by
product id, so products sharing a name (or missing one) stay separate rows.
"""

from pos_reports.aggregation.derived import percentage, ratio
from pos_reports.aggregation.engine import AggregationSpec, aggregate
from pos_reports.aggregation.fields import (
    UNCATEGORIZED,
    UNKNOWN_PRODUCT,
    dimension,
    entity,
    label_of,
    number,
    product_of,
)
from pos_reports.ingestion.sources import Dataset

from .registry import ReportContext, Records, register_report
from .tables import (
    IN_STOCK,
    LOW_STOCK,
    OUT_OF_STOCK,
    OVERSTOCKED,
    status_bucket,
    status_counts,
    stock_status,
    total,
)

stock_value = product_of("current_stock", "cost_price")


def _status_field(track_overstock: bool):
    def formula(values, totals):
        return stock_status(
            values.get("current_stock"),
            values.get("min_stock"),
            values.get("max_stock"),
            track_overstock=track_overstock,
        )

    return formula


def _products_table(records, name, track_overstock, limit=None):
    spec = (
        AggregationSpec(name, key=entity("product_id", "name", UNKNOWN_PRODUCT), key_name="product")
        .add_max("category", label_of("category_name", UNCATEGORIZED))
        .add_sum("current_stock", number("current_stock"))
        .add_max("min_stock", number("min_stock"))
        .add_max("max_stock", number("max_stock"))
        .add_sum("value", stock_value)
        .add_derived("status", _status_field(track_overstock))
        .sort_by("value")
    )
    if limit is not None:
        spec.limit(limit)
    return aggregate(records, spec)


def _statuses_table(records, track_overstock):
    return aggregate(records, (
        AggregationSpec("statuses", key=status_bucket(track_overstock), key_name="status")
        .add_count("products")
        .add_sum("value", stock_value)
    ))


@register_report("stock", "Stock Report", [Dataset.PRODUCTS])
def stock_report(data: Records, context: ReportContext):
    products = context.records(data, Dataset.PRODUCTS)

    by_product = _products_table(products, "products", track_overstock=True)

    categories = aggregate(products, (
        AggregationSpec("categories", key=dimension("category_name", UNCATEGORIZED), key_name="category")
        .add_count("products")
        .add_sum("total_value", stock_value)
        .add_sum("total_stock", number("current_stock"))
        .add_derived("avg_stock", ratio("total_stock", "products"))
        .sort_by("total_value")
    ))

    statuses = _statuses_table(products, track_overstock=True)
    counts = status_counts(statuses)

    summary = {
        "total_products": total(statuses, "products"),
        "total_value": total(by_product, "value"),
        "in_stock": counts[IN_STOCK],
        "low_stock": counts[LOW_STOCK],
        "out_of_stock": counts[OUT_OF_STOCK],
        "overstocked": counts[OVERSTOCKED],
    }
    tables = {"products": by_product, "categories": categories, "statuses": statuses}
    return tables, summary


@register_report("daily_stock", "Daily Stock Report", [Dataset.PRODUCTS])
def daily_stock(data: Records, context: ReportContext):
    products = context.records(data, Dataset.PRODUCTS)

    statuses = _statuses_table(products, track_overstock=False)
    top_products = _products_table(products, "top_products", track_overstock=False, limit=10)

    categories = aggregate(products, (
        AggregationSpec("categories", key=dimension("category_name", UNCATEGORIZED), key_name="category")
        .add_count("products")
        .add_sum("total_value", stock_value)
        .sort_by("total_value")
    ))

    counts = status_counts(statuses)
    total_products = total(statuses, "products")
    summary = {
        "total_products": total_products,
        "total_value": total(top_products, "value"),
        "in_stock": counts[IN_STOCK],
        "low_stock": counts[LOW_STOCK],
        "out_of_stock": counts[OUT_OF_STOCK],
        "in_stock_share": percentage(counts[IN_STOCK], total_products),
    }
    tables = {"statuses": statuses, "top_products": top_products, "categories": categories}
    return tables, summary
