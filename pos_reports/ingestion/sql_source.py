"""
SQL Record Source

One ``select()`` per dataset over the POS schema. Dimension tables are
outer-joined so a line whose product, category, customer or supplier is
missing still comes back, with a NULL name the aggregator maps to its
sentinel.
"""

from typing import AsyncContextManager, Callable, Dict, List

import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from pos_reports.aggregation.fields import Record
from pos_reports.database.connection import get_db
from pos_reports.database.models import (
    Category,
    Customer,
    Expense,
    ExpenseCategory,
    Product,
    Purchase,
    PurchaseItem,
    PurchasePayment,
    Sale,
    SaleItem,
    SalePayment,
    Supplier,
)

from .sources import Dataset, DateRange

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def _sales(window: DateRange) -> Select:
    return (
        select(
            Sale.id.label("sale_id"),
            Sale.created_at,
            Sale.total_amount,
            Customer.name.label("customer_name"),
        )
        .outerjoin(Customer, Sale.customer_id == Customer.id)
        .where(Sale.created_at.between(window.start, window.end))
    )


def _sale_items(window: DateRange) -> Select:
    return (
        select(
            SaleItem.sale_id,
            Sale.created_at,
            SaleItem.quantity,
            SaleItem.unit_price,
            SaleItem.total_price,
            Product.name.label("product_name"),
            Category.name.label("category_name"),
            Product.cost_price,
            Customer.name.label("customer_name"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .outerjoin(Product, SaleItem.product_id == Product.id)
        .outerjoin(Category, Product.category_id == Category.id)
        .outerjoin(Customer, Sale.customer_id == Customer.id)
        .where(Sale.created_at.between(window.start, window.end))
    )


def _purchases(window: DateRange) -> Select:
    return (
        select(
            Purchase.id.label("purchase_id"),
            Purchase.created_at,
            Purchase.total_amount,
            Supplier.name.label("supplier_name"),
        )
        .outerjoin(Supplier, Purchase.supplier_id == Supplier.id)
        .where(Purchase.created_at.between(window.start, window.end))
    )


def _purchase_items(window: DateRange) -> Select:
    return (
        select(
            PurchaseItem.purchase_id,
            Purchase.created_at,
            PurchaseItem.quantity,
            PurchaseItem.unit_price,
            PurchaseItem.total_price,
            Product.name.label("product_name"),
            Category.name.label("category_name"),
            Product.cost_price,
            Supplier.name.label("supplier_name"),
        )
        .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
        .outerjoin(Product, PurchaseItem.product_id == Product.id)
        .outerjoin(Category, Product.category_id == Category.id)
        .outerjoin(Supplier, Purchase.supplier_id == Supplier.id)
        .where(Purchase.created_at.between(window.start, window.end))
    )


def _products(window: DateRange) -> Select:
    return (
        select(
            Product.id.label("product_id"),
            Product.name,
            Category.name.label("category_name"),
            Product.current_stock,
            Product.min_stock,
            Product.max_stock,
            Product.cost_price,
        )
        .outerjoin(Category, Product.category_id == Category.id)
    )


def _expenses(window: DateRange) -> Select:
    return (
        select(
            Expense.id.label("expense_id"),
            Expense.expense_date,
            Expense.amount,
            Expense.tax_amount,
            ExpenseCategory.name.label("category_name"),
        )
        .outerjoin(ExpenseCategory, Expense.category_id == ExpenseCategory.id)
        .where(Expense.expense_date.between(window.start.date(), window.end.date()))
    )


def _sale_payments(window: DateRange) -> Select:
    return (
        select(
            SalePayment.id.label("payment_id"),
            SalePayment.payment_date,
            SalePayment.amount,
            SalePayment.payment_method,
            Sale.total_amount.label("sale_total"),
            Customer.name.label("customer_name"),
        )
        .join(Sale, SalePayment.sale_id == Sale.id)
        .outerjoin(Customer, Sale.customer_id == Customer.id)
        .where(SalePayment.payment_date.between(window.start, window.end))
    )


def _purchase_payments(window: DateRange) -> Select:
    return (
        select(
            PurchasePayment.id.label("payment_id"),
            PurchasePayment.payment_date,
            PurchasePayment.amount,
            PurchasePayment.payment_method,
            Purchase.total_amount.label("purchase_total"),
            Supplier.name.label("supplier_name"),
        )
        .join(Purchase, PurchasePayment.purchase_id == Purchase.id)
        .outerjoin(Supplier, Purchase.supplier_id == Supplier.id)
        .where(PurchasePayment.payment_date.between(window.start, window.end))
    )


QUERIES: Dict[Dataset, Callable[[DateRange], Select]] = {
    Dataset.SALES: _sales,
    Dataset.SALE_ITEMS: _sale_items,
    Dataset.PURCHASES: _purchases,
    Dataset.PURCHASE_ITEMS: _purchase_items,
    Dataset.PRODUCTS: _products,
    Dataset.EXPENSES: _expenses,
    Dataset.SALE_PAYMENTS: _sale_payments,
    Dataset.PURCHASE_PAYMENTS: _purchase_payments,
}


class SqlRecordSource:
    """
    Record source reading the POS database.

    Example:
        source = SqlRecordSource()
        rows = await source.fetch(Dataset.SALES, DateRange.last(30))
    """

    def __init__(self, session_factory: SessionFactory = get_db):
        self.session_factory = session_factory

    def query(self, dataset: Dataset, window: DateRange) -> Select:
        return QUERIES[Dataset(dataset)](window)

    async def fetch(self, dataset: Dataset, window: DateRange) -> List[Record]:
        dataset = Dataset(dataset)
        stmt = self.query(dataset, window)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = [dict(row._mapping) for row in result]

        logger.debug("Fetched records", dataset=dataset.value, rows=len(rows), days=window.days)
        return rows
