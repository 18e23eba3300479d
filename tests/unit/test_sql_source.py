"""
Unit Tests - SQL Record Source
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import Select

from pos_reports.aggregation.fields import WALK_IN_CUSTOMER
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
from pos_reports.ingestion.sources import Dataset
from pos_reports.ingestion.sql_source import SqlRecordSource
from pos_reports.reports.service import ReportService


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def seeded(session_factory):
    """POS schema with two recent sales, one old sale and their dimensions"""
    async with session_factory() as session:
        session.add_all([
            Category(id=1, name="Tools"),
            Product(id=1, name="Widget", category_id=1, cost_price=Decimal("10.00"),
                    current_stock=50, min_stock=10, max_stock=100),
            Product(id=2, name="Gadget", category_id=None, cost_price=Decimal("30.00"),
                    current_stock=0, min_stock=5, max_stock=0),
            Customer(id=1, name="Alice"),
            Supplier(id=1, name="Acme"),
            ExpenseCategory(id=1, name="Rent"),
        ])
        await session.flush()

        session.add_all([
            Sale(id=1, sale_number="S-1", customer_id=1, total_amount=Decimal("100.00"),
                 created_at=utc(2024, 3, 1, 10)),
            Sale(id=2, sale_number="S-2", customer_id=None, total_amount=Decimal("50.00"),
                 created_at=utc(2024, 3, 2, 9)),
            Sale(id=3, sale_number="S-3", customer_id=1, total_amount=Decimal("999.00"),
                 created_at=utc(2023, 1, 1, 9)),
            Purchase(id=1, purchase_number="P-1", supplier_id=1, total_amount=Decimal("40.00"),
                     created_at=utc(2024, 3, 1, 8)),
            Expense(id=1, category_id=1, amount=Decimal("100.00"), tax_amount=Decimal("10.00"),
                    expense_date=date(2024, 3, 1)),
            Expense(id=2, category_id=None, amount=Decimal("75.00"), tax_amount=Decimal("0.00"),
                    expense_date=date(2023, 1, 1)),
        ])
        await session.flush()

        session.add_all([
            SaleItem(sale_id=1, product_id=1, quantity=2, unit_price=Decimal("25.00"), total_price=Decimal("50.00")),
            SaleItem(sale_id=1, product_id=2, quantity=1, unit_price=Decimal("50.00"), total_price=Decimal("50.00")),
            SaleItem(sale_id=2, product_id=None, quantity=5, unit_price=Decimal("10.00"), total_price=Decimal("50.00")),
            SaleItem(sale_id=3, product_id=1, quantity=1, unit_price=Decimal("999.00"), total_price=Decimal("999.00")),
            PurchaseItem(purchase_id=1, product_id=1, quantity=4, unit_price=Decimal("10.00"),
                         total_price=Decimal("40.00")),
            SalePayment(sale_id=1, amount=Decimal("60.00"), payment_method="cash",
                        payment_date=utc(2024, 3, 1, 11)),
            PurchasePayment(purchase_id=1, amount=Decimal("40.00"), payment_method="bank",
                            payment_date=utc(2024, 3, 1, 9)),
        ])
        await session.commit()

    return SqlRecordSource(session_factory)


class TestSqlRecordSource:
    """Tests for per-dataset queries against SQLite"""

    def test_query_per_dataset(self, window):
        source = SqlRecordSource()

        for dataset in Dataset:
            assert isinstance(source.query(dataset, window), Select)

    def test_unknown_dataset(self, window):
        with pytest.raises(ValueError):
            SqlRecordSource().query("refunds", window)

    @pytest.mark.asyncio
    async def test_sales_in_window(self, seeded, window):
        rows = await seeded.fetch(Dataset.SALES, window)

        assert sorted(row["sale_id"] for row in rows) == [1, 2]
        by_id = {row["sale_id"]: row for row in rows}
        assert by_id[1]["customer_name"] == "Alice"
        assert by_id[2]["customer_name"] is None
        assert by_id[1]["total_amount"] == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_sale_items_keep_missing_product(self, seeded, window):
        """Test a line without a product still comes back with a NULL name"""
        rows = await seeded.fetch(Dataset.SALE_ITEMS, window)

        assert len(rows) == 3
        names = sorted((row["product_name"] or "") for row in rows)
        assert names == ["", "Gadget", "Widget"]
        gadget = next(row for row in rows if row["product_name"] == "Gadget")
        assert gadget["category_name"] is None
        assert gadget["customer_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_products_ignore_window(self, seeded, window):
        rows = await seeded.fetch(Dataset.PRODUCTS, window)

        assert {row["name"] for row in rows} == {"Widget", "Gadget"}
        assert set(rows[0]) == {
            "product_id", "name", "category_name", "current_stock", "min_stock", "max_stock", "cost_price",
        }

    @pytest.mark.asyncio
    async def test_expenses_by_date(self, seeded, window):
        rows = await seeded.fetch(Dataset.EXPENSES, window)

        assert len(rows) == 1
        assert rows[0]["expense_date"] == date(2024, 3, 1)
        assert rows[0]["category_name"] == "Rent"

    @pytest.mark.asyncio
    async def test_payments_joined_to_documents(self, seeded, window):
        sale_payments = await seeded.fetch(Dataset.SALE_PAYMENTS, window)
        purchase_payments = await seeded.fetch(Dataset.PURCHASE_PAYMENTS, window)

        assert sale_payments[0]["sale_total"] == Decimal("100.00")
        assert sale_payments[0]["payment_method"] == "cash"
        assert purchase_payments[0]["purchase_total"] == Decimal("40.00")
        assert purchase_payments[0]["supplier_name"] == "Acme"

    @pytest.mark.asyncio
    async def test_purchase_items(self, seeded, window):
        rows = await seeded.fetch(Dataset.PURCHASE_ITEMS, window)

        assert len(rows) == 1
        assert rows[0]["product_name"] == "Widget"
        assert rows[0]["supplier_name"] == "Acme"


class TestSqlReports:
    """Tests for reports loaded end to end from the database"""

    @pytest.mark.asyncio
    async def test_sales_report(self, seeded, now):
        service = ReportService(seeded, allowed_days=[30])

        result = await service.load("sales", days=30, now=now)

        assert result.summary["total_revenue"] == 150.0
        assert result.summary["total_sales"] == 2
        assert result.table("daily").labels() == ["2024-03-01", "2024-03-02"]
        assert result.table("customers").labels() == ["Alice", WALK_IN_CUSTOMER]

    @pytest.mark.asyncio
    async def test_stock_report(self, seeded, now):
        service = ReportService(seeded, allowed_days=[30])

        result = await service.load("stock", days=30, now=now)

        assert result.summary["total_products"] == 2
        assert result.summary["in_stock"] == 1
        assert result.summary["out_of_stock"] == 1
