"""
Test Suite Configuration
"""
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pos_reports.database.models import Base
from pos_reports.ingestion.sources import Dataset, DateRange, InMemoryRecordSource

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed anchor for date windows"""
    return NOW


@pytest.fixture
def window() -> DateRange:
    """Last 30 days before NOW"""
    return DateRange.last(30, now=NOW, allowed=[7, 30, 90, 365])


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the POS schema"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine"""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def sales_records() -> List[dict]:
    """Receipts; sale 2 is a walk-in sale, sale 4 has a string amount"""
    return [
        {"sale_id": 1, "created_at": "2024-03-01T10:00:00Z", "total_amount": 100.0, "customer_name": "Alice"},
        {"sale_id": 2, "created_at": "2024-03-01T15:30:00Z", "total_amount": 50.0, "customer_name": None},
        {"sale_id": 3, "created_at": "2024-03-02T09:00:00Z", "total_amount": 30.0, "customer_name": "Bob"},
        {"sale_id": 4, "created_at": "2024-03-10T09:00:00Z", "total_amount": "20.50", "customer_name": "Alice"},
    ]


@pytest.fixture
def sale_item_records() -> List[dict]:
    """Sale lines; the line of sale 3 lost its product"""
    def item(sale_id, created_at, quantity, unit_price, total_price, product, category, cost, customer):
        return {
            "sale_id": sale_id,
            "created_at": created_at,
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": total_price,
            "product_name": product,
            "category_name": category,
            "cost_price": cost,
            "customer_name": customer,
        }

    return [
        item(1, "2024-03-01T10:00:00Z", 2, 25.0, 50.0, "Widget", "Tools", 10.0, "Alice"),
        item(1, "2024-03-01T10:00:00Z", 1, 50.0, 50.0, "Gadget", "Electronics", 30.0, "Alice"),
        item(2, "2024-03-01T15:30:00Z", 5, 10.0, 50.0, "Widget", "Tools", 10.0, None),
        item(3, "2024-03-02T09:00:00Z", 3, 10.0, 30.0, None, None, None, "Bob"),
        item(4, "2024-03-10T09:00:00Z", 1, 20.5, 20.5, "Gadget", "Electronics", 30.0, "Alice"),
    ]


@pytest.fixture
def purchase_records() -> List[dict]:
    return [
        {"purchase_id": 1, "created_at": "2024-03-01T08:00:00Z", "total_amount": 40.0, "supplier_name": "Acme"},
        {"purchase_id": 2, "created_at": "2024-03-05T08:00:00Z", "total_amount": 60.0, "supplier_name": None},
    ]


@pytest.fixture
def purchase_item_records() -> List[dict]:
    return [
        {
            "purchase_id": 1, "created_at": "2024-03-01T08:00:00Z", "quantity": 4, "unit_price": 10.0,
            "total_price": 40.0, "product_name": "Widget", "category_name": "Tools", "cost_price": 10.0,
            "supplier_name": "Acme",
        },
        {
            "purchase_id": 2, "created_at": "2024-03-05T08:00:00Z", "quantity": 2, "unit_price": 30.0,
            "total_price": 60.0, "product_name": "Gadget", "category_name": "Electronics", "cost_price": 30.0,
            "supplier_name": None,
        },
    ]


@pytest.fixture
def product_records() -> List[dict]:
    """One product per stock status"""
    return [
        {"product_id": 1, "name": "Widget", "category_name": "Tools",
         "current_stock": 50, "min_stock": 10, "max_stock": 100, "cost_price": 10.0},
        {"product_id": 2, "name": "Gadget", "category_name": "Electronics",
         "current_stock": 5, "min_stock": 10, "max_stock": 50, "cost_price": 30.0},
        {"product_id": 3, "name": "Gizmo", "category_name": None,
         "current_stock": 0, "min_stock": 5, "max_stock": 0, "cost_price": 20.0},
        {"product_id": 4, "name": "Bolt", "category_name": "Tools",
         "current_stock": 500, "min_stock": 50, "max_stock": 200, "cost_price": 0.5},
    ]


@pytest.fixture
def expense_records() -> List[dict]:
    return [
        {"expense_id": 1, "expense_date": "2024-03-01", "amount": 100.0, "tax_amount": 10.0, "category_name": "Rent"},
        {"expense_id": 2, "expense_date": "2024-03-01", "amount": 50.0, "tax_amount": 5.0, "category_name": "Utilities"},
        {"expense_id": 3, "expense_date": "2024-03-03", "amount": 200.0, "tax_amount": 0.0, "category_name": None},
    ]


@pytest.fixture
def sale_payment_records() -> List[dict]:
    return [
        {"payment_id": 1, "payment_date": "2024-03-01T11:00:00Z", "amount": 60.0,
         "payment_method": "cash", "sale_total": 100.0, "customer_name": "Alice"},
        {"payment_id": 2, "payment_date": "2024-03-01T16:00:00Z", "amount": 50.0,
         "payment_method": None, "sale_total": 50.0, "customer_name": None},
        {"payment_id": 3, "payment_date": "2024-03-02T10:00:00Z", "amount": 30.0,
         "payment_method": "card", "sale_total": 30.0, "customer_name": "Bob"},
    ]


@pytest.fixture
def purchase_payment_records() -> List[dict]:
    return [
        {"payment_id": 1, "payment_date": "2024-03-01T09:00:00Z", "amount": 40.0,
         "payment_method": "bank", "purchase_total": 40.0, "supplier_name": "Acme"},
        {"payment_id": 2, "payment_date": "2024-03-06T09:00:00Z", "amount": 20.0,
         "payment_method": "cash", "purchase_total": 60.0, "supplier_name": None},
        {"payment_id": 3, "payment_date": "2024-03-07T09:00:00Z", "amount": 10.0,
         "payment_method": "cash", "purchase_total": 60.0, "supplier_name": None},
    ]


@pytest.fixture
def report_data(
    sales_records,
    sale_item_records,
    purchase_records,
    purchase_item_records,
    product_records,
    expense_records,
    sale_payment_records,
    purchase_payment_records,
) -> Dict[Dataset, List[dict]]:
    """Every dataset, keyed as the report builders expect"""
    return {
        Dataset.SALES: sales_records,
        Dataset.SALE_ITEMS: sale_item_records,
        Dataset.PURCHASES: purchase_records,
        Dataset.PURCHASE_ITEMS: purchase_item_records,
        Dataset.PRODUCTS: product_records,
        Dataset.EXPENSES: expense_records,
        Dataset.SALE_PAYMENTS: sale_payment_records,
        Dataset.PURCHASE_PAYMENTS: purchase_payment_records,
    }


@pytest.fixture
def memory_source(report_data) -> InMemoryRecordSource:
    return InMemoryRecordSource(report_data)
