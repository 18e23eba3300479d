"""
Unit Tests - Record Sources and Report Service
"""
import asyncio
from datetime import timedelta

import pytest
from prometheus_client import REGISTRY

from pos_reports.ingestion.sources import Dataset, DateRange, InMemoryRecordSource, RecordSource
from pos_reports.reports.errors import InvalidDateRangeError, ReportLoadError, UnknownReportError
from pos_reports.reports.service import ReportService


class FlakySource:
    """Source where chosen datasets fail and the rest hang"""

    def __init__(self, failing, delay=10.0):
        self.failing = set(failing)
        self.delay = delay
        self.started = []
        self.cancelled = []

    async def fetch(self, dataset, window):
        self.started.append(dataset)
        if dataset in self.failing:
            await asyncio.sleep(0)
            raise RuntimeError("connection reset")
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled.append(dataset)
            raise
        return []


class TestDateRange:
    """Tests for date windows"""

    def test_last_days(self, now):
        window = DateRange.last(7, now=now, allowed=[7, 30])

        assert window.end == now
        assert window.start == now - timedelta(days=7)

    @pytest.mark.parametrize("days", [0, 10, -7, 366])
    def test_rejects_unlisted_ranges(self, now, days):
        with pytest.raises(InvalidDateRangeError):
            DateRange.last(days, now=now, allowed=[7, 30, 90, 365])

    def test_invalid_range_is_value_error(self, now):
        with pytest.raises(ValueError):
            DateRange.last(12, now=now, allowed=[7])

    def test_contains(self, window):
        assert window.contains("2024-03-01T10:00:00Z")
        assert window.contains("2024-03-01")
        assert not window.contains("2024-01-01T10:00:00Z")
        assert not window.contains("2024-03-16T00:00:00Z")
        assert not window.contains(None)


class TestInMemoryRecordSource:
    """Tests for the seeded source"""

    def test_is_record_source(self, memory_source):
        assert isinstance(memory_source, RecordSource)

    @pytest.mark.asyncio
    async def test_filters_by_timestamp(self, window):
        source = InMemoryRecordSource({
            Dataset.SALES: [
                {"sale_id": 1, "created_at": "2024-03-01T10:00:00Z"},
                {"sale_id": 2, "created_at": "2023-03-01T10:00:00Z"},
                {"sale_id": 3, "created_at": None},
            ],
        })

        rows = await source.fetch(Dataset.SALES, window)

        assert [row["sale_id"] for row in rows] == [1, 3]

    @pytest.mark.asyncio
    async def test_products_are_not_filtered(self, memory_source, window, product_records):
        rows = await memory_source.fetch(Dataset.PRODUCTS, window)

        assert rows == product_records

    @pytest.mark.asyncio
    async def test_missing_dataset_is_empty(self, window):
        assert await InMemoryRecordSource().fetch(Dataset.EXPENSES, window) == []


class TestReportService:
    """Tests for concurrent fetch and failure semantics"""

    @pytest.mark.asyncio
    async def test_load(self, memory_source, now):
        service = ReportService(memory_source, allowed_days=[7, 30, 90, 365])

        result = await service.load("sales", days=30, now=now)

        assert result.name == "sales"
        assert result.window.days == 30
        assert result.summary["total_revenue"] == 200.5

    @pytest.mark.asyncio
    async def test_window_excludes_old_records(self, memory_source, now):
        service = ReportService(memory_source, allowed_days=[7, 30])

        result = await service.load("expenses", days=7, now=now)

        assert result.summary["expense_count"] == 0

    @pytest.mark.asyncio
    async def test_default_range(self, memory_source):
        service = ReportService(memory_source)

        result = await service.load("stock")

        assert result.window.days == service.default_days

    @pytest.mark.asyncio
    async def test_unknown_report(self, memory_source):
        service = ReportService(memory_source)

        with pytest.raises(UnknownReportError):
            await service.load("nope", days=30)

    @pytest.mark.asyncio
    async def test_invalid_range_fetches_nothing(self):
        source = FlakySource(failing=[])
        service = ReportService(source, allowed_days=[7, 30])

        with pytest.raises(InvalidDateRangeError):
            await service.load("sales", days=14)
        assert source.started == []

    @pytest.mark.asyncio
    async def test_failed_fetch_cancels_others(self, now):
        """Test one failing dataset aborts the load and cancels sibling fetches"""
        source = FlakySource(failing=[Dataset.SALE_ITEMS])
        service = ReportService(source, allowed_days=[30])

        with pytest.raises(ReportLoadError) as exc_info:
            await service.load("sales", days=30, now=now)

        error = exc_info.value
        assert str(error) == "Failed to load report"
        assert error.report == "sales"
        assert error.dataset == "sale_items"
        assert isinstance(error.cause, RuntimeError)
        assert source.cancelled == [Dataset.SALES]

    @pytest.mark.asyncio
    async def test_fetch_timeout(self, now):
        source = FlakySource(failing=[], delay=5.0)
        service = ReportService(source, fetch_timeout=0.01, allowed_days=[30])

        with pytest.raises(ReportLoadError) as exc_info:
            await service.load("stock", days=30, now=now)

        assert isinstance(exc_info.value.cause, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self, now):
        """Test datasets are requested together, not one after another"""

        class SlowSource:
            def __init__(self):
                self.active = 0
                self.peak = 0

            async def fetch(self, dataset, window):
                self.active += 1
                self.peak = max(self.peak, self.active)
                await asyncio.sleep(0.01)
                self.active -= 1
                return []

        source = SlowSource()
        service = ReportService(source, allowed_days=[30])

        await service.load("sales_vs_purchases", days=30, now=now)

        assert source.peak == 4

    @pytest.mark.asyncio
    async def test_load_outcomes_counted(self, memory_source, now):
        def loads(status):
            return REGISTRY.get_sample_value(
                "pos_report_loads_total", {"report": "purchases", "status": status}
            ) or 0.0

        succeeded, failed = loads("success"), loads("error")

        await ReportService(memory_source, allowed_days=[30]).load("purchases", days=30, now=now)
        with pytest.raises(ReportLoadError):
            await ReportService(FlakySource(failing=[Dataset.PURCHASES]), allowed_days=[30]).load(
                "purchases", days=30, now=now
            )

        assert loads("success") == succeeded + 1
        assert loads("error") == failed + 1
