"""
Unit Tests - Report Session State
"""
import asyncio

import pytest

from pos_reports.reports.errors import ReportLoadError
from pos_reports.reports.service import ReportService
from pos_reports.reports.session import ReportSession, ReportState, ReportStatus


class GatedService:
    """Fake service whose loads finish only when their gate opens"""

    default_days = 30

    def __init__(self, stubborn=False):
        self.stubborn = stubborn
        self.gates = {}
        self.calls = []

    def gate(self, days):
        return self.gates.setdefault(days, asyncio.Event())

    async def load(self, name, days=None, now=None):
        self.calls.append(days)
        try:
            await self.gate(days).wait()
        except asyncio.CancelledError:
            if not self.stubborn:
                raise
        return {"report": name, "days": days}


class FailingService:
    default_days = 30

    async def load(self, name, days=None, now=None):
        raise ReportLoadError(name, "sales", RuntimeError("connection reset"))


class BrokenBuildService:
    """Fake service whose report builder blows up"""

    default_days = 30

    async def load(self, name, days=None, now=None):
        raise RuntimeError("builder bug")


async def settle():
    await asyncio.sleep(0.01)


class TestReportSession:
    """Tests for load generations and state transitions"""

    def test_starts_idle(self):
        session = ReportSession(GatedService(), "sales")

        assert session.state == ReportState(status=ReportStatus.IDLE)
        assert session.generation == 0

    @pytest.mark.asyncio
    async def test_load_ready(self):
        service = GatedService()
        session = ReportSession(service, "sales")
        service.gate(7).set()

        state = await session.select_range(7)

        assert state.status == ReportStatus.READY
        assert state.generation == 1
        assert state.days == 7
        assert state.result == {"report": "sales", "days": 7}

    @pytest.mark.asyncio
    async def test_superseded_load_is_discarded(self):
        """Test a newer range selection wins over a slower older one"""
        service = GatedService()
        session = ReportSession(service, "sales")
        seen = []
        session.subscribe(seen.append)

        first = asyncio.ensure_future(session.select_range(7))
        await settle()
        second = asyncio.ensure_future(session.select_range(30))
        await settle()
        service.gate(30).set()

        latest = await second
        stale = await first

        assert latest.status == ReportStatus.READY
        assert latest.result["days"] == 30
        assert stale.generation == 2
        assert [(s.status, s.generation) for s in seen] == [
            (ReportStatus.LOADING, 1),
            (ReportStatus.LOADING, 2),
            (ReportStatus.READY, 2),
        ]

    @pytest.mark.asyncio
    async def test_stale_result_never_overwrites(self):
        """Test a load that ignores cancellation still cannot publish its result"""
        service = GatedService(stubborn=True)
        session = ReportSession(service, "sales")

        first = asyncio.ensure_future(session.select_range(7))
        await settle()
        second = asyncio.ensure_future(session.select_range(30))
        await first

        assert session.state.status == ReportStatus.LOADING
        assert session.state.generation == 2

        service.gate(30).set()
        await second

        assert session.state.status == ReportStatus.READY
        assert session.state.result["days"] == 30

    @pytest.mark.asyncio
    async def test_error_state(self):
        session = ReportSession(FailingService(), "sales")

        state = await session.select_range(30)

        assert state.status == ReportStatus.ERROR
        assert state.error == "Failed to load report"
        assert state.result is None

    @pytest.mark.asyncio
    async def test_unexpected_failure_leaves_error_state(self):
        """Test a builder exception propagates without leaving the session loading"""
        session = ReportSession(BrokenBuildService(), "sales")
        seen = []
        session.subscribe(seen.append)

        with pytest.raises(RuntimeError):
            await session.select_range(30)

        assert session.state.status == ReportStatus.ERROR
        assert session.state.error == "Failed to build report"
        assert session.state.generation == 1
        assert [state.status for state in seen] == [ReportStatus.LOADING, ReportStatus.ERROR]

    @pytest.mark.asyncio
    async def test_refresh_reuses_range(self):
        service = GatedService()
        service.gate(7).set()
        service.gate(30).set()
        session = ReportSession(service, "sales")

        await session.refresh()
        await session.select_range(7)
        state = await session.refresh()

        assert service.calls == [30, 7, 7]
        assert state.generation == 3
        assert state.days == 7

    @pytest.mark.asyncio
    async def test_cancel_propagates(self):
        service = GatedService()
        session = ReportSession(service, "sales")

        pending = asyncio.ensure_future(session.select_range(7))
        await settle()
        session.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending

    @pytest.mark.asyncio
    async def test_with_report_service(self, memory_source):
        session = ReportSession(ReportService(memory_source, allowed_days=[7, 30]), "stock")

        ready = await session.select_range(30)
        invalid = await session.select_range(14)

        assert ready.status == ReportStatus.READY
        assert ready.result.summary["total_products"] == 4
        assert invalid.status == ReportStatus.ERROR
        assert "14" in invalid.error
