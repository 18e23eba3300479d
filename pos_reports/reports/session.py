"""
Report Session

State of one open report view. Every range selection starts a new
generation and cancels the load of the previous one; only the latest
generation may change the visible state, so a slow, superseded load can
never overwrite a newer result.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import structlog

from .errors import ReportError
from .registry import ReportResult
from .service import ReportService

logger = structlog.get_logger(__name__)


class ReportStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ReportState:
    status: ReportStatus
    generation: int = 0
    days: Optional[int] = None
    result: Optional[ReportResult] = None
    error: Optional[str] = None


Listener = Callable[[ReportState], None]


class ReportSession:
    """
    Owns the loading/ready/error state of a single report.

    Example:
        session = ReportSession(service, "sales")
        state = await session.select_range(30)
        if state.status == ReportStatus.READY:
            render(state.result)
    """

    def __init__(self, service: ReportService, report: str):
        self.service = service
        self.report = report
        self._generation = 0
        self._state = ReportState(status=ReportStatus.IDLE)
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []

    @property
    def state(self) -> ReportState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _apply(self, state: ReportState) -> bool:
        if state.generation != self._generation:
            logger.info(
                "Discarding stale report result",
                report=self.report,
                generation=state.generation,
                latest=self._generation,
                status=state.status.value,
            )
            return False
        self._state = state
        for listener in self._listeners:
            listener(state)
        return True

    def cancel(self) -> None:
        """Abandon the in-flight load, if any"""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def select_range(self, days: int) -> ReportState:
        """
        Load the report for a new date range.

        Returns the session state once this generation settles, or the
        current state if a newer selection superseded it.
        """
        self.cancel()
        self._generation += 1
        generation = self._generation
        self._apply(ReportState(status=ReportStatus.LOADING, generation=generation, days=days))

        task = asyncio.ensure_future(self.service.load(self.report, days))
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return self._state
            raise
        except ReportError as e:
            self._apply(ReportState(
                status=ReportStatus.ERROR,
                generation=generation,
                days=days,
                error=str(e),
            ))
            return self._state
        except Exception as e:
            logger.error(
                "Report build failed",
                report=self.report,
                generation=generation,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._apply(ReportState(
                status=ReportStatus.ERROR,
                generation=generation,
                days=days,
                error="Failed to build report",
            ))
            raise
        finally:
            if self._task is task:
                self._task = None

        self._apply(ReportState(status=ReportStatus.READY, generation=generation, days=days, result=result))
        return self._state

    async def refresh(self) -> ReportState:
        """Reload the current range (or the default range when idle)"""
        days = self._state.days if self._state.days is not None else self.service.default_days
        return await self.select_range(days)
