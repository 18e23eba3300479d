"""
Report Service

Loads a report end to end: validate the date range, fetch every dataset the
report needs concurrently, then aggregate synchronously. A failed or timed
out fetch aborts the whole load; no partial report is ever built.
"""

import asyncio
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import structlog
from prometheus_client import Counter, Histogram

from pos_reports.aggregation.fields import Record
from pos_reports.config import get_settings
from pos_reports.ingestion.sources import Dataset, DateRange, RecordSource

from .catalog import get_report, list_reports
from .errors import ReportLoadError
from .registry import ReportContext, ReportDefinition, ReportResult

logger = structlog.get_logger(__name__)

REPORT_LOADS = Counter(
    "pos_report_loads_total",
    "Report loads by outcome",
    ["report", "status"],
)

REPORT_LOAD_TIME = Histogram(
    "pos_report_load_seconds",
    "Time spent fetching and aggregating a report",
    ["report"],
)

DATASET_FETCH_FAILURES = Counter(
    "pos_report_dataset_fetch_failures_total",
    "Dataset fetches that failed or timed out",
    ["dataset"],
)


class ReportService:
    """
    Fetch-then-aggregate orchestration for registered reports.

    Example:
        service = ReportService(SqlRecordSource())
        result = await service.load("sales", days=30)
    """

    def __init__(
        self,
        source: RecordSource,
        fetch_timeout: Optional[float] = None,
        allowed_days: Optional[Sequence[int]] = None,
    ):
        report_settings = get_settings().reports
        self.source = source
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else report_settings.fetch_timeout_seconds
        self.allowed_days = list(allowed_days) if allowed_days is not None else report_settings.allowed_range_days
        self.default_days = report_settings.default_range_days
        self.tz = report_settings.zone

    def catalogue(self) -> List[ReportDefinition]:
        return list_reports()

    def window(self, days: Optional[int] = None, now: Optional[datetime] = None) -> DateRange:
        """Validated fetch window anchored at ``now``"""
        return DateRange.last(self.default_days if days is None else days, now=now, allowed=self.allowed_days)

    async def _fetch(self, report: str, dataset: Dataset, window: DateRange) -> List[Record]:
        try:
            return await asyncio.wait_for(self.source.fetch(dataset, window), timeout=self.fetch_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            DATASET_FETCH_FAILURES.labels(dataset=dataset.value).inc()
            logger.error(
                "Dataset fetch failed",
                report=report,
                dataset=dataset.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ReportLoadError(report, dataset.value, e) from e

    async def fetch_all(self, definition: ReportDefinition, window: DateRange) -> Dict[Dataset, List[Record]]:
        """
        Fetch every dataset of a report concurrently.

        Raises:
            ReportLoadError: On the first failed fetch; the others are cancelled
        """
        tasks = [
            asyncio.ensure_future(self._fetch(definition.name, dataset, window))
            for dataset in definition.datasets
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return dict(zip(definition.datasets, results))

    async def load(self, name: str, days: Optional[int] = None, now: Optional[datetime] = None) -> ReportResult:
        """
        Load one report for the last ``days`` days.

        Raises:
            UnknownReportError: If the report is not registered
            InvalidDateRangeError: If ``days`` is not a selectable range
            ReportLoadError: If any dataset fetch fails or times out
        """
        definition = get_report(name)
        window = self.window(days, now)

        logger.info("Loading report", report=name, days=window.days, datasets=len(definition.datasets))
        start_time = time.perf_counter()
        try:
            data = await self.fetch_all(definition, window)
        except ReportLoadError:
            REPORT_LOADS.labels(report=name, status="error").inc()
            raise

        result = definition.build(data, ReportContext(window=window, tz=self.tz))
        REPORT_LOADS.labels(report=name, status="success").inc()
        REPORT_LOAD_TIME.labels(report=name).observe(time.perf_counter() - start_time)
        logger.info(
            "Report loaded",
            report=name,
            days=window.days,
            records=sum(len(rows) for rows in data.values()),
        )
        return result
