"""
Report Errors

Only conditions the caller must act on are exceptions. Missing dimensions,
zero denominators, empty inputs and malformed values are recovered inside
the aggregation layer and never reach here.
"""

from typing import Iterable, Optional


class ReportError(Exception):
    """Base class for report failures"""


class UnknownReportError(ReportError, LookupError):
    """No report is registered under the requested name"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown report: {name}")


class InvalidDateRangeError(ReportError, ValueError):
    """Requested date range is not one of the selectable options"""

    def __init__(self, days: int, allowed: Iterable[int]):
        self.days = days
        self.allowed = list(allowed)
        super().__init__(f"Date range must be one of {self.allowed} days, got {days}")


class ReportLoadError(ReportError):
    """A dataset fetch failed; no partial report is produced"""

    message = "Failed to load report"

    def __init__(self, report: str, dataset: Optional[str] = None, cause: Optional[BaseException] = None):
        self.report = report
        self.dataset = dataset
        self.cause = cause
        super().__init__(self.message)
