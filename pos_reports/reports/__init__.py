"""
Reports Module

Report configurations, loading service and per-view sessions live in the
submodules (``catalog``, ``service``, ``session``).
"""
from .errors import InvalidDateRangeError, ReportError, ReportLoadError, UnknownReportError

__all__ = [
    "InvalidDateRangeError",
    "ReportError",
    "ReportLoadError",
    "UnknownReportError",
]
