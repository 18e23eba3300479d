"""
Built-in report catalogue

Importing this module registers every report configuration.
"""

from . import expenses, payments, profit, purchases, sales, stock  # noqa: F401
from .registry import ReportDefinition, get_report, list_reports

__all__ = ["ReportDefinition", "get_report", "list_reports"]
