"""
Report Registry

Every report view is a small configuration: the datasets it needs and a
builder that turns their records into named tables plus headline numbers.
Builders register themselves with ``@register_report``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from pos_reports.aggregation.engine import AggregationResult
from pos_reports.aggregation.fields import Record
from pos_reports.config import get_settings
from pos_reports.ingestion.sources import Dataset, DateRange

from .errors import UnknownReportError

logger = structlog.get_logger(__name__)

Records = Mapping[Dataset, List[Record]]
Tables = Dict[str, AggregationResult]
Summary = Dict[str, float]
Builder = Callable[[Records, "ReportContext"], Tuple[Tables, Summary]]


@dataclass(frozen=True)
class ReportContext:
    """Per-load parameters shared by every table of a report"""
    window: DateRange
    tz: tzinfo = timezone.utc

    @classmethod
    def for_window(cls, window: DateRange) -> "ReportContext":
        return cls(window=window, tz=get_settings().reports.zone)

    def records(self, data: Records, dataset: Dataset) -> List[Record]:
        return list(data.get(dataset, []))


@dataclass
class ReportResult:
    """A fully aggregated report, ready for chart and table consumers"""
    name: str
    title: str
    window: DateRange
    tables: Tables
    summary: Summary
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def table(self, name: str) -> AggregationResult:
        return self.tables[name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report": self.name,
            "title": self.title,
            "days": self.window.days,
            "start": self.window.start.isoformat(),
            "end": self.window.end.isoformat(),
            "generated_at": self.generated_at.isoformat(),
            "summary": dict(self.summary),
            "tables": {name: table.to_dicts() for name, table in self.tables.items()},
        }


@dataclass(frozen=True)
class ReportDefinition:
    name: str
    title: str
    datasets: Tuple[Dataset, ...]
    builder: Builder

    def build(self, data: Records, context: ReportContext) -> ReportResult:
        """Aggregate fetched records into a report"""
        tables, summary = self.builder(data, context)
        logger.debug(
            "Report built",
            report=self.name,
            tables=len(tables),
            rows={name: len(table) for name, table in tables.items()},
        )
        return ReportResult(
            name=self.name,
            title=self.title,
            window=context.window,
            tables=tables,
            summary=summary,
        )

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "datasets": [dataset.value for dataset in self.datasets],
        }


_REGISTRY: Dict[str, ReportDefinition] = {}


def register_report(name: str, title: str, datasets: Sequence[Dataset]) -> Callable[[Builder], Builder]:
    """
    Register a report builder.

    Example:
        @register_report("expenses", "Expense Report", [Dataset.EXPENSES])
        def expenses(data, context):
            ...
            return tables, summary
    """
    def decorator(builder: Builder) -> Builder:
        if name in _REGISTRY:
            raise ValueError(f"Report '{name}' is already registered")
        _REGISTRY[name] = ReportDefinition(
            name=name,
            title=title,
            datasets=tuple(Dataset(d) for d in datasets),
            builder=builder,
        )
        return builder

    return decorator


def get_report(name: str) -> ReportDefinition:
    """
    Look up a registered report.

    Raises:
        UnknownReportError: If no report has this name
    """
    definition = _REGISTRY.get(name)
    if definition is None:
        raise UnknownReportError(name)
    return definition


def list_reports() -> List[ReportDefinition]:
    return list(_REGISTRY.values())


def build_report(
    name: str,
    data: Records,
    window: DateRange,
    context: Optional[ReportContext] = None,
) -> ReportResult:
    """Build a report synchronously from already-fetched records"""
    definition = get_report(name)
    return definition.build(data, context or ReportContext.for_window(window))
