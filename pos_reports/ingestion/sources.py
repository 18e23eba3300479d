"""
Record Sources

The query boundary of the report layer. A source returns, per dataset, the
flat rows that fall inside a date window; dimension names (product,
category, customer, supplier) are already joined in.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

import structlog

from pos_reports.aggregation.dates import parse_timestamp
from pos_reports.aggregation.fields import Record, get_field
from pos_reports.config import get_settings
from pos_reports.reports.errors import InvalidDateRangeError

logger = structlog.get_logger(__name__)


class Dataset(str, Enum):
    """Flat record collections a report can request"""
    SALES = "sales"
    SALE_ITEMS = "sale_items"
    PURCHASES = "purchases"
    PURCHASE_ITEMS = "purchase_items"
    PRODUCTS = "products"
    EXPENSES = "expenses"
    SALE_PAYMENTS = "sale_payments"
    PURCHASE_PAYMENTS = "purchase_payments"

    @property
    def timestamp_field(self) -> Optional[str]:
        """Field the date window applies to; None for snapshots"""
        return _TIMESTAMP_FIELDS[self]


_TIMESTAMP_FIELDS: Dict[Dataset, Optional[str]] = {
    Dataset.SALES: "created_at",
    Dataset.SALE_ITEMS: "created_at",
    Dataset.PURCHASES: "created_at",
    Dataset.PURCHASE_ITEMS: "created_at",
    Dataset.PRODUCTS: None,
    Dataset.EXPENSES: "expense_date",
    Dataset.SALE_PAYMENTS: "payment_date",
    Dataset.PURCHASE_PAYMENTS: "payment_date",
}


@dataclass(frozen=True)
class DateRange:
    """Half-open fetch window ``[start, end]`` of ``days`` days ending now"""
    days: int
    start: datetime
    end: datetime

    @classmethod
    def last(
        cls,
        days: int,
        now: Optional[datetime] = None,
        allowed: Optional[Sequence[int]] = None,
    ) -> "DateRange":
        """
        Window covering the last ``days`` days.

        Raises:
            InvalidDateRangeError: If ``days`` is not a selectable option
        """
        options = list(allowed) if allowed is not None else get_settings().reports.allowed_range_days
        if isinstance(days, bool) or days not in options:
            raise InvalidDateRangeError(days, options)

        end = now or datetime.now(timezone.utc)
        return cls(days=days, start=end - timedelta(days=days), end=end)

    def contains(self, value: object) -> bool:
        """
        Whether a raw timestamp lies in the window.

        Naive timestamps are compared in the window's own zone; plain dates
        are compared by calendar day.
        """
        parsed = parse_timestamp(value)
        if parsed is None:
            return False
        if not isinstance(parsed, datetime):
            return self.start.date() <= parsed <= self.end.date()
        if parsed.tzinfo is None and self.start.tzinfo is not None:
            parsed = parsed.replace(tzinfo=self.start.tzinfo)
        elif parsed.tzinfo is not None and self.start.tzinfo is None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return self.start <= parsed <= self.end

    def to_dict(self) -> Dict[str, object]:
        return {
            "days": self.days,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@runtime_checkable
class RecordSource(Protocol):
    """Anything that can fetch a dataset for a window"""

    async def fetch(self, dataset: Dataset, window: DateRange) -> List[Record]:
        ...


class InMemoryRecordSource:
    """
    Record source backed by seeded lists of mappings.

    Used by tests and local demos. Records whose timestamp cannot be parsed
    are kept, so they surface under the unknown-date bucket.
    """

    def __init__(self, records: Optional[Mapping[Dataset, Iterable[Record]]] = None):
        self._records: Dict[Dataset, List[Record]] = {
            Dataset(dataset): list(rows) for dataset, rows in (records or {}).items()
        }

    def add(self, dataset: Dataset, rows: Iterable[Record]) -> "InMemoryRecordSource":
        self._records.setdefault(Dataset(dataset), []).extend(rows)
        return self

    async def fetch(self, dataset: Dataset, window: DateRange) -> List[Record]:
        dataset = Dataset(dataset)
        rows = self._records.get(dataset, [])
        field = dataset.timestamp_field
        if field is None:
            return list(rows)

        selected = []
        for row in rows:
            value = get_field(row, field)
            if parse_timestamp(value) is None or window.contains(value):
                selected.append(row)

        logger.debug(
            "Fetched in-memory records",
            dataset=dataset.value,
            total=len(rows),
            selected=len(selected),
        )
        return selected
