"""
Date Bucketing

Normalizes record timestamps to day or month buckets. Each bucket keeps the
unformatted start date next to its display label, so time series sort
chronologically without re-parsing labels.
"""

from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Optional, Union

from .fields import BucketKey, KeyExtractor, Record, UNKNOWN_DATE, get_field


class Granularity(str, Enum):
    """Time bucket sizes"""
    DAY = "day"
    MONTH = "month"


# Fixed English abbreviations; calendar.month_abbr follows the process locale
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def parse_timestamp(value: Any) -> Optional[Union[datetime, date]]:
    """
    Parse a raw timestamp field.

    Accepts ``datetime``, ``date`` and ISO-8601 strings (a trailing ``Z`` is
    read as UTC). Returns None for anything else.
    """
    if isinstance(value, (datetime, date)):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def local_date(value: Any, tz: Optional[tzinfo] = None) -> Optional[date]:
    """
    Calendar date of a timestamp in the reporting time zone.

    Aware datetimes are converted to ``tz`` first; naive datetimes and plain
    dates are taken as already local.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    if isinstance(parsed, datetime):
        if parsed.tzinfo is not None and tz is not None:
            parsed = parsed.astimezone(tz)
        return parsed.date()
    return parsed


def month_label(day: date) -> str:
    """Display label for the month containing ``day``, e.g. ``Jan 2024``"""
    return f"{MONTH_ABBREVIATIONS[day.month - 1]} {day.year}"


def bucket_date(
    value: Any,
    granularity: Granularity = Granularity.DAY,
    tz: Optional[tzinfo] = None,
) -> BucketKey:
    """Bucket key for one timestamp at the given granularity"""
    day = local_date(value, tz)
    if day is None:
        return BucketKey(label=UNKNOWN_DATE, sort_value=date.max, fallback=True)

    if granularity == Granularity.MONTH:
        start = day.replace(day=1)
        return BucketKey(label=month_label(start), sort_value=start)
    return BucketKey(label=day.isoformat(), sort_value=day)


def date_bucket(
    path: str,
    granularity: Granularity = Granularity.DAY,
    tz: Optional[tzinfo] = None,
) -> KeyExtractor:
    """Key extractor bucketing records by the timestamp at ``path``"""
    def extract(record: Record) -> BucketKey:
        return bucket_date(get_field(record, path), granularity, tz)

    extract.__name__ = f"{granularity.value}_of_{path.replace('.', '_')}"
    return extract
