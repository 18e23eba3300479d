"""
Record Field Access

Helpers for reading values out of flat (or nested) query rows:
- dotted-path lookup into joined mappings
- permissive numeric coercion
- bucket keys with named fallback sentinels for missing dimensions
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional
import math
import numbers

Record = Mapping[str, Any]

# Sentinels substituted when a dimension value is missing
UNKNOWN = "Unknown"
UNKNOWN_PRODUCT = "Unknown Product"
UNCATEGORIZED = "Uncategorized"
WALK_IN_CUSTOMER = "Walk-in Customer"
UNKNOWN_SUPPLIER = "Unknown Supplier"
UNKNOWN_METHOD = UNKNOWN
UNKNOWN_DATE = "Unknown Date"
NEVER = "Never"


@dataclass(frozen=True)
class BucketKey:
    """
    Identity of one bucket.

    Buckets are compared by ``identity``, which is the ``label`` unless the
    key sets one (an entity id shown under a name other entities may share).
    ``sort_value`` is the unformatted value the label was derived from (a
    ``date`` for time buckets), so ordering never depends on parsing a display
    string. ``fallback`` marks sentinel labels.
    """
    label: str
    sort_value: Any = None
    fallback: bool = False
    identity: Optional[str] = None

    def __post_init__(self) -> None:
        if self.sort_value is None:
            object.__setattr__(self, "sort_value", self.label)
        if self.identity is None:
            object.__setattr__(self, "identity", self.label)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BucketKey):
            return self.identity == other.identity
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.identity)

    def __str__(self) -> str:
        return self.label


KeyExtractor = Callable[[Record], Any]
ValueExtractor = Callable[[Record], Any]


def get_field(record: Record, path: str, default: Any = None) -> Any:
    """
    Read a field from a record, following dots into nested mappings.

    ``get_field(row, "sales.customers.name")`` returns ``default`` as soon as
    any step is missing or is not a mapping.
    """
    if path in record:
        value = record[path]
        return default if value is None else value

    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return default if current is None else current


def to_number(value: Any) -> float:
    """
    Coerce a raw field value to a finite float.

    None, unparseable strings, NaN and infinities all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return float(value or 0)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return 0.0
        number = float(value)
    elif isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(Decimal(text))
        except (InvalidOperation, ValueError):
            return 0.0
    else:
        return 0.0

    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def to_label(value: Any) -> Optional[str]:
    """Normalize a dimension value to a non-empty string, or None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def dimension(path: str, fallback: str) -> KeyExtractor:
    """
    Key extractor for a named dimension (product, category, customer...).

    Records whose value is missing or blank land in the ``fallback`` bucket.
    """
    def extract(record: Record) -> BucketKey:
        label = to_label(get_field(record, path))
        if label is None:
            return BucketKey(label=fallback, fallback=True)
        return BucketKey(label=label)

    extract.__name__ = f"dimension_{path.replace('.', '_')}"
    return extract


def entity(id_path: str, label_path: str, fallback: str) -> KeyExtractor:
    """
    Key extractor for one bucket per entity id, displayed under its name.

    Entities sharing a name, or with no name at all, stay separate buckets.
    Records without an id are grouped by name.
    """
    def extract(record: Record) -> BucketKey:
        label = to_label(get_field(record, label_path))
        entity_id = to_label(get_field(record, id_path))
        identity = None if entity_id is None else f"{id_path}={entity_id}"
        return BucketKey(label=label or fallback, fallback=label is None, identity=identity)

    extract.__name__ = f"entity_{id_path.replace('.', '_')}"
    return extract


def label_of(path: str, fallback: str) -> ValueExtractor:
    """Value extractor returning a dimension label with its sentinel."""
    def extract(record: Record) -> str:
        return to_label(get_field(record, path)) or fallback

    return extract


def number(path: str) -> ValueExtractor:
    """Value extractor returning a field coerced to float."""
    def extract(record: Record) -> float:
        return to_number(get_field(record, path))

    return extract


def product_of(*paths: str) -> ValueExtractor:
    """Value extractor multiplying several numeric fields (quantity x price)."""
    def extract(record: Record) -> float:
        result = 1.0
        for path in paths:
            result *= to_number(get_field(record, path))
        return result

    return extract
