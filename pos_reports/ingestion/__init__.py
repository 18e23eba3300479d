"""
Record Ingestion Module
"""
from .sources import Dataset, DateRange, InMemoryRecordSource, RecordSource
from .sql_source import SqlRecordSource

__all__ = [
    "Dataset",
    "DateRange",
    "InMemoryRecordSource",
    "RecordSource",
    "SqlRecordSource",
]
