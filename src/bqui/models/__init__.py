"""Data models for bqui."""

from .schemas import (
    CacheEntry,
    CacheKind,
    Column,
    ColumnMode,
    Dataset,
    Project,
    QueryResult,
    Table,
    TablePreview,
    TableSchema,
    utcnow,
)

__all__ = [
    "CacheEntry",
    "CacheKind",
    "Column",
    "ColumnMode",
    "Dataset",
    "Project",
    "QueryResult",
    "Table",
    "TablePreview",
    "TableSchema",
    "utcnow",
]
