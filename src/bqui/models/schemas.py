"""Catalog entities and the cache table."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class Entity(BaseModel):
    """Immutable value object returned by the catalog."""

    model_config = ConfigDict(frozen=True)


class Project(Entity):
    """A cloud project the credentials can see."""

    id: str
    name: str = ""

    @property
    def label(self) -> str:
        """Display label, ``id (name)`` when the name differs."""
        if self.name and self.name != self.id:
            return f"{self.id} ({self.name})"
        return self.id


class Dataset(Entity):
    """A dataset inside a project."""

    id: str
    project_id: str
    location: str = ""
    description: str = ""
    created_at: Optional[datetime] = None
    labels: Dict[str, str] = PydanticField(default_factory=dict)


class Table(Entity):
    """A table, view or external table inside a dataset."""

    id: str
    dataset_id: str
    project_id: str
    description: str = ""
    created_at: Optional[datetime] = None
    num_rows: Optional[int] = None
    num_bytes: Optional[int] = None
    type: str = "TABLE"
    labels: Dict[str, str] = PydanticField(default_factory=dict)

    @property
    def full_name(self) -> str:
        """Fully qualified ``project.dataset.table`` name."""
        return f"{self.project_id}.{self.dataset_id}.{self.id}"


class ColumnMode(str, Enum):
    """Column modes as reported by BigQuery."""

    NULLABLE = "NULLABLE"
    REQUIRED = "REQUIRED"
    REPEATED = "REPEATED"


class Column(Entity):
    """A schema field. RECORD fields nest their children in ``fields``."""

    name: str
    type: str = "STRING"
    mode: ColumnMode = ColumnMode.NULLABLE
    description: str = ""
    fields: Tuple["Column", ...] = ()

    @property
    def required(self) -> bool:
        return self.mode == ColumnMode.REQUIRED

    @property
    def repeated(self) -> bool:
        return self.mode == ColumnMode.REPEATED


class TableSchema(Entity):
    """Top-level fields of a table."""

    fields: Tuple[Column, ...] = ()


class TablePreview(Entity):
    """The first rows of a table."""

    headers: Tuple[str, ...] = ()
    rows: Tuple[Tuple[Any, ...], ...] = ()


class QueryResult(Entity):
    """Rows returned by an ad-hoc query."""

    columns: Tuple[str, ...] = ()
    rows: Tuple[Tuple[Any, ...], ...] = ()
    job_id: str = ""


class CacheKind(str, Enum):
    """Kinds of catalog listings kept in the local cache."""

    DATASETS = "datasets"
    TABLES = "tables"
    SCHEMA = "schema"


class CacheEntry(SQLModel, table=True):
    """A cached catalog listing, stored as JSON."""

    __tablename__ = "cache_entry"

    kind: str = Field(primary_key=True)
    project_id: str = Field(primary_key=True)
    dataset_id: str = Field(default="", primary_key=True)
    table_id: str = Field(default="", primary_key=True)
    payload: str
    written_at: datetime = Field(default_factory=utcnow)
