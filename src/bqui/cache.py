"""Local cache of catalog listings.

Dataset lists, table lists and table schemas are stored in a SQLite file
(via SQLModel) so reopening bqui does not refetch them. Entries older than
the freshness window are treated as missing. Every failure is raised as
``CacheError`` so callers can log it and fall back to the live fetch.
"""

import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from .errors import CacheError
from .models import CacheEntry, CacheKind, Dataset, Table, TableSchema, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)

_DATASETS = TypeAdapter(List[Dataset])
_TABLES = TypeAdapter(List[Table])
_SCHEMA = TypeAdapter(TableSchema)


def default_cache_dir() -> Path:
    """Per-user cache directory for bqui."""
    if os.environ.get("XDG_CACHE_HOME"):
        base = Path(os.environ["XDG_CACHE_HOME"])
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Caches"
    elif sys.platform == "win32" and os.environ.get("LOCALAPPDATA"):
        base = Path(os.environ["LOCALAPPDATA"])
    else:
        base = Path.home() / ".cache"
    return base / "bqui"


def _aware(moment: datetime) -> datetime:
    # SQLite hands datetimes back without a timezone
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class CatalogCache:
    """TTL cache keyed by ``(kind, project[, dataset[, table]])``."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        path: Optional[Path] = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Open (and create if needed) the cache database.

        Args:
            engine: SQLAlchemy engine to use. Built from ``path`` when omitted.
            path: SQLite file. Defaults to ``cache.db`` in the user cache dir.
            ttl: How long an entry stays fresh.
            clock: Source of the current time.

        Raises:
            CacheError: If the database cannot be opened
        """
        self.ttl = ttl
        self.clock = clock
        try:
            if engine is None:
                path = path or default_cache_dir() / "cache.db"
                path.parent.mkdir(parents=True, exist_ok=True)
                engine = create_engine(
                    f"sqlite:///{path}",
                    connect_args={"check_same_thread": False},
                )
            SQLModel.metadata.create_all(engine, tables=[CacheEntry.__table__])
        except (OSError, SQLAlchemyError) as e:
            raise CacheError(f"Cannot open cache: {e}") from e
        self.engine = engine

    def get(self, kind: CacheKind, project_id: str, dataset_id: str = "", table_id: str = "") -> Optional[str]:
        """Fresh payload for the key, or None."""
        try:
            with Session(self.engine) as session:
                entry = session.get(CacheEntry, (kind.value, project_id, dataset_id, table_id))
                if entry is None:
                    return None
                if self.clock() - _aware(entry.written_at) > self.ttl:
                    logger.debug("Cache entry %s/%s/%s/%s expired", kind.value, project_id, dataset_id, table_id)
                    return None
                return entry.payload
        except SQLAlchemyError as e:
            raise CacheError(f"Cannot read cache: {e}") from e

    def put(self, kind: CacheKind, project_id: str, payload: str, dataset_id: str = "", table_id: str = "") -> None:
        try:
            with Session(self.engine) as session:
                entry = session.get(CacheEntry, (kind.value, project_id, dataset_id, table_id))
                if entry is None:
                    entry = CacheEntry(
                        kind=kind.value,
                        project_id=project_id,
                        dataset_id=dataset_id,
                        table_id=table_id,
                        payload=payload,
                    )
                entry.payload = payload
                entry.written_at = self.clock()
                session.add(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise CacheError(f"Cannot write cache: {e}") from e

    def _load(self, adapter: TypeAdapter, kind: CacheKind, project_id: str, dataset_id: str = "", table_id: str = ""):
        payload = self.get(kind, project_id, dataset_id, table_id)
        if payload is None:
            return None
        try:
            return adapter.validate_json(payload)
        except ValidationError as e:
            raise CacheError(f"Corrupt cache entry: {e}") from e

    # Typed accessors

    def get_datasets(self, project_id: str) -> Optional[List[Dataset]]:
        return self._load(_DATASETS, CacheKind.DATASETS, project_id)

    def put_datasets(self, project_id: str, datasets: Sequence[Dataset]) -> None:
        self.put(CacheKind.DATASETS, project_id, _DATASETS.dump_json(list(datasets)).decode())

    def get_tables(self, project_id: str, dataset_id: str) -> Optional[List[Table]]:
        return self._load(_TABLES, CacheKind.TABLES, project_id, dataset_id)

    def put_tables(self, project_id: str, dataset_id: str, tables: Sequence[Table]) -> None:
        payload = _TABLES.dump_json(list(tables)).decode()
        self.put(CacheKind.TABLES, project_id, payload, dataset_id=dataset_id)

    def get_schema(self, project_id: str, dataset_id: str, table_id: str) -> Optional[TableSchema]:
        return self._load(_SCHEMA, CacheKind.SCHEMA, project_id, dataset_id, table_id)

    def put_schema(self, project_id: str, dataset_id: str, table_id: str, schema: TableSchema) -> None:
        payload = _SCHEMA.dump_json(schema).decode()
        self.put(CacheKind.SCHEMA, project_id, payload, dataset_id=dataset_id, table_id=table_id)

    # Invalidation

    def _delete(self, *conditions) -> int:
        try:
            with self.engine.begin() as connection:
                result = connection.execute(delete(CacheEntry).where(*conditions))
                return result.rowcount
        except SQLAlchemyError as e:
            raise CacheError(f"Cannot clear cache: {e}") from e

    def clear_datasets(self, project_id: str) -> int:
        return self._delete(
            CacheEntry.kind == CacheKind.DATASETS.value,
            CacheEntry.project_id == project_id,
        )

    def clear_tables(self, project_id: str, dataset_id: str) -> int:
        return self._delete(
            CacheEntry.kind == CacheKind.TABLES.value,
            CacheEntry.project_id == project_id,
            CacheEntry.dataset_id == dataset_id,
        )

    def clear_schema(self, project_id: str, dataset_id: str, table_id: str) -> int:
        return self._delete(
            CacheEntry.kind == CacheKind.SCHEMA.value,
            CacheEntry.project_id == project_id,
            CacheEntry.dataset_id == dataset_id,
            CacheEntry.table_id == table_id,
        )

    def clear_dataset(self, project_id: str, dataset_id: str) -> int:
        """Drop the table list and every schema cached for a dataset."""
        return self._delete(
            CacheEntry.project_id == project_id,
            CacheEntry.dataset_id == dataset_id,
        )

    def clear_all(self) -> int:
        return self._delete(CacheEntry.kind.in_([kind.value for kind in CacheKind]))

    def keys(self) -> List[tuple]:
        """Every stored key, fresh or not."""
        with Session(self.engine) as session:
            entries = session.exec(select(CacheEntry)).all()
            return [(e.kind, e.project_id, e.dataset_id, e.table_id) for e in entries]
