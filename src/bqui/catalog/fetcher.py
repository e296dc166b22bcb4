"""Run session requests against the catalog, through the cache."""

import logging
import threading
from collections import defaultdict
from typing import Any, Dict, Optional, Tuple

from ..cache import CatalogCache
from ..core.messages import FetchFailed, FetchSucceeded, PendingRequest, RequestKind
from ..errors import CacheError, CatalogError
from ..models import TableSchema
from .client import DEFAULT_PREVIEW_LIMIT, CatalogClient

logger = logging.getLogger(__name__)


class Fetcher:
    """Executes one ``PendingRequest`` at a time. Safe to call from threads."""

    def __init__(
        self,
        client: CatalogClient,
        cache: Optional[CatalogCache] = None,
        preview_limit: int = DEFAULT_PREVIEW_LIMIT,
    ):
        self.client = client
        self.cache = cache
        self.preview_limit = preview_limit
        self._schema_locks: Dict[Tuple[str, ...], threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def run(self, request: PendingRequest) -> Any:
        """Payload for ``request``.

        Raises:
            CatalogError: If the backend call fails
        """
        key = request.key
        kind = request.kind
        if kind == RequestKind.PROJECTS:
            return self.client.list_projects()
        if kind == RequestKind.DATASETS:
            return self._cached(
                "get_datasets", "put_datasets",
                (key.project_id,),
                lambda: self.client.list_datasets(key.project_id),
            )
        if kind == RequestKind.TABLES:
            return self._cached(
                "get_tables", "put_tables",
                (key.project_id, key.dataset_id),
                lambda: self.client.list_tables(key.project_id, key.dataset_id),
            )
        if kind == RequestKind.SCHEMA:
            return self.schema(key.project_id, key.dataset_id, key.table_id)
        if kind == RequestKind.PREVIEW:
            schema = self.schema(key.project_id, key.dataset_id, key.table_id)
            return self.client.preview_rows(
                key.project_id, key.dataset_id, key.table_id, limit=self.preview_limit, schema=schema
            )
        if kind == RequestKind.QUERY:
            return self.client.run_query(key.project_id, request.query or "")
        return self.client.switch_project(request.query or key.project_id)

    def result(self, request: PendingRequest):
        """Run ``request`` and wrap the outcome as a message for the session."""
        try:
            return FetchSucceeded(request, self.run(request))
        except CatalogError as e:
            return FetchFailed(request, str(e))

    def schema(self, project_id: str, dataset_id: str, table_id: str) -> TableSchema:
        """A table's schema, fetched at most once while the cache holds it.

        Schema and preview requests for the same table arrive together, so
        the second one waits for the first and then reads the cache.
        """
        key = (project_id, dataset_id, table_id)
        with self._locks_guard:
            lock = self._schema_locks[key]
        with lock:
            return self._cached(
                "get_schema", "put_schema", key,
                lambda: self.client.get_schema(project_id, dataset_id, table_id),
            )

    def _cached(self, getter: str, putter: str, key: tuple, fetch) -> Any:
        if self.cache is not None:
            try:
                hit = getattr(self.cache, getter)(*key)
            except CacheError as e:
                logger.warning("Cache read failed: %s", e)
                hit = None
            if hit is not None:
                logger.debug("Cache hit for %s%s", getter, key)
                return hit
        value = fetch()
        if self.cache is not None:
            try:
                getattr(self.cache, putter)(*key, value)
            except CacheError as e:
                logger.warning("Cache write failed: %s", e)
        return value
