"""Catalog access: the BigQuery REST client and query helpers."""

from .client import CatalogClient, load_credentials
from .queries import QueryOption, column_queries, table_reference
from .sharding import is_sharded, shard_base

__all__ = [
    "CatalogClient",
    "QueryOption",
    "column_queries",
    "is_sharded",
    "load_credentials",
    "shard_base",
    "table_reference",
]
