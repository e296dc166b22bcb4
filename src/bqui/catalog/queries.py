"""Canned queries offered for a schema column."""

from dataclasses import dataclass
from typing import List

from ..models import Column
from .sharding import RECENT_SHARDS_FILTER, shard_base

QUERY_LIMIT = 100


@dataclass(frozen=True)
class QueryOption:
    """A labelled query the user can run from the column dialog."""

    label: str
    sql: str


def table_reference(project_id: str, dataset_id: str, table_id: str) -> str:
    """Quoted table reference, a wildcard over all shards for sharded tables."""
    base = shard_base(table_id)
    name = f"{base}*" if base else table_id
    if project_id and dataset_id:
        return f"`{project_id}.{dataset_id}.{name}`"
    return f"`{name}`"


def column_queries(
    project_id: str, dataset_id: str, table_id: str, column: Column
) -> List[QueryOption]:
    """Queries for exploring ``column``.

    Sharded tables are queried through a wildcard restricted to the shards of
    the last seven days. Null counts are only offered for nullable columns and
    empty-array counts only for repeated ones.
    """
    table = table_reference(project_id, dataset_id, table_id)
    name = column.name
    sharded = shard_base(table_id) is not None

    def where(*conditions: str) -> str:
        clauses = ([RECENT_SHARDS_FILTER] if sharded else []) + list(conditions)
        return f" WHERE {' AND '.join(clauses)}" if clauses else ""

    options = [
        QueryOption("Select", f"SELECT {name} FROM {table}{where()} LIMIT {QUERY_LIMIT}"),
        QueryOption(
            "Select Non Null",
            f"SELECT {name} FROM {table}{where(f'{name} IS NOT NULL')} LIMIT {QUERY_LIMIT}",
        ),
        QueryOption(
            "Select Distinct",
            f"SELECT DISTINCT {name} FROM {table}{where()} LIMIT {QUERY_LIMIT}",
        ),
    ]
    if not column.required:
        options.append(
            QueryOption(
                "Count Nulls",
                f"SELECT COUNT(*) as null_count FROM {table}{where(f'{name} IS NULL')}",
            )
        )
    if column.repeated:
        options.append(
            QueryOption(
                "Count Empty",
                f"SELECT COUNT(*) as empty_count FROM {table}{where(f'ARRAY_LENGTH({name}) = 0')}",
            )
        )
    return options
