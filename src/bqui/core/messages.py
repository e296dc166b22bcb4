"""Events, selection keys and request messages exchanged with the session."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class SelectionKey:
    """What the user is currently looking at.

    Any suffix may be missing: a key with only a project selects the dataset
    list, one with a dataset selects its tables, and a full key selects a
    table.
    """

    project_id: str
    dataset_id: Optional[str] = None
    table_id: Optional[str] = None

    def with_dataset(self, dataset_id: Optional[str]) -> "SelectionKey":
        return SelectionKey(self.project_id, dataset_id, None)

    def with_table(self, table_id: Optional[str]) -> "SelectionKey":
        return SelectionKey(self.project_id, self.dataset_id, table_id)

    def __str__(self) -> str:
        return ".".join(p for p in (self.project_id, self.dataset_id, self.table_id) if p)


class RequestKind(str, Enum):
    """Kinds of remote operations the session can ask for."""

    PROJECTS = "projects"
    DATASETS = "datasets"
    TABLES = "tables"
    SCHEMA = "schema"
    PREVIEW = "preview"
    QUERY = "query"
    SWITCH_PROJECT = "switch_project"


@dataclass(frozen=True)
class PendingRequest:
    """A fetch that has been dispatched and not yet answered.

    ``key`` is what the fetch is about; ``issued_against`` is the selection
    that was current when it was dispatched. ``query`` carries the query text
    or the target project for the kinds that need one.
    """

    kind: RequestKind
    key: SelectionKey
    issued_against: SelectionKey
    request_id: int
    query: Optional[str] = None


@dataclass(frozen=True)
class KeyPress:
    """A key press. ``character`` is set for printable keys."""

    key: str
    character: Optional[str] = None


@dataclass(frozen=True)
class Resize:
    """The terminal changed size."""

    width: int
    height: int


@dataclass(frozen=True)
class FetchSucceeded:
    """A fetch completed. ``payload`` depends on the request kind."""

    request: PendingRequest
    payload: Any = None


@dataclass(frozen=True)
class FetchFailed:
    """A fetch raised. ``error`` is the message shown to the user."""

    request: PendingRequest
    error: str
