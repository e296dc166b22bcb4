"""Navigation state machine for the catalog explorer.

Everything in this package is free of I/O: reducers take a state and an
event and return a new state plus the fetches the caller should start.
"""

from .messages import (
    FetchFailed,
    FetchSucceeded,
    KeyPress,
    PendingRequest,
    RequestKind,
    Resize,
    SelectionKey,
)
from .session import Session

__all__ = [
    "FetchFailed",
    "FetchSucceeded",
    "KeyPress",
    "PendingRequest",
    "RequestKind",
    "Resize",
    "SelectionKey",
    "Session",
]
