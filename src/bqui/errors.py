"""Exception types raised across bqui.

Failures fall into these groups:

* ``CatalogError`` - the backend or the network failed. Shown in the status
  bar, never retried automatically.
* ``InputValidationError`` - the user asked for something that cannot be
  sent, such as an empty query. Rejected before any request is made.
* ``StartupError`` - no project or unusable credentials. Fatal, raised
  before the interactive session starts.
* ``CacheError`` - the local cache could not be read or written. Logged and
  otherwise ignored.
* ``ClipboardError`` - copying failed. Shown in the status bar.

Results that arrive after the selection moved on are not errors at all;
they are dropped by the request gate.
"""

from typing import Optional


class BquiError(Exception):
    """Base class for bqui errors."""


class CatalogError(BquiError):
    """A catalog or query request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(CatalogError):
    """The backend could not be reached."""


class InputValidationError(BquiError):
    """User input was rejected locally."""


class StartupError(BquiError):
    """The session cannot start."""


class CacheError(BquiError):
    """The local cache failed."""


class ClipboardError(BquiError):
    """Text could not be copied to the clipboard."""
