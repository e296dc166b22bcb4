"""The interactive session: one object owning all navigation state.

The session is the only entry point for input events and arrived fetch
results, and the only source of rendered output. It does no I/O of its own
besides handing copied text to the clipboard; fetches are returned to the
caller, which runs them and delivers the results back.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Protocol, Union

from rich.console import RenderableType

from ..errors import ClipboardError
from . import focus
from .focus import AppState, Transition
from .keys import DEFAULT_KEYMAP, KeyMap
from .layout import DEFAULT_MAX_WIDTH, DEFAULT_MIN_WIDTH, Geometry
from .messages import FetchFailed, FetchSucceeded, KeyPress, PendingRequest, Resize
from .render import render

logger = logging.getLogger(__name__)


class ClipboardWriter(Protocol):
    def write_text(self, text: str) -> None: ...


class Session:
    """Composes the reducers and keeps the current ``AppState``."""

    def __init__(
        self,
        project_id: str,
        clipboard: Optional[ClipboardWriter] = None,
        keymap: KeyMap = DEFAULT_KEYMAP,
        geometry: Optional[Geometry] = None,
        min_width: int = DEFAULT_MIN_WIDTH,
        max_width: int = DEFAULT_MAX_WIDTH,
    ):
        """Initialize a session.

        Args:
            project_id: Project whose datasets are listed first.
            clipboard: Where copied text goes. Copying is a no-op without one.
            keymap: Key bindings.
            geometry: Initial terminal size.
            min_width: Narrowest column in tabular tabs.
            max_width: Widest column in tabular tabs.
        """
        self.keymap = keymap
        self.clipboard = clipboard
        self.state: AppState = focus.initial_state(
            project_id, geometry=geometry, min_width=min_width, max_width=max_width
        )

    @property
    def should_quit(self) -> bool:
        return self.state.quit

    def start(self) -> List[PendingRequest]:
        """Fetches to run when the session opens."""
        return self._apply(focus.start(self.state))

    def dispatch(self, event: Union[KeyPress, Resize]) -> List[PendingRequest]:
        """Handle one input event and return the fetches it asks for."""
        if isinstance(event, Resize):
            geometry = Geometry(width=event.width, height=event.height)
            self.state = focus.resize(self.state, geometry)
            return []
        return self._apply(focus.handle_key(self.state, event, self.keymap))

    def deliver(self, message: Union[FetchSucceeded, FetchFailed]) -> List[PendingRequest]:
        """Handle an arrived fetch result and return any follow-up fetches."""
        return self._apply(focus.handle_result(self.state, message))

    def render(self) -> RenderableType:
        return render(self.state, self.keymap)

    def _apply(self, transition: Transition) -> List[PendingRequest]:
        self.state = transition.state
        if transition.clipboard is not None and self.clipboard is not None:
            try:
                self.clipboard.write_text(transition.clipboard)
            except ClipboardError as e:
                logger.warning("Copy failed: %s", e)
                self.state = replace(self.state, status=f"Error: {e}")
        return list(transition.requests)
