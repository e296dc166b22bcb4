"""Textual front end for bqui.

The app is a thin shell around ``Session``: one focusable widget forwards
every key to the session and draws whatever the session renders, and thread
workers run the fetches the session asks for and post the results back to
the event loop.
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Iterable, Optional, Sequence

from rich.console import RenderableType
from textual import events, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widget import Widget

from ..cache import CatalogCache
from ..catalog import CatalogClient, load_credentials
from ..catalog.fetcher import Fetcher
from ..clipboard import Clipboard, run_command
from ..config import AVAILABLE_THEMES, BquiConfig
from ..core import FetchFailed, FetchSucceeded, KeyPress, PendingRequest, Resize, Session
from ..errors import CacheError, ClipboardError

logger = logging.getLogger(__name__)


class CatalogView(Widget, can_focus=True):
    """Draws the session and hands it every key press."""

    DEFAULT_CSS = """
    CatalogView {
        width: 100%;
        height: 1fr;
    }
    """

    def __init__(self, session: Session, **kwargs):
        super().__init__(**kwargs)
        self.session = session

    def render(self) -> RenderableType:
        return self.session.render()

    def on_key(self, event: events.Key) -> None:
        # Every key belongs to the session, including tab and shift+tab
        event.stop()
        event.prevent_default()
        self.app.handle_input(KeyPress(event.key, event.character))

    def on_resize(self, event: events.Resize) -> None:
        self.app.handle_input(Resize(event.size.width, event.size.height))


class BquiApp(App):
    """Keyboard-driven BigQuery catalog explorer."""

    TITLE = "bqui"
    SUB_TITLE = "BigQuery explorer"
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        layout: vertical;
    }

    #catalog {
        height: 1fr;
        width: 100%;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        session: Session,
        fetcher: Fetcher,
        config: Optional[BquiConfig] = None,
        remember_project: bool = False,
    ):
        """Initialize the app.

        Args:
            session: Navigation state.
            fetcher: Runs catalog requests on worker threads.
            config: Settings. Defaults are used when omitted.
            remember_project: Save the project in use to the config file.
        """
        super().__init__()
        self.session = session
        self.fetcher = fetcher
        self.config = config or BquiConfig()
        self.remember_project = remember_project
        if self.session.clipboard is None:
            self.session.clipboard = Clipboard(
                terminal_writer=self.copy_to_clipboard, runner=self.run_clipboard_command
            )

    def compose(self) -> ComposeResult:
        yield CatalogView(self.session, id="catalog")

    def on_mount(self) -> None:
        if self.config.theme in dict(AVAILABLE_THEMES):
            self.theme = self.config.theme
        self.query_one(CatalogView).focus()
        self.start_requests(self.session.start())

    def on_unmount(self) -> None:
        self.fetcher.client.close()

    def handle_input(self, event) -> None:
        """Feed a key or resize event to the session."""
        self.start_requests(self.session.dispatch(event))
        self._after_update()

    def deliver(self, message) -> None:
        """Feed a fetch result to the session. Runs on the event loop."""
        self.start_requests(self.session.deliver(message))
        if isinstance(message, FetchFailed) and self.session.state.status == f"Error: {message.error}":
            self.notify(message.error, title="Request failed", severity="error")
        if self.remember_project and isinstance(message, FetchSucceeded):
            self.config.remember_project(self.session.state.project_id)
        self._after_update()

    def start_requests(self, requests: Iterable[PendingRequest]) -> None:
        for request in requests:
            logger.debug("Fetching %s for %s", request.kind.value, request.key)
            self.run_request(request)

    @work(thread=True, group="fetch")
    def run_request(self, request: PendingRequest) -> None:
        """Run one request off the event loop."""
        try:
            message = self.fetcher.result(request)
        except Exception as e:
            logger.exception("Unexpected failure running %s", request.kind.value)
            message = FetchFailed(request, str(e))
        self.call_from_thread(self.deliver, message)

    @work(thread=True, group="clipboard")
    def run_clipboard_command(self, command: Sequence[str], text: str) -> None:
        """Hand copied text to the platform clipboard command off the event loop."""
        try:
            run_command(command, text)
        except ClipboardError as e:
            self.call_from_thread(self.notify, str(e), title="Copy failed", severity="warning")

    def _after_update(self) -> None:
        if self.session.should_quit:
            self.exit()
            return
        self.query_one(CatalogView).refresh()


def build_app(
    project_id: str,
    credentials_file: Optional[str] = None,
    endpoint: Optional[str] = None,
    config: Optional[BquiConfig] = None,
) -> BquiApp:
    """Wire the client, cache and session together.

    Raises:
        StartupError: If credentials cannot be loaded
    """
    config = config or BquiConfig.load()
    credentials = None
    if credentials_file or not endpoint:
        credentials = load_credentials(credentials_file)
    client = CatalogClient(
        project_id,
        credentials=credentials,
        endpoint=endpoint,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
    )

    cache = None
    if config.cache_enabled:
        try:
            cache = CatalogCache(
                path=Path(config.cache_path) if config.cache_path else None,
                ttl=timedelta(hours=config.cache_ttl_hours),
            )
        except CacheError as e:
            logger.warning("Running without cache: %s", e)

    session = Session(
        project_id,
        min_width=config.min_column_width,
        max_width=config.max_column_width,
    )
    fetcher = Fetcher(client, cache=cache, preview_limit=config.preview_limit)
    return BquiApp(session, fetcher, config=config, remember_project=True)
