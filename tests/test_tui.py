"""Tests for the bqui TUI application."""

import threading
from typing import Dict, List

import pytest
from conftest import make_datasets, make_tables

from bqui.core import FetchFailed, FetchSucceeded, RequestKind, SelectionKey, Session
from bqui.core.focus import BrowserLevel, FocusState
from bqui.models import TablePreview, TableSchema
from bqui.tui import BquiApp, CatalogView

EMPTY = {RequestKind.SCHEMA: TableSchema(), RequestKind.PREVIEW: TablePreview()}

class FakeClient:
    def __init__(self):
        self.closed = False

    def close(self) -> None:
        self.closed = True

class FakeFetcher:
    """Answers requests from canned payloads, keyed by kind and key."""

    def __init__(self, payloads: Dict, failures: Dict = None):
        self.client = FakeClient()
        self.payloads = payloads
        self.failures = failures or {}
        self.seen: List = []

    def result(self, request):
        self.seen.append((request.kind, request.key))
        lookup = (request.kind, request.key)
        if lookup in self.failures:
            return FetchFailed(request, self.failures[lookup])
        return FetchSucceeded(request, self.payloads.get(lookup, EMPTY.get(request.kind, [])))

class RecordingClipboard:
    def __init__(self):
        self.copied: List[str] = []

    def write_text(self, text: str) -> None:
        self.copied.append(text)

@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(
        {
            (RequestKind.DATASETS, SelectionKey("proj")): make_datasets("a", "b"),
            (RequestKind.TABLES, SelectionKey("proj", "a")): make_tables("a", "x", "y"),
        }
    )

@pytest.fixture
def clipboard() -> RecordingClipboard:
    return RecordingClipboard()

@pytest.fixture
def app(fetcher, clipboard) -> BquiApp:
    return BquiApp(Session("proj", clipboard=clipboard), fetcher)

async def settle(app: BquiApp, pilot) -> None:
    """Wait for fetch workers and the results they post back."""
    await app.workers.wait_for_complete()
    await pilot.pause()

class TestTUIModule:
    """Tests for TUI module attributes."""

    def test_app_class_attributes(self) -> None:
        """Test BquiApp has required attributes."""
        assert BquiApp.TITLE == "bqui"
        assert hasattr(BquiApp, "CSS")
        assert BquiApp.ENABLE_COMMAND_PALETTE is False

    def test_app_bindings(self) -> None:
        """Test ctrl+c always quits."""
        binding = BquiApp.BINDINGS[0]
        assert binding.key == "ctrl+c"
        assert binding.priority

    def test_default_clipboard(self, fetcher) -> None:
        """Test the app installs a clipboard when the session has none."""
        from bqui.clipboard import Clipboard

        app = BquiApp(Session("proj"), fetcher)
        assert isinstance(app.session.clipboard, Clipboard)
        assert app.session.clipboard.runner == app.run_clipboard_command

class TestBquiApp:
    """Tests driving the app with key presses."""

    @pytest.mark.asyncio
    async def test_startup_lists_datasets(self, app, fetcher) -> None:
        """Test the dataset list loads on mount."""
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            assert isinstance(app.focused, CatalogView)
            assert [d.id for d in app.session.state.browser.datasets.items] == ["a", "b"]
            assert app.session.state.status == "Loaded 2 datasets"

    @pytest.mark.asyncio
    async def test_enter_dataset_and_table(self, app, fetcher) -> None:
        """Test entering a dataset then a table fetches each level."""
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            await pilot.press("enter")
            await settle(app, pilot)
            state = app.session.state
            assert state.browser.level == BrowserLevel.TABLES
            assert [t.id for t in state.browser.tables.items] == ["x", "y"]

            await pilot.press("j")
            await settle(app, pilot)
            assert (RequestKind.SCHEMA, SelectionKey("proj", "a", "y")) in fetcher.seen
            await pilot.press("enter")
            assert app.session.state.focus == FocusState.DETAIL_PANE

    @pytest.mark.asyncio
    async def test_tab_reaches_session(self, app) -> None:
        """Test tab is handled by the session instead of moving focus."""
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            await pilot.press("enter")
            await settle(app, pilot)
            await pilot.press("enter", "tab")
            assert app.session.state.detail.active_tab.value == "preview"
            assert isinstance(app.focused, CatalogView)

    @pytest.mark.asyncio
    async def test_copy(self, app, clipboard) -> None:
        """Test y copies the dataset under the cursor."""
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            await pilot.press("y")
            assert clipboard.copied == ["proj.a"]

    @pytest.mark.asyncio
    async def test_clipboard_command_runs_on_worker_thread(self, fetcher, monkeypatch) -> None:
        """Test the platform clipboard command does not run on the event loop."""
        from bqui import clipboard as clipboard_module
        from bqui.tui import app as app_module

        threads = []

        def fake_run(command, text):
            threads.append((threading.current_thread() is threading.main_thread(), text))

        monkeypatch.setattr(clipboard_module.shutil, "which", lambda name: f"/usr/bin/{name}")
        monkeypatch.setattr(app_module, "run_command", fake_run)
        app = BquiApp(Session("proj"), fetcher)
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            await pilot.press("y")
            await settle(app, pilot)
            assert threads == [(False, "proj.a")]
            assert app.session.state.status == "Copied: proj.a"

    @pytest.mark.asyncio
    async def test_clipboard_command_failure_keeps_running(self, fetcher, monkeypatch) -> None:
        """Test a failing clipboard command is reported without stopping the app."""
        from bqui import clipboard as clipboard_module
        from bqui.errors import ClipboardError
        from bqui.tui import app as app_module

        def failing(command, text):
            raise ClipboardError("xclip failed: timed out")

        monkeypatch.setattr(clipboard_module.shutil, "which", lambda name: f"/usr/bin/{name}")
        monkeypatch.setattr(app_module, "run_command", failing)
        app = BquiApp(Session("proj"), fetcher)
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            await pilot.press("y")
            await settle(app, pilot)
            await pilot.press("j")
            assert app.is_running
            assert app.session.state.browser.datasets.cursor == 1

    @pytest.mark.asyncio
    async def test_failure_shows_in_status(self, clipboard) -> None:
        """Test a failed fetch is reported in the status bar."""
        fetcher = FakeFetcher({}, failures={(RequestKind.DATASETS, SelectionKey("proj")): "403: Access Denied"})
        app = BquiApp(Session("proj", clipboard=clipboard), fetcher)
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            assert app.session.state.status == "Error: 403: Access Denied"

    @pytest.mark.asyncio
    async def test_quit(self, app, fetcher) -> None:
        """Test q quits and closes the client."""
        async with app.run_test(size=(120, 40)) as pilot:
            await settle(app, pilot)
            await pilot.press("q")
            await pilot.pause()
            assert app.session.should_quit
        assert fetcher.client.closed
