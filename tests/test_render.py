"""Tests for screen rendering."""

import io

from conftest import make_datasets
from rich.console import Console

from bqui.core import FetchSucceeded, KeyPress, Session
from bqui.core.keys import DEFAULT_KEYMAP
from bqui.core.render import render_help


def text_of(renderable, width: int = 120) -> str:
    console = Console(width=width, file=io.StringIO(), record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


def loaded_session() -> Session:
    session = Session("proj")
    (request,) = session.start()
    session.deliver(FetchSucceeded(request, make_datasets("alpha", "beta")))
    return session


class TestRender:
    """Tests for the rendered screen."""

    def test_browser_and_status(self) -> None:
        """Test the dataset list, header and status line are drawn."""
        screen = text_of(loaded_session().render())
        assert "Project: proj" in screen
        assert "Datasets" in screen
        assert "alpha" in screen and "beta" in screen
        assert "Loaded 2 datasets" in screen
        assert "Select a table to see its schema and preview" in screen

    def test_loading(self) -> None:
        """Test a pending dataset list shows a loading line."""
        session = Session("proj")
        session.start()
        assert "Loading..." in text_of(session.render())

    def test_filter_line(self) -> None:
        """Test the filter being typed is shown."""
        session = loaded_session()
        session.dispatch(KeyPress("slash", "/"))
        session.dispatch(KeyPress("b", "b"))
        screen = text_of(session.render())
        assert "/ b█" in screen
        assert "1/2" in screen

    def test_picker(self) -> None:
        """Test the project picker replaces the panes."""
        session = loaded_session()
        session.dispatch(KeyPress("ctrl+p"))
        screen = text_of(session.render())
        assert "Select Project" in screen
        assert "Loading projects..." in screen

    def test_help_lists_keys(self) -> None:
        """Test the help overlay lists every section with key labels."""
        screen = text_of(render_help(DEFAULT_KEYMAP))
        for section in ("Navigation", "Tabs", "Search & Filter", "Actions", "Vim Shortcuts", "Other"):
            assert section in screen
        assert "Switch project" in screen
