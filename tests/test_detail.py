"""Tests for the table detail pane."""

import pytest

from bqui.catalog.sharding import RECENT_SHARDS_FILTER
from bqui.core.detail import DetailPaneState, Tab, flatten_schema
from bqui.core.layout import column_span, total_width
from bqui.core.messages import SelectionKey
from bqui.errors import InputValidationError
from bqui.models import TablePreview

KEY = SelectionKey("proj", "ds", "users")


@pytest.fixture
def pane(schema, preview) -> DetailPaneState:
    state = DetailPaneState.create(page_size=10, available_width=80).show_table(KEY)
    return state.load_schema(schema).load_preview(preview)


def press(state: DetailPaneState, *keys: str) -> DetailPaneState:
    for key in keys:
        state = state.handle_key(key).state
    return state


class TestSchema:
    """Tests for schema flattening and filtering."""

    def test_flatten_is_depth_first(self, schema) -> None:
        """Test nested fields follow their parent with dotted paths."""
        flat = flatten_schema(schema.fields)
        assert [f.path for f in flat] == ["id", "email", "address", "address.city", "address.zip", "tags"]
        assert [f.depth for f in flat] == [0, 0, 0, 1, 1, 0]

    def test_filter_matches_descendants(self, pane) -> None:
        """Test a record matches when one of its children matches."""
        state = pane.edit_filter("postal")
        assert [f.path for f in state.schema.rows.visible] == ["address", "address.zip"]

    def test_show_table_marks_loading(self) -> None:
        """Test pointing at a table clears old data and waits for new."""
        state = DetailPaneState.create().show_table(KEY)
        assert state.table_key == KEY
        assert state.schema.loading and state.preview.loading
        assert state.schema.rows.is_empty


class TestTabs:
    """Tests for tab switching."""

    def test_tab_order_wraps(self, pane) -> None:
        """Test tab visits Schema, Preview, Query, Results and wraps."""
        seen = []
        state = pane
        for _ in range(4):
            state = press(state, "tab")
            seen.append(state.active_tab)
        assert seen == [Tab.PREVIEW, Tab.QUERY, Tab.RESULTS, Tab.SCHEMA]
        assert press(pane, "shift+tab").active_tab == Tab.RESULTS

    def test_switch_resets_cursors_but_keeps_filter(self, pane) -> None:
        """Test cursors and selection reset on a tab switch while filters stay."""
        state = press(pane, "tab").edit_filter("user1")
        state = press(state, "down", "down", "right", "V")
        assert state.preview.rows.cursor == 2
        state = press(state, "tab", "shift+tab")
        assert state.active_tab == Tab.PREVIEW
        assert state.preview.rows.cursor == 0
        assert state.preview.col_cursor == 0
        assert not state.preview.selection.active
        assert state.preview.filter_text == "user1"

    def test_bottom_moves_to_last_column(self, pane) -> None:
        """Test G jumps to the last row and last column."""
        state = press(pane, "tab", "G")
        assert state.preview.rows.cursor == 24
        assert state.preview.col_cursor == 3
        state = press(state, "g")
        assert (state.preview.rows.cursor, state.preview.col_cursor) == (0, 0)

    def test_new_rows_keep_filter(self, pane, preview) -> None:
        """Test loading rows again keeps the filter and resets the cursor."""
        state = press(pane, "tab").edit_filter("user2")
        state = press(state, "down").load_preview(preview)
        assert state.preview.filter_text == "user2"
        assert state.preview.rows.cursor == 0


class TestHorizontalScroll:
    """Tests for keeping the column cursor on screen."""

    @staticmethod
    def assert_cursor_visible(view) -> None:
        start, end = column_span(view.widths, view.col_cursor)
        if total_width(view.widths) <= view.available_width:
            assert view.h_offset == 0
        elif end - start <= view.available_width:
            assert view.h_offset <= start
            assert end <= view.h_offset + view.available_width

    def test_cursor_column_stays_visible(self) -> None:
        """Test column moves and resizes always leave the cursor column in view."""
        headers = tuple(f"col_{i}" for i in range(8))
        row = tuple("x" * (4 + 3 * i) for i in range(8))
        wide = TablePreview(headers=headers, rows=(row, row))
        state = DetailPaneState.create(page_size=10, available_width=30).show_table(KEY)
        state = press(state.load_preview(wide), "tab")
        assert state.active_tab == Tab.PREVIEW

        steps = ["right"] * 5 + ["l", "left", "h", "dollar_sign", 20, "0", 45, "right", "right", "right",
                                 90, "dollar_sign", 20, "left", "left", "0", 200, "dollar_sign", 30]
        for step in steps:
            if isinstance(step, int):
                state = state.resize(10, step)
            else:
                state = press(state, step)
            self.assert_cursor_visible(state.preview)

        assert state.preview.col_cursor == 7
        assert state.preview.h_offset > 0

    def test_last_and_first_column(self) -> None:
        """Test $ scrolls to the last column and 0 back to the start."""
        headers = tuple(f"col_{i}" for i in range(6))
        wide = TablePreview(headers=headers, rows=(tuple("y" * 15 for _ in headers),))
        state = DetailPaneState.create(page_size=10, available_width=30).show_table(KEY)
        state = press(state.load_preview(wide), "tab", "dollar_sign")
        start, end = column_span(state.preview.widths, 5)
        assert state.preview.h_offset == end - 30
        assert state.preview.h_offset <= start
        state = press(state, "0")
        assert state.preview.h_offset == 0


class TestEscape:
    """Tests for escape priority."""

    def test_dialog_then_visual_then_filter(self, pane) -> None:
        """Test escape closes the innermost mode first."""
        state = press(pane, "tab").edit_filter("user")
        state = press(state, "V", "down")
        assert state.preview.selection.active

        state, handled = state.escape()
        assert handled
        assert not state.preview.selection.active
        assert state.preview.filter_text == "user"

        state, handled = state.escape()
        assert handled
        assert state.preview.filter_text == ""

        state, handled = state.escape()
        assert not handled

    def test_dialog_closes_alone(self, pane) -> None:
        """Test escape with a dialog open leaves the filter alone."""
        state = pane.edit_filter("id")
        state = press(state, "enter")
        assert state.dialog is not None
        state, handled = state.escape()
        assert handled
        assert state.dialog is None
        assert state.schema.filter_text == "id"


class TestCopy:
    """Tests for copy text per tab."""

    def test_schema_copies_field_path(self, pane) -> None:
        """Test the schema tab copies the dotted field name."""
        state = press(pane, "down", "down", "down")
        assert state.copy_text() == ("address.city", "Copied field name: address.city")

    def test_preview_copies_cell(self, pane) -> None:
        """Test the preview tab copies the cell under the cursor."""
        state = press(pane, "tab", "down", "right")
        assert state.copy_text() == ("user1@example.com", "Copied cell: user1@example.com")

    def test_visual_copies_rows(self, pane) -> None:
        """Test visual mode copies each selected row as tab separated cells."""
        state = press(pane, "tab", "down", "down", "V", "up", "up")
        text, message = state.copy_text()
        lines = text.split("\n")
        assert message == "Copied 3 rows"
        assert len(lines) == 3
        assert lines[0].startswith("0\tuser0@example.com\t")

    def test_empty_query_has_nothing_to_copy(self, pane) -> None:
        """Test copying a blank query does nothing."""
        assert press(pane, "tab", "tab").copy_text() is None


class TestQuery:
    """Tests for the query editor and column dialog."""

    def test_editor_collects_text(self, pane) -> None:
        """Test enter focuses the editor and printable keys append."""
        state = press(pane, "tab", "tab", "enter")
        assert state.editor_focused
        for key, character in (("s", "s"), ("q", "q"), ("space", " "), ("1", "1")):
            state = state.handle_key(key, character).state
        state = state.handle_key("backspace").state
        assert state.query_text == "sq "

    def test_run_query_switches_to_results(self, pane) -> None:
        """Test running a query shows a loading Results tab."""
        state = press(pane, "tab", "tab", "enter")
        for character in "SELECT 1":
            state = state.handle_key("x", character).state
        outcome = state.handle_key("ctrl+r")
        assert outcome.query == "SELECT 1"
        assert outcome.state.active_tab == Tab.RESULTS
        assert outcome.state.results.loading
        assert outcome.state.executed_query == "SELECT 1"

    def test_empty_query_is_rejected(self, pane) -> None:
        """Test a blank query raises a validation error."""
        state = press(pane, "tab", "tab")
        with pytest.raises(InputValidationError, match="Query is empty"):
            state.handle_key("ctrl+r")

    def test_column_dialog_runs_query(self, schema) -> None:
        """Test choosing a dialog option runs its query on a sharded wildcard."""
        key = SelectionKey("proj", "ds", "events_20240101")
        state = DetailPaneState.create().show_table(key).load_schema(schema)
        state = press(state, "down", "down", "down", "enter")
        assert state.dialog.column.name == "address.city"
        assert [o.label for o in state.dialog.options] == [
            "Select",
            "Select Non Null",
            "Select Distinct",
            "Count Nulls",
        ]
        outcome = state.handle_key("enter")
        assert outcome.query == (
            f"SELECT address.city FROM `proj.ds.events_*` WHERE {RECENT_SHARDS_FILTER} LIMIT 100"
        )
        assert outcome.state.dialog is None
        assert outcome.state.active_tab == Tab.RESULTS

    def test_dialog_only_on_schema(self, pane) -> None:
        """Test enter on the preview tab is not handled."""
        outcome = press(pane, "tab").handle_key("enter")
        assert not outcome.handled
        assert outcome.state.dialog is None
