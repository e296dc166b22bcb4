"""State of the table detail pane.

The pane has four tabs in a fixed order: Schema, Preview, Query and Results.
Schema, Preview and Results are tabular: each owns a row list, a column
cursor, a horizontal viewport and a filter. Preview and Results also support
a visual row selection. The Query tab owns a small text editor.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..catalog.queries import QueryOption, column_queries
from ..errors import InputValidationError
from ..models import Column, QueryResult, TablePreview, TableSchema
from .keys import DEFAULT_KEYMAP, KeyMap, is_printable
from .layout import (
    DEFAULT_MAX_WIDTH,
    DEFAULT_MIN_WIDTH,
    ColumnWidthPlan,
    cell_text,
    compute_widths,
    scroll_to_show_column,
    truncate,
)
from .listing import ListState
from .messages import SelectionKey
from .selection import VisualSelection


class Tab(str, Enum):
    """Tabs of the detail pane."""

    SCHEMA = "schema"
    PREVIEW = "preview"
    QUERY = "query"
    RESULTS = "results"


TAB_ORDER: Tuple[Tab, ...] = (Tab.SCHEMA, Tab.PREVIEW, Tab.QUERY, Tab.RESULTS)
TAB_TITLES: Dict[Tab, str] = {
    Tab.SCHEMA: "Schema",
    Tab.PREVIEW: "Preview",
    Tab.QUERY: "Query",
    Tab.RESULTS: "Results",
}
NEXT_TAB: Dict[Tab, Tab] = dict(zip(TAB_ORDER, TAB_ORDER[1:] + TAB_ORDER[:1]))
PREV_TAB: Dict[Tab, Tab] = {after: before for before, after in NEXT_TAB.items()}

TABULAR_TABS = (Tab.SCHEMA, Tab.PREVIEW, Tab.RESULTS)
VISUAL_TABS = (Tab.PREVIEW, Tab.RESULTS)
SCHEMA_HEADERS = ("Field", "Type", "Mode", "Description")


@dataclass(frozen=True)
class FlatField:
    """A schema field flattened for display, with its nesting depth."""

    column: Column
    path: str
    depth: int = 0


def flatten_schema(fields: Sequence[Column], prefix: str = "", depth: int = 0) -> List[FlatField]:
    """Depth-first list of every field, nested RECORD children included."""
    flat = []
    for column in fields:
        path = f"{prefix}{column.name}"
        flat.append(FlatField(column=column, path=path, depth=depth))
        flat.extend(flatten_schema(column.fields, prefix=path + ".", depth=depth + 1))
    return flat


def _column_texts(column: Column) -> List[str]:
    texts = [column.name, column.description, column.type]
    for child in column.fields:
        texts.extend(_column_texts(child))
    return texts


def schema_filter_fields(flat: FlatField) -> Sequence[str]:
    """A field matches on its name, description or type, or any descendant's."""
    return _column_texts(flat.column)


def schema_cells(flat: FlatField) -> Tuple[str, ...]:
    column = flat.column
    return (
        "  " * flat.depth + column.name,
        column.type,
        column.mode.value,
        column.description,
    )


def row_cells(row: Sequence[Any]) -> Tuple[str, ...]:
    return tuple(cell_text(value) for value in row)


@dataclass(frozen=True)
class TabularView:
    """Rows, column cursor, horizontal viewport and filter of one tab."""

    rows: ListState = field(default_factory=ListState)
    headers: Tuple[str, ...] = ()
    col_cursor: int = 0
    h_offset: int = 0
    available_width: int = 80
    editing: bool = False
    loading: bool = False
    loaded: bool = False
    selection: VisualSelection = field(default_factory=VisualSelection)
    min_width: int = DEFAULT_MIN_WIDTH
    max_width: int = DEFAULT_MAX_WIDTH
    cells: Callable[[Any], Tuple[str, ...]] = field(
        default=row_cells, compare=False, repr=False
    )

    @classmethod
    def for_rows(cls, **kwargs: Any) -> "TabularView":
        """An empty view whose filter matches any cell."""
        return cls(rows=ListState(fields=row_cells), cells=row_cells, **kwargs)

    @classmethod
    def for_schema(cls, **kwargs: Any) -> "TabularView":
        """An empty view over flattened schema fields."""
        return cls(
            rows=ListState(fields=schema_filter_fields),
            headers=SCHEMA_HEADERS,
            cells=schema_cells,
            **kwargs,
        )

    @cached_property
    def widths(self) -> ColumnWidthPlan:
        """Column widths over the rows that pass the filter."""
        return compute_widths(
            self.headers,
            (self.cells(row) for row in self.rows.visible),
            self.min_width,
            self.max_width,
        )

    @property
    def filter_text(self) -> str:
        return self.rows.filter_text

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def load(self, headers: Sequence[str], rows: Sequence[Any]) -> "TabularView":
        """Show a fresh result set. The filter survives, cursors reset."""
        return replace(
            self,
            headers=tuple(headers),
            rows=self.rows.with_items(rows).to_top(),
            col_cursor=0,
            h_offset=0,
            selection=VisualSelection(),
            loading=False,
            loaded=True,
        )

    def clear(self) -> "TabularView":
        """Drop all rows and cursors, keeping the filter text."""
        return replace(
            self,
            rows=self.rows.with_items(()),
            col_cursor=0,
            h_offset=0,
            selection=VisualSelection(),
            loading=False,
            loaded=False,
        )

    def reset_cursors(self) -> "TabularView":
        return replace(
            self,
            rows=self.rows.to_top(),
            col_cursor=0,
            h_offset=0,
            selection=VisualSelection(),
        )

    def resize(self, page_size: int, available_width: int) -> "TabularView":
        view = replace(
            self, rows=self.rows.resize(page_size), available_width=max(1, available_width)
        )
        return view._scrolled()

    def set_filter(self, text: str) -> "TabularView":
        """Refilter rows. The row cursor resets and visual selection ends."""
        view = replace(self, rows=self.rows.set_filter(text), selection=VisualSelection())
        return view._with_col(view.col_cursor)

    def move_row(self, delta: int) -> "TabularView":
        return self._follow(self.rows.move_cursor(delta))

    def page_up(self) -> "TabularView":
        return self._follow(self.rows.page_up())

    def page_down(self) -> "TabularView":
        return self._follow(self.rows.page_down())

    def to_top(self) -> "TabularView":
        view = self._follow(self.rows.to_top())
        return view if self.selection.active else view._with_col(0)

    def to_bottom(self) -> "TabularView":
        view = self._follow(self.rows.to_bottom())
        return view if self.selection.active else view._with_col(self.column_count - 1)

    def move_col(self, delta: int) -> "TabularView":
        return self._with_col(self.col_cursor + delta)

    def first_col(self) -> "TabularView":
        return self._with_col(0)

    def last_col(self) -> "TabularView":
        return self._with_col(self.column_count - 1)

    def toggle_visual(self) -> "TabularView":
        if self.rows.is_empty and not self.selection.active:
            return self
        return replace(self, selection=self.selection.toggle(self.rows.cursor))

    def cancel_visual(self) -> "TabularView":
        return replace(self, selection=self.selection.cancel())

    def selected_rows(self) -> List[Any]:
        bounds = self.selection.range_of()
        if bounds is None:
            return []
        return list(self.rows.visible[bounds[0] : bounds[1] + 1])

    def current_cell(self) -> Optional[str]:
        row = self.rows.current_item()
        if row is None:
            return None
        cells = self.cells(row)
        if self.col_cursor >= len(cells):
            return None
        return cells[self.col_cursor]

    def _follow(self, rows: ListState) -> "TabularView":
        return replace(self, rows=rows, selection=self.selection.extend_to(rows.cursor))

    def _with_col(self, col: int) -> "TabularView":
        col = min(max(col, 0), max(self.column_count - 1, 0))
        return replace(self, col_cursor=col)._scrolled()

    def _scrolled(self) -> "TabularView":
        offset = scroll_to_show_column(
            self.widths, self.col_cursor, self.available_width, self.h_offset
        )
        return replace(self, h_offset=offset)


@dataclass(frozen=True)
class ColumnDialog:
    """Query options offered for a schema field."""

    column: Column
    options: Tuple[QueryOption, ...]
    cursor: int = 0

    def move(self, delta: int) -> "ColumnDialog":
        cursor = min(max(self.cursor + delta, 0), len(self.options) - 1)
        return replace(self, cursor=cursor)

    @property
    def chosen(self) -> QueryOption:
        return self.options[self.cursor]


@dataclass(frozen=True)
class DetailOutcome:
    """Result of handing a key to the detail pane."""

    state: "DetailPaneState"
    handled: bool = True
    query: Optional[str] = None


@dataclass(frozen=True)
class DetailPaneState:
    """Tabs and per-tab state for the table currently in focus."""

    active_tab: Tab = Tab.SCHEMA
    table_key: Optional[SelectionKey] = None
    schema: TabularView = field(default_factory=TabularView.for_schema)
    preview: TabularView = field(default_factory=TabularView.for_rows)
    results: TabularView = field(default_factory=TabularView.for_rows)
    query_text: str = ""
    executed_query: str = ""
    job_id: str = ""
    editor_focused: bool = False
    dialog: Optional[ColumnDialog] = None

    @classmethod
    def create(
        cls,
        page_size: int = 10,
        available_width: int = 80,
        min_width: int = DEFAULT_MIN_WIDTH,
        max_width: int = DEFAULT_MAX_WIDTH,
    ) -> "DetailPaneState":
        sizes = dict(available_width=available_width, min_width=min_width, max_width=max_width)
        return cls(
            schema=TabularView.for_schema(**sizes).resize(page_size, available_width),
            preview=TabularView.for_rows(**sizes).resize(page_size, available_width),
            results=TabularView.for_rows(**sizes).resize(page_size, available_width),
        )

    # Tabs

    def view(self, tab: Tab) -> Optional[TabularView]:
        return getattr(self, tab.value) if tab in TABULAR_TABS else None

    @property
    def active_view(self) -> Optional[TabularView]:
        return self.view(self.active_tab)

    def with_view(self, tab: Tab, view: TabularView) -> "DetailPaneState":
        return replace(self, **{tab.value: view})

    def _map_views(self, fn: Callable[[TabularView], TabularView]) -> "DetailPaneState":
        return replace(
            self, schema=fn(self.schema), preview=fn(self.preview), results=fn(self.results)
        )

    def cycle(self, direction: int) -> "DetailPaneState":
        """Switch tab. Cursors, scroll and visual selection reset; filters stay."""
        order = NEXT_TAB if direction > 0 else PREV_TAB
        return self.switch_to(order[self.active_tab])

    def switch_to(self, tab: Tab) -> "DetailPaneState":
        if tab == self.active_tab:
            return self
        state = self._map_views(TabularView.reset_cursors)
        return replace(state, active_tab=tab, editor_focused=False, dialog=None)

    # Data

    def show_table(self, key: SelectionKey) -> "DetailPaneState":
        """Point the pane at a new table, clearing its schema and preview."""
        return replace(
            self,
            table_key=key,
            schema=replace(self.schema.clear(), loading=True),
            preview=replace(self.preview.clear(), loading=True),
            dialog=None,
        )

    def clear(self) -> "DetailPaneState":
        """Forget the current table."""
        return replace(
            self,
            table_key=None,
            schema=self.schema.clear(),
            preview=self.preview.clear(),
            dialog=None,
        )

    def reset(self) -> "DetailPaneState":
        """Forget the table and any query results."""
        return replace(
            self.clear(),
            results=self.results.clear(),
            executed_query="",
            job_id="",
            editor_focused=False,
        )

    def load_schema(self, schema: TableSchema) -> "DetailPaneState":
        return replace(self, schema=self.schema.load(SCHEMA_HEADERS, flatten_schema(schema.fields)))

    def load_preview(self, preview: TablePreview) -> "DetailPaneState":
        return replace(self, preview=self.preview.load(preview.headers, preview.rows))

    def load_results(self, result: QueryResult) -> "DetailPaneState":
        return replace(
            self, results=self.results.load(result.columns, result.rows), job_id=result.job_id
        )

    def set_loading(self, tab: Tab, loading: bool) -> "DetailPaneState":
        view = self.view(tab)
        if view is None:
            return self
        return self.with_view(tab, replace(view, loading=loading))

    def resize(self, page_size: int, available_width: int) -> "DetailPaneState":
        return self._map_views(lambda view: view.resize(page_size, available_width))

    # Filter

    @property
    def can_filter(self) -> bool:
        return self.active_view is not None and self.dialog is None

    def begin_filter(self) -> "DetailPaneState":
        view = self.active_view
        if view is None:
            return self
        return self.with_view(self.active_tab, replace(view, editing=True))

    def edit_filter(self, text: str) -> "DetailPaneState":
        view = self.active_view
        if view is None:
            return self
        return self.with_view(self.active_tab, view.set_filter(text))

    def end_filter(self, keep: bool) -> "DetailPaneState":
        """Leave filter editing. Without ``keep`` the filter text is cleared."""
        view = self.active_view
        if view is None:
            return self
        if not keep and view.filter_text:
            view = view.set_filter("")
        return self.with_view(self.active_tab, replace(view, editing=False))

    # Query

    def run_query(self, text: str) -> Tuple["DetailPaneState", str]:
        """Prepare the Results tab for ``text``.

        Raises:
            InputValidationError: If the query is blank
        """
        query = text.strip()
        if not query:
            raise InputValidationError("Query is empty")
        state = self.switch_to(Tab.RESULTS)
        state = replace(
            state,
            query_text=text,
            executed_query=query,
            job_id="",
            results=replace(state.results.clear(), loading=True),
        )
        return state, query

    def open_dialog(self) -> "DetailPaneState":
        """Offer query options for the schema field under the cursor."""
        if self.active_tab != Tab.SCHEMA or self.table_key is None:
            return self
        flat = self.schema.rows.current_item()
        if flat is None:
            return self
        column = flat.column.model_copy(update={"name": flat.path})
        options = column_queries(
            self.table_key.project_id,
            self.table_key.dataset_id or "",
            self.table_key.table_id or "",
            column,
        )
        return replace(self, dialog=ColumnDialog(column=column, options=tuple(options)))

    # Input

    def handle_key(self, key: str, character: Optional[str] = None, keymap: KeyMap = DEFAULT_KEYMAP) -> DetailOutcome:
        """Apply a key. ``handled`` is False when the pane has no use for it."""
        if self.dialog is not None:
            return self._dialog_key(key, keymap)
        if self.active_tab == Tab.QUERY and self.editor_focused:
            return self._editor_key(key, character, keymap)
        if keymap.matches("next_tab", key):
            return DetailOutcome(self.cycle(+1))
        if keymap.matches("prev_tab", key):
            return DetailOutcome(self.cycle(-1))
        if self.active_tab == Tab.QUERY:
            if keymap.matches("select", key):
                return DetailOutcome(replace(self, editor_focused=True))
            if keymap.matches("run_query", key):
                return self._submit(self.query_text)
            return DetailOutcome(self, handled=False)
        return self._table_key(key, keymap)

    def escape(self) -> Tuple["DetailPaneState", bool]:
        """Escape, in priority order: dialog, visual mode, filter, editor."""
        if self.dialog is not None:
            return replace(self, dialog=None), True
        view = self.active_view
        if view is not None and view.selection.active:
            return self.with_view(self.active_tab, view.cancel_visual()), True
        if view is not None and view.filter_text:
            return self.end_filter(keep=False), True
        if self.editor_focused:
            return replace(self, editor_focused=False), True
        return self, False

    def _submit(self, text: str) -> DetailOutcome:
        state, query = self.run_query(text)
        return DetailOutcome(state, query=query)

    def _dialog_key(self, key: str, keymap: KeyMap) -> DetailOutcome:
        dialog = self.dialog
        if keymap.matches("up", key):
            return DetailOutcome(replace(self, dialog=dialog.move(-1)))
        if keymap.matches("down", key):
            return DetailOutcome(replace(self, dialog=dialog.move(+1)))
        if keymap.matches("select", key):
            return replace(self, dialog=None)._submit(dialog.chosen.sql)
        return DetailOutcome(self)

    def _editor_key(self, key: str, character: Optional[str], keymap: KeyMap) -> DetailOutcome:
        if keymap.matches("next_tab", key):
            return DetailOutcome(self.cycle(+1))
        if keymap.matches("prev_tab", key):
            return DetailOutcome(self.cycle(-1))
        if keymap.matches("run_query", key):
            return self._submit(self.query_text)
        if key == "backspace":
            return DetailOutcome(replace(self, query_text=self.query_text[:-1]))
        if key == "enter":
            return DetailOutcome(replace(self, query_text=self.query_text + "\n"))
        if character is not None and is_printable(character):
            return DetailOutcome(replace(self, query_text=self.query_text + character))
        return DetailOutcome(self)

    def _table_key(self, key: str, keymap: KeyMap) -> DetailOutcome:
        tab = self.active_tab
        view = self.active_view
        if keymap.matches("visual", key):
            if tab in VISUAL_TABS:
                view = view.toggle_visual()
            return DetailOutcome(self.with_view(tab, view))
        if keymap.matches("select", key):
            return DetailOutcome(self.open_dialog(), handled=tab == Tab.SCHEMA)

        moves = (
            ("up", lambda v: v.move_row(-1)),
            ("down", lambda v: v.move_row(+1)),
            ("page_up", TabularView.page_up),
            ("page_down", TabularView.page_down),
            ("top", TabularView.to_top),
            ("bottom", TabularView.to_bottom),
            ("left", lambda v: v.move_col(-1)),
            ("right", lambda v: v.move_col(+1)),
            ("first_column", TabularView.first_col),
            ("last_column", TabularView.last_col),
        )
        for action, move in moves:
            if keymap.matches(action, key):
                return DetailOutcome(self.with_view(tab, move(view)))
        return DetailOutcome(self, handled=False)

    # Copy

    def copy_text(self) -> Optional[Tuple[str, str]]:
        """Text to copy for the active tab and the status message to show."""
        if self.active_tab == Tab.QUERY:
            if not self.query_text.strip():
                return None
            return self.query_text, "Copied query"
        view = self.active_view
        if self.active_tab == Tab.SCHEMA:
            flat = view.rows.current_item()
            if flat is None:
                return None
            return flat.path, f"Copied field name: {flat.path}"
        if view.selection.active:
            rows = view.selected_rows()
            text = "\n".join("\t".join(view.cells(row)) for row in rows)
            return text, f"Copied {len(rows)} rows"
        cell = view.current_cell()
        if cell is None:
            return None
        return cell, f"Copied cell: {truncate(cell, 50)}"
