"""Turn an ``AppState`` into Rich renderables.

Rendering never changes state. Sizes come from the same ``Geometry`` the
reducers use for page sizes, so what is drawn always matches what the
cursor logic assumes is visible.
"""

from typing import List, Optional, Sequence

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table as Grid
from rich.text import Text

from .detail import TAB_ORDER, TAB_TITLES, DetailPaneState, Tab, TabularView
from .focus import AppState, BrowserLevel, FocusState
from .keys import KeyMap, key_label
from .layout import clip, format_row, truncate

ACCENT = "bold cyan"
MUTED = "dim"
CURSOR = "reverse"
CURSOR_UNFOCUSED = "underline"
SELECTED = "on dark_blue"
ACTIVE_CELL = "bold reverse yellow"
ERROR = "bold red"


def render(state: AppState, keymap: KeyMap) -> RenderableType:
    """The whole screen."""
    geometry = state.geometry
    body_height = max(3, geometry.height - 2)
    if state.focus == FocusState.PICKER:
        body = render_picker(state, body_height)
    elif state.help_visible:
        body = render_help(keymap, body_height)
    else:
        grid = Grid.grid(expand=True, padding=0)
        grid.add_column(width=geometry.browser_width)
        grid.add_column(ratio=1)
        grid.add_row(render_browser(state, body_height), render_detail(state, body_height))
        body = grid
    return Group(render_header(state), body, render_status(state))


def render_header(state: AppState) -> Text:
    text = Text()
    text.append(" bqui ", style="bold black on cyan")
    text.append(" Project: ", style=MUTED)
    text.append(state.project_id, style=ACCENT)
    if state.switching_to:
        text.append(f"  switching to {state.switching_to}...", style=MUTED)
    text.append("  ? help  ctrl+p projects  q quit", style=MUTED)
    return text


def render_status(state: AppState) -> Text:
    style = ERROR if state.status.startswith("Error") else MUTED
    return Text(truncate(state.status, state.geometry.width), style=style)


def _list_lines(items: Sequence, cursor: int, offset: int, page_size: int, labels, focused: bool) -> List[Text]:
    lines = []
    for index in range(offset, min(offset + page_size, len(items))):
        label = labels(items[index])
        if index == cursor:
            style = CURSOR if focused else CURSOR_UNFOCUSED
            lines.append(Text(label, style=style))
        else:
            lines.append(Text(label))
    return lines


def _filter_line(text: str, editing: bool) -> Text:
    if editing:
        return Text(f"/ {text}█", style=ACCENT)
    if text:
        return Text(f"filter: {text}", style=MUTED)
    return Text("")


def render_browser(state: AppState, height: int) -> Panel:
    browser = state.browser
    items = browser.active
    focused = state.focus == FocusState.BROWSER or (
        state.focus == FocusState.FILTER_INPUT and state.filter_origin == FocusState.BROWSER
    )
    if browser.level == BrowserLevel.TABLES:
        title = f"Tables in {browser.dataset_id}"
        loading = browser.tables_loading
        labels = lambda table: table.id
    else:
        title = "Datasets"
        loading = browser.datasets_loading
        labels = lambda dataset: dataset.id

    lines = [
        Text(f"{items.count}/{len(items.items)}", style=MUTED),
        _filter_line(
            items.filter_text,
            state.focus == FocusState.FILTER_INPUT and state.filter_origin == FocusState.BROWSER,
        ),
    ]
    if loading and not items.items:
        lines.append(Text("Loading...", style=MUTED))
    elif items.is_empty:
        lines.append(Text("No matches" if items.filter_text else "Empty", style=MUTED))
    else:
        lines.extend(
            _list_lines(items.visible, items.cursor, items.offset, items.page_size, labels, focused)
        )
    return Panel(
        Group(*lines),
        title=title,
        title_align="left",
        height=height,
        padding=0,
        border_style=ACCENT if focused else MUTED,
    )


def render_tab_bar(detail: DetailPaneState) -> Text:
    text = Text()
    for tab in TAB_ORDER:
        title = f" {TAB_TITLES[tab]} "
        text.append(title, style="bold reverse" if tab == detail.active_tab else MUTED)
        text.append(" ")
    return text


def render_table(view: TabularView, focused: bool, width: int) -> List[Text]:
    """Header, visible rows and a footer for a tabular tab."""
    widths = view.widths
    offset = view.h_offset
    lines = [clip(Text(format_row(view.headers, widths), style="bold"), offset, width)]
    for index, row in view.rows.window():
        cells = view.cells(row)
        line = Text(format_row(cells, widths))
        if view.selection.contains(index):
            line.stylize(SELECTED)
        if index == view.rows.cursor:
            line.stylize(CURSOR if focused else CURSOR_UNFOCUSED)
            if focused and widths:
                start = sum(w + 1 for w in widths[: view.col_cursor])
                line.stylize(ACTIVE_CELL, start, start + widths[view.col_cursor])
        lines.append(clip(line, offset, width))
    footer = f"Row {view.rows.cursor + 1 if view.rows.count else 0}/{view.rows.count}"
    if view.headers:
        footer += f"  Col {view.col_cursor + 1}/{view.column_count}"
    if view.selection.active:
        low, high = view.selection.range_of()
        footer += f"  VISUAL {high - low + 1} rows"
    lines.append(Text(footer, style=MUTED))
    return lines


def render_query(detail: DetailPaneState, focused: bool) -> List[Text]:
    lines = []
    if detail.editor_focused:
        lines.append(Text("Editing query: Ctrl+R to run, Esc to stop editing", style=MUTED))
    else:
        lines.append(Text("Enter to edit the query, Ctrl+R to run it", style=MUTED))
    query_lines = (detail.query_text or "").split("\n")
    for index, line in enumerate(query_lines):
        text = Text(line)
        if detail.editor_focused and focused and index == len(query_lines) - 1:
            text.append("█", style=ACCENT)
        lines.append(text)
    if detail.executed_query:
        lines.append(Text(""))
        lines.append(Text(f"Last run: {detail.executed_query}", style=MUTED))
    if detail.job_id:
        lines.append(Text(f"Job: {detail.job_id}", style=MUTED))
    return lines


def render_dialog(detail: DetailPaneState) -> List[Text]:
    dialog = detail.dialog
    column = dialog.column
    lines = [
        Text(f"Query options for {column.name} ({column.type})", style=ACCENT),
        Text(""),
    ]
    for index, option in enumerate(dialog.options):
        style = CURSOR if index == dialog.cursor else ""
        lines.append(Text(f"{option.label}", style=style))
        lines.append(Text(f"  {option.sql}", style=MUTED))
    lines.append(Text(""))
    lines.append(Text("Enter to run, Esc to close", style=MUTED))
    return lines


def render_detail(state: AppState, height: int) -> Panel:
    detail = state.detail
    focused = state.focus == FocusState.DETAIL_PANE or (
        state.focus == FocusState.FILTER_INPUT and state.filter_origin == FocusState.DETAIL_PANE
    )
    title = str(detail.table_key) if detail.table_key else "Table"
    lines: List[Text] = [render_tab_bar(detail)]
    view = detail.active_view

    if detail.dialog is not None:
        lines.extend(render_dialog(detail))
    elif detail.active_tab == Tab.QUERY:
        lines.extend(render_query(detail, focused))
    elif detail.table_key is None and detail.active_tab != Tab.RESULTS:
        lines.append(Text("Select a table to see its schema and preview", style=MUTED))
    elif view.loading and not view.rows.items:
        lines.append(Text("Loading...", style=MUTED))
    elif not view.loaded and detail.active_tab == Tab.RESULTS:
        lines.append(
            Text("No query results yet. Run a query from the Query tab or a schema column.", style=MUTED)
        )
    else:
        editing = view.editing and state.focus == FocusState.FILTER_INPUT
        lines.append(_filter_line(view.filter_text, editing))
        lines.extend(render_table(view, focused, state.geometry.table_width))

    return Panel(
        Group(*lines),
        title=title,
        title_align="left",
        height=height,
        padding=0,
        border_style=ACCENT if focused else MUTED,
    )


def render_picker(state: AppState, height: int) -> Panel:
    projects = state.projects
    lines = [
        Text(f"> {projects.filter_text}█", style=ACCENT),
        Text(f"Matches: {projects.count}/{len(projects.items)}", style=MUTED),
    ]
    if state.projects_loading and not projects.items:
        lines.append(Text("Loading projects...", style=MUTED))
    else:
        lines.extend(
            _list_lines(
                projects.visible,
                projects.cursor,
                projects.offset,
                projects.page_size,
                lambda project: project.label,
                True,
            )
        )
    lines.append(Text(""))
    lines.append(Text("Type to filter, Enter to switch, Esc to cancel", style=MUTED))
    return Panel(Group(*lines), title="Select Project", title_align="left", height=height, border_style=ACCENT)


HELP_SECTIONS = (
    ("Navigation", (
        ("up", "Move up"),
        ("down", "Move down"),
        ("left", "Back to datasets / previous column"),
        ("right", "Open / next column"),
        ("select", "Select"),
        ("back", "Back to the list"),
    )),
    ("Tabs", (
        ("next_tab", "Next tab"),
        ("prev_tab", "Previous tab"),
    )),
    ("Search & Filter", (
        ("search", "Filter the current list or tab"),
        ("escape", "Clear filter / close"),
    )),
    ("Actions", (
        ("copy", "Copy name, cell or selected rows"),
        ("visual", "Visual row selection (Preview, Results)"),
        ("run_query", "Run the query"),
        ("picker", "Switch project"),
    )),
    ("Vim Shortcuts", (
        ("top", "Top"),
        ("bottom", "Bottom"),
        ("first_column", "First column"),
        ("last_column", "Last column"),
        ("page_up", "Page up"),
        ("page_down", "Page down"),
    )),
    ("Other", (
        ("help", "Toggle help"),
        ("quit", "Quit"),
    )),
)


def render_help(keymap: KeyMap, height: Optional[int] = None) -> Panel:
    grid = Grid.grid(padding=(0, 2))
    grid.add_column(style=ACCENT)
    grid.add_column()
    for section, entries in HELP_SECTIONS:
        grid.add_row(Text(section, style="bold underline"), "")
        for action, description in entries:
            keys = " / ".join(key_label(key) for key in getattr(keymap, action))
            grid.add_row(keys, description)
        grid.add_row("", "")
    return Panel(grid, title="Help", title_align="left", height=height, border_style=ACCENT)
