"""Top-level navigation reducer.

Routes each key to whichever of the browser, the detail pane, the project
picker or a filter input currently has focus, and applies arriving fetch
results through the request gate. Every function here is pure: it takes an
``AppState`` and returns a ``Transition`` holding the next state, the fetches
to start and anything to put on the clipboard.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Sequence, Tuple, Union

from ..errors import InputValidationError
from ..models import Dataset, Project, Table
from .detail import DetailPaneState, Tab
from .gate import AsyncRequestGate
from .keys import DEFAULT_KEYMAP, KeyMap, is_printable
from .layout import DEFAULT_MAX_WIDTH, DEFAULT_MIN_WIDTH, Geometry
from .listing import ListState
from .messages import (
    FetchFailed,
    FetchSucceeded,
    KeyPress,
    PendingRequest,
    RequestKind,
    SelectionKey,
)

logger = logging.getLogger(__name__)


class FocusState(str, Enum):
    """Which component receives keys."""

    BROWSER = "browser"
    DETAIL_PANE = "detail"
    PICKER = "picker"
    FILTER_INPUT = "filter"


class BrowserLevel(str, Enum):
    DATASETS = "datasets"
    TABLES = "tables"


def project_fields(project: Project) -> Sequence[str]:
    return (f"{project.id} {project.name}",)


@dataclass(frozen=True)
class BrowserState:
    """The dataset list and the table list of the entered dataset."""

    level: BrowserLevel = BrowserLevel.DATASETS
    datasets: ListState = field(default_factory=ListState)
    tables: ListState = field(default_factory=ListState)
    dataset_id: Optional[str] = None
    datasets_loading: bool = False
    tables_loading: bool = False

    @property
    def active(self) -> ListState:
        return self.tables if self.level == BrowserLevel.TABLES else self.datasets

    def with_active(self, items: ListState) -> "BrowserState":
        if self.level == BrowserLevel.TABLES:
            return replace(self, tables=items)
        return replace(self, datasets=items)

    def resize(self, page_size: int) -> "BrowserState":
        return replace(
            self,
            datasets=self.datasets.resize(page_size),
            tables=self.tables.resize(page_size),
        )


@dataclass(frozen=True)
class AppState:
    """Everything the session knows. Replaced wholesale on every event."""

    selection: SelectionKey
    focus: FocusState = FocusState.BROWSER
    filter_origin: FocusState = FocusState.BROWSER
    picker_return: FocusState = FocusState.BROWSER
    help_visible: bool = False
    browser: BrowserState = field(default_factory=BrowserState)
    detail: DetailPaneState = field(default_factory=DetailPaneState)
    projects: ListState = field(
        default_factory=lambda: ListState(fields=project_fields, fuzzy=True)
    )
    projects_loading: bool = False
    switching_to: Optional[str] = None
    gate: AsyncRequestGate = field(default_factory=AsyncRequestGate)
    geometry: Geometry = field(default_factory=Geometry)
    status: str = ""
    quit: bool = False

    @property
    def project_id(self) -> str:
        return self.selection.project_id

    @property
    def text_entry(self) -> bool:
        """True while a text input owns the keyboard."""
        if self.focus in (FocusState.PICKER, FocusState.FILTER_INPUT):
            return True
        return (
            self.focus == FocusState.DETAIL_PANE
            and self.detail.active_tab == Tab.QUERY
            and self.detail.editor_focused
        )


@dataclass(frozen=True)
class Transition:
    """Outcome of a reducer step."""

    state: AppState
    requests: Tuple[PendingRequest, ...] = ()
    clipboard: Optional[str] = None


def initial_state(
    project_id: str,
    geometry: Optional[Geometry] = None,
    min_width: int = DEFAULT_MIN_WIDTH,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> AppState:
    geometry = geometry or Geometry()
    browser = BrowserState(
        datasets=ListState(page_size=geometry.list_rows),
        tables=ListState(page_size=geometry.list_rows),
    )
    detail = DetailPaneState.create(
        page_size=geometry.table_rows,
        available_width=geometry.table_width,
        min_width=min_width,
        max_width=max_width,
    )
    return AppState(
        selection=SelectionKey(project_id),
        browser=browser,
        detail=detail,
        projects=ListState(page_size=geometry.picker_rows, fields=project_fields, fuzzy=True),
        geometry=geometry,
    )


def start(state: AppState) -> Transition:
    """Load the dataset list of the starting project."""
    return _load_datasets(state)


def resize(state: AppState, geometry: Geometry) -> AppState:
    return replace(
        state,
        geometry=geometry,
        browser=state.browser.resize(geometry.list_rows),
        detail=state.detail.resize(geometry.table_rows, geometry.table_width),
    )


# Requests


class _Requests:
    """Accumulates requests issued during one reducer step."""

    def __init__(self, state: AppState):
        self.state = state
        self.issued = []

    def issue(self, kind: RequestKind, key: SelectionKey, query: Optional[str] = None) -> bool:
        gate, pending = self.state.gate.issue(kind, key, self.state.selection, query=query)
        self.state = replace(self.state, gate=gate)
        if pending is None:
            return False
        self.issued.append(pending)
        return True

    def done(self, clipboard: Optional[str] = None) -> Transition:
        return Transition(self.state, tuple(self.issued), clipboard)


def _load_datasets(state: AppState) -> Transition:
    browser = replace(state.browser, datasets_loading=True)
    requests = _Requests(replace(state, browser=browser))
    requests.issue(RequestKind.DATASETS, SelectionKey(state.project_id))
    return requests.done()


def _hover(state: AppState) -> Transition:
    """Follow the browser cursor onto a table, fetching its details once."""
    browser = state.browser
    requests = _Requests(state)
    if browser.level != BrowserLevel.TABLES:
        return requests.done()
    table: Optional[Table] = browser.tables.current_item()
    if table is None:
        return requests.done()
    key = state.selection.with_table(table.id)
    if state.gate.already_issued(RequestKind.SCHEMA, key) and state.selection == key:
        return requests.done()
    requests.state = replace(state, selection=key, detail=state.detail.show_table(key))
    requests.issue(RequestKind.SCHEMA, key)
    requests.issue(RequestKind.PREVIEW, key)
    return requests.done()


def _enter_dataset(state: AppState, dataset: Dataset) -> Transition:
    """Show a dataset's tables. The table detail is cleared straight away."""
    selection = state.selection.with_dataset(dataset.id)
    browser = replace(
        state.browser,
        level=BrowserLevel.TABLES,
        dataset_id=dataset.id,
        tables=ListState(page_size=state.geometry.list_rows),
        tables_loading=True,
    )
    state = replace(
        state,
        selection=selection,
        browser=browser,
        detail=state.detail.clear(),
        gate=state.gate.forget(RequestKind.SCHEMA, RequestKind.PREVIEW),
        status=f"Loading tables from {dataset.id}...",
    )
    requests = _Requests(state)
    requests.issue(RequestKind.TABLES, selection)
    return requests.done()


# Keys


def handle_key(state: AppState, press: KeyPress, keymap: KeyMap = DEFAULT_KEYMAP) -> Transition:
    """Apply one key press."""
    key = press.key
    if keymap.matches("force_quit", key) or (
        not state.text_entry and keymap.matches("quit", key)
    ):
        return Transition(replace(state, quit=True))
    if not state.text_entry and keymap.matches("help", key):
        return Transition(replace(state, help_visible=not state.help_visible))
    if keymap.matches("picker", key):
        return _open_picker(state)
    if keymap.matches("escape", key):
        return _escape(state)
    if state.help_visible and state.focus != FocusState.PICKER:
        # The help overlay is modal
        return Transition(state)

    if state.focus == FocusState.PICKER:
        return _picker_key(state, press, keymap)
    if state.focus == FocusState.FILTER_INPUT:
        return _filter_key(state, press, keymap)
    if state.focus == FocusState.DETAIL_PANE:
        return _detail_key(state, press, keymap)
    return _browser_key(state, press, keymap)


def _escape(state: AppState) -> Transition:
    if state.focus == FocusState.PICKER:
        return Transition(replace(state, focus=state.picker_return))
    if state.help_visible:
        return Transition(replace(state, help_visible=False))
    if state.focus == FocusState.FILTER_INPUT:
        return _end_filter(state, keep=False)
    if state.focus == FocusState.DETAIL_PANE:
        detail, handled = state.detail.escape()
        if handled:
            return Transition(replace(state, detail=detail))
        return Transition(replace(state, focus=FocusState.BROWSER))
    active = state.browser.active
    if active.filter_text:
        browser = state.browser.with_active(active.set_filter(""))
        return _hover(replace(state, browser=browser))
    return Transition(state)


def _open_picker(state: AppState) -> Transition:
    if state.focus == FocusState.PICKER:
        return Transition(state)
    if state.focus == FocusState.FILTER_INPUT:
        state = _end_filter(state, keep=True).state
    state = replace(
        state,
        focus=FocusState.PICKER,
        picker_return=state.focus,
        help_visible=False,
        projects=state.projects.set_filter(""),
        projects_loading=True,
    )
    requests = _Requests(state)
    requests.issue(RequestKind.PROJECTS, SelectionKey(state.project_id))
    return requests.done()


def _picker_key(state: AppState, press: KeyPress, keymap: KeyMap) -> Transition:
    projects = state.projects
    key = press.key
    if key in ("up", "down"):
        projects = projects.move_cursor(-1 if key == "up" else 1)
    elif keymap.matches("page_up", key):
        projects = projects.page_up()
    elif keymap.matches("page_down", key):
        projects = projects.page_down()
    elif keymap.matches("select", key):
        return _choose_project(state)
    elif keymap.matches("back", key):
        projects = projects.set_filter(projects.filter_text[:-1])
    elif press.character is not None and is_printable(press.character):
        projects = projects.set_filter(projects.filter_text + press.character)
    return Transition(replace(state, projects=projects))


def _choose_project(state: AppState) -> Transition:
    project: Optional[Project] = state.projects.current_item()
    if project is None:
        return Transition(state)
    state = replace(state, focus=FocusState.BROWSER)
    if project.id == state.project_id:
        return Transition(state)
    state = replace(
        state, switching_to=project.id, status=f"Switching to project: {project.id}..."
    )
    requests = _Requests(state)
    requests.issue(RequestKind.SWITCH_PROJECT, SelectionKey(project.id), query=project.id)
    return requests.done()


def _begin_filter(state: AppState, origin: FocusState) -> Transition:
    if origin == FocusState.DETAIL_PANE:
        state = replace(state, detail=state.detail.begin_filter())
    return Transition(replace(state, focus=FocusState.FILTER_INPUT, filter_origin=origin))


def _filter_text(state: AppState) -> str:
    if state.filter_origin == FocusState.DETAIL_PANE:
        view = state.detail.active_view
        return view.filter_text if view is not None else ""
    return state.browser.active.filter_text


def _set_filter(state: AppState, text: str) -> Transition:
    if state.filter_origin == FocusState.DETAIL_PANE:
        return Transition(replace(state, detail=state.detail.edit_filter(text)))
    browser = state.browser.with_active(state.browser.active.set_filter(text))
    return _hover(replace(state, browser=browser))


def _end_filter(state: AppState, keep: bool) -> Transition:
    origin = state.filter_origin
    if origin == FocusState.DETAIL_PANE:
        state = replace(state, detail=state.detail.end_filter(keep))
        return Transition(replace(state, focus=origin))
    state = replace(state, focus=origin)
    if keep:
        return Transition(state)
    return _set_filter(state, "")


def _filter_key(state: AppState, press: KeyPress, keymap: KeyMap) -> Transition:
    key = press.key
    if keymap.matches("select", key):
        return _end_filter(state, keep=True)
    if keymap.matches("back", key):
        return _set_filter(state, _filter_text(state)[:-1])
    if key in ("up", "down"):
        delta = -1 if key == "up" else 1
        if state.filter_origin == FocusState.DETAIL_PANE:
            tab = state.detail.active_tab
            view = state.detail.active_view.move_row(delta)
            return Transition(replace(state, detail=state.detail.with_view(tab, view)))
        browser = state.browser.with_active(state.browser.active.move_cursor(delta))
        return _hover(replace(state, browser=browser))
    if press.character is not None and is_printable(press.character):
        return _set_filter(state, _filter_text(state) + press.character)
    return Transition(state)


def _browser_key(state: AppState, press: KeyPress, keymap: KeyMap) -> Transition:
    browser = state.browser
    active = browser.active
    key = press.key

    moves = (
        ("up", lambda items: items.move_cursor(-1)),
        ("down", lambda items: items.move_cursor(+1)),
        ("top", ListState.to_top),
        ("bottom", ListState.to_bottom),
        ("page_up", ListState.page_up),
        ("page_down", ListState.page_down),
    )
    for action, move in moves:
        if keymap.matches(action, key):
            return _hover(replace(state, browser=browser.with_active(move(active))))

    if keymap.matches("search", key):
        return _begin_filter(state, FocusState.BROWSER)
    if keymap.matches("copy", key):
        return _copy_browser(state)
    if keymap.matches("next_tab", key) and state.detail.table_key is not None:
        return Transition(replace(state, focus=FocusState.DETAIL_PANE))

    if browser.level == BrowserLevel.DATASETS:
        dataset: Optional[Dataset] = active.current_item()
        if dataset is None:
            return Transition(state)
        if keymap.matches("select", key):
            return _enter_dataset(state, dataset)
        if keymap.matches("right", key):
            if dataset.id == browser.dataset_id:
                browser = replace(browser, level=BrowserLevel.TABLES)
                return Transition(replace(state, browser=browser))
            return _enter_dataset(state, dataset)
        return Transition(state)

    if keymap.matches("left", key) or keymap.matches("back", key):
        return Transition(replace(state, browser=replace(browser, level=BrowserLevel.DATASETS)))
    if keymap.matches("select", key) or keymap.matches("right", key):
        if active.current_item() is None:
            return Transition(state)
        transition = _hover(state)
        return replace(
            transition, state=replace(transition.state, focus=FocusState.DETAIL_PANE)
        )
    return Transition(state)


def _copy_browser(state: AppState) -> Transition:
    item = state.browser.active.current_item()
    if item is None:
        return Transition(state)
    if isinstance(item, Table):
        text = item.full_name
    else:
        text = f"{item.project_id}.{item.id}"
    return Transition(replace(state, status=f"Copied: {text}"), clipboard=text)


def _detail_key(state: AppState, press: KeyPress, keymap: KeyMap) -> Transition:
    detail = state.detail
    key = press.key
    if not state.text_entry and detail.dialog is None:
        if keymap.matches("search", key) and detail.can_filter:
            return _begin_filter(state, FocusState.DETAIL_PANE)
        if keymap.matches("copy", key):
            copied = detail.copy_text()
            if copied is None:
                return Transition(state)
            text, message = copied
            return Transition(replace(state, status=message), clipboard=text)

    try:
        outcome = detail.handle_key(key, press.character, keymap)
    except InputValidationError as e:
        return Transition(replace(state, status=f"Error: {e}"))

    state = replace(state, detail=outcome.state)
    if outcome.query is not None:
        requests = _Requests(replace(state, status="Running query..."))
        requests.issue(RequestKind.QUERY, state.selection, query=outcome.query)
        return requests.done()
    if not outcome.handled and keymap.matches("back", key):
        return Transition(replace(state, focus=FocusState.BROWSER))
    return Transition(state)


# Results


def handle_result(state: AppState, message: Union[FetchSucceeded, FetchFailed]) -> Transition:
    """Apply a fetch result that passed through the worker boundary."""
    pending: PendingRequest = message.request
    if isinstance(message, FetchFailed):
        gate, current = state.gate.fail(pending, state.selection)
        state = replace(state, gate=gate)
        if not current:
            logger.debug("Dropped stale %s failure for %s", pending.kind.value, pending.key)
            return Transition(state)
        logger.warning("%s request for %s failed: %s", pending.kind.value, pending.key, message.error)
        return Transition(replace(_clear_loading(state, pending), status=f"Error: {message.error}"))

    gate, accepted = state.gate.accept(pending, state.selection)
    if not accepted:
        logger.debug("Ignored stale %s response for %s", pending.kind.value, pending.key)
        # Only the gate's bookkeeping changes for a stale reply
        return Transition(replace(state, gate=gate))
    state = replace(state, gate=gate)
    return _apply(state, pending, message.payload)


def _clear_loading(state: AppState, pending: PendingRequest) -> AppState:
    kind = pending.kind
    if kind == RequestKind.PROJECTS:
        return replace(state, projects_loading=False)
    if kind == RequestKind.DATASETS:
        return replace(state, browser=replace(state.browser, datasets_loading=False))
    if kind == RequestKind.TABLES:
        return replace(state, browser=replace(state.browser, tables_loading=False))
    if kind == RequestKind.SWITCH_PROJECT:
        return replace(state, switching_to=None)
    tab = {
        RequestKind.SCHEMA: Tab.SCHEMA,
        RequestKind.PREVIEW: Tab.PREVIEW,
        RequestKind.QUERY: Tab.RESULTS,
    }[kind]
    return replace(state, detail=state.detail.set_loading(tab, False))


def _apply(state: AppState, pending: PendingRequest, payload: Any) -> Transition:
    kind = pending.kind
    key = pending.key
    if kind == RequestKind.PROJECTS:
        projects = state.projects.with_items(sorted(payload, key=lambda p: p.id))
        return Transition(replace(state, projects=projects, projects_loading=False))
    if kind == RequestKind.DATASETS:
        browser = replace(
            state.browser,
            datasets=state.browser.datasets.with_items(payload),
            datasets_loading=False,
        )
        return Transition(replace(state, browser=browser, status=f"Loaded {len(payload)} datasets"))
    if kind == RequestKind.TABLES:
        browser = replace(
            state.browser,
            tables=state.browser.tables.with_items(payload),
            tables_loading=False,
        )
        status = f"Loaded {len(payload)} tables from {key.dataset_id}"
        return Transition(replace(state, browser=browser, status=status))
    if kind == RequestKind.SCHEMA:
        status = f"Loaded schema for {key.dataset_id}.{key.table_id}"
        return Transition(replace(state, detail=state.detail.load_schema(payload), status=status))
    if kind == RequestKind.PREVIEW:
        return Transition(replace(state, detail=state.detail.load_preview(payload)))
    if kind == RequestKind.QUERY:
        status = f"Query returned {len(payload.rows)} rows"
        return Transition(replace(state, detail=state.detail.load_results(payload), status=status))
    return _switched(state, pending.query or key.project_id)


def _switched(state: AppState, project_id: str) -> Transition:
    """The backend now points at ``project_id``: start over from its datasets."""
    list_rows = state.geometry.list_rows
    browser = BrowserState(
        datasets=ListState(page_size=list_rows),
        tables=ListState(page_size=list_rows),
    )
    gate = state.gate.forget(*RequestKind)
    state = replace(
        state,
        selection=SelectionKey(project_id),
        browser=browser,
        detail=state.detail.reset(),
        gate=gate,
        switching_to=None,
        status=f"Switched to project: {project_id}",
    )
    transition = _load_datasets(state)
    return replace(transition, state=replace(transition.state, status=state.status))
