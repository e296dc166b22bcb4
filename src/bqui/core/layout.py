"""Column widths, horizontal scrolling and screen geometry.

Columns are laid out left to right with one separator space between them, so
column ``i`` covers the character span ``[start, start + width)`` where
``start`` is the sum of ``width + 1`` over the columns before it.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Tuple

DEFAULT_MIN_WIDTH = 8
DEFAULT_MAX_WIDTH = 30
ELLIPSIS = "..."
NULL_TEXT = "NULL"

ColumnWidthPlan = Tuple[int, ...]


def cell_text(value: Any) -> str:
    """Render a cell value as a single line of text."""
    if value is None:
        return NULL_TEXT
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(cell_text(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {cell_text(v)}" for k, v in value.items()) + "}"
    return str(value).replace("\n", " ")


def compute_widths(
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    min_width: int = DEFAULT_MIN_WIDTH,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> ColumnWidthPlan:
    """Width of each column: the longest header or cell, clamped.

    ``rows`` holds already rendered cell text. Rows shorter than the header
    list simply do not contribute to the missing columns.
    """
    widths = [len(header) for header in headers]
    for row in rows:
        for index, text in enumerate(row[: len(widths)]):
            if len(text) > widths[index]:
                widths[index] = len(text)
    return tuple(min(max(width, min_width), max_width) for width in widths)


def column_span(plan: ColumnWidthPlan, col: int) -> Tuple[int, int]:
    """Half-open character span ``[start, end)`` of column ``col``."""
    start = sum(width + 1 for width in plan[:col])
    return start, start + plan[col]


def total_width(plan: ColumnWidthPlan) -> int:
    """Characters needed to draw every column."""
    if not plan:
        return 0
    return sum(plan) + len(plan) - 1


def scroll_to_show_column(
    plan: ColumnWidthPlan,
    cursor_col: int,
    available_width: int,
    current_offset: int,
) -> int:
    """Horizontal offset that brings ``cursor_col`` fully into view.

    A table narrower than the viewport is never scrolled. Otherwise the
    offset only moves when the column is not already visible, and then by
    the smallest amount that shows the nearer edge. A column wider than the
    viewport is aligned on its left edge.
    """
    if not plan:
        return 0
    available_width = max(1, available_width)
    if total_width(plan) <= available_width:
        return 0
    cursor_col = min(max(cursor_col, 0), len(plan) - 1)
    start, end = column_span(plan, cursor_col)

    if start >= current_offset and end <= current_offset + available_width:
        return current_offset
    if cursor_col == 0:
        return 0
    if cursor_col == len(plan) - 1 and end - start <= available_width:
        return max(0, end - available_width)
    if start < current_offset or end - start > available_width:
        return start
    return max(0, end - available_width)


def truncate(text: str, width: int) -> str:
    """Cut ``text`` to ``width`` characters, marking the cut with an ellipsis."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return text[:width]
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


def format_row(cells: Sequence[str], plan: ColumnWidthPlan) -> str:
    """Lay out one row at full width, each cell padded to its column."""
    parts = []
    for index, width in enumerate(plan):
        text = cells[index] if index < len(cells) else ""
        parts.append(truncate(text, width).ljust(width))
    return " ".join(parts)


def clip(line, offset: int, available_width: int):
    """The part of ``line`` inside the horizontal viewport. Works on ``str`` and Rich ``Text``."""
    return line[offset : offset + available_width]


@dataclass(frozen=True)
class Geometry:
    """How the terminal is split between the browser and the detail pane."""

    width: int = 120
    height: int = 40

    @property
    def browser_width(self) -> int:
        return min(max(28, self.width // 3), max(self.width - 20, 1))

    @property
    def detail_width(self) -> int:
        return max(self.width - self.browser_width, 1)

    @property
    def list_rows(self) -> int:
        """Rows available to the dataset/table list."""
        # header line, status line, panel borders, title and filter lines
        return max(1, self.height - 6)

    @property
    def table_rows(self) -> int:
        """Data rows available to a tabular detail tab."""
        # list chrome plus tab bar and column header
        return max(1, self.height - 8)

    @property
    def table_width(self) -> int:
        """Characters available to a tabular detail tab."""
        return max(1, self.detail_width - 2)

    @property
    def picker_rows(self) -> int:
        return 10
