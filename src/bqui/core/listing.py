"""Filterable, cursorable, scrollable list state.

Used for the project picker, the dataset and table browser, and the rows of
every tabular detail tab. A ``ListState`` is immutable; every operation
returns a new state. After any operation:

* ``0 <= cursor < len(visible)`` when anything is visible, else ``cursor == 0``
* ``offset <= cursor < offset + page_size``
"""

from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Callable, Generic, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def default_fields(item: object) -> Sequence[str]:
    """Index an item by its ``id`` attribute, or its string form."""
    item_id = getattr(item, "id", None)
    return (item_id if isinstance(item_id, str) else str(item),)


def fuzzy_score(pattern: str, text: str) -> Optional[int]:
    """Score ``text`` against ``pattern`` as a case-insensitive subsequence.

    Returns None when the characters of ``pattern`` do not appear in order.
    Consecutive matches and matches at the start of a word score higher;
    gaps cost a point each.
    """
    if not pattern:
        return 0
    pattern = pattern.lower()
    text_lower = text.lower()
    score = 0
    position = 0
    previous = -2
    for char in pattern:
        found = text_lower.find(char, position)
        if found < 0:
            return None
        if found == previous + 1:
            score += 5
        if found == 0 or not text_lower[found - 1].isalnum():
            score += 3
        score += 1
        score -= found - position
        previous = found
        position = found + 1
    return score


def scroll_offset(cursor: int, offset: int, page_size: int, count: int) -> int:
    """Smallest move of ``offset`` that keeps ``cursor`` on screen."""
    if cursor < offset:
        offset = cursor
    elif cursor >= offset + page_size:
        offset = cursor - page_size + 1
    # Never scroll past the last page
    offset = min(offset, max(0, count - page_size))
    return max(0, offset)


@dataclass(frozen=True)
class ListState(Generic[T]):
    """An ordered sequence viewed through a filter, a cursor and a window."""

    items: Tuple[T, ...] = ()
    filter_text: str = ""
    cursor: int = 0
    offset: int = 0
    page_size: int = 10
    fuzzy: bool = False
    fields: Callable[[T], Sequence[str]] = field(
        default=default_fields, compare=False, repr=False
    )

    @classmethod
    def of(
        cls,
        items: Sequence[T],
        page_size: int = 10,
        fields: Callable[[T], Sequence[str]] = default_fields,
        fuzzy: bool = False,
    ) -> "ListState[T]":
        """Build a list over ``items`` with no filter."""
        return cls(
            items=tuple(items),
            page_size=max(1, page_size),
            fields=fields,
            fuzzy=fuzzy,
        )

    @cached_property
    def visible(self) -> Tuple[T, ...]:
        """Items that pass the current filter, in display order."""
        if not self.filter_text:
            return self.items
        if self.fuzzy:
            scored = []
            for index, item in enumerate(self.items):
                best = None
                for text in self.fields(item):
                    score = fuzzy_score(self.filter_text, text)
                    if score is not None and (best is None or score > best):
                        best = score
                if best is not None:
                    scored.append((-best, index, item))
            scored.sort(key=lambda entry: (entry[0], entry[1]))
            return tuple(item for _, _, item in scored)
        needle = self.filter_text.lower()
        return tuple(
            item
            for item in self.items
            if any(needle in text.lower() for text in self.fields(item))
        )

    @property
    def count(self) -> int:
        return len(self.visible)

    @property
    def is_empty(self) -> bool:
        return not self.visible

    def current_item(self) -> Optional[T]:
        """Item under the cursor, or None when nothing is visible."""
        if not self.visible:
            return None
        return self.visible[self.cursor]

    def window(self) -> Sequence[Tuple[int, T]]:
        """Visible ``(index, item)`` pairs inside the scroll window."""
        end = self.offset + self.page_size
        return list(enumerate(self.visible))[self.offset:end]

    def set_filter(self, text: str) -> "ListState[T]":
        """Apply a new filter. Cursor and scroll go back to the top."""
        return replace(self, filter_text=text, cursor=0, offset=0)

    def with_items(self, items: Sequence[T]) -> "ListState[T]":
        """Replace the items, keeping the filter and clamping the cursor."""
        return replace(self, items=tuple(items))._moved_to(self.cursor)

    def resize(self, page_size: int) -> "ListState[T]":
        """Change the number of visible rows."""
        return replace(self, page_size=max(1, page_size))._moved_to(self.cursor)

    def move_cursor(self, delta: int) -> "ListState[T]":
        return self._moved_to(self.cursor + delta)

    def to_top(self) -> "ListState[T]":
        return self._moved_to(0)

    def to_bottom(self) -> "ListState[T]":
        return self._moved_to(self.count - 1)

    def page_up(self) -> "ListState[T]":
        return self._moved_to(self.cursor - self.page_size)

    def page_down(self) -> "ListState[T]":
        return self._moved_to(self.cursor + self.page_size)

    def select_where(self, predicate: Callable[[T], bool]) -> "ListState[T]":
        """Move the cursor to the first visible item matching ``predicate``."""
        for index, item in enumerate(self.visible):
            if predicate(item):
                return self._moved_to(index)
        return self

    def _moved_to(self, index: int) -> "ListState[T]":
        count = self.count
        cursor = min(max(index, 0), max(count - 1, 0))
        offset = scroll_offset(cursor, self.offset, self.page_size, count)
        return replace(self, cursor=cursor, offset=offset)
