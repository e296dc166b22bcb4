"""Visual (row range) selection for bulk copy."""

from dataclasses import dataclass, replace
from typing import Optional, Tuple


@dataclass(frozen=True)
class VisualSelection:
    """An anchor-based inclusive row range.

    The range is ``[min(anchor, current), max(anchor, current)]`` whichever
    way the cursor moved. An inactive selection keeps both markers at 0.
    """

    active: bool = False
    anchor_row: int = 0
    current_row: int = 0

    def toggle(self, row: int) -> "VisualSelection":
        """Start a selection at ``row``, or end the current one."""
        if self.active:
            return VisualSelection()
        return VisualSelection(active=True, anchor_row=row, current_row=row)

    def extend_to(self, row: int) -> "VisualSelection":
        """Move the free end of the range. Ignored while inactive."""
        if not self.active:
            return self
        return replace(self, current_row=row)

    def range_of(self) -> Optional[Tuple[int, int]]:
        if not self.active:
            return None
        return (
            min(self.anchor_row, self.current_row),
            max(self.anchor_row, self.current_row),
        )

    def contains(self, row: int) -> bool:
        bounds = self.range_of()
        return bounds is not None and bounds[0] <= row <= bounds[1]

    def cancel(self) -> "VisualSelection":
        return VisualSelection()
