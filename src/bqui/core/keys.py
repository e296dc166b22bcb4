"""Key bindings shared by every reducer.

Key names follow Textual's naming (``"slash"``, ``"question_mark"``,
``"shift+tab"``...). The map is built once at startup and never mutated.
"""

from dataclasses import dataclass, fields
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class KeyMap:
    """Named actions and the keys that trigger them."""

    up: Tuple[str, ...] = ("up", "k")
    down: Tuple[str, ...] = ("down", "j")
    left: Tuple[str, ...] = ("left", "h")
    right: Tuple[str, ...] = ("right", "l")
    select: Tuple[str, ...] = ("enter",)
    next_tab: Tuple[str, ...] = ("tab",)
    prev_tab: Tuple[str, ...] = ("shift+tab",)
    search: Tuple[str, ...] = ("slash",)
    copy: Tuple[str, ...] = ("y", "ctrl+y")
    top: Tuple[str, ...] = ("home", "g")
    bottom: Tuple[str, ...] = ("end", "G")
    page_up: Tuple[str, ...] = ("pageup",)
    page_down: Tuple[str, ...] = ("pagedown",)
    picker: Tuple[str, ...] = ("ctrl+p",)
    escape: Tuple[str, ...] = ("escape",)
    back: Tuple[str, ...] = ("backspace",)
    quit: Tuple[str, ...] = ("q", "ctrl+c")
    force_quit: Tuple[str, ...] = ("ctrl+c",)
    help: Tuple[str, ...] = ("question_mark",)
    visual: Tuple[str, ...] = ("V",)
    first_column: Tuple[str, ...] = ("0",)
    last_column: Tuple[str, ...] = ("dollar_sign",)
    run_query: Tuple[str, ...] = ("ctrl+r",)

    def matches(self, action: str, key: str) -> bool:
        """Return True if ``key`` triggers ``action``."""
        return key in getattr(self, action)

    def by_key(self) -> Dict[str, List[str]]:
        """Reverse index of key -> actions."""
        index: Dict[str, List[str]] = {}
        for f in fields(self):
            for key in getattr(self, f.name):
                index.setdefault(key, []).append(f.name)
        return index


DEFAULT_KEYMAP = KeyMap()


# Display names used by the help overlay
KEY_LABELS = {
    "slash": "/",
    "question_mark": "?",
    "dollar_sign": "$",
    "pageup": "PgUp",
    "pagedown": "PgDn",
    "escape": "Esc",
    "enter": "Enter",
    "backspace": "Backspace",
    "shift+tab": "Shift+Tab",
    "tab": "Tab",
    "up": "↑",
    "down": "↓",
    "left": "←",
    "right": "→",
    "home": "Home",
    "end": "End",
}


def key_label(key: str) -> str:
    """Human readable label for a key name."""
    if key in KEY_LABELS:
        return KEY_LABELS[key]
    if key.startswith("ctrl+"):
        return "Ctrl+" + key[5:].upper()
    return key


def is_printable(character: str) -> bool:
    """Return True for a single character that belongs in a text input."""
    return len(character) == 1 and character.isprintable()
