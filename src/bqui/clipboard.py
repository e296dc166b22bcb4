"""Clipboard access.

Text is sent to the terminal with an OSC 52 escape (through Textual), which
works over SSH, and also handed to the platform clipboard command when one
is installed.
"""

import logging
import shutil
import subprocess
import sys
from typing import Callable, List, Optional, Sequence

from .errors import ClipboardError

logger = logging.getLogger(__name__)


def platform_commands() -> List[Sequence[str]]:
    """Clipboard commands to try on this platform, in order."""
    if sys.platform == "darwin":
        return [("pbcopy",)]
    if sys.platform == "win32":
        return [("clip",)]
    return [
        ("wl-copy",),
        ("xclip", "-selection", "clipboard"),
        ("xsel", "--clipboard", "--input"),
    ]


CommandRunner = Callable[[Sequence[str], str], None]


def run_command(command: Sequence[str], text: str) -> None:
    """Pipe ``text`` into a clipboard command and wait for it.

    Raises:
        ClipboardError: If the command cannot be started, fails or hangs
    """
    try:
        subprocess.run(list(command), input=text, text=True, check=True, timeout=2)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("%s failed: %s", command[0], e)
        raise ClipboardError(f"{command[0]} failed: {e}") from e


class Clipboard:
    """Writes text to the system clipboard."""

    def __init__(
        self,
        terminal_writer: Optional[Callable[[str], None]] = None,
        commands: Optional[List[Sequence[str]]] = None,
        runner: Optional[CommandRunner] = None,
    ):
        """Initialize the clipboard.

        Args:
            terminal_writer: Callable that copies through the terminal,
                usually ``App.copy_to_clipboard``.
            commands: Clipboard commands to try. Defaults to the platform's.
            runner: Callable that runs the chosen command with the text.
                Defaults to ``run_command``, which blocks until it exits. The
                TUI passes a thread worker here.
        """
        self.terminal_writer = terminal_writer
        self.commands = platform_commands() if commands is None else commands
        self.runner = run_command if runner is None else runner

    def _command(self) -> Optional[Sequence[str]]:
        for command in self.commands:
            if shutil.which(command[0]):
                return command
        return None

    def write_text(self, text: str) -> None:
        """Copy ``text``.

        Raises:
            ClipboardError: If no copy method is available or the command fails
        """
        if self.terminal_writer is not None:
            self.terminal_writer(text)
        command = self._command()
        if command is None:
            if self.terminal_writer is None:
                raise ClipboardError("No clipboard command found")
            return
        self.runner(command, text)
