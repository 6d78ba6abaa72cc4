"""Live terminal display shared by the watch and refresh commands.

This module provides:
- StatusBoard: Redraws one status line per observer in place
- StatusLineAwareHandler: Logging handler that prints above the board
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from syncwatch.client.indicator import format_status
from syncwatch.client.status import StatusPoller


class StatusBoard:
    """Block of status lines, one per poller, redrawn in place.

    On a terminal the block is rewritten with ANSI cursor movement. On any
    other stream a line is printed only when its text changes.
    """

    def __init__(
        self,
        pollers: list[tuple[str | None, StatusPoller]],
        stream: TextIO | None = None,
        color: bool | None = None,
    ) -> None:
        """Initialize the board.

        Args:
            pollers: (label, poller) pairs in display order.
            stream: Output stream (default: stdout).
            color: Apply ANSI colors (default: when the stream is a tty).
        """
        self._pollers = pollers
        self._stream = stream or sys.stdout
        self._interactive = self._stream.isatty()
        self._color = self._interactive if color is None else color
        self._drawn = 0
        self._last_lines: list[str] = []

    def render(self) -> list[str]:
        """Current text of every line."""
        return [
            format_status(
                poller.state,
                progress_text=poller.progress_text,
                label=label,
                color=self._color,
            )
            for label, poller in self._pollers
        ]

    def redraw(self) -> None:
        lines = self.render()
        if not self._interactive:
            for index, line in enumerate(lines):
                if index >= len(self._last_lines) or self._last_lines[index] != line:
                    self._stream.write(line + "\n")
            self._last_lines = lines
            self._stream.flush()
            return

        self.clear()
        for line in lines:
            self._stream.write(line + "\n")
        self._drawn = len(lines)
        self._stream.flush()

    def clear(self) -> None:
        """Erase the drawn block (terminal only)."""
        if self._interactive and self._drawn:
            # Cursor to the first line of the block, then clear to the end
            self._stream.write(f"\x1b[{self._drawn}F\x1b[J")
            self._drawn = 0

    def write_above(self, message: str) -> None:
        """Print a message without corrupting the block."""
        self.clear()
        self._stream.write(message + "\n")
        if self._interactive:
            self.redraw()
        else:
            self._stream.flush()


class StatusLineAwareHandler(logging.Handler):
    """Logging handler that coordinates with the status board.

    Clears the board before printing log messages and restores it after.
    """

    def __init__(self, board: StatusBoard) -> None:
        super().__init__()
        self._board = board

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._board.write_above(self.format(record))
        except Exception:
            self.handleError(record)


def install_log_handler(board: StatusBoard, verbose: bool = False) -> None:
    """Route syncwatch logs above the board.

    Args:
        board: Board to print above.
        verbose: Show info messages, not only warnings and errors.
    """
    handler = StatusLineAwareHandler(board)
    handler.setFormatter(logging.Formatter("%(message)s"))
    level = logging.INFO if verbose else logging.WARNING
    handler.setLevel(level)

    # Replace handlers on syncwatch logger to prevent interleaving
    syncwatch_logger = logging.getLogger("syncwatch")
    for existing in syncwatch_logger.handlers[:]:
        syncwatch_logger.removeHandler(existing)
    syncwatch_logger.addHandler(handler)
    syncwatch_logger.setLevel(level)
    # Prevent propagation to root logger
    syncwatch_logger.propagate = False
