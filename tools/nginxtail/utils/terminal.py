"""
Terminal escape sequences and size queries.

All cursor movement and coloring used by the dashboard is centralized here
so the renderer and the line formatter agree on the exact byte sequences.

Reference:
    https://en.wikipedia.org/wiki/ANSI_escape_code#CSI_(Control_Sequence_Introducer)_sequences
"""

import re
import shutil

# Control Sequence Introducer
CSI = "\x1b["

# SGR colors
GREEN = "\x1b[32m"
PURPLE = "\x1b[35m"
YELLOW = "\x1b[33m"
RED = "\x1b[31m"
WHITE = "\x1b[1;37m"  # bright white
ORANGE = "\x1b[93m"  # bright yellow
DIM = "\x1b[2m"
RESET = "\x1b[0m"

HIDE_CURSOR = f"{CSI}?25l"
SHOW_CURSOR = f"{CSI}?25h"

# Matches every SGR sequence emitted above
SGR_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

# Used when the terminal size cannot be determined (e.g. output is piped)
_FALLBACK_SIZE = (80, 24)


def get_terminal_width() -> int:
    """Return the current terminal width in columns."""
    return shutil.get_terminal_size(_FALLBACK_SIZE).columns


def get_terminal_height() -> int:
    """Return the current terminal height in lines."""
    return shutil.get_terminal_size(_FALLBACK_SIZE).lines


def wipe_lines(count: int) -> str:
    """
    Build the sequence that erases the last `count` written lines.

    The cursor always returns to column 0 and everything below it is
    cleared. With count == 0 no upward movement is emitted at all: some
    terminals still move up one line for "CSI 0 A".

    Args:
        count: Number of lines above the cursor to erase.

    Returns:
        str: Escape sequence to write before the next frame.

    Example:
        >>> wipe_lines(0)
        '\\r\\x1b[J'
        >>> wipe_lines(3)
        '\\r\\x1b[3A\\x1b[J'
    """
    if count == 0:
        return f"\r{CSI}J"
    return f"\r{CSI}{count}A{CSI}J"
