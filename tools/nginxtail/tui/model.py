"""
Message types passed between the tailers and the dashboard.

This module defines the only data that crosses thread boundaries. Every
producer (file tailers, the print ticker, the resize watcher) pushes one of
these messages onto the shared MessageBus, and the single consumer reacts
to them in order.

Purpose:
    Keeping the messages as small immutable records makes the producer /
    consumer split explicit: producers never touch aggregation or display
    state, they only describe what happened.

Note:
    The dataclasses are frozen so a message can be compared in tests and
    cannot be mutated after it has been queued.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Line:
    """
    One complete log line plus its classification.

    Attributes:
        text: The reassembled line, without its trailing newline.
        group: Display row the line belongs to, usually the log file path
               (or "" when all files are combined).
        bucket: Display column, either an exact status code ("404") or a
                status class ("4xx"). None when no status code was found.
        status_code: The raw status code extracted from the line, if any.
                     Used for filtering raw line output.
    """
    text: str
    group: str
    bucket: Optional[str] = None
    status_code: Optional[str] = None


@dataclass(frozen=True)
class RegisterGroup:
    """Announce a group before its first line so it shows up right away."""
    group: str


@dataclass(frozen=True)
class Print:
    """
    Render trigger sent by the ticker.

    Attributes:
        include_lines: Also flush the queued raw log lines, not just stats.
    """
    include_lines: bool


@dataclass(frozen=True)
class WinCh:
    """The terminal changed size; carries the new width in columns."""
    width: int


Message = Union[Line, RegisterGroup, Print, WinCh]
