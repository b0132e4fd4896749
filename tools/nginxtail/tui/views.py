"""
Terminal dashboard rendering for access-log monitoring.

This module contains the consumer side of the MessageBus: the Renderer
that turns Line/Print messages into terminal output, and the loops that
drain the bus into it.

Purpose:
    Operators want to see both a sample of the raw traffic and the
    requests-per-second per file and status code, updating live, without
    the screen flickering.

Architecture:
    - Background threads: one tailer per file, the print ticker and the
      resize watcher, all sending messages
    - Main thread: run_consumer() handing every message to the Renderer
    - The Renderer exclusively owns the GroupMap; no locks are needed

Screen Layout:
    <raw log lines, colored>
    -- Output sampled at 40%
    -- site1     12.3 [200]    0.4 [404]
    -- site2      1.0 [200]

Design Decisions:
    - Writing to a terminal is slow, so a frame is only written when there
      are raw lines to flush or the stats block changed
    - Each frame erases exactly the stats block written by the previous
      frame, leaving the raw lines above it in the scrollback
"""

import logging
import sys
from collections import deque
from typing import Deque, List, Optional, TextIO, Tuple

from ..utils import terminal
from .bus import BusClosed, MessageBus
from .model import Line, Message, Print, RegisterGroup, WinCh
from .parsing import code_to_color, highlight
from .stats import MIN_VISIBLE_NAME, GroupMap, GroupStats

logger = logging.getLogger(__name__)

# Lines kept free below the raw lines: the sampled footer plus one line of
# the previous frame left at the top
GUTTER = 2


def passes_filters(status_code: Optional[str], filters: List[str]) -> bool:
    """
    Decide whether a raw line is shown, based on its status code.

    Filters are status code prefixes ("4" shows 400, 403, 404...). Lines
    without a status code are always shown.
    """
    if not filters or status_code is None:
        return True
    return any(status_code.startswith(prefix) for prefix in filters)


class Renderer:
    """
    Stateful dashboard renderer, driven one message at a time.

    Attributes:
        groups: Rate aggregation for every group and status code.
        target_height: Height the whole dashboard should fit in.
        width: Raw lines are cut to this many characters; 0 is unlimited.
        filters: Status code prefixes restricting which raw lines are shown.
        show_missing_codes: Render codes a group has never seen dimmed
                            instead of leaving the cell blank.
        pending_lines: Raw lines waiting for the next lines print, paired
                       with their status bucket.
        lines_skipped: Raw lines evicted from pending_lines since the last
                       lines print.

    Example:
        >>> renderer = Renderer(GroupMap(), target_height=20, width=80)
        >>> renderer.handle(RegisterGroup("/var/log/nginx/access.log"))
        >>> renderer.handle(Print(include_lines=False))
    """

    def __init__(
        self,
        groups: GroupMap,
        target_height: int,
        width: int = 0,
        filters: Optional[List[str]] = None,
        out: Optional[TextIO] = None,
        show_missing_codes: bool = False,
    ):
        self.groups = groups
        self.target_height = target_height
        self.width = width
        self.filters = filters or []
        self.out = out if out is not None else sys.stdout
        self.show_missing_codes = show_missing_codes

        self.pending_lines: Deque[Tuple[str, Optional[str]]] = deque()
        self.lines_skipped = 0
        # Minimizing terminal writes: what was shown last time and how many
        # lines of it must be erased before the next frame
        self.last_stats = ""
        self.lines_to_wipe = 0

    @property
    def line_capacity(self) -> int:
        """Raw lines that fit above the stats block."""
        return max(1, self.target_height - len(self.groups) - GUTTER)

    def handle(self, message: Message) -> None:
        """Apply one bus message."""
        if isinstance(message, Line):
            self._handle_line(message)
        elif isinstance(message, Print):
            self.render(message.include_lines)
        elif isinstance(message, RegisterGroup):
            self.groups.get_or_create(message.group)
        elif isinstance(message, WinCh):
            # Only sent when the width follows the terminal
            self.width = message.width
        else:
            logger.warning("Ignoring unknown message %r", message)

    def _handle_line(self, line: Line) -> None:
        # Accounting happens for every line, filtered or not
        if line.bucket is not None:
            group = self.groups.get_or_create(line.group)
            group.get_or_create(line.bucket).pending += 1

        if not passes_filters(line.status_code, self.filters):
            return

        capacity = self.line_capacity
        while len(self.pending_lines) >= capacity:
            self.pending_lines.popleft()
            self.lines_skipped += 1
        self.pending_lines.append((line.text, line.bucket))

    def _format_pending_lines(self) -> str:
        kept = len(self.pending_lines)
        if self.lines_skipped == 0:
            sample_rate = 100
        else:
            sample_rate = 100 * kept // (self.lines_skipped + kept)

        rendered = []
        for text, bucket in self.pending_lines:
            if self.width and len(text) > self.width:
                text = text[: self.width]
            if bucket is None:
                # Not an access-log line we understand: show it as-is
                rendered.append(f"{terminal.ORANGE}{text}{terminal.RESET}\n")
            else:
                rendered.append(f"{highlight(text)}\n")
        rendered.append(f"-- Output sampled at {sample_rate}%\n")

        self.pending_lines.clear()
        self.lines_skipped = 0
        return "".join(rendered)

    def _display_name(self, group: GroupStats, name_width: int) -> str:
        """Group name without the shared prefix/suffix, padded to align."""
        prefix_length = len(self.groups.shared_prefix)
        suffix_length = len(self.groups.shared_suffix)
        name = group.name

        if len(name) <= prefix_length + suffix_length:
            # Nothing left after trimming (e.g. the root log file); mark it
            padded_length = name_width - prefix_length - suffix_length
            return "@" + " " * (padded_length - 1)
        return name[prefix_length:len(name) - suffix_length] + " " * (name_width - len(name))

    def _format_row(self, group: GroupStats, name_width: int) -> str:
        cells = [f"-- {self._display_name(group, name_width)} "]

        # Both the group's codes and all_codes are sorted and the group's
        # codes are a subset, so a single merge pass aligns the columns
        own_codes = iter(group)
        current = next(own_codes, None)
        for code in self.groups.all_codes:
            if current is not None and current.code == code:
                color, reset = code_to_color(code)
                cells.append(f"{current.get_speed():7.1f} [{color}{code}{reset}] ")
                current = next(own_codes, None)
            elif self.show_missing_codes:
                cells.append(f"{'':>7}  {terminal.DIM}{code}{terminal.RESET}  ")
            else:
                cells.append(f"{'':7}  {' ' * len(code)}  ")
        return "".join(cells) + "\n"

    def format_stats(self) -> str:
        """Sample every speedometer and build the stats block."""
        name_width = max([MIN_VISIBLE_NAME] + [len(group.name) for group in self.groups])

        rows = []
        for group in self.groups:
            group.tick()
            rows.append(self._format_row(group, name_width))
        return "".join(rows).rstrip()

    def render(self, include_lines: bool) -> None:
        """
        Handle a Print: flush raw lines (if asked) and refresh the stats.

        Nothing is written when there are no raw lines to show and the stats
        block is identical to the one currently on screen.
        """
        lines_text = ""
        if include_lines and self.pending_lines:
            lines_text = self._format_pending_lines()

        stats_text = self.format_stats()

        if not lines_text and stats_text == self.last_stats:
            return

        # The "Output sampled" footer sits right above the stats block. It
        # is wiped when new raw lines replace it and kept otherwise
        if lines_text:
            self.lines_to_wipe += 1

        self.out.write(terminal.wipe_lines(self.lines_to_wipe) + lines_text + stats_text)
        self.out.flush()

        self.lines_to_wipe = stats_text.count("\n")
        self.last_stats = stats_text


def run_consumer(bus: MessageBus, renderer: Renderer) -> None:
    """
    Drain the bus into the renderer until the bus is closed.

    This is the single owner of all display and aggregation state; every
    message is handled to completion before the next one is taken.
    """
    while True:
        try:
            message = bus.receive()
        except BusClosed:
            logger.info("Channel closed")
            return
        renderer.handle(message)


def process_as_streaming(
    bus: MessageBus,
    filters: Optional[List[str]] = None,
    out: Optional[TextIO] = None,
) -> None:
    """
    Consumer for non-terminal output: print highlighted lines, no stats.

    Used when stdout is redirected, where cursor movement makes no sense.

    Args:
        bus: Bus to drain.
        filters: Status code prefixes restricting which lines are printed.
        out: Stream to write to, stdout by default.
    """
    filters = filters or []
    out = out if out is not None else sys.stdout
    while True:
        try:
            message = bus.receive()
        except BusClosed:
            logger.info("Channel closed")
            return
        # Print/WinCh are never produced in streaming mode; RegisterGroup
        # carries nothing to show
        if not isinstance(message, Line):
            continue
        if not passes_filters(message.status_code, filters):
            continue
        out.write(highlight(message.text) + "\n")
        out.flush()
