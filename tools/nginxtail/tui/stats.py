"""
Per-group, per-status-code rate aggregation.

The dashboard shows one row per group (usually one log file) and one
column per status code. This module keeps the counters and speedometers
behind that grid.

Structure:
    GroupMap
      └── GroupStats (one per group, e.g. "/var/log/nginx/site1/access.log")
            └── StatusStats (one per status code seen in that group)

    GroupMap also owns the sorted list of every status code seen in any
    group. Rows are rendered against that list so columns line up even
    when a group has never seen some code.

Design Decisions:
    - Plain sorted lists and linear scans: there are rarely more than ~10
      groups or ~10 codes, where a scan beats hashing
    - Everything is owned by the single consumer thread, so no locking
    - The common prefix/suffix of group names is recomputed only when a
      group is added, not on every render
"""

import time
from typing import Callable, Iterator, List

from .speedometer import RingbufferSpeedometer

# Width reserved for the distinguishing part of a group name
MIN_VISIBLE_NAME = 8

# Number of ticks averaged by each status column
STATUS_WINDOW = 5

Clock = Callable[[], float]


class StatusStats:
    """
    Counter and rate estimate for one status code within one group.

    Attributes:
        code: Status code or status class ("200", "4xx").
        pending: Lines counted since the last tick.
        ring: Speedometer fed once per tick.
        start: Clock reading at the start of the current sampling window.
    """

    def __init__(self, code: str, clock: Clock = time.monotonic):
        self.code = code
        self.pending = 0
        self.ring = RingbufferSpeedometer(STATUS_WINDOW)
        self._clock = clock
        self.start = clock()

    def tick(self) -> None:
        """Fold the pending count into the speedometer and restart the window."""
        elapsed_ms = int((self._clock() - self.start) * 1000)
        # Nothing measurable happened yet; keep accumulating
        if elapsed_ms <= 0:
            return
        self.ring.add_measurement(elapsed_ms, self.pending)
        self.start = self._clock()
        self.pending = 0

    def get_speed(self) -> float:
        return self.ring.get_speed()

    def __lt__(self, other: "StatusStats") -> bool:
        return self.code < other.code

    def __repr__(self) -> str:
        return f"StatusStats({self.code!r}, pending={self.pending})"


class GroupStats:
    """
    All status columns of one group, kept sorted by code.

    Attributes:
        name: Group name as sent by the tailer.
        stats: StatusStats sorted by code.
    """

    def __init__(self, name: str, all_codes: List[str], clock: Clock = time.monotonic):
        self.name = name
        self.stats: List[StatusStats] = []
        # Shared with the GroupMap and every other GroupStats
        self._all_codes = all_codes
        self._clock = clock

    def get_or_create(self, code: str) -> StatusStats:
        """
        Return the StatusStats for `code`, creating it on first sight.

        A new code is also added to the shared, sorted list of all codes.
        """
        for status in self.stats:
            if status.code == code:
                return status

        if code not in self._all_codes:
            self._all_codes.append(code)
            self._all_codes.sort()

        status = StatusStats(code, self._clock)
        self.stats.append(status)
        self.stats.sort()
        return status

    def tick(self) -> None:
        for status in self.stats:
            status.tick()

    def __iter__(self) -> Iterator[StatusStats]:
        return iter(self.stats)

    def __len__(self) -> int:
        return len(self.stats)


class GroupMap:
    """
    Every group on the dashboard plus the display trimming of their names.

    Attributes:
        groups: GroupStats in insertion order (the display order).
        all_codes: Sorted union of the status codes of all groups.
        shared_prefix: Leading text common to all group names, hidden
                       when rendering.
        shared_suffix: Trailing text common to all group names, hidden
                       when rendering (typically "/access.log").

    Example:
        >>> groups = GroupMap()
        >>> _ = groups.get_or_create("/a/customer_project_0/access.log")
        >>> _ = groups.get_or_create("/a/customer_project_1/access.log")
        >>> groups.shared_prefix, groups.shared_suffix
        ('/a/customer_p', '/access.log')
    """

    def __init__(self, clock: Clock = time.monotonic):
        self.groups: List[GroupStats] = []
        self.all_codes: List[str] = []
        self.shared_prefix = ""
        self.shared_suffix = ""
        self._clock = clock

    def get_or_create(self, name: str) -> GroupStats:
        for group in self.groups:
            if group.name == name:
                return group

        group = GroupStats(name, self.all_codes, self._clock)
        self.groups.append(group)
        self._update_shared_affixes()
        return group

    def tick(self) -> None:
        """Sample every status column of every group."""
        for group in self.groups:
            group.tick()

    def __iter__(self) -> Iterator[GroupStats]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def _update_shared_affixes(self) -> None:
        """
        Recompute the prefix/suffix shared by all group names.

        At least MIN_VISIBLE_NAME characters of every name stay visible.
        When trimming would leave less, the prefix is shortened; the suffix
        is kept since it is usually a file name like "/access.log" that is
        the same everywhere.
        """
        # A single group is shown in full
        if len(self.groups) < 2:
            return

        names = [group.name for group in self.groups]
        first = names[0]
        max_length = max(len(name) for name in names)

        prefix_length = 0
        for i, char in enumerate(first):
            if any(i >= len(name) or name[i] != char for name in names):
                break
            prefix_length = i + 1

        suffix_length = 0
        for i in range(1, len(first) + 1):
            char = first[-i]
            if any(i > len(name) or name[-i] != char for name in names):
                break
            suffix_length = i

        prefix = first[:prefix_length]
        suffix = first[len(first) - suffix_length:] if suffix_length else ""

        text_left = max_length - len(prefix) - len(suffix)
        if text_left < MIN_VISIBLE_NAME:
            if max_length < MIN_VISIBLE_NAME:
                prefix = ""
                suffix = ""
            else:
                chars_to_preserve = MIN_VISIBLE_NAME - text_left
                prefix = prefix[:max(0, len(prefix) - chars_to_preserve)]

        self.shared_prefix = prefix
        self.shared_suffix = suffix
