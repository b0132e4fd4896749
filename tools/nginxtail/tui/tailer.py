"""
Real-time file tailing for access-log monitoring.

This module follows growing log files and turns appended bytes into Line
messages on the MessageBus. It also holds the other producers feeding the
dashboard: the print ticker and the terminal resize watcher.

Purpose:
    Web servers append to their access logs continuously and log rotation
    tooling replaces those files from time to time. Each followed file gets
    its own thread running follow(), which emits one message per complete
    line and never touches dashboard state directly.

Design Decisions:
    - Polling rather than inotify for cross-platform simplicity
    - Starts at the end of the file: only new traffic is interesting
    - Buffers raw bytes, not text, so a newline is never missed and a
      partial line is only decoded once it is complete
    - Rotation is detected by comparing the device/inode of the open handle
      with a fresh stat of the path, and recovered by reopening the path
    - In-place truncation (copytruncate) rewinds to the start of the file
"""

import logging
import os
import signal
import threading
import time
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional

from ..errors import StatusCodeNotFound
from ..utils import terminal
from .bus import BusClosed, MessageBus
from .model import Line, Print, RegisterGroup, WinCh
from .parsing import extract_status_code

logger = logging.getLogger(__name__)

# Sleep between reads once the end of the file has been reached
DEFAULT_POLL_INTERVAL = 0.05

# Bytes requested per read
READ_SIZE = 4096

Classifier = Callable[[str], Optional[str]]


class LineReader:
    """
    Read complete lines from a file that is still being written.

    Attributes:
        path: Path of the followed file, as given by the user.
        file: The currently open handle (replaced after rotation).
        pending: Bytes read after the last newline; the start of a line
                 that has not been completed yet.
        poll_interval: Seconds to sleep when there is no new data.

    Example:
        >>> reader = LineReader(Path("/var/log/nginx/access.log"))
        >>> lines = reader.read_lines()  # [] until something is appended
    """

    def __init__(self, path: Path, poll_interval: float = DEFAULT_POLL_INTERVAL):
        """
        Open the file and position at its end.

        Raises:
            OSError: The file cannot be opened or seeked.
        """
        self.path = Path(path)
        self.poll_interval = poll_interval
        self.pending = b""
        self.file: BinaryIO = self._open(seek_to_end=True)

    def _open(self, seek_to_end: bool) -> BinaryIO:
        handle = self.path.open("rb")
        try:
            if seek_to_end:
                handle.seek(0, os.SEEK_END)
        except OSError:
            handle.close()
            raise
        return handle

    def close(self) -> None:
        self.file.close()

    def _rotated(self) -> bool:
        """
        Check whether the path now points to a different file than ours.

        A missing path counts as rotated: the old file was moved away and
        the new one may show up any moment.
        """
        try:
            on_disk = os.stat(self.path)
        except FileNotFoundError:
            return True
        ours = os.fstat(self.file.fileno())
        # Filesystems without inode numbers report 0; rotation can't be seen
        if ours.st_ino == 0:
            return False
        return (ours.st_dev, ours.st_ino) != (on_disk.st_dev, on_disk.st_ino)

    def _reopen(self) -> bool:
        """Swap in a fresh handle for the path. Returns False if it isn't there yet."""
        try:
            # Everything in the new file is new traffic, read it from the start
            handle = self._open(seek_to_end=False)
        except OSError:
            return False
        self.file.close()
        self.file = handle
        # An unterminated line from the old file is lost
        self.pending = b""
        logger.info("Reopened rotated log file %s", self.path)
        return True

    def _truncated(self) -> bool:
        return os.fstat(self.file.fileno()).st_size < self.file.tell()

    def read_lines(self) -> List[str]:
        """
        Read whatever was appended and return the complete lines in it.

        Returns:
            List[str]: Decoded lines without their newline. Empty when no
            complete line is available yet.

        Raises:
            OSError: Reading failed for a reason other than end of file.
        """
        data = self.file.read(READ_SIZE)

        if not data:
            # End of file: did the file get rotated or truncated perhaps?
            if self._rotated():
                if not self._reopen():
                    time.sleep(self.poll_interval)
            elif self._truncated():
                logger.info("Log file %s was truncated", self.path)
                self.file.seek(0)
                self.pending = b""
            else:
                # Same file, no new data; wait a bit before trying again
                time.sleep(self.poll_interval)
            return []

        self.pending += data
        *complete, self.pending = self.pending.split(b"\n")
        # Bytes split across reads may not be valid UTF-8 on their own; only
        # complete lines are decoded, with invalid sequences replaced
        return [line.decode("utf-8", errors="replace") for line in complete]


def follow(
    bus: MessageBus,
    path: Path,
    group: str,
    classify: Classifier,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """
    Follow one log file and send a Line message per appended line.

    Meant to run in its own thread. Returns when the file becomes
    unreadable or the bus is closed.

    Args:
        bus: Bus to send messages to.
        path: Log file to follow.
        group: Group (display row) the lines of this file belong to.
        classify: Maps a raw status code to its display column
                  (exact_status_code or status_code_class).
        poll_interval: Seconds to wait when no new data is available.

    Side Effects:
        - Sends RegisterGroup(group) once, before any Line
        - Logs a warning when the file can't be opened or read
    """
    try:
        reader = LineReader(path, poll_interval)
    except OSError as exc:
        logger.warning("Error opening file %s: %s", path, exc)
        return

    try:
        bus.send(RegisterGroup(group))
        while not bus.closed:
            try:
                lines = reader.read_lines()
            except OSError as exc:
                logger.warning("File %s is no longer readable: %s", path, exc)
                return

            for text in lines:
                try:
                    status_code: Optional[str] = extract_status_code(text)
                except StatusCodeNotFound as exc:
                    logger.debug("No status code in %s line (%s)", path, exc.reason)
                    status_code = None
                bucket = classify(status_code) if status_code is not None else None
                bus.send(Line(text=text, group=group, bucket=bucket, status_code=status_code))
    except BusClosed:
        # The dashboard is gone, nothing left to do
        return
    finally:
        reader.close()


# Warm-up delays (seconds) before the first prints, so the dashboard
# appears right away and then settles into its regular cadence
_WARMUP_STATS = (0.1, 0.2, 0.3)
_WARMUP_LINES = 0.5

STATS_INTERVAL = 0.333
# Raw lines are flushed roughly once every 5 seconds
STATS_PER_LINES = 3 * 5


def periodic_print(bus: MessageBus, sleep: Callable[[float], None] = time.sleep) -> None:
    """
    Ticker thread: send Print messages at a warm-up-then-steady cadence.

    Stats-only prints go out every STATS_INTERVAL seconds; every
    STATS_PER_LINES + 1th print also flushes the queued raw lines.

    Args:
        bus: Bus to send Print messages to.
        sleep: Sleep function, replaceable in tests.
    """
    try:
        for delay in _WARMUP_STATS:
            sleep(delay)
            bus.send(Print(include_lines=False))
        sleep(_WARMUP_LINES)
        bus.send(Print(include_lines=True))

        while True:
            for _ in range(STATS_PER_LINES):
                sleep(STATS_INTERVAL)
                bus.send(Print(include_lines=False))
            sleep(STATS_INTERVAL)
            bus.send(Print(include_lines=True))
    except BusClosed:
        return


# How often the resize watcher checks for a pending SIGWINCH
RESIZE_POLL_INTERVAL = 0.3


def install_resize_flag() -> Optional[threading.Event]:
    """
    Register a SIGWINCH handler that sets the returned event.

    Must be called from the main thread (a restriction of the signal
    module). Returns None on platforms without SIGWINCH.
    """
    if not hasattr(signal, "SIGWINCH"):
        logger.warning("Terminal resize events are not supported on this platform")
        return None

    resized = threading.Event()
    signal.signal(signal.SIGWINCH, lambda signum, frame: resized.set())
    return resized


def watch_resize(
    bus: MessageBus,
    resized: threading.Event,
    get_width: Callable[[], int] = terminal.get_terminal_width,
) -> None:
    """
    Resize watcher thread: turn SIGWINCH into WinCh messages.

    Args:
        bus: Bus to send WinCh messages to.
        resized: Event set by the signal handler.
        get_width: Returns the current terminal width.
    """
    try:
        while not bus.closed:
            if resized.wait(RESIZE_POLL_INTERVAL):
                resized.clear()
                bus.send(WinCh(get_width()))
    except BusClosed:
        return
