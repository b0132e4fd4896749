"""
Bounded fan-in channel between producers and the dashboard.

All file tailers, the print ticker and the resize watcher share a single
MessageBus. Exactly one consumer drains it.

Design Decisions:
    - Built on queue.Queue, the same thread-safe queue the log viewer
      has always used between its tail thread and its render loop
    - A very large default bound so tailers essentially never block under
      bursty traffic. A smaller bound is valid and simply turns a full bus
      into backpressure on the sending tailer
    - Closing the bus is the only shutdown signal. Producers see BusClosed
      on send, the consumer sees BusClosed once the bus is closed and empty
"""

import threading
from queue import Empty, Full, Queue
from typing import Optional

from .model import Message

# Large enough that producers never wait on the consumer in practice
DEFAULT_CAPACITY = 1_000_000

# How often blocked senders/receivers re-check the closed flag
_WAKEUP_INTERVAL = 0.05


class BusClosed(Exception):
    """Raised by send/receive once the other side is gone."""


class MessageBus:
    """
    Multi-producer / single-consumer bounded message queue.

    Attributes:
        maxsize: Maximum number of queued messages before send() blocks.

    Example:
        >>> bus = MessageBus()
        >>> bus.send(RegisterGroup("/var/log/nginx/access.log"))
        >>> bus.receive()
        RegisterGroup(group='/var/log/nginx/access.log')
        >>> bus.close()
        >>> bus.receive()
        Traceback (most recent call last):
        ...
        BusClosed
    """

    def __init__(self, maxsize: int = DEFAULT_CAPACITY):
        self.maxsize = maxsize
        self._queue: Queue = Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Close the bus. Pending messages can still be received."""
        self._closed.set()

    def send(self, message: Message) -> None:
        """
        Queue a message, blocking while the bus is full.

        Args:
            message: The message to deliver to the consumer.

        Raises:
            BusClosed: The bus was closed before (or while) sending.
        """
        while True:
            if self._closed.is_set():
                raise BusClosed()
            try:
                self._queue.put(message, timeout=_WAKEUP_INTERVAL)
                return
            except Full:
                # Backpressure: wait for the consumer, but notice a close
                continue

    def receive(self, timeout: Optional[float] = None) -> Message:
        """
        Take the next message, blocking until one is available.

        Args:
            timeout: Give up after this many seconds. None waits forever.

        Returns:
            The oldest queued message.

        Raises:
            BusClosed: The bus is closed and everything has been drained.
            queue.Empty: No message arrived within the timeout.
        """
        waited = 0.0
        while True:
            if self._closed.is_set():
                try:
                    return self._queue.get_nowait()
                except Empty:
                    raise BusClosed() from None
            slice_ = _WAKEUP_INTERVAL
            if timeout is not None:
                if waited >= timeout:
                    raise Empty()
                slice_ = min(slice_, timeout - waited)
            try:
                return self._queue.get(timeout=slice_)
            except Empty:
                waited += slice_

    def try_receive(self) -> Message:
        """Non-blocking receive. Raises queue.Empty when nothing is queued."""
        try:
            return self._queue.get_nowait()
        except Empty:
            if self._closed.is_set():
                raise BusClosed() from None
            raise

    def qsize(self) -> int:
        return self._queue.qsize()
