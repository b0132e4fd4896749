"""
Throughput estimators ("speedometers").

Each status column on the dashboard shows a requests-per-second figure.
A speedometer turns periodic (elapsed milliseconds, event count) samples
into such a figure. Three strategies are available and interchangeable:

    - InstantSpeedometer: only the most recent interval
    - RingbufferSpeedometer: totals over the last N intervals
    - SmootherSpeedometer: exponentially smoothed rate

The dashboard uses a small ring buffer per status column: it reacts within
a couple of seconds but does not jump around on every tick.
"""

import logging
import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Tuple

logger = logging.getLogger(__name__)


class Speedometer(ABC):
    """Common interface: feed measurements, read events per second."""

    @abstractmethod
    def add_measurement(self, elapsed_ms: int, count: int) -> None:
        """
        Record that `count` events happened during `elapsed_ms` milliseconds.
        """

    @abstractmethod
    def get_speed(self) -> float:
        """Current estimate in events per second."""


class InstantSpeedometer(Speedometer):
    """Rate of the last measurement only; keeps no history."""

    def __init__(self) -> None:
        self.speed = 0.0

    def add_measurement(self, elapsed_ms: int, count: int) -> None:
        if elapsed_ms == 0:
            return
        self.speed = count * 1000.0 / elapsed_ms

    def get_speed(self) -> float:
        return self.speed


class RingbufferSpeedometer(Speedometer):
    """
    Rate over a sliding window of the last `capacity` measurements.

    The oldest measurement is evicted once the window is full, so the
    estimate only ever reflects the most recent `capacity` samples.

    Example:
        >>> ring = RingbufferSpeedometer(4)
        >>> ring.add_measurement(100, 10)
        >>> ring.add_measurement(150, 30)
        >>> ring.get_speed()
        160.0
    """

    def __init__(self, capacity: int = 1024) -> None:
        if capacity <= 0:
            raise ValueError("Capacity must be greater than 0")
        self.capacity = capacity
        # deque(maxlen) drops the oldest entry on overflow
        self.measurements: Deque[Tuple[int, int]] = deque(maxlen=capacity)

    def add_measurement(self, elapsed_ms: int, count: int) -> None:
        self.measurements.append((elapsed_ms, count))

    def get_speed(self) -> float:
        if not self.measurements:
            return 0.0
        total_ms = sum(elapsed for elapsed, _ in self.measurements)
        total_count = sum(count for _, count in self.measurements)
        if total_ms == 0:
            return 0.0
        return total_count * 1000.0 / total_ms

    def __len__(self) -> int:
        return len(self.measurements)


class SmootherSpeedometer(Speedometer):
    """
    Exponentially smoothed rate.

    Every measurement moves the estimate `factor` of the way towards the
    rate of that measurement:

        speed = factor * instant + (1 - factor) * speed

    A single NaN or infinite value would poison every later estimate, so
    such measurements are dropped.
    """

    def __init__(self, factor: float = 0.1) -> None:
        self.factor = factor
        self.speed = 0.0

    def add_measurement(self, elapsed_ms: int, count: int) -> None:
        if elapsed_ms == 0:
            return
        new_speed = count * 1000.0 / elapsed_ms
        if math.isnan(new_speed):
            logger.warning("NaN speed detected")
            return
        if math.isinf(new_speed):
            logger.warning("Infinite speed detected")
            return
        self.speed = self.factor * new_speed + (1.0 - self.factor) * self.speed

    def get_speed(self) -> float:
        return self.speed
