"""Concurrency gate bounding simultaneous outbound calls to a remote API."""
from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator, Optional


class ConcurrencyGate:
    """Bounded counting semaphore sized to the remote system's rate ceiling.

    Every outbound call holds exactly one slot for its duration. When
    ``window`` is set, the gate additionally admits at most ``capacity``
    acquisitions in any rolling window of that many seconds, which matches
    a calls-per-second ceiling as published by the API vendor.

    The gate keeps simple counters (``in_flight``, ``peak``, ``total``) so
    runs and tests can check that the ceiling was never exceeded.
    """

    def __init__(self, capacity: int, window: Optional[float] = None):
        if capacity < 1:
            raise ValueError(f"Gate capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.window = window
        self._slots = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._started: deque[float] = deque()
        self.in_flight = 0
        self.peak = 0
        self.total = 0

    def acquire(self) -> None:
        """Block until a slot is free, then take it."""
        self._slots.acquire()
        if self.window:
            self._pace()
        with self._lock:
            self.in_flight += 1
            self.total += 1
            if self.in_flight > self.peak:
                self.peak = self.in_flight

    def release(self) -> None:
        """Return a slot taken by :meth:`acquire`."""
        with self._lock:
            self.in_flight -= 1
        self._slots.release()

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one slot for the duration of the ``with`` block."""
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def _pace(self) -> None:
        # Caller already holds a semaphore slot, so at most `capacity`
        # threads can be waiting here.
        while True:
            with self._lock:
                now = time.monotonic()
                while self._started and now - self._started[0] >= self.window:
                    self._started.popleft()
                if len(self._started) < self.capacity:
                    self._started.append(now)
                    return
                wait = self.window - (now - self._started[0])
            time.sleep(max(wait, 0.001))
