"""Process state shared between the sampling loop and request handlers."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from adc_lib.broadcast import DEFAULT_BACKLOG, Broadcaster, Subscription
from adc_lib.models import PhysicalSample

logger = logging.getLogger(__name__)

# Raw counts; 1.25 V at ±4.096 V full scale
DEFAULT_THRESHOLD = 10000


class RWLock:
    """Reader/writer lock: many concurrent readers or one writer.

    A waiting writer blocks newly arriving readers so an occasional write
    is not starved by a steady stream of reads.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SharedState:
    """Alert threshold plus the live sample channel.

    One instance is created per process and handed to both the sampling loop
    and the web layer.
    """

    def __init__(
        self,
        initial_threshold: int = DEFAULT_THRESHOLD,
        backlog: int = DEFAULT_BACKLOG,
    ) -> None:
        """Initialize shared state.

        Args:
            initial_threshold: Starting alert threshold in raw counts.
            backlog: Per-subscriber backlog capacity for the live channel.
        """
        self._threshold = initial_threshold
        self._threshold_lock = RWLock()
        self._channel = Broadcaster(backlog=backlog)

    def current_threshold(self) -> int:
        with self._threshold_lock.read_lock():
            return self._threshold

    def set_threshold(self, value: int) -> int:
        """Overwrite the threshold. Any integer is accepted, including negatives.

        Returns:
            The stored threshold
        """
        with self._threshold_lock.write_lock():
            previous = self._threshold
            self._threshold = value
        logger.info(f"Threshold changed from {previous} to {value}")
        return value

    def subscribe(self) -> Subscription:
        return self._channel.subscribe()

    def publish(self, sample: PhysicalSample) -> int:
        return self._channel.publish(sample)

    @property
    def channel(self) -> Broadcaster:
        return self._channel
