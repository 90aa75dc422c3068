"""Multicast channel with a bounded, drop-oldest backlog per subscriber."""

import asyncio
import logging
import threading
from collections import deque
from typing import Deque, Optional, Set, Tuple

from adc_lib.models import PhysicalSample

logger = logging.getLogger(__name__)

DEFAULT_BACKLOG = 100


class Subscription:
    """One observer's view of the broadcast.

    Receives every sample published after it was created, in publish order.
    When the backlog is full the oldest unread sample is discarded, so a slow
    reader sees a gap in sequence numbers rather than slowing the publisher.

    Must be consumed on the event loop the publisher runs on.
    """

    def __init__(self, broadcaster: "Broadcaster", backlog: int) -> None:
        self._broadcaster = broadcaster
        self._queue: Deque[Tuple[int, PhysicalSample]] = deque(maxlen=backlog)
        self._lock = threading.Lock()
        self._ready = asyncio.Event()
        self._closed = False
        self._dropped = 0
        self._lagged = 0
        self._last_sequence = 0

    def _push(self, sequence: int, sample: PhysicalSample) -> None:
        """Enqueue without blocking (publisher side)."""
        with self._lock:
            if self._closed:
                return
            if len(self._queue) == self._queue.maxlen:
                self._dropped += 1
                self._lagged += 1
            self._queue.append((sequence, sample))
        self._ready.set()

    def get_nowait(self) -> Optional[PhysicalSample]:
        """Pop the oldest unread sample, or None if nothing is pending."""
        with self._lock:
            if not self._queue:
                return None
            sequence, sample = self._queue.popleft()
            self._last_sequence = sequence
            self._lagged = 0
            return sample

    async def get(self) -> Optional[PhysicalSample]:
        """Wait for the next sample. Returns None once the subscription is closed."""
        while True:
            self._ready.clear()
            sample = self.get_nowait()
            if sample is not None:
                return sample
            if self._closed:
                return None
            await self._ready.wait()

    def close(self) -> None:
        """Detach from the broadcaster and wake any pending get()."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.clear()
        self._broadcaster._unsubscribe(self)
        self._ready.set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of unread samples in the backlog."""
        with self._lock:
            return len(self._queue)

    @property
    def dropped(self) -> int:
        """Samples evicted from this backlog because it was full."""
        return self._dropped

    @property
    def lagged(self) -> int:
        """Samples evicted since the last successful read."""
        return self._lagged

    @property
    def last_sequence(self) -> int:
        """Sequence number of the most recently read sample (0 before the first read)."""
        return self._last_sequence

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> PhysicalSample:
        sample = await self.get()
        if sample is None:
            raise StopAsyncIteration
        return sample

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class Broadcaster:
    """Single-producer, many-consumer fan-out of PhysicalSample values.

    publish() never waits on a subscriber: each subscription has its own
    bounded deque and the oldest entry is evicted when it is full.
    """

    def __init__(self, backlog: int = DEFAULT_BACKLOG) -> None:
        """Initialize broadcaster.

        Args:
            backlog: Per-subscriber backlog capacity. Defaults to 100.
        """
        if backlog <= 0:
            raise ValueError(f"backlog must be positive, got {backlog}")

        self._backlog = backlog
        self._subscribers: Set[Subscription] = set()
        self._lock = threading.Lock()
        self._sequence = 0

    def subscribe(self) -> Subscription:
        """Create a subscription that sees every later publish (no replay)."""
        subscription = Subscription(self, self._backlog)
        with self._lock:
            self._subscribers.add(subscription)
            count = len(self._subscribers)
        logger.debug(f"Subscriber added, {count} active")
        return subscription

    def publish(self, sample: PhysicalSample) -> int:
        """Deliver sample to every live subscription.

        Returns:
            Sequence number assigned to this sample (starts at 1)
        """
        with self._lock:
            self._sequence += 1
            sequence = self._sequence
            for subscription in self._subscribers:
                subscription._push(sequence, sample)
        return sequence

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
            count = len(self._subscribers)
        logger.debug(f"Subscriber removed, {count} active")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def published(self) -> int:
        """Total number of samples published so far."""
        with self._lock:
            return self._sequence

    @property
    def backlog(self) -> int:
        return self._backlog
