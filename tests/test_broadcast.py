"""Tests for the sample fan-out channel."""

import asyncio
import time

import pytest

from adc_lib.broadcast import Broadcaster
from adc_lib.models import PhysicalSample


def make_sample(raw: int, threshold: int = 10000) -> PhysicalSample:
    return PhysicalSample(raw=raw, voltage=raw * 0.000125, timestamp=1700000000, threshold=threshold)


def test_backlog_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Broadcaster(backlog=0)


def test_all_subscribers_receive_same_sample() -> None:
    channel = Broadcaster()
    sub_a = channel.subscribe()
    sub_b = channel.subscribe()

    sample = make_sample(123)
    channel.publish(sample)

    assert sub_a.get_nowait() is sample
    assert sub_b.get_nowait() is sample
    assert sub_a.get_nowait() is None


def test_late_subscriber_gets_no_history() -> None:
    channel = Broadcaster()
    channel.publish(make_sample(1))

    late = channel.subscribe()
    assert late.get_nowait() is None

    channel.publish(make_sample(2))
    assert late.get_nowait().raw == 2


def test_publish_without_subscribers() -> None:
    channel = Broadcaster()

    assert channel.publish(make_sample(1)) == 1
    assert channel.publish(make_sample(2)) == 2
    assert channel.published == 2


def test_order_preserved() -> None:
    channel = Broadcaster(backlog=10)
    sub = channel.subscribe()
    for raw in range(5):
        channel.publish(make_sample(raw))

    assert [sub.get_nowait().raw for _ in range(5)] == [0, 1, 2, 3, 4]


def test_slow_subscriber_drops_oldest() -> None:
    """A subscriber that stops reading loses the oldest samples and sees a gap."""
    channel = Broadcaster(backlog=4)
    slow = channel.subscribe()
    fast = channel.subscribe()

    received_fast = []
    for raw in range(10):
        channel.publish(make_sample(raw))
        received_fast.append(fast.get_nowait().raw)

    assert received_fast == list(range(10))
    assert slow.pending == 4
    assert slow.dropped == 6

    remaining = [slow.get_nowait().raw for _ in range(4)]
    assert remaining == [6, 7, 8, 9]
    assert slow.last_sequence == 10


def test_lagged_counts_evictions_since_last_read() -> None:
    channel = Broadcaster(backlog=2)
    subscription = channel.subscribe()

    for raw in range(5):
        channel.publish(make_sample(raw))
    assert subscription.lagged == 3

    assert subscription.get_nowait().raw == 3
    assert subscription.lagged == 0

    for raw in range(5, 8):
        channel.publish(make_sample(raw))
    assert subscription.lagged == 2
    assert subscription.dropped == 5


def test_slow_subscriber_does_not_block_publisher() -> None:
    channel = Broadcaster(backlog=8)
    channel.subscribe()  # never read

    start = time.perf_counter()
    for raw in range(10000):
        channel.publish(make_sample(raw % 100))
    elapsed = time.perf_counter() - start

    assert elapsed < 2.0


def test_closed_subscription_detaches() -> None:
    channel = Broadcaster()
    with channel.subscribe() as sub:
        assert channel.subscriber_count == 1

    assert sub.closed
    assert channel.subscriber_count == 0
    channel.publish(make_sample(1))
    assert sub.get_nowait() is None


def test_async_iteration_receives_published_samples() -> None:
    async def scenario():
        channel = Broadcaster()
        sub = channel.subscribe()

        async def producer():
            for raw in range(3):
                await asyncio.sleep(0.01)
                channel.publish(make_sample(raw))
            await asyncio.sleep(0.01)
            sub.close()

        received = []
        task = asyncio.create_task(producer())
        async for sample in sub:
            received.append(sample.raw)
        await task
        return received

    assert asyncio.run(scenario()) == [0, 1, 2]


def test_get_waits_for_next_publish() -> None:
    async def scenario():
        channel = Broadcaster()
        async with channel.subscribe() as sub:
            getter = asyncio.create_task(sub.get())
            await asyncio.sleep(0.01)
            assert not getter.done()

            channel.publish(make_sample(55))
            sample = await asyncio.wait_for(getter, timeout=1.0)
        return sample, channel.subscriber_count

    sample, remaining = asyncio.run(scenario())
    assert sample.raw == 55
    assert remaining == 0


def test_close_wakes_waiting_getter() -> None:
    async def scenario():
        channel = Broadcaster()
        sub = channel.subscribe()
        getter = asyncio.create_task(sub.get())
        await asyncio.sleep(0.01)
        sub.close()
        return await asyncio.wait_for(getter, timeout=1.0)

    assert asyncio.run(scenario()) is None


def test_sample_wire_format() -> None:
    assert make_sample(10000).to_dict() == {
        "raw_value": 10000,
        "voltage": pytest.approx(1.25),
        "timestamp": 1700000000,
        "threshold": 10000,
    }
