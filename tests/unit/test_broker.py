"""
Unit tests for the broker and subscriptions.

Tests cover:
- Subscribe / publish / unsubscribe lifecycle
- In-order delivery per subscriber
- Overflow policies
- Isolation of stalled subscribers
- Cross-thread publishing
"""

import asyncio
import threading
import time

import pytest

from realtime.chatrelay_server.broker import Broker, Subscription
from realtime.chatrelay_server.config import OverflowPolicy
from realtime.chatrelay_server.errors import (
    BrokerClosedError,
    SubscriptionClosedError,
    SubscriptionOverflowError,
)
from realtime.chatrelay_server.log import Message


def make_message(id: int, payload: str = "hi") -> Message:
    """Helper to create a message."""
    return Message(id=id, sender="Alice", payload=payload, is_image=False)


class TestBroker:
    """Tests for Broker."""

    @pytest.fixture
    def broker(self):
        """Create a broker with a small queue."""
        return Broker(queue_capacity=4)

    def test_subscribe_is_active_immediately(self, broker):
        """A publish right after subscribe() reaches the new subscription."""
        sub = broker.subscribe()
        broker.publish(make_message(1))

        assert broker.subscriber_count == 1
        assert sub.drain() == [make_message(1)]

    def test_publish_without_subscribers(self, broker):
        """Publishing to nobody delivers to nobody."""
        assert broker.publish(make_message(1)) == 0

    def test_publish_fans_out_to_every_subscriber(self, broker):
        """Every active subscription receives the message."""
        subs = [broker.subscribe() for _ in range(3)]

        delivered = broker.publish(make_message(1))

        assert delivered == 3
        for sub in subs:
            assert sub.drain() == [make_message(1)]

    def test_late_subscriber_misses_earlier_publish(self, broker):
        """Subscriptions only see messages published after they attach."""
        broker.publish(make_message(1))
        sub = broker.subscribe()
        broker.publish(make_message(2))

        assert sub.drain() == [make_message(2)]

    def test_unsubscribe_stops_delivery_but_keeps_queue(self, broker):
        """Queued messages survive unsubscribe; new ones are not delivered."""
        sub = broker.subscribe()
        broker.publish(make_message(1))

        broker.unsubscribe(sub)
        broker.publish(make_message(2))

        assert broker.subscriber_count == 0
        assert sub.closed
        assert sub.drain() == [make_message(1)]

    def test_unsubscribe_is_idempotent(self, broker):
        """Calling unsubscribe twice is harmless."""
        sub = broker.subscribe()

        broker.unsubscribe(sub)
        broker.unsubscribe(sub)

        assert broker.subscriber_count == 0

    def test_close_refuses_new_subscriptions(self, broker):
        """subscribe() after close() raises."""
        sub = broker.subscribe()
        broker.close()

        assert sub.closed
        assert broker.is_closed
        with pytest.raises(BrokerClosedError):
            broker.subscribe()

    @pytest.mark.asyncio
    async def test_subscription_context_manager(self, broker):
        """subscription() unsubscribes on exit."""
        async with broker.subscription() as sub:
            assert broker.subscriber_count == 1
            broker.publish(make_message(1))
            assert await sub.get() == make_message(1)

        assert broker.subscriber_count == 0
        assert sub.closed

    @pytest.mark.asyncio
    async def test_async_iteration_in_order(self, broker):
        """Subscribers receive messages in publish order."""
        sub = broker.subscribe()

        async def consume():
            received = []
            async for message in sub:
                received.append(message.id)
            return received

        task = asyncio.create_task(consume())
        for i in range(1, 4):
            broker.publish(make_message(i))
            await asyncio.sleep(0)
        broker.unsubscribe(sub)

        assert await asyncio.wait_for(task, timeout=1.0) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_waiting_consumer_wakes_on_publish(self, broker):
        """A consumer blocked in get() wakes when a message arrives."""
        sub = broker.subscribe()
        task = asyncio.create_task(sub.get())
        await asyncio.sleep(0.01)
        assert not task.done()

        broker.publish(make_message(1))

        assert await asyncio.wait_for(task, timeout=1.0) == make_message(1)

    @pytest.mark.asyncio
    async def test_publish_from_another_thread_wakes_consumer(self, broker):
        """Publishing from a worker thread wakes an event-loop consumer."""
        sub = broker.subscribe()
        task = asyncio.create_task(sub.get())
        await asyncio.sleep(0.01)

        thread = threading.Thread(target=broker.publish, args=(make_message(1),))
        thread.start()
        thread.join()

        assert await asyncio.wait_for(task, timeout=1.0) == make_message(1)

    @pytest.mark.asyncio
    async def test_stalled_subscriber_does_not_block_others(self):
        """One subscriber that never drains cannot delay the rest."""
        broker = Broker(queue_capacity=16, overflow_policy=OverflowPolicy.DISCONNECT)
        stalled = broker.subscribe()
        active = broker.subscribe()
        received = []

        async def consume():
            async for message in active:
                received.append(message.id)

        task = asyncio.create_task(consume())

        start = time.perf_counter()
        for i in range(1, 101):
            broker.publish(make_message(i))
            await asyncio.sleep(0)
        elapsed = time.perf_counter() - start

        broker.unsubscribe(active)
        await asyncio.wait_for(task, timeout=1.0)

        assert received == list(range(1, 101))
        assert stalled.overflowed
        assert broker.subscriber_count == 0
        assert elapsed < 1.0


class TestOverflowPolicies:
    """Tests for subscriber overflow handling."""

    def test_disconnect_policy_removes_subscriber(self):
        """DISCONNECT closes the subscription and removes it from the broker."""
        broker = Broker(queue_capacity=2, overflow_policy=OverflowPolicy.DISCONNECT)
        sub = broker.subscribe()

        broker.publish(make_message(1))
        broker.publish(make_message(2))
        delivered = broker.publish(make_message(3))

        assert delivered == 0
        assert sub.overflowed
        assert broker.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_disconnect_policy_drains_then_raises(self):
        """Queued messages come out before the overflow error."""
        broker = Broker(queue_capacity=2, overflow_policy=OverflowPolicy.DISCONNECT)
        sub = broker.subscribe()
        for i in range(1, 4):
            broker.publish(make_message(i))

        assert (await sub.get()).id == 1
        assert (await sub.get()).id == 2
        with pytest.raises(SubscriptionOverflowError) as exc_info:
            await sub.get()
        assert exc_info.value.code == "SUBSCRIPTION_OVERFLOW"

    def test_drop_oldest_keeps_newest(self):
        """DROP_OLDEST evicts the head of the queue."""
        broker = Broker(queue_capacity=2, overflow_policy=OverflowPolicy.DROP_OLDEST)
        sub = broker.subscribe()
        for i in range(1, 5):
            broker.publish(make_message(i))

        assert [m.id for m in sub.drain()] == [3, 4]
        assert sub.dropped == 2
        assert broker.subscriber_count == 1

    def test_drop_newest_keeps_oldest(self):
        """DROP_NEWEST refuses incoming messages while full."""
        broker = Broker(queue_capacity=2, overflow_policy=OverflowPolicy.DROP_NEWEST)
        sub = broker.subscribe()
        for i in range(1, 5):
            broker.publish(make_message(i))

        assert [m.id for m in sub.drain()] == [1, 2]
        assert sub.dropped == 2

    def test_overflow_isolated_to_one_subscriber(self):
        """Overflow on one subscriber does not affect another."""
        broker = Broker(queue_capacity=2)
        slow = broker.subscribe()
        fast = broker.subscribe()

        for i in range(1, 4):
            broker.publish(make_message(i))
            fast.drain()

        assert slow.overflowed
        assert not fast.closed
        assert broker.subscriber_count == 1


class TestSubscription:
    """Tests for Subscription."""

    @pytest.mark.asyncio
    async def test_get_after_close_raises(self):
        """get() on a drained, closed subscription raises."""
        sub = Subscription("s1", capacity=2)
        sub.close()

        with pytest.raises(SubscriptionClosedError):
            await sub.get()

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self):
        """Closing ends a consumer blocked in async iteration."""
        sub = Subscription("s1", capacity=2)

        async def consume():
            return [m async for m in sub]

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        sub.close()

        assert await asyncio.wait_for(task, timeout=1.0) == []

    def test_offer_after_close_is_refused(self):
        """A closed subscription accepts nothing."""
        sub = Subscription("s1", capacity=2)
        sub.close()

        assert sub.offer(make_message(1)) is False
        assert sub.pending == 0

    def test_get_nowait(self):
        """get_nowait returns None when empty."""
        sub = Subscription("s1", capacity=2)
        assert sub.get_nowait() is None

        sub.offer(make_message(1))
        assert sub.get_nowait() == make_message(1)

    def test_invalid_capacity(self):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            Subscription("s1", capacity=0)
