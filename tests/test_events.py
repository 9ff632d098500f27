from __future__ import annotations

import pytest

from core.events import EventBus, SubscriptionGroup


def test_publish_calls_handlers_in_subscription_order(bus):
    seen = []
    bus.subscribe("ping", lambda x: seen.append(("a", x)))
    bus.subscribe("ping", lambda x: seen.append(("b", x)))
    bus.publish("ping", 1)
    assert seen == [("a", 1), ("b", 1)]


def test_publish_without_subscribers_is_a_noop(bus):
    bus.publish("nobody", 1, 2, 3)


def test_unsubscribe_stops_delivery(bus):
    seen = []
    sub = bus.subscribe("ping", seen.append)
    sub.unsubscribe()
    bus.publish("ping", 1)
    assert seen == []
    assert not sub.active
    assert bus.subscriber_count("ping") == 0
    # second unsubscribe is harmless
    sub.unsubscribe()


def test_unsubscribe_during_publish_skips_later_handler(bus):
    seen = []
    later = None

    def first(x):
        seen.append("first")
        later.unsubscribe()

    bus.subscribe("ping", first)
    later = bus.subscribe("ping", lambda x: seen.append("later"))
    bus.publish("ping", 0)
    assert seen == ["first"]


def test_runaway_reentrancy_raises(bus):
    bus.subscribe("loop", lambda: bus.publish("loop"))
    with pytest.raises(RuntimeError):
        bus.publish("loop")
    # depth counter unwinds after the error
    seen = []
    bus.subscribe("ok", lambda: seen.append(1))
    bus.publish("ok")
    assert seen == [1]


def test_nested_publish_within_limit(bus):
    seen = []
    bus.subscribe("outer", lambda: bus.publish("inner", 5))
    bus.subscribe("inner", seen.append)
    bus.publish("outer")
    assert seen == [5]


def test_clear_drops_everything(bus):
    sub = bus.subscribe("ping", lambda x: None)
    bus.clear()
    assert bus.subscriber_count("ping") == 0
    assert not sub.active


def test_subscription_group_closes_all():
    bus = EventBus()
    group = SubscriptionGroup(bus)
    group.on("a", lambda: None)
    group.on("b", lambda: None)
    assert len(group) == 2
    group.close()
    assert len(group) == 0
    assert bus.subscriber_count("a") == 0
    assert bus.subscriber_count("b") == 0
