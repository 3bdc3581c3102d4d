import logging

from pipchat.events import EventBus


def test_handlers_run_in_registration_order():
    bus = EventBus()
    calls = []
    bus.subscribe("topic", lambda data: calls.append(("first", data)))
    bus.subscribe("topic", lambda data: calls.append(("second", data)))

    bus.publish("topic", 42)

    assert calls == [("first", 42), ("second", 42)]


def test_publish_without_subscribers_is_noop():
    bus = EventBus()
    bus.publish("nobody-listens", {"x": 1})
    assert not bus.has_subscribers("nobody-listens")


def test_once_handler_fires_a_single_time():
    bus = EventBus()
    calls = []
    bus.subscribe("GLOBALUSERSTATE", calls.append, once=True)

    bus.publish("GLOBALUSERSTATE", "a")
    bus.publish("GLOBALUSERSTATE", "b")

    assert calls == ["a"]
    assert not bus.has_subscribers("GLOBALUSERSTATE")


def test_unsubscribe_removes_handler():
    bus = EventBus()
    calls = []
    bus.subscribe("topic", calls.append)
    bus.unsubscribe("topic", calls.append)

    bus.publish("topic", 1)

    assert calls == []


def test_unsubscribe_unknown_handler_is_noop():
    bus = EventBus()
    bus.unsubscribe("topic", print)
    assert not bus.has_subscribers("topic")


def test_failing_handler_does_not_stop_others(caplog):
    bus = EventBus("test")
    calls = []

    def boom(_data):
        raise RuntimeError("handler blew up")

    bus.subscribe("topic", boom)
    bus.subscribe("topic", calls.append)

    with caplog.at_level(logging.ERROR):
        bus.publish("topic", "payload")

    assert calls == ["payload"]
    assert "handler blew up" in caplog.text


def test_subscribing_during_publish_applies_next_time():
    bus = EventBus()
    calls = []

    def late(data):
        calls.append(("late", data))

    def first(data):
        calls.append(("first", data))
        bus.subscribe("topic", late)

    bus.subscribe("topic", first, once=True)

    bus.publish("topic", 1)
    assert calls == [("first", 1)]

    bus.publish("topic", 2)
    assert calls == [("first", 1), ("late", 2)]


def test_unsubscribing_during_publish_still_delivers_snapshot():
    bus = EventBus()
    calls = []

    def second(data):
        calls.append(("second", data))

    def first(data):
        calls.append(("first", data))
        bus.unsubscribe("topic", second)

    bus.subscribe("topic", first)
    bus.subscribe("topic", second)

    bus.publish("topic", 1)
    bus.publish("topic", 2)

    assert calls == [("first", 1), ("second", 1), ("first", 2)]


def test_clear_drops_every_subscription():
    bus = EventBus()
    bus.subscribe("a", print)
    bus.subscribe("b", print)
    bus.clear()
    assert not bus.has_subscribers("a")
    assert not bus.has_subscribers("b")


def test_once_handler_republishing_same_topic_fires_once():
    bus = EventBus()
    calls = []

    def once_handler(data):
        calls.append(("once", data))
        bus.publish("topic", "nested")

    bus.subscribe("topic", once_handler, once=True)
    bus.subscribe("topic", lambda data: calls.append(("always", data)))

    bus.publish("topic", "outer")

    assert calls.count(("once", "outer")) == 1
    assert ("once", "nested") not in calls
    assert ("always", "nested") in calls
    assert ("always", "outer") in calls
    assert not any(s.once for s in bus._subscriptions["topic"])
