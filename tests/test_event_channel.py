"""Tests for the self-healing push channel."""

from __future__ import annotations

import json

import pytest

from multipublish.core.event_channel import (
    ChannelState,
    EventChannel,
    PackageCreated,
    TransportFailure,
    build_channel_url,
    subscription_frame,
)


class FakeTimer:
    def __init__(self, scheduler: "FakeScheduler", delay: float, callback) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, callback, *args):
        timer = FakeTimer(self, delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def fire(self) -> None:
        for timer in self.pending:
            timer.cancelled = True
            timer.callback()


class FakeConnection:
    def __init__(self, url: str, listener) -> None:
        self.url = url
        self.listener = listener
        self.sent: list[str] = []
        self.closed = False

    def send(self, text: str) -> None:
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.failures: list[BaseException] = []

    def __call__(self, url: str, listener) -> FakeConnection:
        if self.failures:
            raise self.failures.pop(0)
        connection = FakeConnection(url, listener)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


URL = "wss://ws.example.test?token=abc"
EVENT_TEXT = json.dumps([8, "package_created", {"package": {"id": 42}, "state": "new"}])


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def channel(connector: FakeConnector, scheduler: FakeScheduler) -> EventChannel:
    return EventChannel(connector, scheduler=scheduler, reconnect_delay=5.0)


def _open_and_greet(channel: EventChannel, connector: FakeConnector, events: list) -> FakeConnection:
    channel.open(URL, events.append)
    connection = connector.last
    connection.listener.on_open()
    connection.listener.on_message("[0]")
    return connection


class TestSubscription:
    def test_hello_sends_single_subscribe_frame(self, channel, connector) -> None:
        connection = _open_and_greet(channel, connector, [])

        assert channel.state == ChannelState.OPEN
        assert connection.sent == ['[5, "package_created"]']

    def test_repeated_hello_does_not_resubscribe(self, channel, connector) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_message("[0]")

        assert connection.sent == [subscription_frame()]

    def test_hello_before_open_is_ignored(self, channel, connector) -> None:
        channel.open(URL)
        connector.last.listener.on_message("[0]")

        assert connector.last.sent == []
        assert channel.state == ChannelState.CONNECTING

    def test_resubscribes_after_reconnect(self, channel, connector, scheduler) -> None:
        first = _open_and_greet(channel, connector, [])
        first.listener.on_close()
        scheduler.fire()
        second = connector.last
        second.listener.on_open()
        second.listener.on_message("[0]")

        assert second is not first
        assert second.sent == [subscription_frame()]


class TestEvents:
    def test_event_frame_is_dispatched(self, channel, connector) -> None:
        events: list[PackageCreated] = []
        connection = _open_and_greet(channel, connector, events)

        connection.listener.on_message(EVENT_TEXT)

        assert events == [PackageCreated(package={"id": 42}, state="new")]

    def test_frames_without_package_are_ignored(self, channel, connector) -> None:
        events: list[PackageCreated] = []
        connection = _open_and_greet(channel, connector, events)

        connection.listener.on_message(json.dumps([8, "package_created", {"state": "new"}]))
        connection.listener.on_message(json.dumps([8, "package_created"]))
        connection.listener.on_message(json.dumps([3, "other", {"package": {"id": 1}}]))
        connection.listener.on_message("not json")
        connection.listener.on_message("{}")

        assert events == []
        assert channel.state == ChannelState.OPEN

    def test_frame_type_must_be_an_integer(self, channel, connector) -> None:
        events: list[PackageCreated] = []
        channel.open(URL, events.append)
        connection = connector.last
        connection.listener.on_open()

        connection.listener.on_message("[false]")
        connection.listener.on_message("[0.0]")
        connection.listener.on_message(json.dumps([8.0, "package_created", {"package": {"id": 1}}]))
        connection.listener.on_message(json.dumps([True, "package_created", {"package": {"id": 1}}]))

        assert connection.sent == []
        assert events == []

    def test_failing_subscriber_does_not_block_others(self, channel, connector) -> None:
        received: list[PackageCreated] = []

        def broken(event: PackageCreated) -> None:
            raise RuntimeError("boom")

        channel.subscribe(broken)
        connection = _open_and_greet(channel, connector, received)
        connection.listener.on_message(EVENT_TEXT)

        assert len(received) == 1

    def test_unsubscribe_stops_delivery(self, channel, connector) -> None:
        received: list[PackageCreated] = []
        unsubscribe = channel.subscribe(received.append)
        connection = _open_and_greet(channel, connector, [])

        unsubscribe()
        connection.listener.on_message(EVENT_TEXT)

        assert received == []


class TestReconnect:
    def test_close_schedules_reconnect_after_delay(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_close()

        assert channel.state == ChannelState.CONNECTING
        assert channel.reconnect_pending
        assert [timer.delay for timer in scheduler.pending] == [5.0]

    def test_double_close_leaves_one_timer(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_close()
        connection.listener.on_close()

        assert len(scheduler.pending) == 1

    def test_error_then_close_leaves_one_timer(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_error(TransportFailure("reset"))
        connection.listener.on_close()

        assert len(scheduler.pending) == 1

    def test_timer_reopens_with_same_url(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_close()

        scheduler.fire()

        assert len(connector.connections) == 2
        assert connector.last.url == URL
        assert not channel.reconnect_pending

    def test_open_cancels_pending_timer(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_close()
        timer = scheduler.pending[0]

        channel.open(URL)

        assert timer.cancelled
        assert not channel.reconnect_pending

    def test_late_open_wins_over_pending_reconnect(self, channel, connector, scheduler) -> None:
        channel.open(URL)
        connection = connector.last
        connection.listener.on_close()
        assert channel.reconnect_pending

        connection.listener.on_open()
        connection.listener.on_message("[0]")

        assert channel.state == ChannelState.OPEN
        assert not channel.reconnect_pending
        assert scheduler.pending == []
        assert connection.sent == [subscription_frame()]
        assert len(connector.connections) == 1

        connection.listener.on_close()
        assert len(scheduler.pending) == 1

    def test_open_replaces_previous_connection(self, channel, connector) -> None:
        first = _open_and_greet(channel, connector, [])
        channel.open(URL)

        assert first.closed
        assert len(connector.connections) == 2

    def test_connect_failure_schedules_reconnect(self, channel, connector, scheduler) -> None:
        connector.failures.append(OSError("unreachable"))

        channel.open(URL)

        assert connector.connections == []
        assert channel.state == ChannelState.CONNECTING
        assert len(scheduler.pending) == 1

        scheduler.fire()
        assert len(connector.connections) == 1

    def test_superseded_connection_callbacks_are_ignored(self, channel, connector, scheduler) -> None:
        events: list[PackageCreated] = []
        old = _open_and_greet(channel, connector, events)
        old.listener.on_close()
        scheduler.fire()
        new = connector.last
        new.listener.on_open()

        old.listener.on_message(EVENT_TEXT)
        old.listener.on_close()

        assert events == []
        assert scheduler.pending == []
        assert channel.state == ChannelState.OPEN


class TestExplicitClose:
    def test_close_cancels_timer_and_connection(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_close()
        scheduler.fire()
        current = connector.last

        channel.close()

        assert current.closed
        assert scheduler.pending == []
        assert channel.state == ChannelState.CLOSED

    def test_close_with_pending_timer(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])
        connection.listener.on_close()

        channel.close()

        assert scheduler.pending == []
        assert not channel.reconnect_pending

    def test_late_message_after_close_is_dropped(self, channel, connector) -> None:
        events: list[PackageCreated] = []
        connection = _open_and_greet(channel, connector, events)

        channel.close()
        connection.listener.on_message(EVENT_TEXT)

        assert events == []

    def test_late_close_after_close_does_not_reconnect(self, channel, connector, scheduler) -> None:
        connection = _open_and_greet(channel, connector, [])

        channel.close()
        connection.listener.on_close()
        connection.listener.on_error(TransportFailure("late"))

        assert scheduler.pending == []
        assert channel.state == ChannelState.CLOSED
        assert len(connector.connections) == 1


def test_build_channel_url_defaults_to_wss() -> None:
    assert build_channel_url(domain="ws.example.test", token="abc") == "wss://ws.example.test?token=abc"


def test_build_channel_url_with_port_path_and_encoded_token() -> None:
    url = build_channel_url(domain="ws.example.test", token="a b/c", protocol="ws", port=8080, path="/socket")

    assert url == "ws://ws.example.test:8080/socket?token=a%20b%2Fc"


def test_channel_state_is_a_string_enum() -> None:
    channel = EventChannel(FakeConnector(), scheduler=FakeScheduler())

    assert isinstance(channel.state, ChannelState)
    assert channel.state is ChannelState.CLOSED
    assert channel.state == "closed"
    assert [state.value for state in ChannelState] == ["connecting", "open", "closed"]
