"""Self-healing push channel for ingest notifications."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, Protocol

LOGGER = logging.getLogger(__name__)

HELLO_FRAME = 0
SUBSCRIBE_FRAME = 5
EVENT_FRAME = 8
PACKAGE_CREATED_TOPIC = "package_created"
DEFAULT_RECONNECT_DELAY = 5.0


class TransportFailure(RuntimeError):
    """Raised by transports when a connection cannot be established or read."""


@dataclass(frozen=True, slots=True)
class PackageCreated:
    """A new package arrived from the ingest pipeline."""

    package: dict[str, Any]
    state: str | None = None


class ChannelState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Connection(Protocol):
    """Live transport handle returned by a connector."""

    def send(self, text: str) -> None:
        """Queue a text frame for delivery."""

    def close(self) -> None:
        """Tear down the transport."""


class ChannelListener(Protocol):
    """Callbacks a transport fires for one connection attempt."""

    def on_open(self) -> None: ...

    def on_message(self, text: str) -> None: ...

    def on_close(self) -> None: ...

    def on_error(self, exc: BaseException) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; an asyncio event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[..., object], *args: Any) -> TimerHandle: ...


Connector = Callable[[str, ChannelListener], Connection]
EventCallback = Callable[[PackageCreated], None]


def build_channel_url(
    *,
    domain: str,
    token: str,
    protocol: str | None = None,
    port: int | str | None = None,
    path: str | None = None,
) -> str:
    """Compose ``protocol://domain[:port][path]?token=...``."""
    scheme = protocol or "wss"
    port_part = f":{port}" if port else ""
    path_part = path or ""
    return f"{scheme}://{domain}{port_part}{path_part}?token={urllib.parse.quote(token, safe='')}"


def subscription_frame(topic: str = PACKAGE_CREATED_TOPIC) -> str:
    return json.dumps([SUBSCRIBE_FRAME, topic])


class _AttemptListener:
    """Binds transport callbacks to the connection attempt that created them."""

    __slots__ = ("_channel", "_generation")

    def __init__(self, channel: "EventChannel", generation: int) -> None:
        self._channel = channel
        self._generation = generation

    def on_open(self) -> None:
        self._channel._handle_open(self._generation)

    def on_message(self, text: str) -> None:
        self._channel._handle_frame(self._generation, text)

    def on_close(self) -> None:
        self._channel._handle_close(self._generation)

    def on_error(self, exc: BaseException) -> None:
        self._channel._handle_error(self._generation, exc)


class EventChannel:
    """Keeps one push connection alive and fans out typed events.

    At most one of (connection, reconnect timer) is live while the channel
    is not closed. Every attempt gets a generation number so that callbacks
    from a superseded or explicitly closed transport are dropped instead of
    resurrecting the channel.
    """

    def __init__(
        self,
        connect: Connector,
        *,
        scheduler: Scheduler | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        topic: str = PACKAGE_CREATED_TOPIC,
    ) -> None:
        self._connect = connect
        self._scheduler = scheduler
        self._reconnect_delay = reconnect_delay
        self._topic = topic
        self._subscribers: list[EventCallback] = []
        self._state: ChannelState = ChannelState.CLOSED
        self._closed = True
        self._url: str | None = None
        self._connection: Connection | None = None
        self._timer: TimerHandle | None = None
        self._generation = 0
        self._subscribed = False

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback`` for domain events; returns an unsubscribe function."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def open(self, url: str, on_message: EventCallback | None = None) -> None:
        if on_message is not None:
            self.subscribe(on_message)
        self._url = url
        self._closed = False
        self._cancel_timer()

        self._generation += 1
        generation = self._generation
        previous, self._connection = self._connection, None
        self._state = ChannelState.CONNECTING
        self._subscribed = False
        if previous is not None:
            previous.close()

        LOGGER.info(
            "Opening push channel",
            extra={"event": "channel.connect", "generation": generation},
        )
        try:
            self._connection = self._connect(url, _AttemptListener(self, generation))
        except (TransportFailure, OSError) as exc:
            self._handle_error(generation, exc)

    def close(self) -> None:
        """Stop for good: cancel any reconnect and release the transport."""
        self._closed = True
        self._state = ChannelState.CLOSED
        self._cancel_timer()
        self._generation += 1
        connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()
        LOGGER.info("Push channel closed", extra={"event": "channel.closed"})

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _handle_open(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        self._state = ChannelState.OPEN
        self._subscribed = False
        # The live connection wins over any reconnect that raced it.
        self._cancel_timer()
        LOGGER.info("Push channel open", extra={"event": "channel.open", "generation": generation})

    def _handle_frame(self, generation: int, text: str) -> None:
        if not self._is_current(generation) or self._state != ChannelState.OPEN:
            return
        try:
            frame = json.loads(text)
        except (TypeError, ValueError):
            LOGGER.warning("Dropping malformed frame", extra={"event": "channel.frame_invalid"})
            return
        if not isinstance(frame, list) or not frame:
            return

        kind = frame[0]
        # JSON false and 8.0 are not frame types.
        if type(kind) is not int:
            return
        if kind == HELLO_FRAME:
            self._send_subscription()
        elif kind == EVENT_FRAME:
            payload = frame[2] if len(frame) > 2 else None
            if isinstance(payload, dict) and payload.get("package") is not None:
                self._dispatch(PackageCreated(package=payload["package"], state=payload.get("state")))

    def _send_subscription(self) -> None:
        if self._subscribed or self._connection is None:
            return
        self._connection.send(subscription_frame(self._topic))
        self._subscribed = True
        LOGGER.debug("Subscribed to %s", self._topic, extra={"event": "channel.subscribe"})

    def _dispatch(self, event: PackageCreated) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                LOGGER.exception("Event subscriber failed", extra={"event": "channel.subscriber_error"})

    def _handle_error(self, generation: int, exc: BaseException) -> None:
        if not self._is_current(generation):
            return
        LOGGER.warning(
            "Push channel transport error: %s",
            exc,
            extra={"event": "channel.transport_error", "error_type": type(exc).__name__},
        )
        self._handle_close(generation)

    def _handle_close(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        self._state = ChannelState.CONNECTING
        # The handle stays until open() or close() replaces it, so a late
        # on_open for this attempt can still take over.
        self._cancel_timer()
        self._timer = self._get_scheduler().call_later(self._reconnect_delay, self._reconnect)
        LOGGER.info(
            "Push channel lost; reconnecting in %.1fs",
            self._reconnect_delay,
            extra={"event": "channel.reconnect_scheduled", "generation": generation},
        )

    def _reconnect(self) -> None:
        self._timer = None
        if self._closed or self._url is None:
            return
        self.open(self._url)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler


__all__ = [
    "ChannelListener",
    "ChannelState",
    "Connection",
    "Connector",
    "EventChannel",
    "PackageCreated",
    "Scheduler",
    "TransportFailure",
    "build_channel_url",
    "subscription_frame",
]
