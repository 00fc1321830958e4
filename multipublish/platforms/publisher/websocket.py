"""aiohttp-backed transport for :class:`~multipublish.core.EventChannel`."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from ...core.event_channel import ChannelListener, Connector, TransportFailure

LOGGER = logging.getLogger(__name__)


class AiohttpConnection:
    """One websocket connection attempt running as a task on the current loop.

    The listener sees ``on_open`` once the handshake completes, then
    ``on_message`` for each text frame, and finally exactly one of
    ``on_close`` (stream ended or connection cancelled) or ``on_error``.
    """

    def __init__(
        self,
        url: str,
        listener: ChannelListener,
        *,
        heartbeat: float | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._url = url
        self._listener = listener
        self._heartbeat = heartbeat
        self._loop = loop or asyncio.get_running_loop()
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._pending_sends: set[asyncio.Task[None]] = set()
        self._task = self._loop.create_task(self._run())

    def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            LOGGER.debug("Dropping frame on closed websocket", extra={"event": "ws.send_dropped"})
            return
        task = self._loop.create_task(self._send(ws, text))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    def close(self) -> None:
        self._task.cancel()

    async def _send(self, ws: aiohttp.ClientWebSocketResponse, text: str) -> None:
        try:
            await ws.send_str(text)
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            LOGGER.warning("Websocket send failed: %s", exc, extra={"event": "ws.send_failed"})

    async def _run(self) -> None:
        failure: TransportFailure | None = None
        try:
            async with aiohttp.ClientSession() as session:
                async with session.ws_connect(self._url, heartbeat=self._heartbeat) as ws:
                    self._ws = ws
                    self._listener.on_open()
                    async for message in ws:
                        if message.type == aiohttp.WSMsgType.TEXT:
                            self._listener.on_message(message.data)
                        elif message.type == aiohttp.WSMsgType.ERROR:
                            raise TransportFailure(f"websocket error: {ws.exception()}")
        except asyncio.CancelledError:
            self._ws = None
            self._listener.on_close()
            raise
        except TransportFailure as exc:
            failure = exc
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            failure = TransportFailure(str(exc) or type(exc).__name__)
        finally:
            self._ws = None

        if failure is not None:
            self._listener.on_error(failure)
        else:
            self._listener.on_close()


def aiohttp_connector(*, heartbeat: float | None = None) -> Connector:
    """Return a connector that opens :class:`AiohttpConnection` instances."""

    def connect(url: str, listener: ChannelListener) -> AiohttpConnection:
        return AiohttpConnection(url, listener, heartbeat=heartbeat)

    return connect


__all__ = ["AiohttpConnection", "aiohttp_connector"]
