"""Publishing backend adapters: REST client and push transport."""

from __future__ import annotations

from .api import PublisherApiClient, RequestFailure
from .websocket import AiohttpConnection, aiohttp_connector

__all__ = [
    "AiohttpConnection",
    "PublisherApiClient",
    "RequestFailure",
    "aiohttp_connector",
]
