"""Core primitives: snapshot comparison and the push channel."""

from .event_channel import (
    ChannelState,
    EventChannel,
    PackageCreated,
    TransportFailure,
    build_channel_url,
)
from .snapshot_diff import changed_keys

__all__ = [
    "ChannelState",
    "EventChannel",
    "PackageCreated",
    "TransportFailure",
    "build_channel_url",
    "changed_keys",
]
