"""Destination reconciliation services."""

from __future__ import annotations

from .destination_models import (
    ContentList,
    ContentListRef,
    DestinationConfig,
    InvalidStateError,
    RouteRef,
    SiteRef,
    TenantRef,
)
from .destination_set import DestinationSet
from .request_builder import (
    EMPTY_REQUEST,
    EmptyRequest,
    PublishRequest,
    PublishRequestBuilder,
    UnpublishRequest,
)

__all__ = [
    "ContentList",
    "ContentListRef",
    "DestinationConfig",
    "DestinationSet",
    "EMPTY_REQUEST",
    "EmptyRequest",
    "InvalidStateError",
    "PublishRequest",
    "PublishRequestBuilder",
    "RouteRef",
    "SiteRef",
    "TenantRef",
    "UnpublishRequest",
]
