"""Contracts for the publishing backend consumed by the session layer."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..services.destination_models import TenantRef


class PublisherBackend(Protocol):
    """Operations the session needs from the publishing backend."""

    def query_sites(self) -> list[dict[str, Any]]:
        """Return the site registry."""

    def query_routes(self, site: TenantRef, *, type: str = "collection") -> list[dict[str, Any]]:
        """Return the routes of ``site`` filtered by route type."""

    def query_lists(self, site: TenantRef) -> list[dict[str, Any]]:
        """Return the content lists of ``site``."""

    def publish_article(self, article_id: int | str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Submit a ``{"publish": {...}}`` payload."""

    def unpublish_article(self, article_id: int | str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Submit an ``{"unpublish": {...}}`` payload."""

    def remove_article(self, article_id: int | str) -> dict[str, Any]:
        """Cancel an incoming package."""
