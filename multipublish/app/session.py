"""Session orchestration: registry loading, publish pane and live updates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ..core.event_channel import EventChannel, PackageCreated
from ..core.snapshot_diff import changed_keys
from ..platforms.base import PublisherBackend
from ..platforms.publisher.api import RequestFailure
from ..services.destination_models import ContentList, RouteRef, TenantRef
from ..services.destination_set import DestinationSet
from ..services.request_builder import EmptyRequest, PublishRequestBuilder
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class SessionHooks:
    """UI callbacks; any of them may be left unset."""

    on_refresh: Callable[[], None] | None = None
    on_article_removed: Callable[[int | str], None] | None = None
    on_error: Callable[[str], None] | None = None
    on_package: Callable[[PackageCreated], None] | None = None


@dataclass(slots=True)
class Site:
    """A registry tenant together with its collection routes and content lists."""

    tenant: TenantRef
    routes: list[RouteRef]
    content_lists: list[ContentList]


class SessionController:
    def __init__(
        self,
        backend: PublisherBackend,
        channel: EventChannel,
        *,
        channel_url: str | None = None,
        hooks: SessionHooks | None = None,
        builder: PublishRequestBuilder | None = None,
        live_url_scheme: str = "http",
    ) -> None:
        self._backend = backend
        self._channel = channel
        self._channel_url = channel_url
        self._hooks = hooks or SessionHooks()
        self._builder = builder or PublishRequestBuilder()
        self._live_url_scheme = live_url_scheme
        self.sites: list[Site] = []
        self.routes: list[RouteRef] = []
        self.filters: dict[str, Any] = {}
        self.destinations: DestinationSet | None = None
        self.article: Mapping[str, Any] | None = None

    @property
    def tenants(self) -> list[TenantRef]:
        return [site.tenant for site in self.sites]

    def start(self) -> None:
        """Load the site registry and start listening for new packages."""
        self.load_sites()
        if self._channel_url:
            self._channel.open(self._channel_url, self._on_package)

    def stop(self) -> None:
        self._channel.close()
        self.close_publish()

    def load_sites(self) -> list[Site]:
        sites: list[Site] = []
        routes: list[RouteRef] = []
        for raw in self._backend.query_sites():
            tenant = TenantRef.from_dict(raw)
            site_routes = [
                RouteRef(id=item["id"], name=f"{tenant.name}/{item.get('name', '')}")
                for item in self._backend.query_routes(tenant, type="collection")
            ]
            lists = [ContentList.from_dict(item) for item in self._backend.query_lists(tenant)]
            sites.append(Site(tenant=tenant, routes=site_routes, content_lists=lists))
            routes.extend(site_routes)
        self.sites = sites
        self.routes = routes
        LOGGER.info(
            "Loaded site registry",
            extra={"event": "session.sites_loaded", "sites": len(sites), "routes": len(routes)},
        )
        return sites

    def route_name(self, route_id: int | str | None) -> str:
        """Route display name without the ``site/`` prefix."""
        if not route_id:
            return ""
        route = next((item for item in self.routes if item.id == route_id), None)
        if route is None:
            return ""
        _, sep, tail = route.name.partition("/")
        return tail if sep else route.name

    def open_publish(self, article: Mapping[str, Any]) -> DestinationSet:
        self.article = article
        self.destinations = DestinationSet.open_for_article(
            article, self.tenants, live_url_scheme=self._live_url_scheme
        )
        return self.destinations

    def close_publish(self) -> None:
        self.destinations = None
        self.article = None

    def publish(self) -> bool:
        """Send changed destinations; returns ``True`` only when a call succeeded."""
        destinations, article_id = self._require_open()
        request = self._builder.build_publish(destinations.draft, destinations.published)
        if isinstance(request, EmptyRequest):
            LOGGER.info("Nothing to publish", extra={"event": "session.publish_skipped"})
            return False

        try:
            self._backend.publish_article(article_id, request.as_payload())
        except RequestFailure as exc:
            LOGGER.error(
                "Publishing failed: %s",
                exc,
                extra={"event": "session.publish_failed", "article_id": article_id},
            )
            self._emit_error("Publishing failed!")
            return False

        destinations.commit()
        LOGGER.info(
            "Article published",
            extra={"event": "session.published", "article_id": article_id, "tenants": request.tenants},
        )
        self.close_publish()
        if self._hooks.on_article_removed:
            self._hooks.on_article_removed(article_id)
        return True

    def unpublish(self) -> bool:
        destinations, article_id = self._require_open()
        request = self._builder.build_unpublish(destinations.draft, destinations.published)
        if not request:
            LOGGER.info("Nothing to unpublish", extra={"event": "session.unpublish_skipped"})
            return False

        try:
            self._backend.unpublish_article(article_id, request.as_payload())
        except RequestFailure as exc:
            LOGGER.error(
                "Unpublishing failed: %s",
                exc,
                extra={"event": "session.unpublish_failed", "article_id": article_id},
            )
            self._emit_error("Unpublishing failed!")
            return False

        destinations.commit()
        LOGGER.info(
            "Article unpublished",
            extra={
                "event": "session.unpublished",
                "article_id": article_id,
                "tenants": list(request.tenants),
            },
        )
        self.close_publish()
        self._emit_refresh()
        return True

    def remove_article(self, article_id: int | str) -> bool:
        """Cancel a package so it leaves the incoming list."""
        try:
            self._backend.remove_article(article_id)
        except RequestFailure as exc:
            LOGGER.error("Removing article failed: %s", exc, extra={"event": "session.remove_failed"})
            self._emit_error("Removing article failed!")
            return False
        self._emit_refresh()
        return True

    def update_filters(self, filters: Mapping[str, Any]) -> bool:
        """Apply new list filters; returns ``True`` when a refresh was requested."""
        previous, self.filters = self.filters, dict(filters)
        if self.filters == previous:
            return False
        updated = changed_keys(self.filters, previous)
        if updated:
            value = self.filters[updated[0]]
            # A just-added, still empty filter row does not change the results.
            if isinstance(value, list) and value and not value[-1]:
                return False
        self._emit_refresh()
        return True

    def _on_package(self, event: PackageCreated) -> None:
        LOGGER.info(
            "New package received",
            extra={"event": "session.package_created", "state": event.state},
        )
        if self._hooks.on_package:
            self._hooks.on_package(event)
        self._emit_refresh()

    def _require_open(self) -> tuple[DestinationSet, int | str]:
        if self.destinations is None or self.article is None:
            raise RuntimeError("Publish pane is not open")
        return self.destinations, self.article["id"]

    def _emit_refresh(self) -> None:
        if self._hooks.on_refresh:
            self._hooks.on_refresh()

    def _emit_error(self, message: str) -> None:
        if self._hooks.on_error:
            self._hooks.on_error(message)


__all__ = ["SessionController", "SessionHooks", "Site"]
