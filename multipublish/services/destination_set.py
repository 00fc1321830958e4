"""Published vs draft destination state for the article in the publish pane."""

from __future__ import annotations

import copy
import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from ..core.snapshot_diff import changed_keys
from .destination_models import (
    ContentListRef,
    DestinationConfig,
    InvalidStateError,
    RouteRef,
    SiteRef,
    TenantRef,
)

LOGGER = logging.getLogger(__name__)


class DestinationSet:
    """Tracks server-confirmed and user-edited destinations for one article.

    ``published`` is only ever replaced as a whole (see :meth:`commit`) and
    reads hand out copies, so nothing outside the set can edit the baseline;
    ``draft`` is a deep copy that the UI mutates through the methods below.
    Sites present in ``draft`` are never listed in ``available_sites``.
    """

    def __init__(
        self,
        published: Mapping[str, DestinationConfig],
        sites: Sequence[TenantRef],
    ) -> None:
        self._tenants: dict[str, TenantRef] = {site.code: site for site in sites}
        self._site_order: dict[str, int] = {site.code: index for index, site in enumerate(sites)}
        self._published: dict[str, DestinationConfig] = copy.deepcopy(dict(published))
        for code, config in self._published.items():
            self._tenants.setdefault(code, config.tenant)
        self.draft: dict[str, DestinationConfig] = copy.deepcopy(self._published)
        self._available: list[SiteRef] = [
            SiteRef(code=site.code, name=site.name)
            for site in sites
            if site.code not in self._published
        ]

    @classmethod
    def open_for_article(
        cls,
        article: Mapping[str, Any],
        sites: Sequence[TenantRef],
        *,
        live_url_scheme: str = "http",
    ) -> "DestinationSet":
        published: dict[str, DestinationConfig] = {}
        for record in article.get("articles") or []:
            config = DestinationConfig.from_record(record, scheme=live_url_scheme)
            published[config.code] = config
        LOGGER.debug(
            "Opened destinations",
            extra={
                "event": "destinations.open",
                "article_id": article.get("id"),
                "tenants": list(published),
            },
        )
        return cls(published, sites)

    @property
    def published(self) -> Mapping[str, DestinationConfig]:
        """Read-only view of a copy of the confirmed snapshot."""
        return MappingProxyType(copy.deepcopy(self._published))

    @property
    def available_sites(self) -> tuple[SiteRef, ...]:
        return tuple(self._available)

    def add_destination(self, code: str) -> DestinationConfig:
        index = self._available_index(code)
        if index is None:
            raise InvalidStateError(f"Site {code!r} is not available for publishing")
        self._available.pop(index)
        config = DestinationConfig.new(self._tenants[code])
        # Newest destination first.
        self.draft = {code: config, **self.draft}
        return config

    def remove_destination(self, code: str) -> DestinationConfig:
        config = self._require(code)
        del self.draft[code]
        self._restore_site(SiteRef(code=code, name=config.tenant.name))
        return config

    def mark_for_unpublish(self, code: str, flag: bool = True) -> None:
        self._require(code).unpublish = bool(flag)

    def assign_route(self, code: str, route: RouteRef | None) -> None:
        config = self._require(code)
        if route is None and config.status == DestinationConfig.STATUS_PUBLISHED:
            raise InvalidStateError(f"Published destination {code!r} must keep its route")
        config.route = route

    def set_options(
        self,
        code: str,
        *,
        fbia: bool | None = None,
        paywall: bool | None = None,
    ) -> None:
        config = self._require(code)
        if fbia is not None:
            config.is_published_fbia = bool(fbia)
        if paywall is not None:
            config.paywall_secured = bool(paywall)

    def set_content_lists(self, code: str, lists: Iterable[ContentListRef]) -> None:
        self._require(code).content_lists = list(lists)

    def changed_tenants(self) -> list[str]:
        return changed_keys(self.draft, self._published)

    def commit(self) -> None:
        """Adopt the draft as the new published snapshot after a successful call.

        Entries still marked ``new`` are now known to the backend: they become
        ``published`` when they carry a route and ``unpublished`` otherwise,
        so a reused set does not submit them again.
        """
        for config in self.draft.values():
            config.unpublish = False
            if config.is_new:
                config.status = (
                    DestinationConfig.STATUS_PUBLISHED
                    if config.route is not None
                    else DestinationConfig.STATUS_UNPUBLISHED
                )
        self._published = copy.deepcopy(self.draft)

    def _require(self, code: str) -> DestinationConfig:
        try:
            return self.draft[code]
        except KeyError as exc:
            raise InvalidStateError(f"Destination {code!r} is not part of the draft") from exc

    def _available_index(self, code: str) -> int | None:
        for index, site in enumerate(self._available):
            if site.code == code:
                return index
        return None

    def _restore_site(self, site: SiteRef) -> None:
        if self._available_index(site.code) is not None:
            return
        fallback = len(self._site_order)
        rank = self._site_order.get(site.code, fallback)
        position = len(self._available)
        for index, existing in enumerate(self._available):
            if self._site_order.get(existing.code, fallback) > rank:
                position = index
                break
        self._available.insert(position, site)


__all__ = ["DestinationSet"]
