"""Data models for per-tenant article destinations."""

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

LOGGER = logging.getLogger(__name__)


class InvalidStateError(RuntimeError):
    """Raised when a destination operation's preconditions do not hold."""


@dataclass(frozen=True, slots=True)
class TenantRef:
    """A site from the registry. Shared by reference between snapshots."""

    code: str
    name: str
    domain_name: str = ""
    subdomain: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TenantRef":
        return cls(
            code=str(data["code"]),
            name=str(data.get("name", data["code"])),
            domain_name=str(data.get("domainName") or ""),
            subdomain=data.get("subdomain") or None,
        )

    @property
    def host(self) -> str:
        return f"{self.subdomain}.{self.domain_name}" if self.subdomain else self.domain_name

    def live_url(self, href: str, *, scheme: str = "http") -> str:
        return f"{scheme}://{self.host}{href}"

    def __deepcopy__(self, memo: dict[int, object]) -> "TenantRef":
        return self


@dataclass(frozen=True, slots=True)
class SiteRef:
    code: str
    name: str


@dataclass(frozen=True, slots=True)
class RouteRef:
    id: int | str
    name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RouteRef":
        return cls(id=data["id"], name=str(data.get("name", "")))


@dataclass(slots=True)
class ContentListRef:
    """Placement of the article inside a manual content list."""

    id: int | str
    position: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContentListRef":
        return cls(id=data["id"], position=int(data.get("position") or 0))

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "position": self.position}


@dataclass(frozen=True, slots=True)
class ContentList:
    """A tenant's content list as known to the registry."""

    id: int | str
    name: str
    items_count: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContentList":
        return cls(
            id=data["id"],
            name=str(data.get("name", "")),
            items_count=int(data.get("contentListItemsCount") or 0),
        )

    def positions(self) -> list[int]:
        """Every position the article can be inserted at, end included."""
        return list(range(self.items_count + 1))


def content_list_name(ref: ContentListRef | Mapping[str, Any], lists: Sequence[ContentList]) -> str:
    name = ref.get("name") if isinstance(ref, Mapping) else None
    if name:
        return str(name)
    list_id = ref["id"] if isinstance(ref, Mapping) else ref.id
    match = next((item for item in lists if item.id == list_id), None)
    return match.name if match else ""


@dataclass(slots=True)
class DestinationConfig:
    """Publication state of the open article on one tenant."""

    tenant: TenantRef
    route: RouteRef | None = None
    is_published_fbia: bool = False
    paywall_secured: bool = False
    status: str = "new"
    content_lists: list[ContentListRef] = field(default_factory=list)
    unpublish: bool = False
    live_url: str | None = None
    updated_at: str | None = None

    STATUS_NEW = "new"
    STATUS_PUBLISHED = "published"
    STATUS_UNPUBLISHED = "unpublished"
    STATUS_CANCELED = "canceled"

    def __post_init__(self) -> None:
        if self.status not in _STATUSES:
            raise ValueError(f"Unknown destination status: {self.status!r}")
        if self.route is None and self.status == self.STATUS_PUBLISHED:
            raise InvalidStateError(
                f"Destination {self.tenant.code!r} cannot be published without a route"
            )

    @property
    def code(self) -> str:
        return self.tenant.code

    @property
    def is_new(self) -> bool:
        return self.status == self.STATUS_NEW

    @classmethod
    def new(cls, tenant: TenantRef) -> "DestinationConfig":
        return cls(tenant=tenant)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], *, scheme: str = "http") -> "DestinationConfig":
        """Build a config from one entry of ``article["articles"]``."""
        tenant = TenantRef.from_dict(record["tenant"])
        route_data = record.get("route")
        route = RouteRef.from_dict(route_data) if route_data else None
        status = str(record.get("status") or cls.STATUS_NEW)
        if route is None and status == cls.STATUS_PUBLISHED:
            LOGGER.warning(
                "Publication record without route reported as published; treating as unpublished",
                extra={"event": "destinations.orphan_record", "tenant": tenant.code},
            )
            status = cls.STATUS_UNPUBLISHED

        live_url = None
        if status == cls.STATUS_PUBLISHED:
            href = ((record.get("_links") or {}).get("online") or {}).get("href")
            if href:
                live_url = tenant.live_url(href, scheme=scheme)

        return cls(
            tenant=tenant,
            route=route,
            is_published_fbia=bool(record.get("isPublishedFbia")),
            paywall_secured=bool(record.get("paywallSecured")),
            status=status,
            content_lists=[ContentListRef.from_dict(item) for item in record.get("contentLists") or []],
            live_url=live_url,
            updated_at=record.get("updatedAt"),
        )


_STATUSES = frozenset(
    {
        DestinationConfig.STATUS_NEW,
        DestinationConfig.STATUS_PUBLISHED,
        DestinationConfig.STATUS_UNPUBLISHED,
        DestinationConfig.STATUS_CANCELED,
    }
)


def preview_urls(
    tenant: TenantRef, route_id: int | str, article_id: int | str, token: str
) -> dict[str, str]:
    """Protocol-relative preview links for the regular and AMP renderings."""
    base = (
        f"//{tenant.host}/preview/package/{route_id}/{article_id}"
        f"?auth_token={urllib.parse.quote(token, safe='')}"
    )
    return {"regular": base, "amp": f"{base}&amp"}


__all__ = [
    "ContentList",
    "ContentListRef",
    "DestinationConfig",
    "InvalidStateError",
    "RouteRef",
    "SiteRef",
    "TenantRef",
    "content_list_name",
    "preview_urls",
]
