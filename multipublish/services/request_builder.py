"""Turns destination changes into publish and unpublish payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from ..core.snapshot_diff import changed_keys
from .destination_models import ContentListRef, DestinationConfig


@dataclass(frozen=True, slots=True)
class DestinationRecord:
    """One tenant entry of a publish request."""

    tenant: str
    route: int | str | None
    is_published_fbia: bool
    published: bool
    paywall_secured: bool
    content_lists: tuple[ContentListRef, ...] | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "tenant": self.tenant,
            "route": self.route,
            "isPublishedFbia": self.is_published_fbia,
            "published": self.published,
            "paywallSecured": self.paywall_secured,
        }
        if self.content_lists is not None:
            data["contentLists"] = [item.to_dict() for item in self.content_lists]
        return data


@dataclass(frozen=True, slots=True)
class PublishRequest:
    destinations: tuple[DestinationRecord, ...]

    @property
    def tenants(self) -> list[str]:
        return [record.tenant for record in self.destinations]

    def as_payload(self) -> dict[str, object]:
        return {"publish": {"destinations": [record.to_dict() for record in self.destinations]}}


@dataclass(frozen=True, slots=True)
class EmptyRequest:
    """Nothing changed; no call should be made."""


EMPTY_REQUEST = EmptyRequest()


@dataclass(frozen=True, slots=True)
class UnpublishRequest:
    tenants: tuple[str, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return bool(self.tenants)

    def as_payload(self) -> dict[str, object]:
        return {"unpublish": {"tenants": list(self.tenants)}}


class PublishRequestBuilder:
    """Stateless builder; safe to share between sessions."""

    def build_publish(
        self,
        draft: Mapping[str, DestinationConfig],
        published: Mapping[str, DestinationConfig],
    ) -> PublishRequest | EmptyRequest:
        """
        Build the publish request for every changed or newly added tenant.

        Destinations with status ``new`` are always included: a freshly added
        destination whose fields are all still defaults must be submitted even
        when structural comparison would consider it unchanged.
        """
        changed = set(changed_keys(draft, published))
        forced = {code for code, config in draft.items() if config.is_new}
        selected = [code for code in draft if code in changed or code in forced]
        if not selected:
            return EMPTY_REQUEST
        return PublishRequest(destinations=tuple(self._record(code, draft[code]) for code in selected))

    def build_unpublish(
        self,
        draft: Mapping[str, DestinationConfig],
        published: Mapping[str, DestinationConfig],
    ) -> UnpublishRequest:
        tenants = tuple(
            code for code in changed_keys(draft, published) if draft[code].unpublish is True
        )
        return UnpublishRequest(tenants=tenants)

    def _record(self, code: str, config: DestinationConfig) -> DestinationRecord:
        route_id = config.route.id if config.route is not None else None
        content_lists = None
        if config.is_new and config.content_lists:
            content_lists = tuple(
                ContentListRef(id=item.id, position=item.position) for item in config.content_lists
            )
        return DestinationRecord(
            tenant=code,
            route=route_id,
            is_published_fbia=config.is_published_fbia is True,
            published=route_id is not None,
            paywall_secured=config.paywall_secured is True,
            content_lists=content_lists,
        )


__all__ = [
    "DestinationRecord",
    "EMPTY_REQUEST",
    "EmptyRequest",
    "PublishRequest",
    "PublishRequestBuilder",
    "UnpublishRequest",
]
