"""REST client for the publishing backend."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import requests

from ...security import TokenProvider
from ...services.destination_models import TenantRef
from ...settings import PublisherSettings

LOGGER = logging.getLogger(__name__)


class RequestFailure(RuntimeError):
    """Raised when a backend call fails. Calls are never retried."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = super().__str__()
        if not self.details:
            return base
        try:
            detail_repr = json.dumps(self.details, ensure_ascii=False)
        except TypeError:
            detail_repr = str(self.details)
        return f"{base} | details: {detail_repr}"


class PublisherApiClient:
    """Thin wrapper around the publisher's tenant, route, list and package endpoints."""

    def __init__(
        self,
        settings: PublisherSettings,
        token_provider: TokenProvider,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._tokens = token_provider
        self._session = session or requests.Session()
        self._scheme = settings.api_url.split("://", 1)[0] if "://" in settings.api_url else "https"

    def query_sites(self) -> list[dict[str, Any]]:
        return self._items(self._request("GET", f"{self._settings.base_url}/tenants/"))

    def query_routes(self, site: TenantRef, *, type: str = "collection") -> list[dict[str, Any]]:
        url = f"{self._tenant_base(site)}/content/routes/"
        return self._items(self._request("GET", url, params={"type": type}))

    def query_lists(self, site: TenantRef) -> list[dict[str, Any]]:
        return self._items(self._request("GET", f"{self._tenant_base(site)}/content/lists/"))

    def get_article(self, article_id: int | str) -> dict[str, Any]:
        return self._request("GET", f"{self._settings.base_url}/packages/{article_id}")

    def publish_article(self, article_id: int | str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self._request(
            "POST", f"{self._settings.base_url}/packages/{article_id}/publish/", json_body=payload
        )

    def unpublish_article(self, article_id: int | str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self._request(
            "POST", f"{self._settings.base_url}/packages/{article_id}/unpublish/", json_body=payload
        )

    def remove_article(self, article_id: int | str) -> dict[str, Any]:
        """Drop a package from the incoming list by marking it canceled."""
        return self._request(
            "PATCH",
            f"{self._settings.base_url}/packages/{article_id}",
            json_body={"update": {"pubStatus": "canceled"}},
        )

    def _tenant_base(self, site: TenantRef) -> str:
        return f"{self._scheme}://{site.host}{self._settings.api_path}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Mapping[str, Any] | None = None,
    ) -> Any:
        headers = {"Authorization": f"Basic {self._tokens.get_token()}"}
        LOGGER.debug("%s %s", method, url, extra={"event": "api.request", "method": method})
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self._settings.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            raise RequestFailure(
                "Publisher request failed",
                details={"method": method, "url": url, "status": status, "reason": str(exc)},
            ) from exc

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RequestFailure(
                "Could not decode publisher response",
                details={"url": url, "response": response.text[:200]},
            ) from exc

    def _items(self, data: Any) -> list[dict[str, Any]]:
        if isinstance(data, list):
            return data
        if isinstance(data, Mapping):
            embedded = data.get("_embedded") or {}
            items = embedded.get("_items")
            if isinstance(items, list):
                return items
        raise RequestFailure("Unexpected list response", details={"type": type(data).__name__})


__all__ = ["PublisherApiClient", "RequestFailure"]
