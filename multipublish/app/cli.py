"""Command-line interface for multi-destination publishing."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from ..core.event_channel import EventChannel, PackageCreated, build_channel_url
from ..platforms.publisher import PublisherApiClient, RequestFailure, aiohttp_connector
from ..security import TokenNotFoundError, provider_from_settings
from ..services.destination_models import (
    ContentListRef,
    InvalidStateError,
    RouteRef,
    content_list_name,
    preview_urls,
)
from ..services.destination_set import DestinationSet
from ..services.request_builder import EmptyRequest, PublishRequestBuilder
from ..settings import AppConfig, load_config
from ..utils.logging import configure_logging, get_logger
from .session import SessionController, SessionHooks, Site

LOGGER = get_logger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    handler: Callable[[argparse.Namespace], int] | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help(sys.stderr)
        return 1

    config = load_config(args.config)
    structured = False if args.log_plain else config.logging.structured
    configure_logging(level=config.logging.level, structured=structured)
    args.app_config = config
    try:
        return handler(args)
    except TokenNotFoundError as exc:
        LOGGER.error("No publisher token available: %s", exc, extra={"event": "cli.error"})
        return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="multipublish", description="Multi-destination publishing client")
    parser.add_argument("--config", help="Path to configuration file", default=None)
    parser.add_argument(
        "--log-plain",
        action="store_true",
        help="Use plain-text logs instead of JSON",
    )

    subparsers = parser.add_subparsers(dest="command")

    listen_parser = subparsers.add_parser("listen", help="Print new packages as they arrive")
    listen_parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    listen_parser.set_defaults(handler=_handle_listen)

    sites_parser = subparsers.add_parser("sites", help="List registry sites with their routes")
    sites_parser.set_defaults(handler=_handle_sites)

    publish_parser = subparsers.add_parser("publish", help="Publish an article to changed destinations")
    publish_parser.add_argument("article_id", help="Package identifier")
    publish_parser.add_argument(
        "--changes",
        required=True,
        type=Path,
        help="JSON file mapping tenant code to destination settings",
    )
    publish_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the request payload instead of sending it",
    )
    publish_parser.set_defaults(handler=_handle_publish)

    unpublish_parser = subparsers.add_parser("unpublish", help="Retract an article from tenants")
    unpublish_parser.add_argument("article_id", help="Package identifier")
    unpublish_parser.add_argument(
        "--tenant",
        dest="tenants",
        action="append",
        required=True,
        metavar="CODE",
        help="Tenant code to unpublish from; repeatable",
    )
    unpublish_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the request payload instead of sending it",
    )
    unpublish_parser.set_defaults(handler=_handle_unpublish)

    status_parser = subparsers.add_parser("status", help="Show where an article is published")
    status_parser.add_argument("article_id", help="Package identifier")
    status_parser.set_defaults(handler=_handle_status)

    return parser


def _handle_listen(args: argparse.Namespace) -> int:
    config: AppConfig = args.app_config
    token = provider_from_settings(config.auth).get_token()
    ws = config.websocket
    url = build_channel_url(domain=ws.domain, token=token, protocol=ws.protocol, port=ws.port, path=ws.path)

    LOGGER.info(
        "Listening for packages",
        extra={"event": "cli.command", "command": "listen", "domain": ws.domain},
    )
    try:
        asyncio.run(_listen(url, reconnect_delay=ws.reconnect_delay, duration=args.duration))
    except KeyboardInterrupt:
        LOGGER.info("Listener interrupted", extra={"event": "cli.command", "command": "listen"})
    return 0


async def _listen(url: str, *, reconnect_delay: float, duration: float | None) -> None:
    channel = EventChannel(aiohttp_connector(), reconnect_delay=reconnect_delay)
    channel.open(url, _print_event)
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        channel.close()


def _print_event(event: PackageCreated) -> None:
    print(json.dumps({"state": event.state, "package": event.package}, ensure_ascii=False), flush=True)


def _handle_sites(args: argparse.Namespace) -> int:
    session, _ = _build_session(args.app_config)
    try:
        sites = session.load_sites()
    except RequestFailure as exc:
        LOGGER.error("Could not load sites: %s", exc, extra={"event": "cli.error", "command": "sites"})
        return 1
    for site in sites:
        print(
            json.dumps(
                {
                    "code": site.tenant.code,
                    "name": site.tenant.name,
                    "host": site.tenant.host,
                    "routes": [route.name for route in site.routes],
                    "contentLists": [item.name for item in site.content_lists],
                },
                ensure_ascii=False,
            )
        )
    return 0


def _handle_publish(args: argparse.Namespace) -> int:
    changes = _load_changes(args.changes)
    session, api = _build_session(args.app_config)
    destinations = _open_article(session, api, args.article_id)

    try:
        _apply_changes(destinations, changes, session.sites)
    except InvalidStateError as exc:
        LOGGER.error("Invalid destination change: %s", exc, extra={"event": "cli.error", "command": "publish"})
        return 2

    if args.dry_run:
        request = PublishRequestBuilder().build_publish(destinations.draft, destinations.published)
        if isinstance(request, EmptyRequest):
            print("<no-changes>")
        else:
            print(json.dumps(request.as_payload(), ensure_ascii=False, indent=2))
        return 0

    return 0 if session.publish() else 1


def _handle_unpublish(args: argparse.Namespace) -> int:
    session, api = _build_session(args.app_config)
    destinations = _open_article(session, api, args.article_id)

    try:
        for code in args.tenants:
            destinations.mark_for_unpublish(code, True)
    except InvalidStateError as exc:
        LOGGER.error("Invalid unpublish target: %s", exc, extra={"event": "cli.error", "command": "unpublish"})
        return 2

    if args.dry_run:
        request = PublishRequestBuilder().build_unpublish(destinations.draft, destinations.published)
        print(json.dumps(request.as_payload(), ensure_ascii=False, indent=2))
        return 0

    return 0 if session.unpublish() else 1


def _handle_status(args: argparse.Namespace) -> int:
    config: AppConfig = args.app_config
    session, api = _build_session(config)
    destinations = _open_article(session, api, args.article_id)
    token = provider_from_settings(config.auth).get_token()
    for line in _status_lines(session, destinations, args.article_id, token):
        print(json.dumps(line, ensure_ascii=False))
    return 0


def _status_lines(
    session: SessionController,
    destinations: DestinationSet,
    article_id: int | str,
    token: str,
) -> list[dict[str, Any]]:
    lists_by_tenant = {site.tenant.code: site.content_lists for site in session.sites}
    lines: list[dict[str, Any]] = []
    for code, config in destinations.published.items():
        route_id = config.route.id if config.route is not None else None
        lines.append(
            {
                "tenant": code,
                "status": config.status,
                "route": session.route_name(route_id),
                "liveUrl": config.live_url,
                "preview": preview_urls(config.tenant, route_id, article_id, token) if route_id else None,
                "contentLists": [
                    content_list_name(ref, lists_by_tenant.get(code, [])) for ref in config.content_lists
                ],
            }
        )
    return lines


def _build_session(config: AppConfig) -> tuple[SessionController, PublisherApiClient]:
    api = PublisherApiClient(config.publisher, provider_from_settings(config.auth))
    # Only ``listen`` opens a channel; the session gets an idle one.
    channel = EventChannel(aiohttp_connector(), reconnect_delay=config.websocket.reconnect_delay)
    hooks = SessionHooks(on_error=lambda message: print(message, file=sys.stderr))
    session = SessionController(
        api,
        channel,
        hooks=hooks,
        live_url_scheme=config.publisher.live_url_scheme,
    )
    return session, api


def _open_article(
    session: SessionController, api: PublisherApiClient, article_id: str
) -> DestinationSet:
    try:
        session.load_sites()
        article = api.get_article(article_id)
    except RequestFailure as exc:
        LOGGER.error("Could not load article: %s", exc, extra={"event": "cli.error", "article_id": article_id})
        raise SystemExit(1) from exc
    return session.open_publish(article)


def _load_changes(path: Path) -> dict[str, dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.error("Could not read changes file %s: %s", path, exc, extra={"event": "cli.error"})
        raise SystemExit(2) from exc
    if not isinstance(data, dict) or not all(isinstance(value, dict) for value in data.values()):
        LOGGER.error("Changes file must map tenant codes to objects", extra={"event": "cli.error"})
        raise SystemExit(2)
    return data


def _apply_changes(
    destinations: DestinationSet,
    changes: Mapping[str, Mapping[str, Any]],
    sites: Sequence[Site],
) -> None:
    """Replay a changes file onto the draft the way the publish pane would."""
    for code, change in changes.items():
        if code not in destinations.draft:
            destinations.add_destination(code)
        current = destinations.draft[code].route
        if "route" in change and (current is None or current.id != change["route"]):
            destinations.assign_route(code, _resolve_route(code, change["route"], sites))
        destinations.set_options(
            code,
            fbia=change.get("isPublishedFbia"),
            paywall=change.get("paywallSecured"),
        )
        if "contentLists" in change:
            destinations.set_content_lists(
                code, [ContentListRef.from_dict(item) for item in change["contentLists"] or []]
            )


def _resolve_route(code: str, route_id: Any, sites: Sequence[Site]) -> RouteRef | None:
    if route_id is None:
        return None
    for site in sites:
        if site.tenant.code != code:
            continue
        for route in site.routes:
            if route.id == route_id:
                return route
    return RouteRef(id=route_id)


__all__ = ["main"]
