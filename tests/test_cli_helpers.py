"""Tests for CLI helper utilities."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from multipublish.app import SessionController, Site, cli
from multipublish.services import (
    ContentList,
    ContentListRef,
    DestinationConfig,
    DestinationSet,
    InvalidStateError,
    RouteRef,
    TenantRef,
)

ALPHA = TenantRef(code="alpha", name="Alpha", domain_name="alpha.test")
BETA = TenantRef(code="beta", name="Beta", domain_name="beta.test")


def _sites() -> list[Site]:
    return [
        Site(tenant=ALPHA, routes=[RouteRef(id=10, name="Alpha/news")], content_lists=[]),
        Site(
            tenant=BETA,
            routes=[RouteRef(id=20, name="Beta/news")],
            content_lists=[ContentList(id=3, name="Top", items_count=2)],
        ),
    ]


def _destinations() -> DestinationSet:
    published = {
        "beta": DestinationConfig(
            tenant=BETA,
            route=RouteRef(id=20, name="news"),
            status=DestinationConfig.STATUS_PUBLISHED,
        )
    }
    return DestinationSet(published, [ALPHA, BETA])


def test_load_changes_reads_mapping(tmp_path: Path) -> None:
    path = tmp_path / "changes.json"
    path.write_text(json.dumps({"alpha": {"route": 10}}), encoding="utf-8")

    assert cli._load_changes(path) == {"alpha": {"route": 10}}


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"alpha": 3}'])
def test_load_changes_rejects_bad_input(tmp_path: Path, content: str) -> None:
    path = tmp_path / "changes.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli._load_changes(path)
    assert excinfo.value.code == 2


def test_apply_changes_adds_new_destination() -> None:
    destinations = _destinations()

    cli._apply_changes(
        destinations,
        {"alpha": {"route": 10, "isPublishedFbia": True, "contentLists": [{"id": 3, "position": 1}]}},
        _sites(),
    )

    alpha = destinations.draft["alpha"]
    assert list(destinations.draft) == ["alpha", "beta"]
    assert alpha.route == RouteRef(id=10, name="Alpha/news")
    assert alpha.is_published_fbia is True
    assert alpha.content_lists == [ContentListRef(id=3, position=1)]
    assert destinations.available_sites == ()


def test_apply_changes_keeps_existing_route_when_id_matches() -> None:
    destinations = _destinations()

    cli._apply_changes(destinations, {"beta": {"route": 20, "paywallSecured": True}}, _sites())

    assert destinations.draft["beta"].route == RouteRef(id=20, name="news")
    assert destinations.changed_tenants() == ["beta"]


def test_apply_changes_rejects_clearing_published_route() -> None:
    destinations = _destinations()

    with pytest.raises(InvalidStateError):
        cli._apply_changes(destinations, {"beta": {"route": None}}, _sites())


def test_resolve_route_falls_back_to_bare_id() -> None:
    assert cli._resolve_route("beta", 20, _sites()) == RouteRef(id=20, name="Beta/news")
    assert cli._resolve_route("beta", 99, _sites()) == RouteRef(id=99)
    assert cli._resolve_route("beta", None, _sites()) is None


def test_main_without_command_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().err


def test_status_lines_describe_published_destinations() -> None:
    session = SessionController(backend=None, channel=None)
    session.sites = _sites()
    session.routes = [route for site in session.sites for route in site.routes]
    published = {
        "beta": DestinationConfig(
            tenant=BETA,
            route=RouteRef(id=20, name="news"),
            status=DestinationConfig.STATUS_PUBLISHED,
            content_lists=[ContentListRef(id=3, position=0)],
            live_url="http://beta.test/news/story",
        )
    }
    destinations = DestinationSet(published, [ALPHA, BETA])

    lines = cli._status_lines(session, destinations, "42", "tok")

    assert lines == [
        {
            "tenant": "beta",
            "status": "published",
            "route": "news",
            "liveUrl": "http://beta.test/news/story",
            "preview": {
                "regular": "//beta.test/preview/package/20/42?auth_token=tok",
                "amp": "//beta.test/preview/package/20/42?auth_token=tok&amp",
            },
            "contentLists": ["Top"],
        }
    ]
