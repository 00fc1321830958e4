"""Helpers for loading client configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_NAME = "config.toml"
CONFIG_ENV_VAR = "MULTIPUBLISH_CONFIG"


@dataclass(slots=True)
class PublisherSettings:
    api_url: str
    api_path: str = "/api/v2"
    timeout: float = 10.0
    live_url_scheme: str = "http"

    @property
    def base_url(self) -> str:
        return f"{self.api_url.rstrip('/')}{self.api_path}"


@dataclass(slots=True)
class WebsocketSettings:
    domain: str
    protocol: str = "wss"
    port: int | None = None
    path: str = ""
    reconnect_delay: float = 5.0


@dataclass(slots=True)
class AuthSettings:
    token_env: str = "PUBLISHER_TOKEN"
    token_file: Path | None = None


@dataclass(slots=True)
class LoggingSettings:
    level: int = logging.INFO
    structured: bool = True


@dataclass(slots=True)
class AppConfig:
    publisher: PublisherSettings
    websocket: WebsocketSettings
    auth: AuthSettings
    logging: LoggingSettings


def _to_path(value: str | None) -> Path | None:
    if not value:
        return None
    candidate = Path(value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _config_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    candidate: Path
    if explicit:
        candidate = Path(explicit)
    else:
        env_value = os.environ.get(CONFIG_ENV_VAR)
        candidate = Path(env_value) if env_value else PROJECT_ROOT / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _load_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("rb") as fp:
        return tomllib.load(fp)


def _parse_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def _optional_port(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def load_config(config_path: str | os.PathLike[str] | None = None) -> AppConfig:
    path = _config_path(config_path)
    data = _load_toml(path)

    publisher_section = data.get("publisher", {})
    websocket_section = data.get("websocket", {})
    auth_section = data.get("auth", {})
    logging_section = data.get("logging", {})

    api_url = publisher_section.get("api_url")
    if not api_url:
        raise ValueError(f"[publisher] api_url is required in {path}")

    publisher = PublisherSettings(
        api_url=str(api_url),
        api_path=str(publisher_section.get("api_path", "/api/v2")),
        timeout=float(publisher_section.get("timeout", 10)),
        live_url_scheme=str(publisher_section.get("live_url_scheme", "http")),
    )

    websocket = WebsocketSettings(
        domain=str(websocket_section.get("domain") or _host_of(publisher.api_url)),
        protocol=str(websocket_section.get("protocol") or "wss"),
        port=_optional_port(websocket_section.get("port")),
        path=str(websocket_section.get("path", "")),
        reconnect_delay=float(websocket_section.get("reconnect_delay", 5)),
    )

    auth = AuthSettings(
        token_env=str(auth_section.get("token_env", "PUBLISHER_TOKEN")),
        token_file=_to_path(auth_section.get("token_file")),
    )

    logging_settings = LoggingSettings(
        level=_parse_level(logging_section.get("level", "INFO")),
        structured=bool(logging_section.get("structured", True)),
    )

    return AppConfig(
        publisher=publisher,
        websocket=websocket,
        auth=auth,
        logging=logging_settings,
    )


def _host_of(url: str) -> str:
    _, _, rest = url.partition("://")
    return (rest or url).split("/", 1)[0]


def project_path(*parts: Any) -> Path:
    return PROJECT_ROOT.joinpath(*parts)
