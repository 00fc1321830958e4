"""Resolution of the publisher API token."""

from __future__ import annotations

from abc import ABC, abstractmethod
from configparser import ConfigParser
from os import environ
from pathlib import Path
from typing import Iterable, Mapping

from ..settings import AuthSettings


class TokenNotFoundError(KeyError):
    """Raised when no provider can supply a token."""


class TokenProvider(ABC):
    """Supplies the token used for API calls and the push channel URL."""

    @abstractmethod
    def get_token(self) -> str:
        """Return the current token or raise :class:`TokenNotFoundError`."""


class StaticTokenProvider(TokenProvider):
    def __init__(self, token: str) -> None:
        self._token = token

    def get_token(self) -> str:
        if not self._token:
            raise TokenNotFoundError("static token is empty")
        return self._token


class EnvTokenProvider(TokenProvider):
    """Reads the token from an environment variable."""

    def __init__(self, key: str = "PUBLISHER_TOKEN", env: Mapping[str, str] | None = None) -> None:
        self._key = key
        self._env = env if env is not None else environ

    def get_token(self) -> str:
        value = self._env.get(self._key, "").strip()
        if not value:
            raise TokenNotFoundError(self._key)
        return value


class FileTokenProvider(TokenProvider):
    """Reads ``[publisher] token`` from an INI file."""

    def __init__(self, path: Path, *, section: str = "publisher", option: str = "token") -> None:
        self._path = path
        self._section = section
        self._option = option

    def get_token(self) -> str:
        parser = ConfigParser()
        if self._path.exists():
            parser.read(self._path, encoding="utf-8")
        if parser.has_option(self._section, self._option):
            value = parser.get(self._section, self._option).strip()
            if value:
                return value
        raise TokenNotFoundError(f"{self._path}:{self._section}.{self._option}")


class ChainedTokenProvider(TokenProvider):
    """Tries providers in order until one yields a token."""

    def __init__(self, providers: Iterable[TokenProvider]) -> None:
        self._providers = tuple(providers)

    def get_token(self) -> str:
        missing: list[str] = []
        for provider in self._providers:
            try:
                return provider.get_token()
            except TokenNotFoundError as exc:
                missing.append(str(exc.args[0]) if exc.args else type(provider).__name__)
        raise TokenNotFoundError(", ".join(missing) or "no token providers configured")


def provider_from_settings(settings: AuthSettings) -> TokenProvider:
    providers: list[TokenProvider] = [EnvTokenProvider(settings.token_env)]
    if settings.token_file is not None:
        providers.append(FileTokenProvider(settings.token_file))
    return ChainedTokenProvider(providers)


__all__ = [
    "ChainedTokenProvider",
    "EnvTokenProvider",
    "FileTokenProvider",
    "StaticTokenProvider",
    "TokenNotFoundError",
    "TokenProvider",
    "provider_from_settings",
]
