"""Security utilities package."""

from __future__ import annotations

from .tokens import (
    ChainedTokenProvider,
    EnvTokenProvider,
    FileTokenProvider,
    StaticTokenProvider,
    TokenNotFoundError,
    TokenProvider,
    provider_from_settings,
)

__all__ = [
    "ChainedTokenProvider",
    "EnvTokenProvider",
    "FileTokenProvider",
    "StaticTokenProvider",
    "TokenNotFoundError",
    "TokenProvider",
    "provider_from_settings",
]
