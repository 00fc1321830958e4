"""Platform integration package."""

from __future__ import annotations

from .base import PublisherBackend

__all__ = ["PublisherBackend"]
