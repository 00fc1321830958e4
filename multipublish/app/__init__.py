"""Application layer: session orchestration and CLI."""

from .session import SessionController, SessionHooks, Site

__all__ = ["SessionController", "SessionHooks", "Site"]
