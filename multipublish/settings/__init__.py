"""Settings package exports."""

from .loader import (
    AppConfig,
    AuthSettings,
    LoggingSettings,
    PublisherSettings,
    WebsocketSettings,
    load_config,
    project_path,
)

__all__ = [
    "AppConfig",
    "AuthSettings",
    "LoggingSettings",
    "PublisherSettings",
    "WebsocketSettings",
    "load_config",
    "project_path",
]
