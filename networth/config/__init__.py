"""Configuration package."""

from networth.config.settings import (
    EngineSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "EngineSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
