"""
Configuration module
"""
from tradecoach.config.settings import (
    settings,
    Settings,
    CoachConfig,
    CaptureConfig,
    ClaudeConfig,
    WebhookConfig,
    DatabaseConfig,
    LoggerConfig,
)

__all__ = [
    "settings",
    "Settings",
    "CoachConfig",
    "CaptureConfig",
    "ClaudeConfig",
    "WebhookConfig",
    "DatabaseConfig",
    "LoggerConfig",
]
