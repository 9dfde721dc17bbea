"""Configuration module."""

from stockledger.config.logging import configure_logging, get_logger
from stockledger.config.settings import (
    Settings,
    business_today,
    get_settings,
    reset_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "business_today",
    "configure_logging",
    "get_logger",
]
