"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from pizza_service.core.config import (
    get_settings,
    setup_logging,
    Settings,
    EnvironmentMode,
    DaoBackend,
)
from pizza_service.core.exceptions import StatusCodeError

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "DaoBackend",
    "StatusCodeError",
]
