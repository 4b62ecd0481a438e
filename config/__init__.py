# Configuration module for the fleet backend
from .settings import (
    ConfigurationError,
    Environment,
    Settings,
    StoreBackend,
    get_settings,
    validate_startup,
)

__all__ = [
    "ConfigurationError",
    "Environment",
    "Settings",
    "StoreBackend",
    "get_settings",
    "validate_startup",
]
