"""Core app configuration, database and error kinds."""

from app.core.config import get_settings, settings
from app.core.database import get_db
from app.core.errors import (
    InvalidFieldValue,
    ReconciliationError,
    TrackerCallError,
    TrackerConfigurationError,
    TrackerNotConfiguredError,
)

__all__ = [
    "InvalidFieldValue",
    "ReconciliationError",
    "TrackerCallError",
    "TrackerConfigurationError",
    "TrackerNotConfiguredError",
    "get_db",
    "get_settings",
    "settings",
]
