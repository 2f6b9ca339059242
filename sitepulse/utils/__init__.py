# ==============================================================================
# sitepulse Utilities
# ==============================================================================
"""
Shared utilities: configuration, retry policies and schema management.
"""

from sitepulse.utils.config import (
    AggregationSettings,
    PatternSettings,
    PeerMatchingSettings,
    PostgresSettings,
    Settings,
    get_settings,
)
from sitepulse.utils.db import (
    ensure_schema,
    reset_schema,
)
from sitepulse.utils.retry import (
    POSTGRES_RETRY_EXCEPTIONS,
    retry_light,
    retry_standard,
)

__all__ = [
    # Config
    "AggregationSettings",
    "PatternSettings",
    "PeerMatchingSettings",
    "PostgresSettings",
    "Settings",
    "get_settings",
    # Database
    "ensure_schema",
    "reset_schema",
    # Retry
    "POSTGRES_RETRY_EXCEPTIONS",
    "retry_light",
    "retry_standard",
]
