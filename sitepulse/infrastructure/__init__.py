# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations of the base/ repository ports:
- repositories/ - Database adapters (PostgreSQL)
"""

from sitepulse.infrastructure.repositories import (
    PostgreSQLBusinessRepository,
    PostgreSQLEventRepository,
    PostgreSQLPatternRepository,
    PostgreSQLPeerGroupRepository,
    PostgreSQLSessionRepository,
    check_postgresql_connection,
)

__all__ = [
    "PostgreSQLBusinessRepository",
    "PostgreSQLEventRepository",
    "PostgreSQLPatternRepository",
    "PostgreSQLPeerGroupRepository",
    "PostgreSQLSessionRepository",
    "check_postgresql_connection",
]
