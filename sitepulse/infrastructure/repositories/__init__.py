# ==============================================================================
# Database Repository Adapters
# ==============================================================================
"""
Database adapters implementing the repository interfaces from base/repositories.py.

Currently supported:
- PostgreSQL (postgresql.py)
"""

from sitepulse.infrastructure.repositories.postgresql import (
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
