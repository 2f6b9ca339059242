# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the storage contracts for the ports-and-adapters
architecture.

Jobs depend only on these ports; infrastructure/ provides the PostgreSQL
adapters and tests provide in-memory ones.
"""

from sitepulse.base.repositories import (
    BusinessRepository,
    EventRepository,
    PatternRepository,
    PeerGroupRepository,
    Repository,
    SessionRepository,
    WriteResult,
    write_with_fallback,
)

__all__ = [
    "BusinessRepository",
    "EventRepository",
    "PatternRepository",
    "PeerGroupRepository",
    "Repository",
    "SessionRepository",
    "WriteResult",
    "write_with_fallback",
]
