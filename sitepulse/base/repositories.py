# ==============================================================================
# Repository Abstract Base Classes
# ==============================================================================
"""
Repository ABCs for data persistence.

These define the "what" (read events, save sessions) not the "how" (SQL).
Concrete implementations in infrastructure/ handle the specifics.

Includes:
- EventRepository: Raw interaction events (read-only)
- SessionRepository: Aggregated sessions (insert-or-skip by session_id)
- PatternRepository: Detected patterns (append-only)
- BusinessRepository: Business profiles (peer_group_id is the only write)
- PeerGroupRepository: Peer group snapshots

Session and pattern writes share one discipline: a bulk write first, and if
it raises, a rollback followed by record-by-record writes that collect one
error message per failed record. Callers always get a WriteResult back.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from sitepulse.core.models import BusinessProfile, Pattern, PeerGroup, RawEvent, Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class WriteResult:
    """Outcome of a bulk write: records written plus per-record failures."""

    created: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def merge(self, other: "WriteResult") -> None:
        self.created += other.created
        self.errors.extend(other.errors)


def write_with_fallback(
    records: Sequence[T],
    bulk: Callable[[Sequence[T]], int],
    single: Callable[[T], None],
    rollback: Callable[[], None],
    describe: Callable[[T], str],
) -> WriteResult:
    """
    Write records in bulk, falling back to one-at-a-time writes on failure.

    Args:
        records: Records to persist
        bulk: Writes all records, returns how many were newly created
        single: Writes one record (upsert or create)
        rollback: Discards the failed bulk attempt
        describe: Short label for a record in error messages

    Returns:
        WriteResult with the created count and one message per failed record
    """
    if not records:
        return WriteResult()

    try:
        return WriteResult(created=bulk(records))
    except Exception as e:
        logger.warning("Bulk write of %d records failed, retrying one by one: %s", len(records), e)
        rollback()

    result = WriteResult()
    for record in records:
        try:
            single(record)
            result.created += 1
        except Exception as e:
            rollback()
            result.errors.append(f"{describe(record)}: {e}")
    if result.errors:
        logger.warning("%d of %d records failed to write", len(result.errors), len(records))
    return result


class Repository(ABC):
    """Connection lifecycle shared by all repositories."""

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the data store."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        ...

    def rollback(self) -> None:
        """Discard the current transaction. No-op for stores without transactions."""


class EventRepository(Repository):
    """Repository for raw interaction events."""

    @abstractmethod
    def get_events(
        self, start: datetime, end: datetime, site_id: str | None = None
    ) -> list[RawEvent]:
        """
        Events created in [start, end).

        Args:
            start: Window start (inclusive)
            end: Window end (exclusive)
            site_id: Restrict to one site when given

        Returns:
            Events in no particular order
        """
        ...

    @abstractmethod
    def get_form_events(self, site_id: str, start: datetime, end: datetime) -> list[RawEvent]:
        """Form interaction events of one site created in [start, end)."""
        ...

    @abstractmethod
    def get_site_ids(self) -> list[str]:
        """All site ids that have events."""
        ...


class SessionRepository(Repository):
    """Repository for aggregated sessions."""

    def save(self, sessions: Sequence[Session]) -> WriteResult:
        """
        Persist sessions, skipping any whose session_id already exists.

        If the bulk insert fails, each session is upserted on its own.

        Returns:
            WriteResult with the number of sessions written and per-session errors
        """
        return write_with_fallback(
            sessions,
            bulk=self.insert_new,
            single=self.upsert,
            rollback=self.rollback,
            describe=lambda s: f"Session {s.session_id}",
        )

    @abstractmethod
    def insert_new(self, sessions: Sequence[Session]) -> int:
        """Bulk insert, skipping existing session_ids. Returns the number inserted."""
        ...

    @abstractmethod
    def upsert(self, session: Session) -> None:
        """Insert a session or overwrite the stored row with the same session_id."""
        ...

    @abstractmethod
    def get_sessions(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[Session]:
        """
        Stored sessions of a site, newest first.

        Args:
            site_id: Site identifier
            start: Only sessions created at or after this time
            end: Only sessions created before this time
            limit: Maximum number of sessions returned
        """
        ...

    @abstractmethod
    def get_latest_created_at(self) -> datetime | None:
        """created_at of the most recent stored session, None when empty."""
        ...


class PatternRepository(Repository):
    """Repository for detected patterns. Patterns are never updated."""

    def save(self, patterns: Sequence[Pattern]) -> WriteResult:
        """Append patterns, creating them one by one if the bulk insert fails."""
        return write_with_fallback(
            patterns,
            bulk=self.insert_many,
            single=self.create,
            rollback=self.rollback,
            describe=lambda p: f"{p.pattern_type.value} pattern for {p.site_id}",
        )

    @abstractmethod
    def insert_many(self, patterns: Sequence[Pattern]) -> int:
        ...

    @abstractmethod
    def create(self, pattern: Pattern) -> None:
        ...

    @abstractmethod
    def get_patterns(self, site_id: str, limit: int | None = None) -> list[Pattern]:
        """Stored patterns of a site, most recently detected first."""
        ...


class BusinessRepository(Repository):
    """Repository for business profiles."""

    @abstractmethod
    def get_business(self, business_id: str) -> BusinessProfile | None:
        ...

    @abstractmethod
    def get_businesses_by_industry(self, industry: str) -> list[BusinessProfile]:
        ...

    @abstractmethod
    def get_businesses_without_peer_group(self) -> list[BusinessProfile]:
        ...

    @abstractmethod
    def set_peer_group(self, business_id: str, peer_group_id: str) -> None:
        """Point a business at its current peer group."""
        ...


class PeerGroupRepository(Repository):
    """Repository for peer group snapshots."""

    @abstractmethod
    def create(self, peer_group: PeerGroup) -> None:
        ...

    @abstractmethod
    def get_peer_group(self, peer_group_id: str) -> PeerGroup | None:
        ...
