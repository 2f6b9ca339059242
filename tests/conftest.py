# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- In-memory implementations of every repository ABC
- Factories for raw events, sessions and business profiles
"""

from datetime import datetime, timedelta, timezone

import pytest

from sitepulse.base.repositories import (
    BusinessRepository,
    EventRepository,
    PatternRepository,
    PeerGroupRepository,
    SessionRepository,
)
from sitepulse.core.models import BusinessProfile, EventType, RawEvent, Session

BASE_TIME = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
BASE_TS = int(BASE_TIME.timestamp() * 1000)


# ==============================================================================
# Factories
# ==============================================================================


def make_event(
    session_id: str,
    event_type: EventType | str = EventType.PAGEVIEW,
    offset_ms: int = 0,
    site_id: str = "site-1",
    **data,
) -> RawEvent:
    """A raw event offset_ms after BASE_TIME with created_at equal to its event time."""
    timestamp = BASE_TS + offset_ms
    return RawEvent(
        site_id=site_id,
        session_id=session_id,
        event_type=event_type,
        timestamp=timestamp,
        data=data,
        created_at=BASE_TIME + timedelta(milliseconds=offset_ms),
    )


def make_session(
    session_id: str,
    journey_path: list[str] | None = None,
    duration_seconds: int | None = 60,
    converted: bool = False,
    site_id: str = "site-1",
    created_at: datetime = BASE_TIME,
) -> Session:
    """A session whose derived fields agree with its journey path."""
    path = list(journey_path or [])
    return Session(
        site_id=site_id,
        session_id=session_id,
        entry_page=path[0] if path else "",
        exit_page=path[-1] if path else None,
        duration_seconds=duration_seconds,
        page_count=len(path),
        bounced=len(path) == 1,
        converted=converted,
        journey_path=path,
        created_at=created_at,
    )


def make_business(
    business_id: str,
    industry: str = "fashion",
    revenue_range: str = "$1M-5M",
    product_types: list[str] | None = None,
    platform: str = "shopify",
    site_id: str | None = None,
    peer_group_id: str | None = None,
) -> BusinessProfile:
    return BusinessProfile(
        id=business_id,
        industry=industry,
        revenue_range=revenue_range,
        product_types=["clothing", "accessories"] if product_types is None else product_types,
        platform=platform,
        site_id=site_id,
        peer_group_id=peer_group_id,
    )


# ==============================================================================
# In-Memory Repositories
# ==============================================================================


class InMemoryEventRepository(EventRepository):
    def __init__(self, events=()):
        self.events = list(events)

    def connect(self):
        pass

    def close(self):
        pass

    def _in_window(self, event, start, end):
        created = event.created_at or event.event_time
        return start <= created < end

    def get_events(self, start, end, site_id=None):
        return [
            e
            for e in self.events
            if self._in_window(e, start, end) and (site_id is None or e.site_id == site_id)
        ]

    def get_form_events(self, site_id, start, end):
        return [
            e
            for e in self.get_events(start, end, site_id)
            if e.event_type == EventType.FORM
        ]

    def get_site_ids(self):
        return sorted({e.site_id for e in self.events})


class InMemorySessionRepository(SessionRepository):
    """Session store keyed by session_id.

    fail_bulk makes insert_new raise; session ids in fail_ids make upsert raise.
    """

    def __init__(self, sessions=(), fail_bulk=False, fail_ids=()):
        self.sessions = {s.session_id: s for s in sessions}
        self.fail_bulk = fail_bulk
        self.fail_ids = set(fail_ids)
        self.rollbacks = 0

    def connect(self):
        pass

    def close(self):
        pass

    def rollback(self):
        self.rollbacks += 1

    def insert_new(self, sessions):
        if self.fail_bulk:
            raise RuntimeError("bulk insert failed")
        created = 0
        for session in sessions:
            if session.session_id not in self.sessions:
                self.sessions[session.session_id] = session
                created += 1
        return created

    def upsert(self, session):
        if session.session_id in self.fail_ids:
            raise ValueError("constraint violation")
        self.sessions[session.session_id] = session

    def get_sessions(self, site_id, start=None, end=None, limit=None):
        selected = [
            s
            for s in self.sessions.values()
            if s.site_id == site_id
            and (start is None or s.created_at >= start)
            and (end is None or s.created_at < end)
        ]
        selected.sort(key=lambda s: s.created_at, reverse=True)
        return selected[:limit] if limit is not None else selected

    def get_latest_created_at(self):
        return max((s.created_at for s in self.sessions.values()), default=None)


class InMemoryPatternRepository(PatternRepository):
    def __init__(self, fail_bulk=False):
        self.patterns = []
        self.fail_bulk = fail_bulk
        self.rollbacks = 0

    def connect(self):
        pass

    def close(self):
        pass

    def rollback(self):
        self.rollbacks += 1

    def insert_many(self, patterns):
        if self.fail_bulk:
            raise RuntimeError("bulk insert failed")
        self.patterns.extend(patterns)
        return len(patterns)

    def create(self, pattern):
        self.patterns.append(pattern)

    def get_patterns(self, site_id, limit=None):
        selected = [p for p in reversed(self.patterns) if p.site_id == site_id]
        return selected[:limit] if limit is not None else selected


class InMemoryBusinessRepository(BusinessRepository):
    """Business store; business ids in fail_ids make set_peer_group raise."""

    def __init__(self, businesses=(), fail_ids=()):
        self.businesses = {b.id: b for b in businesses}
        self.fail_ids = set(fail_ids)

    def connect(self):
        pass

    def close(self):
        pass

    def get_business(self, business_id):
        return self.businesses.get(business_id)

    def get_businesses_by_industry(self, industry):
        return [b for b in self.businesses.values() if b.industry == industry]

    def get_businesses_without_peer_group(self):
        return [b for b in self.businesses.values() if b.peer_group_id is None]

    def set_peer_group(self, business_id, peer_group_id):
        if business_id in self.fail_ids:
            raise RuntimeError("update failed")
        business = self.businesses[business_id]
        self.businesses[business_id] = business.model_copy(
            update={"peer_group_id": peer_group_id}
        )


class InMemoryPeerGroupRepository(PeerGroupRepository):
    def __init__(self):
        self.groups = {}

    def connect(self):
        pass

    def close(self):
        pass

    def create(self, peer_group):
        self.groups[peer_group.id] = peer_group

    def get_peer_group(self, peer_group_id):
        return self.groups.get(peer_group_id)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture()
def session_repo():
    return InMemorySessionRepository()


@pytest.fixture()
def pattern_repo():
    return InMemoryPatternRepository()


@pytest.fixture()
def peer_group_repo():
    return InMemoryPeerGroupRepository()
