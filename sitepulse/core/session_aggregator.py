# ==============================================================================
# Session Aggregator - Pure Domain Logic
# ==============================================================================
"""
Pure session aggregation logic with no external dependencies.

This module contains the domain logic for turning raw events into sessions:
- Grouping events by session_id
- Ordering each session's events by timestamp (source order is not trusted)
- Journey extraction from pageview events
- Session metadata (duration, page count, bounce, conversion)
- Bounded batching of session groups

Everything works on RawEvent / Session models - no database or framework
dependencies - so the logic can be unit tested without mocks and reused by
any job that supplies events.
"""

from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import NamedTuple

from sitepulse.core.models import EventType, PageviewData, RawEvent, Session

# Default number of sessions materialized per batch
DEFAULT_BATCH_SIZE = 1000


class Journey(NamedTuple):
    """Ordered pageview URLs of one session."""

    pages: list[str]
    entry_page: str
    exit_page: str | None


class SessionAggregator:
    """
    Pure session aggregation logic.

    Events belonging to the same session_id form one session regardless of
    the order they are read in; each group is sorted by timestamp before any
    field is derived from it.
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        """
        Initialize the aggregator.

        Args:
            batch_size: Maximum number of sessions built per batch. Bounds the
                        number of Session objects alive at once for large
                        windows.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size

    @staticmethod
    def group_events(events: Iterable[RawEvent]) -> dict[str, list[RawEvent]]:
        """
        Partition events by session_id and sort each partition by timestamp.

        The sort is stable, so events sharing a timestamp keep their read order.

        Args:
            events: Events in any order

        Returns:
            Dict mapping session_id to its time-ordered events
        """
        groups: dict[str, list[RawEvent]] = {}
        for event in events:
            groups.setdefault(event.session_id, []).append(event)
        for session_events in groups.values():
            session_events.sort(key=lambda e: e.timestamp)
        return groups

    @staticmethod
    def extract_journey(events: list[RawEvent]) -> Journey:
        """
        Extract the navigation path from a session's time-ordered events.

        Only pageview events count. The URL is read from data.url, falling
        back to data.page; events without a URL are dropped.
        """
        pages = []
        for event in events:
            if event.event_type != EventType.PAGEVIEW:
                continue
            payload = event.payload()
            url = payload.resolved_url if isinstance(payload, PageviewData) else ""
            if url:
                pages.append(url)

        if not pages:
            return Journey(pages=[], entry_page="", exit_page=None)
        return Journey(pages=pages, entry_page=pages[0], exit_page=pages[-1])

    @staticmethod
    def calculate_duration(first_timestamp: int, last_timestamp: int) -> int | None:
        """
        Session duration in whole seconds.

        Returns:
            round((last - first) / 1000), or None when both timestamps are equal
        """
        duration_ms = last_timestamp - first_timestamp
        if duration_ms == 0:
            return None
        return round(duration_ms / 1000)

    @staticmethod
    def has_conversion(events: list[RawEvent]) -> bool:
        """True if any event in the session is a conversion."""
        return any(e.event_type == EventType.CONVERSION for e in events)

    def build_session(self, events: list[RawEvent]) -> Session:
        """
        Build a Session from one session's events.

        Events are re-sorted here as well, so callers may pass an unsorted
        group. Sessions without pageviews are still materialized with an
        empty journey so bounce and conversion analytics stay consistent.

        Args:
            events: All events of a single session (at least one)

        Returns:
            The derived Session
        """
        if not events:
            raise ValueError("Cannot build a session from zero events")

        ordered = sorted(events, key=lambda e: e.timestamp)
        first, last = ordered[0], ordered[-1]
        journey = self.extract_journey(ordered)
        page_count = len(journey.pages)

        return Session(
            site_id=first.site_id,
            session_id=first.session_id,
            entry_page=journey.entry_page,
            exit_page=journey.exit_page,
            duration_seconds=self.calculate_duration(first.timestamp, last.timestamp),
            page_count=page_count,
            bounced=page_count == 1,
            converted=self.has_conversion(ordered),
            journey_path=journey.pages,
            created_at=self._session_created_at(first),
        )

    def aggregate(self, events: Iterable[RawEvent]) -> Iterator[list[Session]]:
        """
        Aggregate events into sessions, yielding bounded batches.

        Args:
            events: Events of any number of sessions, in any order

        Yields:
            Lists of at most batch_size sessions
        """
        groups = self.group_events(events)
        session_ids = list(groups)
        for i in range(0, len(session_ids), self.batch_size):
            batch_ids = session_ids[i : i + self.batch_size]
            yield [self.build_session(groups.pop(session_id)) for session_id in batch_ids]

    def aggregate_all(self, events: Iterable[RawEvent]) -> list[Session]:
        """Aggregate events into a flat list of sessions."""
        return [session for batch in self.aggregate(events) for session in batch]

    @staticmethod
    def _session_created_at(first_event: RawEvent) -> datetime:
        return first_event.created_at or first_event.event_time
