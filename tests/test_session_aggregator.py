# ==============================================================================
# Tests for SessionAggregator
# ==============================================================================
"""
Unit tests for the pure session aggregation logic.

Tests cover:
- Grouping by session_id and re-ordering by timestamp
- Journey extraction (url / page fallback, non-pageviews ignored)
- Duration, bounce and conversion derivation
- Sessions without pageviews
- Bounded batching
"""

import pytest

from conftest import BASE_TIME, make_event
from sitepulse.core.models import EventType, RawEvent, Session
from sitepulse.core.session_aggregator import SessionAggregator


# ==============================================================================
# Grouping and ordering
# ==============================================================================


class TestGroupEvents:
    """Tests for SessionAggregator.group_events()."""

    def test_partitions_by_session_id(self):
        events = [
            make_event("a", offset_ms=0, url="/"),
            make_event("b", offset_ms=10, url="/"),
            make_event("a", offset_ms=20, url="/shop"),
        ]
        groups = SessionAggregator.group_events(events)
        assert set(groups) == {"a", "b"}
        assert len(groups["a"]) == 2
        assert len(groups["b"]) == 1

    def test_sorts_each_group_by_timestamp(self):
        """Source order is not trusted."""
        events = [
            make_event("a", offset_ms=3000, url="/cart"),
            make_event("a", offset_ms=1000, url="/"),
            make_event("a", offset_ms=2000, url="/product/1"),
        ]
        groups = SessionAggregator.group_events(events)
        assert [e.timestamp for e in groups["a"]] == sorted(e.timestamp for e in events)


# ==============================================================================
# Journey extraction
# ==============================================================================


class TestExtractJourney:
    """Tests for SessionAggregator.extract_journey()."""

    def test_reads_url_then_page(self):
        events = [
            make_event("a", offset_ms=0, url="/"),
            make_event("a", offset_ms=1, page="/shop"),
        ]
        journey = SessionAggregator.extract_journey(events)
        assert journey.pages == ["/", "/shop"]
        assert journey.entry_page == "/"
        assert journey.exit_page == "/shop"

    def test_ignores_non_pageview_events(self):
        events = [
            make_event("a", offset_ms=0, url="/"),
            make_event("a", EventType.CLICK, offset_ms=1, selector="#buy"),
            make_event("a", EventType.FORM, offset_ms=2, fieldName="email", eventType="focus"),
        ]
        assert SessionAggregator.extract_journey(events).pages == ["/"]

    def test_drops_pageviews_without_url(self):
        events = [
            make_event("a", offset_ms=0),
            make_event("a", offset_ms=1, url=""),
            make_event("a", offset_ms=2, url="/cart"),
        ]
        assert SessionAggregator.extract_journey(events).pages == ["/cart"]

    def test_keeps_duplicates(self):
        events = [
            make_event("a", offset_ms=0, url="/"),
            make_event("a", offset_ms=1, url="/shop"),
            make_event("a", offset_ms=2, url="/"),
        ]
        assert SessionAggregator.extract_journey(events).pages == ["/", "/shop", "/"]

    def test_empty_journey(self):
        journey = SessionAggregator.extract_journey([make_event("a", EventType.CLICK)])
        assert journey.pages == []
        assert journey.entry_page == ""
        assert journey.exit_page is None


# ==============================================================================
# Metadata
# ==============================================================================


class TestCalculateDuration:
    """Tests for SessionAggregator.calculate_duration()."""

    def test_rounds_to_whole_seconds(self):
        assert SessionAggregator.calculate_duration(0, 61_400) == 61
        assert SessionAggregator.calculate_duration(0, 61_600) == 62

    def test_equal_timestamps_give_none(self):
        assert SessionAggregator.calculate_duration(5_000, 5_000) is None


class TestBuildSession:
    """Tests for SessionAggregator.build_session()."""

    def test_derives_all_fields(self):
        events = [
            make_event("a", offset_ms=30_000, url="/cart"),
            make_event("a", offset_ms=0, url="/"),
            make_event("a", EventType.CONVERSION, offset_ms=45_000, orderId="o-1"),
            make_event("a", offset_ms=10_000, url="/product/7"),
        ]
        session = SessionAggregator().build_session(events)

        assert session.session_id == "a"
        assert session.site_id == "site-1"
        assert session.journey_path == ["/", "/product/7", "/cart"]
        assert session.entry_page == "/"
        assert session.exit_page == "/cart"
        assert session.page_count == 3
        assert session.duration_seconds == 45
        assert session.bounced is False
        assert session.converted is True
        assert session.created_at == BASE_TIME

    def test_single_pageview_is_bounce(self):
        session = SessionAggregator().build_session([make_event("a", url="/")])
        assert session.page_count == 1
        assert session.bounced is True
        assert session.duration_seconds is None

    def test_session_without_pageviews_is_materialized(self):
        events = [
            make_event("a", EventType.FORM, offset_ms=0, fieldName="email", eventType="focus"),
            make_event("a", EventType.CLICK, offset_ms=2_000),
        ]
        session = SessionAggregator().build_session(events)
        assert session.page_count == 0
        assert session.entry_page == ""
        assert session.exit_page is None
        assert session.journey_path == []
        assert session.bounced is False
        assert session.duration_seconds == 2

    def test_created_at_falls_back_to_event_time(self):
        event = RawEvent(
            site_id="site-1",
            session_id="a",
            event_type=EventType.PAGEVIEW,
            timestamp=1_700_000_000_000,
            data={"url": "/"},
        )
        session = SessionAggregator().build_session([event])
        assert session.created_at == event.event_time

    def test_zero_events_rejected(self):
        with pytest.raises(ValueError):
            SessionAggregator().build_session([])


class TestBounceInvariant:
    """bounced is True exactly when page_count == 1."""

    @pytest.mark.parametrize("pages", [0, 1, 2, 5])
    def test_aggregated_sessions(self, pages):
        events = [make_event("a", offset_ms=i * 1000, url=f"/p{i}") for i in range(pages)]
        events.append(make_event("a", EventType.SCROLL, offset_ms=9_000, depth=50))
        session = SessionAggregator().build_session(events)
        assert session.bounced == (session.page_count == 1)

    def test_model_rejects_inconsistent_bounce(self):
        with pytest.raises(ValueError):
            Session(
                site_id="site-1",
                session_id="a",
                page_count=2,
                bounced=True,
                created_at=BASE_TIME,
            )


# ==============================================================================
# Batching
# ==============================================================================


class TestAggregate:
    """Tests for SessionAggregator.aggregate() / aggregate_all()."""

    def test_yields_bounded_batches(self):
        events = [make_event(f"s{i}", offset_ms=i, url="/") for i in range(7)]
        batches = list(SessionAggregator(batch_size=3).aggregate(events))
        assert [len(b) for b in batches] == [3, 3, 1]

    def test_aggregate_all_is_deterministic(self):
        """Aggregating the same events twice gives identical sessions."""
        events = [
            make_event("a", offset_ms=2_000, url="/cart"),
            make_event("b", offset_ms=0, url="/"),
            make_event("a", offset_ms=0, url="/"),
        ]
        aggregator = SessionAggregator()
        first = {s.session_id: s for s in aggregator.aggregate_all(events)}
        second = {s.session_id: s for s in aggregator.aggregate_all(reversed(events))}
        assert first == second

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            SessionAggregator(batch_size=0)


# ==============================================================================
# Ingestion contract
# ==============================================================================


class TestFromTrackingPayload:
    """Tests for RawEvent.from_tracking_payload()."""

    def test_parses_nested_event(self):
        event = RawEvent.from_tracking_payload(
            {
                "siteId": "site-9",
                "sessionId": "sess-1",
                "event": {"type": "pageview", "timestamp": 1_700_000_000_000, "data": {"page": "/"}},
            }
        )
        assert event.site_id == "site-9"
        assert event.event_type == EventType.PAGEVIEW
        assert event.payload().resolved_url == "/"

    def test_missing_data_is_empty(self):
        event = RawEvent.from_tracking_payload(
            {"siteId": "s", "sessionId": "x", "event": {"type": "click", "timestamp": 1}}
        )
        assert event.data == {}
