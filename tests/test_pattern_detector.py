# ==============================================================================
# Tests for PatternDetector
# ==============================================================================
"""
Unit tests for behavioral pattern detection.

Tests cover:
- Per-cohort significance gate (99 vs 100 sessions) for every pattern type
- Strict rate thresholds
- Metadata, severity and confidence of detected patterns
- Confidence buckets and severity clamping
"""

import pytest

from conftest import make_event, make_session
from sitepulse.core.models import EventType, PatternType
from sitepulse.core.pattern_detector import (
    PatternDetector,
    calculate_confidence_score,
    calculate_severity,
)

# ==============================================================================
# Helpers
# ==============================================================================


def _abandonment_sessions(total: int, continuing: int):
    """total sessions entering at "/", of which `continuing` reach a product page."""
    return [
        make_session(f"s{i}", ["/", "/product/1"] if i < continuing else ["/"])
        for i in range(total)
    ]


def _form_events(total: int, re_entering: int, field: str = "email"):
    """One focus per session, a second focus (after a blur) for the first re_entering."""
    events = []
    for i in range(total):
        sid = f"s{i}"
        events.append(make_event(sid, EventType.FORM, 0, fieldName=field, eventType="focus"))
        events.append(make_event(sid, EventType.FORM, 1000, fieldName=field, eventType="blur"))
        if i < re_entering:
            events.append(
                make_event(sid, EventType.FORM, 2000, fieldName=field, eventType="focus")
            )
    return events


def _engagement_sessions(landing: int, other: int = 100):
    """Short bounces on /landing and long bounces on /about."""
    sessions = [make_session(f"l{i}", ["/landing"], duration_seconds=10) for i in range(landing)]
    sessions += [make_session(f"a{i}", ["/about"], duration_seconds=100) for i in range(other)]
    return sessions


# ==============================================================================
# Scoring helpers
# ==============================================================================


class TestConfidence:
    """Tests for calculate_confidence_score()."""

    @pytest.mark.parametrize(
        "sample_size, expected",
        [(0, 0.0), (99, 0.0), (100, 0.6), (299, 0.6), (300, 0.8), (499, 0.8), (500, 1.0)],
    )
    def test_buckets(self, sample_size, expected):
        assert calculate_confidence_score(sample_size) == expected

    def test_monotonic(self):
        scores = [calculate_confidence_score(n) for n in range(0, 1000, 25)]
        assert scores == sorted(scores)


class TestSeverity:
    """Tests for calculate_severity()."""

    def test_weighted_rate_and_volume(self):
        assert calculate_severity(0.5, 50, 100) == pytest.approx(0.5)

    def test_clamped(self):
        assert calculate_severity(2.0, 100, 100) == 1.0
        assert calculate_severity(-1.0, 0, 100) == 0.0

    def test_zero_total(self):
        assert calculate_severity(0.4, 10, 0) == pytest.approx(0.28)


# ==============================================================================
# Abandonment
# ==============================================================================


class TestAbandonment:
    """Tests for PatternDetector.detect_abandonment()."""

    def test_below_significance_gate(self):
        """99 sessions at the stage: no pattern even with a 50% drop-off."""
        sessions = _abandonment_sessions(99, 49)
        assert PatternDetector().detect_abandonment("site-1", sessions) == []

    def test_at_significance_gate(self):
        sessions = _abandonment_sessions(100, 50)
        patterns = PatternDetector().detect_abandonment("site-1", sessions)

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_type == PatternType.ABANDONMENT
        assert pattern.metadata.stage == "Entry"
        assert pattern.metadata.next_stage == "Product"
        assert pattern.metadata.drop_off_rate == pytest.approx(50.0)
        assert pattern.metadata.affected_sessions == 50
        assert pattern.metadata.sample_size == 100
        assert pattern.session_count == 100
        assert pattern.confidence_score == 0.6
        assert pattern.severity == pytest.approx(0.5)
        assert pattern.description == "50.0% of users abandon at Entry (50 sessions)"

    def test_rate_at_threshold_not_flagged(self):
        """Exactly 30% drop-off does not exceed the threshold."""
        sessions = _abandonment_sessions(100, 70)
        assert PatternDetector().detect_abandonment("site-1", sessions) == []

    def test_deepest_stage_reached_is_flagged(self):
        """200 sessions stop at Product: a full drop-off before Cart."""
        sessions = [make_session(f"s{i}", ["/", "/product/1"]) for i in range(200)]
        patterns = PatternDetector().detect_abandonment("site-1", sessions)

        assert len(patterns) == 1
        metadata = patterns[0].metadata
        assert metadata.stage == "Product"
        assert metadata.next_stage == "Cart"
        assert metadata.drop_off_rate == pytest.approx(100.0)
        assert metadata.affected_sessions == 200
        assert patterns[0].severity == pytest.approx(1.0)
        assert patterns[0].description == "100.0% of users abandon at Product (200 sessions)"

    def test_url_in_two_stages_counts_for_both(self):
        """/checkout/success reaches Confirmation, so Checkout shows no drop-off."""
        sessions = [make_session(f"s{i}", ["/", "/checkout/success"]) for i in range(150)]
        patterns = PatternDetector().detect_abandonment("site-1", sessions)
        assert patterns == []

    def test_custom_threshold(self):
        sessions = _abandonment_sessions(100, 70)
        detector = PatternDetector(abandonment_rate=25.0)
        assert len(detector.detect_abandonment("site-1", sessions)) == 1

    def test_metadata_serializes_camel_case(self):
        pattern = PatternDetector().detect_abandonment(
            "site-1", _abandonment_sessions(100, 50)
        )[0]
        assert set(pattern.metadata.to_json()) == {
            "stage",
            "nextStage",
            "dropOffRate",
            "affectedSessions",
            "sampleSize",
        }


# ==============================================================================
# Hesitation
# ==============================================================================


class TestHesitation:
    """Tests for PatternDetector.detect_hesitation()."""

    def test_count_focuses(self):
        events = _form_events(3, 1)
        events.append(make_event("s9", EventType.FORM, 0, fieldName="email", eventType="change"))
        counts = PatternDetector.count_focuses(events)
        assert counts == {"email": {"s0": 2, "s1": 1, "s2": 1, "s9": 0}}

    def test_count_focuses_ignores_events_without_field(self):
        events = [
            make_event("s0", EventType.FORM, 0, eventType="focus"),
            make_event("s0", EventType.CLICK, 0, fieldName="email"),
        ]
        assert PatternDetector.count_focuses(events) == {}

    def test_below_significance_gate(self):
        assert PatternDetector().detect_hesitation("site-1", _form_events(99, 30)) == []

    def test_at_significance_gate(self):
        patterns = PatternDetector().detect_hesitation("site-1", _form_events(100, 25))

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_type == PatternType.HESITATION
        assert pattern.metadata.field == "email"
        assert pattern.metadata.re_entry_rate == pytest.approx(25.0)
        assert pattern.metadata.avg_re_entries == pytest.approx(1.0)
        assert pattern.metadata.affected_sessions == 25
        assert pattern.session_count == 100
        assert pattern.severity == pytest.approx(0.25)
        assert '"email" field' in pattern.description

    def test_rate_at_threshold_not_flagged(self):
        assert PatternDetector().detect_hesitation("site-1", _form_events(100, 20)) == []

    def test_fields_are_separate_cohorts(self):
        events = _form_events(100, 50, field="email") + _form_events(50, 50, field="phone")
        patterns = PatternDetector().detect_hesitation("site-1", events)
        assert [p.metadata.field for p in patterns] == ["email"]


# ==============================================================================
# Low engagement
# ==============================================================================


class TestLowEngagement:
    """Tests for PatternDetector.detect_low_engagement()."""

    def test_page_times_skip_sessions_without_duration(self):
        sessions = [
            make_session("s1", ["/a", "/b"], duration_seconds=20),
            make_session("s2", ["/a"], duration_seconds=None),
            make_session("s3", [], duration_seconds=30),
        ]
        pages = PatternDetector.page_times(sessions)
        assert set(pages) == {"/a", "/b"}
        assert pages["/a"].total_time == pytest.approx(10.0)
        assert pages["/a"].pageviews == 1

    def test_below_significance_gate(self):
        assert PatternDetector().detect_low_engagement("site-1", _engagement_sessions(99)) == []

    def test_at_significance_gate(self):
        patterns = PatternDetector().detect_low_engagement("site-1", _engagement_sessions(100))

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_type == PatternType.LOW_ENGAGEMENT
        assert pattern.metadata.page == "/landing"
        assert pattern.metadata.time_on_page == pytest.approx(10.0)
        assert pattern.metadata.site_average == pytest.approx(55.0)
        assert pattern.metadata.engagement_gap == pytest.approx(81.82)
        assert pattern.session_count == 100
        assert pattern.description.startswith("/landing has 81.82% lower time-on-page")

    def test_page_at_ratio_not_flagged(self):
        """/landing at exactly 70% of the site average is not below it."""
        sessions = [make_session(f"l{i}", ["/landing"], duration_seconds=7) for i in range(100)]
        sessions += [make_session(f"a{i}", ["/about"], duration_seconds=13) for i in range(100)]
        assert PatternDetector().detect_low_engagement("site-1", sessions) == []

    def test_page_just_below_ratio_flagged(self):
        sessions = [make_session(f"l{i}", ["/landing"], duration_seconds=6) for i in range(100)]
        sessions += [make_session(f"a{i}", ["/about"], duration_seconds=13) for i in range(100)]
        patterns = PatternDetector().detect_low_engagement("site-1", sessions)
        assert [p.metadata.page for p in patterns] == ["/landing"]

    def test_no_durations(self):
        sessions = [make_session(f"s{i}", ["/"], duration_seconds=None) for i in range(200)]
        assert PatternDetector().detect_low_engagement("site-1", sessions) == []


# ==============================================================================
# Full run
# ==============================================================================


class TestDetect:
    """Tests for PatternDetector.detect()."""

    def test_small_window_yields_nothing(self):
        sessions = _abandonment_sessions(50, 10)
        assert PatternDetector().detect("site-1", sessions, _form_events(50, 40)) == []

    def test_patterns_in_type_order(self):
        patterns = PatternDetector().detect(
            "site-1", _engagement_sessions(100), _form_events(100, 40)
        )
        # every session stops at Entry, so Entry also shows a full drop-off
        assert [p.pattern_type for p in patterns] == [
            PatternType.ABANDONMENT,
            PatternType.HESITATION,
            PatternType.LOW_ENGAGEMENT,
        ]
        assert all(p.site_id == "site-1" for p in patterns)
        assert all(p.session_count >= 100 for p in patterns)
        assert all(0.0 <= p.severity <= 1.0 for p in patterns)
