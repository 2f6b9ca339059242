# ==============================================================================
# Pattern Detector - Pure Domain Logic
# ==============================================================================
"""
Behavioral pattern detection over a window of sessions and form events.

Three detectors, each gated per cohort on a minimum sample size:
- ABANDONMENT: funnel stages whose drop-off to the next stage is too high
- HESITATION: form fields that visitors keep coming back to
- LOW_ENGAGEMENT: pages with time-on-page well below the site average

Cohorts under the minimum are skipped, so a small window yields an empty
pattern list rather than an error.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sitepulse.core.funnel import compute_funnel
from sitepulse.core.models import (
    AbandonmentMetadata,
    EventType,
    FormData,
    HesitationMetadata,
    LowEngagementMetadata,
    Pattern,
    PatternMetadata,
    PatternType,
    RawEvent,
    Session,
)
from sitepulse.core.templates import describe_pattern

logger = logging.getLogger(__name__)

# Default thresholds
MIN_SESSIONS = 100
ABANDONMENT_RATE = 30.0
HESITATION_RATE = 20.0
LOW_ENGAGEMENT_RATIO = 0.7

# (minimum cohort size, confidence), largest first
CONFIDENCE_LEVELS: tuple[tuple[int, float], ...] = (
    (500, 1.0),
    (300, 0.8),
    (100, 0.6),
)


def calculate_confidence_score(sample_size: int) -> float:
    """Bucketed confidence for a cohort size; 0.0 below the smallest bucket."""
    for minimum, score in CONFIDENCE_LEVELS:
        if sample_size >= minimum:
            return score
    return 0.0


def calculate_severity(rate: float, affected: int, total: int) -> float:
    """
    Severity in [0, 1] from a rate and the share of sessions affected.

    Args:
        rate: Pattern rate as a fraction (0.35 for 35%)
        affected: Sessions exhibiting the pattern
        total: Sessions analyzed
    """
    volume = affected / total if total > 0 else 0.0
    return max(0.0, min(1.0, rate * 0.7 + volume * 0.3))


@dataclass
class _FieldInteractions:
    sessions: int = 0
    re_entering: int = 0
    extra_focuses: int = 0


@dataclass
class _PageTime:
    total_time: float = 0.0
    pageviews: int = 0
    session_ids: set[str] = field(default_factory=set)


class PatternDetector:
    """
    Detects ABANDONMENT, HESITATION and LOW_ENGAGEMENT patterns for one site.

    Rates are percentages; a pattern is reported only when its rate is
    strictly past the threshold and its cohort has at least min_sessions
    sessions.
    """

    def __init__(
        self,
        min_sessions: int = MIN_SESSIONS,
        abandonment_rate: float = ABANDONMENT_RATE,
        hesitation_rate: float = HESITATION_RATE,
        low_engagement_ratio: float = LOW_ENGAGEMENT_RATIO,
    ):
        self.min_sessions = min_sessions
        self.abandonment_rate = abandonment_rate
        self.hesitation_rate = hesitation_rate
        self.low_engagement_ratio = low_engagement_ratio

    def detect(
        self,
        site_id: str,
        sessions: list[Session],
        form_events: Iterable[RawEvent] = (),
    ) -> list[Pattern]:
        """
        Run all detectors over one analysis window.

        Args:
            site_id: Site being analyzed
            sessions: Sessions in the window
            form_events: Form interaction events in the window

        Returns:
            Detected patterns, abandonment first, then hesitation, then low engagement
        """
        patterns = [
            *self.detect_abandonment(site_id, sessions),
            *self.detect_hesitation(site_id, form_events),
            *self.detect_low_engagement(site_id, sessions),
        ]
        logger.debug(
            "Site %s: %d patterns from %d sessions", site_id, len(patterns), len(sessions)
        )
        return patterns

    # ==========================================================================
    # Abandonment
    # ==========================================================================

    def detect_abandonment(self, site_id: str, sessions: list[Session]) -> list[Pattern]:
        """Flag funnel stages whose drop-off to the next stage is too high."""
        report = compute_funnel(site_id, sessions)
        patterns = []

        for stage in report.stages:
            if stage.drop_off_rate is None or stage.visitors < self.min_sessions:
                continue
            if stage.drop_off_rate <= self.abandonment_rate:
                continue

            metadata = AbandonmentMetadata(
                stage=stage.stage,
                next_stage=stage.next_stage,
                drop_off_rate=stage.drop_off_rate,
                affected_sessions=stage.drop_off_count,
                sample_size=stage.visitors,
            )
            patterns.append(
                self._pattern(
                    site_id,
                    PatternType.ABANDONMENT,
                    metadata,
                    severity=calculate_severity(
                        stage.drop_off_rate / 100, stage.drop_off_count, report.total_sessions
                    ),
                )
            )

        return patterns

    # ==========================================================================
    # Hesitation
    # ==========================================================================

    @staticmethod
    def count_focuses(form_events: Iterable[RawEvent]) -> dict[str, dict[str, int]]:
        """
        Focus count per field per session.

        Every field a session touches appears, with 0 when it never
        received focus.

        Returns:
            Dict mapping field name to {session_id: focus_count}
        """
        focuses: dict[str, dict[str, int]] = {}
        for event in form_events:
            if event.event_type != EventType.FORM:
                continue
            payload = event.payload()
            if not isinstance(payload, FormData) or not payload.field:
                continue
            per_session = focuses.setdefault(payload.field, {})
            per_session.setdefault(event.session_id, 0)
            if payload.is_focus:
                per_session[event.session_id] += 1
        return focuses

    def detect_hesitation(self, site_id: str, form_events: Iterable[RawEvent]) -> list[Pattern]:
        """Flag form fields that too many sessions focus more than once."""
        patterns = []

        for field_name, per_session in self.count_focuses(form_events).items():
            stats = _FieldInteractions(sessions=len(per_session))
            if stats.sessions < self.min_sessions:
                continue
            for focus_count in per_session.values():
                if focus_count > 1:
                    stats.re_entering += 1
                    stats.extra_focuses += focus_count - 1

            re_entry_rate = stats.re_entering / stats.sessions * 100
            if re_entry_rate <= self.hesitation_rate:
                continue

            metadata = HesitationMetadata(
                field=field_name,
                re_entry_rate=round(re_entry_rate, 2),
                avg_re_entries=round(stats.extra_focuses / stats.re_entering, 2),
                affected_sessions=stats.re_entering,
                sample_size=stats.sessions,
            )
            patterns.append(
                self._pattern(
                    site_id,
                    PatternType.HESITATION,
                    metadata,
                    severity=calculate_severity(
                        re_entry_rate / 100, stats.re_entering, stats.sessions
                    ),
                )
            )

        return patterns

    # ==========================================================================
    # Low Engagement
    # ==========================================================================

    @staticmethod
    def page_times(sessions: Iterable[Session]) -> dict[str, _PageTime]:
        """
        Approximate time spent per page.

        Each session's duration is spread evenly over its pageviews. Sessions
        without a duration or without pages contribute nothing.
        """
        pages: dict[str, _PageTime] = {}
        for session in sessions:
            if not session.duration_seconds or session.page_count == 0:
                continue
            time_per_page = session.duration_seconds / session.page_count
            for url in session.journey_path:
                stats = pages.setdefault(url, _PageTime())
                stats.total_time += time_per_page
                stats.pageviews += 1
                stats.session_ids.add(session.session_id)
        return pages

    def detect_low_engagement(self, site_id: str, sessions: list[Session]) -> list[Pattern]:
        """Flag pages whose average time-on-page is well below the site average."""
        pages = self.page_times(sessions)
        total_pageviews = sum(p.pageviews for p in pages.values())
        if total_pageviews == 0:
            return []

        site_average = sum(p.total_time for p in pages.values()) / total_pageviews
        if site_average <= 0:
            return []
        threshold = site_average * self.low_engagement_ratio

        patterns = []
        for url, stats in pages.items():
            cohort = len(stats.session_ids)
            if cohort < self.min_sessions:
                continue
            page_average = stats.total_time / stats.pageviews
            if page_average >= threshold:
                continue

            engagement_gap = (site_average - page_average) / site_average * 100
            metadata = LowEngagementMetadata(
                page=url,
                time_on_page=round(page_average, 2),
                site_average=round(site_average, 2),
                engagement_gap=round(engagement_gap, 2),
                affected_sessions=cohort,
                sample_size=cohort,
            )
            patterns.append(
                self._pattern(
                    site_id,
                    PatternType.LOW_ENGAGEMENT,
                    metadata,
                    severity=calculate_severity(engagement_gap / 100, cohort, len(sessions)),
                )
            )

        return patterns

    @staticmethod
    def _pattern(
        site_id: str,
        pattern_type: PatternType,
        metadata: PatternMetadata,
        severity: float,
    ) -> Pattern:
        return Pattern(
            site_id=site_id,
            pattern_type=pattern_type,
            description=describe_pattern(pattern_type, metadata.to_json()),
            severity=severity,
            session_count=metadata.sample_size,
            confidence_score=calculate_confidence_score(metadata.sample_size),
            metadata=metadata,
        )
