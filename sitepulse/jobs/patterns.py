# ==============================================================================
# Pattern Detection Job
# ==============================================================================
"""
Batch job detecting behavioral patterns per site and storing them.

For each site, the sessions and form events of the analysis window are read,
run through PatternDetector, and the resulting patterns appended to the
pattern store. run_all() walks every site with events; a failure on one site
is recorded in its result and does not stop the others.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sitepulse.base.repositories import EventRepository, PatternRepository, SessionRepository
from sitepulse.core.models import Pattern
from sitepulse.core.pattern_detector import PatternDetector
from sitepulse.utils.config import PatternSettings

logger = logging.getLogger(__name__)


@dataclass
class PatternDetectionResult:
    """Outcome of pattern detection for one site."""

    site_id: str
    sessions_analyzed: int = 0
    patterns: list[Pattern] = field(default_factory=list)
    patterns_stored: int = 0
    errors: list[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def patterns_detected(self) -> int:
        return len(self.patterns)

    @property
    def success(self) -> bool:
        return not self.errors


class PatternDetectionJob:
    """Runs PatternDetector over stored sessions and form events."""

    def __init__(
        self,
        event_repo: EventRepository,
        session_repo: SessionRepository,
        pattern_repo: PatternRepository,
        settings: PatternSettings | None = None,
    ):
        self._event_repo = event_repo
        self._session_repo = session_repo
        self._pattern_repo = pattern_repo
        self._settings = settings or PatternSettings()
        self._detector = PatternDetector(
            min_sessions=self._settings.min_sessions,
            abandonment_rate=self._settings.abandonment_rate,
            hesitation_rate=self._settings.hesitation_rate,
            low_engagement_ratio=self._settings.low_engagement_ratio,
        )

    def default_window(self, now: datetime | None = None) -> tuple[datetime, datetime]:
        """The last analysis_window_days days, ending now."""
        end = now or datetime.now(timezone.utc)
        return end - timedelta(days=self._settings.analysis_window_days), end

    def run_for_site(
        self,
        site_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PatternDetectionResult:
        """
        Detect and store patterns for one site.

        Args:
            site_id: Site to analyze
            start: Window start (defaults to analysis_window_days before end)
            end: Window end (defaults to now)

        Returns:
            PatternDetectionResult; storage failures are reported in errors
        """
        if start is None or end is None:
            default_start, default_end = self.default_window(end)
            start, end = start or default_start, end or default_end

        t0 = time.monotonic()
        result = PatternDetectionResult(site_id=site_id)

        sessions = self._session_repo.get_sessions(site_id, start=start, end=end)
        form_events = self._event_repo.get_form_events(site_id, start, end)
        result.sessions_analyzed = len(sessions)

        result.patterns = self._detector.detect(site_id, sessions, form_events)
        if result.patterns:
            written = self._pattern_repo.save(result.patterns)
            result.patterns_stored = written.created
            result.errors.extend(written.errors)

        result.execution_time_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Site %s: %d sessions, %d form events -> %d patterns (%d stored) in %.0fms",
            site_id,
            len(sessions),
            len(form_events),
            result.patterns_detected,
            result.patterns_stored,
            result.execution_time_ms,
        )
        return result

    def run_all(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[PatternDetectionResult]:
        """Detect patterns for every site with events, isolating per-site failures."""
        site_ids = self._event_repo.get_site_ids()
        logger.info("Running pattern detection for %d sites", len(site_ids))

        results = []
        for site_id in site_ids:
            try:
                results.append(self.run_for_site(site_id, start, end))
            except Exception as e:
                logger.error("Pattern detection failed for site %s: %s", site_id, e)
                self._pattern_repo.rollback()
                results.append(PatternDetectionResult(site_id=site_id, errors=[str(e)]))

        total = sum(r.patterns_detected for r in results)
        failed = sum(1 for r in results if not r.success)
        logger.info(
            "Pattern detection complete: %d sites, %d patterns, %d sites with errors",
            len(results),
            total,
            failed,
        )
        return results
