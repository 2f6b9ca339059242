# ==============================================================================
# Session Aggregation Job
# ==============================================================================
"""
Batch job turning a window of raw events into stored sessions.

    1. event_repo.get_events(start, end)      - read the window
    2. SessionAggregator.aggregate(events)    - group, order, derive (bounded batches)
    3. session_repo.save(batch)               - insert-or-skip, per-record fallback

Each batch is timed with time.monotonic() and logged at INFO. Re-running the
job over an overlapping window is safe: existing session_ids are skipped.

Usage:
    job = SessionAggregationJob(event_repo, session_repo)
    result = job.run()                      # incremental window
    result = job.run(start, end)            # explicit window
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sitepulse.base.repositories import EventRepository, SessionRepository, WriteResult
from sitepulse.core.funnel import FunnelReport, compute_funnel
from sitepulse.core.session_aggregator import SessionAggregator
from sitepulse.utils.config import AggregationSettings

logger = logging.getLogger(__name__)

# Sessions read per site when computing a funnel
FUNNEL_SESSION_LIMIT = 10_000


@dataclass
class AggregationResult:
    """Outcome of one aggregation run."""

    start: datetime
    end: datetime
    events_processed: int = 0
    sessions_processed: int = 0
    sessions_created: int = 0
    errors: list[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors


class SessionAggregationJob:
    """
    Aggregates raw events into sessions and stores them.

    Composes an EventRepository, a SessionRepository and the pure
    SessionAggregator. Repositories must already be connected.
    """

    def __init__(
        self,
        event_repo: EventRepository,
        session_repo: SessionRepository,
        settings: AggregationSettings | None = None,
    ):
        self._event_repo = event_repo
        self._session_repo = session_repo
        self._settings = settings or AggregationSettings()
        self._aggregator = SessionAggregator(batch_size=self._settings.batch_size)

    def resolve_window(self, now: datetime | None = None) -> tuple[datetime, datetime]:
        """
        Incremental window ending now.

        Starts at the newest stored session's created_at, or lookback_hours
        before now when no session is stored yet.
        """
        now = now or datetime.now(timezone.utc)
        latest = self._session_repo.get_latest_created_at()
        start = latest or now - timedelta(hours=self._settings.lookback_hours)
        return start, now

    def run(self, start: datetime | None = None, end: datetime | None = None) -> AggregationResult:
        """
        Aggregate events created in [start, end) into stored sessions.

        Args:
            start: Window start; resolved incrementally when omitted
            end: Window end; defaults to now

        Returns:
            AggregationResult with counts, per-record errors and timing
        """
        if start is None:
            start, resolved_end = self.resolve_window()
            end = end or resolved_end
        end = end or datetime.now(timezone.utc)

        t0 = time.monotonic()
        result = AggregationResult(start=start, end=end)
        logger.info("Aggregating sessions from %s to %s", start.isoformat(), end.isoformat())

        events = self._event_repo.get_events(start, end)
        result.events_processed = len(events)
        if not events:
            logger.info("No events in window")
            result.execution_time_ms = (time.monotonic() - t0) * 1000
            return result

        written = WriteResult()
        for batch in self._aggregator.aggregate(events):
            t_batch = time.monotonic()
            batch_result = self._session_repo.save(batch)
            write_ms = (time.monotonic() - t_batch) * 1000

            written.merge(batch_result)
            result.sessions_processed += len(batch)
            logger.info(
                "Batch: %s sessions, %s new, %d errors | write=%.*fms",
                f"{len(batch):,}",
                f"{batch_result.created:,}",
                len(batch_result.errors),
                _precision(write_ms),
                write_ms,
            )

        result.sessions_created = written.created
        result.errors = written.errors
        result.execution_time_ms = (time.monotonic() - t0) * 1000

        logger.info(
            "Aggregation complete: %s events -> %s sessions (%s new, %d errors) in %.0fms",
            f"{result.events_processed:,}",
            f"{result.sessions_processed:,}",
            f"{result.sessions_created:,}",
            len(result.errors),
            result.execution_time_ms,
        )
        for error in result.errors:
            logger.warning("Session write failed: %s", error)
        return result

    def funnel(self, site_id: str, journey_type: str = "all") -> FunnelReport:
        """Journey funnel over a site's most recent stored sessions."""
        sessions = self._session_repo.get_sessions(site_id, limit=FUNNEL_SESSION_LIMIT)
        return compute_funnel(site_id, sessions, journey_type=journey_type)


def _precision(ms: float) -> int:
    """Return decimal precision for millisecond values.

    >= 10ms  → 0 decimals (e.g., 85ms)
    >= 1ms   → 1 decimal  (e.g., 3.2ms)
    < 1ms    → 2 decimals (e.g., 0.45ms)
    """
    if ms >= 10:
        return 0
    elif ms >= 1:
        return 1
    else:
        return 2
