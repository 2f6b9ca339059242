# ==============================================================================
# Batch Jobs
# ==============================================================================
"""
Offline jobs composing the core domain logic with repository ports.

- SessionAggregationJob: raw events -> stored sessions, journey funnels
- PatternDetectionJob: sessions and form events -> stored patterns
- PeerGroupService: peer group calculation, recalculation, benchmarking
"""

from sitepulse.jobs.patterns import PatternDetectionJob, PatternDetectionResult
from sitepulse.jobs.peer_groups import (
    BenchmarkReport,
    BusinessNotFoundError,
    PeerGroupCalculationResult,
    PeerGroupNotFoundError,
    PeerGroupService,
    RecalculationResult,
)
from sitepulse.jobs.sessions import AggregationResult, SessionAggregationJob

__all__ = [
    "AggregationResult",
    "BenchmarkReport",
    "BusinessNotFoundError",
    "PatternDetectionJob",
    "PatternDetectionResult",
    "PeerGroupCalculationResult",
    "PeerGroupNotFoundError",
    "PeerGroupService",
    "RecalculationResult",
    "SessionAggregationJob",
]
