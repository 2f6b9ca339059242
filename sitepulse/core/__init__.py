# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no external dependencies.

This module contains:
- Domain models (RawEvent, Session, Pattern, BusinessProfile, PeerGroup)
- Session aggregation and journey funnels
- Behavioral pattern detection and descriptions
- Business similarity, tiered peer matching and percentile benchmarks

All code here is framework-agnostic and easily unit-testable.
"""

from sitepulse.core.benchmarks import (
    MetricComparison,
    PercentileResult,
    SiteMetrics,
    average_metrics,
    calculate_percentile,
    calculate_site_metrics,
    compare_metrics,
    describe_peer_group,
)
from sitepulse.core.funnel import (
    FunnelInsight,
    FunnelReport,
    FunnelStage,
    JourneyTypeStats,
    Stage,
    compute_funnel,
    detect_journey_type,
    funnel_insight,
    journey_type_stats,
    url_stages,
)
from sitepulse.core.models import (
    REVENUE_TIERS,
    BusinessProfile,
    EventType,
    MatchCriteria,
    MatchTier,
    Pattern,
    PatternType,
    PeerGroup,
    RawEvent,
    Session,
    SimilarityScore,
)
from sitepulse.core.pattern_detector import (
    PatternDetector,
    calculate_confidence_score,
    calculate_severity,
)
from sitepulse.core.peer_matcher import TierMatch, build_peer_group, find_similar_businesses
from sitepulse.core.session_aggregator import SessionAggregator
from sitepulse.core.similarity import (
    calculate_similarity_score,
    is_revenue_within_tiers,
    jaccard_similarity,
    revenue_tier_index,
)
from sitepulse.core.templates import describe_pattern, render_template

__all__ = [
    # Models
    "REVENUE_TIERS",
    "BusinessProfile",
    "EventType",
    "MatchCriteria",
    "MatchTier",
    "Pattern",
    "PatternType",
    "PeerGroup",
    "RawEvent",
    "Session",
    "SimilarityScore",
    # Sessions and funnels
    "FunnelInsight",
    "FunnelReport",
    "FunnelStage",
    "JourneyTypeStats",
    "SessionAggregator",
    "Stage",
    "compute_funnel",
    "detect_journey_type",
    "funnel_insight",
    "journey_type_stats",
    "url_stages",
    # Patterns
    "PatternDetector",
    "calculate_confidence_score",
    "calculate_severity",
    "describe_pattern",
    "render_template",
    # Peers
    "MetricComparison",
    "PercentileResult",
    "SiteMetrics",
    "TierMatch",
    "average_metrics",
    "build_peer_group",
    "calculate_percentile",
    "calculate_similarity_score",
    "calculate_site_metrics",
    "compare_metrics",
    "describe_peer_group",
    "find_similar_businesses",
    "is_revenue_within_tiers",
    "jaccard_similarity",
    "revenue_tier_index",
]
