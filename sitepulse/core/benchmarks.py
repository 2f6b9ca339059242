# ==============================================================================
# Peer Benchmarks - Pure Domain Logic
# ==============================================================================
"""
Percentile benchmarking of a business's site metrics against its peers.

Site metrics (conversion, cart abandonment, bounce) are derived from stored
sessions. Each metric is ranked against the same metric of every peer; for
metrics where lower is better the comparison direction flips.
"""

import math
from collections.abc import Sequence
from dataclasses import asdict, dataclass, fields

from sitepulse.core.funnel import Stage, stages_reached
from sitepulse.core.models import Session

TOP_QUARTILE = "top-25"
MEDIAN = "median"
BOTTOM_QUARTILE = "bottom-25"


@dataclass
class PercentileResult:
    percentile: str
    percentile_value: int


def calculate_percentile(
    value: float, peer_values: Sequence[float], higher_is_better: bool = True
) -> PercentileResult:
    """
    Rank a value against peer values.

    The percentile is the share of peers strictly worse than the value,
    rounded half up. No peers gives a neutral median/50 result.

    Example:
        >>> calculate_percentile(90, [10, 20, 30, 40, 50, 60, 70, 80, 90, 100])
        PercentileResult(percentile='top-25', percentile_value=80)
    """
    if not peer_values:
        return PercentileResult(percentile=MEDIAN, percentile_value=50)

    if higher_is_better:
        worse = sum(1 for v in peer_values if v < value)
    else:
        worse = sum(1 for v in peer_values if v > value)

    percentile_value = math.floor(worse / len(peer_values) * 100 + 0.5)
    if percentile_value >= 75:
        category = TOP_QUARTILE
    elif percentile_value >= 25:
        category = MEDIAN
    else:
        category = BOTTOM_QUARTILE
    return PercentileResult(percentile=category, percentile_value=percentile_value)


# ==============================================================================
# Site Metrics
# ==============================================================================


@dataclass
class SiteMetrics:
    """Percentages derived from a site's sessions."""

    conversion_rate: float = 0.0
    cart_abandonment_rate: float = 0.0
    bounce_rate: float = 0.0


# (attribute, display name, higher is better)
BENCHMARK_METRICS: tuple[tuple[str, str, bool], ...] = (
    ("conversion_rate", "conversion rate", True),
    ("cart_abandonment_rate", "cart abandonment rate", False),
    ("bounce_rate", "bounce rate", False),
)


def calculate_site_metrics(sessions: Sequence[Session]) -> SiteMetrics:
    """
    Conversion, cart abandonment and bounce rates for a set of sessions.

    Cart abandonment is the share of cart sessions that never reach checkout.
    """
    total = len(sessions)
    if total == 0:
        return SiteMetrics()

    converted = sum(1 for s in sessions if s.converted)
    bounced = sum(1 for s in sessions if s.bounced)
    cart = checkout = 0
    for session in sessions:
        reached = stages_reached(session.journey_path)
        cart += Stage.CART in reached
        checkout += Stage.CHECKOUT in reached

    return SiteMetrics(
        conversion_rate=converted / total * 100,
        cart_abandonment_rate=(cart - checkout) / cart * 100 if cart > 0 else 0.0,
        bounce_rate=bounced / total * 100,
    )


def average_metrics(metrics: Sequence[SiteMetrics]) -> SiteMetrics:
    """Field-wise mean; all zeros for an empty sequence."""
    if not metrics:
        return SiteMetrics()
    return SiteMetrics(
        **{
            f.name: sum(getattr(m, f.name) for m in metrics) / len(metrics)
            for f in fields(SiteMetrics)
        }
    )


# ==============================================================================
# Comparison
# ==============================================================================


@dataclass
class MetricComparison:
    metric: str
    user_value: float
    peer_average: float
    percentile: str
    percentile_value: int
    performance: str
    explanation: str

    def to_dict(self) -> dict:
        return asdict(self)


def explain(metric_name: str, user_value: float, percentile_value: int) -> str:
    if percentile_value >= 50:
        return (
            f"Your {user_value:.1f}% {metric_name} is in the top "
            f"{100 - percentile_value}% of peers"
        )
    return f"Your {user_value:.1f}% {metric_name} is in the bottom {percentile_value}% of peers"


def compare_metrics(user: SiteMetrics, peers: Sequence[SiteMetrics]) -> list[MetricComparison]:
    """Compare a business's metrics with each of its peers, one entry per metric."""
    peer_average = average_metrics(peers)
    comparisons = []

    for attr, name, higher_is_better in BENCHMARK_METRICS:
        user_value = getattr(user, attr)
        average = getattr(peer_average, attr)
        result = calculate_percentile(
            user_value, [getattr(p, attr) for p in peers], higher_is_better
        )
        if user_value > average:
            performance = "above"
        elif user_value < average:
            performance = "below"
        else:
            performance = "at"

        comparisons.append(
            MetricComparison(
                metric=name.capitalize(),
                user_value=user_value,
                peer_average=average,
                percentile=result.percentile,
                percentile_value=result.percentile_value,
                performance=performance,
                explanation=explain(name, user_value, result.percentile_value),
            )
        )

    return comparisons


def describe_peer_group(peer_count: int, industry: str, revenue_range: str) -> str:
    return f"Compared to {peer_count} {industry} businesses, {revenue_range} revenue"
