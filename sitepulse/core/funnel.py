# ==============================================================================
# Journey Funnel - Pure Domain Logic
# ==============================================================================
"""
Journey funnel calculation from stored sessions.

URLs are matched against a table of stage rules; a URL counts toward every
stage whose predicate it satisfies, so "/checkout/success" reaches both
Checkout and Confirmation. The funnel then counts, per stage, the distinct
sessions that reached it and the drop-off from each stage to the next.

Also provides journey-type classification by entry page (homepage, search,
direct-to-product, other) and plain-language funnel insights.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlsplit

from sitepulse.core.models import Session


class Stage(str, Enum):
    """Funnel stages in canonical order."""

    ENTRY = "Entry"
    BROWSE = "Browse"
    PRODUCT = "Product"
    CART = "Cart"
    CHECKOUT = "Checkout"
    CONFIRMATION = "Confirmation"


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)

_PRODUCT_ID_PATTERN = re.compile(r"/p/\w+")


def _contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda url: any(needle in url for needle in needles)


def is_product_url(url: str) -> bool:
    url = url.lower()
    return "/product" in url or "/item" in url or bool(_PRODUCT_ID_PATTERN.search(url))


# (stage, predicate over a lower-cased URL); every matching rule applies
STAGE_RULES: tuple[tuple[Stage, Callable[[str], bool]], ...] = (
    (Stage.PRODUCT, is_product_url),
    (Stage.CART, _contains_any("/cart", "/basket")),
    (Stage.CHECKOUT, _contains_any("/checkout", "/payment")),
    (Stage.CONFIRMATION, _contains_any("/confirmation", "/thank", "/success")),
    (Stage.BROWSE, _contains_any("/category", "/shop", "/browse")),
)


def url_stages(url: str) -> set[Stage]:
    """Every funnel stage whose rule matches a URL; empty for unclassified pages."""
    url_lower = url.lower()
    return {stage for stage, matches in STAGE_RULES if matches(url_lower)}


def stages_reached(journey_path: Iterable[str]) -> set[Stage]:
    """All stages a journey reaches. Every session reaches Entry."""
    reached = {Stage.ENTRY}
    for url in journey_path:
        reached |= url_stages(url)
    return reached


# ==============================================================================
# Funnel Report
# ==============================================================================


@dataclass
class FunnelStage:
    """Visitor count and drop-off for one reported funnel stage."""

    stage: str
    visitors: int
    percentage: float
    next_stage: str | None = None
    drop_off_rate: float | None = None
    drop_off_count: int | None = None


@dataclass
class FunnelReport:
    """Funnel stages and overall conversion for a site."""

    site_id: str
    stages: list[FunnelStage]
    total_sessions: int
    conversion_rate: float
    journey_type: str = "all"
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def stage(self, name: Stage | str) -> FunnelStage | None:
        """Look up a reported stage by name."""
        key = name.value if isinstance(name, Stage) else name
        return next((s for s in self.stages if s.stage == key), None)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["calculated_at"] = self.calculated_at.isoformat()
        return data


def drop_off_rate(visitors: int, next_visitors: int) -> float | None:
    """Percentage of visitors at a stage that do not reach the next one."""
    if visitors <= 0:
        return None
    return round((visitors - next_visitors) / visitors * 100, 2)


def count_stage_visitors(sessions: Iterable[Session]) -> dict[Stage, int]:
    """Number of distinct sessions reaching each stage."""
    counts = {stage: 0 for stage in STAGE_ORDER}
    seen: set[str] = set()
    for session in sessions:
        if session.session_id in seen:
            continue
        seen.add(session.session_id)
        for stage in stages_reached(session.journey_path):
            counts[stage] += 1
    return counts


def _next_stage(stage: Stage, counts: dict[Stage, int]) -> Stage | None:
    """Next stage with visitors, else the next canonical stage; None after Confirmation."""
    later = STAGE_ORDER[STAGE_ORDER.index(stage) + 1 :]
    if not later:
        return None
    return next((s for s in later if counts[s] > 0), later[0])


def compute_funnel(
    site_id: str,
    sessions: Iterable[Session],
    journey_type: str = "all",
) -> FunnelReport:
    """
    Calculate the journey funnel for a set of stored sessions.

    Stages after Entry that no session reached are left out of the report.
    Every reported stage except Confirmation carries the drop-off to the next
    stage that has visitors, or to the next canonical stage (zero visitors,
    100% drop-off) when no later stage was reached.

    Args:
        site_id: Site the sessions belong to
        sessions: Stored sessions
        journey_type: Restrict to one journey type ("all" keeps every session)

    Returns:
        FunnelReport (empty stage list and zero conversion when no sessions)
    """
    selected = [
        s for s in sessions if journey_type == "all" or detect_journey_type(s) == journey_type
    ]
    total = len(selected)
    if total == 0:
        return FunnelReport(
            site_id=site_id,
            stages=[],
            total_sessions=0,
            conversion_rate=0.0,
            journey_type=journey_type,
        )

    counts = count_stage_visitors(selected)
    reported = [
        stage for i, stage in enumerate(STAGE_ORDER) if i == 0 or counts[stage] > 0
    ]

    stages = []
    for stage in reported:
        visitors = counts[stage]
        funnel_stage = FunnelStage(
            stage=stage.value,
            visitors=visitors,
            percentage=round(visitors / total * 100, 2),
        )
        next_stage = _next_stage(stage, counts)
        if next_stage is not None:
            next_visitors = counts[next_stage]
            funnel_stage.next_stage = next_stage.value
            funnel_stage.drop_off_rate = drop_off_rate(visitors, next_visitors)
            funnel_stage.drop_off_count = visitors - next_visitors
        stages.append(funnel_stage)

    conversions = sum(1 for s in selected if s.converted)
    return FunnelReport(
        site_id=site_id,
        stages=stages,
        total_sessions=total,
        conversion_rate=round(conversions / total * 100, 2),
        journey_type=journey_type,
    )


# ==============================================================================
# Journey Types
# ==============================================================================

JOURNEY_TYPES: dict[str, str] = {
    "all": "All Journeys",
    "homepage": "Homepage Visitors",
    "search": "Search Visitors",
    "direct-to-product": "Direct-to-Product",
    "other": "Other Entry Points",
}


@dataclass
class JourneyTypeStats:
    type: str
    label: str
    count: int
    percentage: float


def _entry_path(entry_page: str) -> str:
    entry = entry_page.strip().lower()
    if "://" in entry:
        entry = urlsplit(entry).path or "/"
    return entry


def detect_journey_type(session: Session) -> str:
    """Classify a session by its entry page."""
    entry = _entry_path(session.entry_page)
    if entry in ("", "/") or "/home" in entry:
        return "homepage"
    if "/search" in entry or "/collections" in entry:
        return "search"
    if is_product_url(entry):
        return "direct-to-product"
    return "other"


def journey_type_stats(sessions: list[Session]) -> list[JourneyTypeStats]:
    """Session counts and shares per journey type, "all" first."""
    total = len(sessions)
    counts = {journey_type: 0 for journey_type in JOURNEY_TYPES}
    counts["all"] = total
    for session in sessions:
        counts[detect_journey_type(session)] += 1

    return [
        JourneyTypeStats(
            type=journey_type,
            label=JOURNEY_TYPES[journey_type],
            count=count,
            percentage=round(count / total * 100, 1) if total else 0.0,
        )
        for journey_type, count in counts.items()
    ]


# ==============================================================================
# Insights
# ==============================================================================


@dataclass
class FunnelInsight:
    primary: str
    biggest_drop_off_stage: str | None = None
    biggest_drop_off_rate: float | None = None


def funnel_insight(report: FunnelReport) -> FunnelInsight:
    """Summarize the biggest drop-off in a funnel report."""
    if report.total_sessions == 0:
        return FunnelInsight(
            primary="No data yet. Start collecting sessions to see journey insights."
        )

    worst = max(
        (s for s in report.stages if s.drop_off_rate is not None and s.drop_off_rate > 0),
        key=lambda s: s.drop_off_rate,
        default=None,
    )
    if worst is None:
        return FunnelInsight(primary="No significant drop-offs detected in this funnel.")

    return FunnelInsight(
        primary=f"Biggest opportunity: {worst.drop_off_rate:.1f}% drop off after {worst.stage}",
        biggest_drop_off_stage=worst.stage,
        biggest_drop_off_rate=worst.drop_off_rate,
    )
