# ==============================================================================
# Peer Group Service
# ==============================================================================
"""
Peer group calculation, recalculation and benchmarking.

calculate_peer_group() runs the tiered matcher for one business, stores the
result as a new PeerGroup snapshot and repoints the business at it. Bulk
operations (recalculate_industry, backfill_missing) process businesses one at
a time; a failure on one business is recorded and the rest continue.

benchmark() ranks a business's site metrics against the sites of its peers.
"""

import logging
import time
from dataclasses import dataclass, field

from sitepulse.base.repositories import BusinessRepository, PeerGroupRepository, SessionRepository
from sitepulse.core.benchmarks import (
    MetricComparison,
    SiteMetrics,
    calculate_site_metrics,
    compare_metrics,
    describe_peer_group,
)
from sitepulse.core.models import BusinessProfile, MatchCriteria, MatchTier, Session
from sitepulse.core.peer_matcher import build_peer_group, find_similar_businesses
from sitepulse.utils.config import PeerMatchingSettings

logger = logging.getLogger(__name__)

# Most recent sessions per site used for benchmark metrics
BENCHMARK_SESSION_LIMIT = 1000


class BusinessNotFoundError(LookupError):
    """Raised when a business id does not exist."""

    def __init__(self, business_id: str):
        super().__init__(f"Business not found: {business_id}")
        self.business_id = business_id


class PeerGroupNotFoundError(LookupError):
    """Raised when a business has no peer group to benchmark against."""

    def __init__(self, business_id: str):
        super().__init__(
            f"Business {business_id} has no peer group. Run `sitepulse peers calculate` first."
        )
        self.business_id = business_id


@dataclass
class PeerGroupCalculationResult:
    peer_group_id: str
    business_ids: list[str]
    criteria: MatchCriteria
    execution_time_ms: float = 0.0

    @property
    def match_count(self) -> int:
        """Peers in the group, excluding the seed business."""
        return len(self.business_ids) - 1

    @property
    def tier(self) -> MatchTier:
        return self.criteria.tier


@dataclass
class RecalculationResult:
    recalculated: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: int = 0


@dataclass
class BenchmarkReport:
    business_id: str
    peer_group_id: str
    tier: MatchTier
    peer_count: int
    description: str
    metrics: SiteMetrics
    comparisons: list[MetricComparison]


class PeerGroupService:
    """Peer group operations over the business and peer group stores."""

    def __init__(
        self,
        business_repo: BusinessRepository,
        peer_group_repo: PeerGroupRepository,
        session_repo: SessionRepository | None = None,
        settings: PeerMatchingSettings | None = None,
    ):
        """
        Args:
            business_repo: Business profiles
            peer_group_repo: Peer group snapshots
            session_repo: Stored sessions; only needed for benchmark()
            settings: Matching settings. If None, uses defaults.
        """
        self._business_repo = business_repo
        self._peer_group_repo = peer_group_repo
        self._session_repo = session_repo
        self._settings = settings or PeerMatchingSettings()

    def _get_business(self, business_id: str) -> BusinessProfile:
        business = self._business_repo.get_business(business_id)
        if business is None:
            raise BusinessNotFoundError(business_id)
        return business

    # ==========================================================================
    # Calculation
    # ==========================================================================

    def calculate_peer_group(self, business_id: str) -> PeerGroupCalculationResult:
        """
        Calculate and store a new peer group for a business.

        Raises:
            BusinessNotFoundError: If the business does not exist
        """
        t0 = time.monotonic()
        business = self._get_business(business_id)

        candidates = self._business_repo.get_businesses_by_industry(business.industry)
        match = find_similar_businesses(
            business,
            candidates,
            min_group_size=self._settings.min_group_size,
            acceptable_group_size=self._settings.acceptable_group_size,
        )
        peer_group = build_peer_group(business, match, max_peers=self._settings.max_peers)

        self._peer_group_repo.create(peer_group)
        self._business_repo.set_peer_group(business.id, peer_group.id)

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Peer group %s for %s: %d peers (%s tier) in %.0fms",
            peer_group.id,
            business.id,
            len(peer_group.peer_ids),
            match.tier.value,
            elapsed_ms,
        )
        if elapsed_ms > self._settings.time_budget_ms:
            logger.warning(
                "Peer group calculation for %s took %.0fms, over the %dms budget",
                business.id,
                elapsed_ms,
                self._settings.time_budget_ms,
            )

        return PeerGroupCalculationResult(
            peer_group_id=peer_group.id,
            business_ids=peer_group.business_ids,
            criteria=peer_group.criteria,
            execution_time_ms=elapsed_ms,
        )

    def _calculate_each(self, businesses: list[BusinessProfile]) -> RecalculationResult:
        result = RecalculationResult()
        for business in businesses:
            try:
                self.calculate_peer_group(business.id)
                result.recalculated += 1
            except Exception as e:
                logger.error("Failed to calculate peer group for %s: %s", business.id, e)
                self._peer_group_repo.rollback()
                self._business_repo.rollback()
                result.errors.append(f"Business {business.id}: {e}")
        return result

    def recalculate_industry(
        self, industry: str, exclude_business_id: str | None = None
    ) -> RecalculationResult:
        """
        Recalculate the peer group of every business in an industry.

        Args:
            industry: Industry to recalculate
            exclude_business_id: Business to leave out (e.g. one just calculated)
        """
        businesses = [
            b
            for b in self._business_repo.get_businesses_by_industry(industry)
            if b.id != exclude_business_id
        ]
        logger.info("Recalculating %d peer groups for industry %s", len(businesses), industry)

        result = self._calculate_each(businesses)
        logger.info(
            "Recalculation complete: %d successful, %d errors",
            result.recalculated,
            len(result.errors),
        )
        return result

    def backfill_missing(self, dry_run: bool = False) -> RecalculationResult:
        """
        Calculate peer groups for businesses that have none.

        Safe to run repeatedly: businesses with a peer group are not touched.
        With dry_run, nothing is calculated and every candidate counts as skipped.
        """
        businesses = self._business_repo.get_businesses_without_peer_group()
        logger.info("Found %d businesses without a peer group", len(businesses))
        if dry_run:
            return RecalculationResult(skipped=len(businesses))
        return self._calculate_each(businesses)

    # ==========================================================================
    # Benchmarking
    # ==========================================================================

    def _site_sessions(self, business: BusinessProfile) -> list[Session]:
        if self._session_repo is None:
            raise RuntimeError("PeerGroupService needs a session repository to benchmark")
        if not business.site_id:
            return []
        return self._session_repo.get_sessions(business.site_id, limit=BENCHMARK_SESSION_LIMIT)

    def benchmark(self, business_id: str) -> BenchmarkReport:
        """
        Rank a business's site metrics against its current peer group.

        Raises:
            BusinessNotFoundError: If the business does not exist
            PeerGroupNotFoundError: If the business has no peer group
        """
        business = self._get_business(business_id)
        if not business.peer_group_id:
            raise PeerGroupNotFoundError(business_id)
        peer_group = self._peer_group_repo.get_peer_group(business.peer_group_id)
        if peer_group is None:
            raise PeerGroupNotFoundError(business_id)

        user_metrics = calculate_site_metrics(self._site_sessions(business))

        peer_metrics = []
        for peer_id in peer_group.peer_ids:
            peer = self._business_repo.get_business(peer_id)
            if peer is None:
                logger.debug("Peer %s of %s no longer exists", peer_id, business_id)
                continue
            peer_metrics.append(calculate_site_metrics(self._site_sessions(peer)))

        return BenchmarkReport(
            business_id=business.id,
            peer_group_id=peer_group.id,
            tier=peer_group.criteria.tier,
            peer_count=len(peer_metrics),
            description=describe_peer_group(
                len(peer_metrics), business.industry, business.revenue_range
            ),
            metrics=user_metrics,
            comparisons=compare_metrics(user_metrics, peer_metrics),
        )
