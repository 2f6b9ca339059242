# ==============================================================================
# Peer Matcher - Pure Domain Logic
# ==============================================================================
"""
Tiered peer matching.

Candidates are filtered through an ordered table of size-gated tiers, each
looser than the last. The first tier that yields at least min_group_size
matches wins. If none does, the industry-only fallback tier is returned
whatever its size.

Candidates never include the seed business itself or businesses from other
industries.
"""

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sitepulse.core.models import BusinessProfile, MatchCriteria, MatchTier, PeerGroup
from sitepulse.core.similarity import (
    calculate_similarity_score,
    is_revenue_within_tiers,
    jaccard_similarity,
)

logger = logging.getLogger(__name__)

MIN_PEER_GROUP_SIZE = 10
ACCEPTABLE_PEER_GROUP_SIZE = 5
MAX_PEERS = 50

TierPredicate = Callable[[BusinessProfile, BusinessProfile], bool]


def _strict(seed: BusinessProfile, candidate: BusinessProfile) -> bool:
    return (
        is_revenue_within_tiers(seed.revenue_range, candidate.revenue_range, 0)
        and jaccard_similarity(seed.product_types, candidate.product_types) >= 0.5
        and seed.platform == candidate.platform
    )


def _relaxed(seed: BusinessProfile, candidate: BusinessProfile) -> bool:
    return (
        is_revenue_within_tiers(seed.revenue_range, candidate.revenue_range, 1)
        and jaccard_similarity(seed.product_types, candidate.product_types) >= 0.3
    )


def _broad(seed: BusinessProfile, candidate: BusinessProfile) -> bool:
    return is_revenue_within_tiers(seed.revenue_range, candidate.revenue_range, 2)


# Size-gated tiers, strictest first
MATCH_TIERS: tuple[tuple[MatchTier, TierPredicate], ...] = (
    (MatchTier.STRICT, _strict),
    (MatchTier.RELAXED, _relaxed),
    (MatchTier.BROAD, _broad),
)


@dataclass
class TierMatch:
    """Businesses selected by one tier, plus the criteria that produced them."""

    tier: MatchTier
    matches: list[BusinessProfile]
    criteria: MatchCriteria

    @property
    def size(self) -> int:
        return len(self.matches)


def _criteria(seed: BusinessProfile, tier: MatchTier) -> MatchCriteria:
    return MatchCriteria(
        tier=tier,
        industry=seed.industry,
        revenue_range=seed.revenue_range,
        product_types=list(seed.product_types),
        platform=seed.platform,
    )


def find_similar_businesses(
    seed: BusinessProfile,
    candidates: Iterable[BusinessProfile],
    min_group_size: int = MIN_PEER_GROUP_SIZE,
    acceptable_group_size: int = ACCEPTABLE_PEER_GROUP_SIZE,
) -> TierMatch:
    """
    Select peer candidates for a seed business.

    Args:
        seed: Business the peer group is built for
        candidates: Businesses to choose from (may include the seed and other industries)
        min_group_size: Matches a size-gated tier needs to win
        acceptable_group_size: Fallback results below this size are logged as a warning

    Returns:
        TierMatch from the first qualifying tier, or the fallback tier
    """
    pool = [c for c in candidates if c.id != seed.id and c.industry == seed.industry]
    logger.debug("Finding matches for business %s among %d candidates", seed.id, len(pool))

    for tier, predicate in MATCH_TIERS:
        matches = [c for c in pool if predicate(seed, c)]
        if len(matches) >= min_group_size:
            logger.info(
                "%s tier matched %d businesses for %s", tier.value.capitalize(), len(matches), seed.id
            )
            return TierMatch(tier=tier, matches=matches, criteria=_criteria(seed, tier))

    logger.info("Fallback tier matched %d businesses for %s (industry only)", len(pool), seed.id)
    if len(pool) < acceptable_group_size:
        logger.warning(
            "Insufficient matches for %s (%d), minimum acceptable is %d",
            seed.id,
            len(pool),
            acceptable_group_size,
        )
    return TierMatch(
        tier=MatchTier.FALLBACK, matches=pool, criteria=_criteria(seed, MatchTier.FALLBACK)
    )


def build_peer_group(
    seed: BusinessProfile,
    match: TierMatch,
    max_peers: int = MAX_PEERS,
    group_id: str | None = None,
) -> PeerGroup:
    """
    Build a new peer group snapshot from a tier match.

    Matches are scored against the seed, sorted by descending score (ties keep
    candidate order) and truncated to max_peers. The seed id comes first.
    """
    scores = sorted(
        (calculate_similarity_score(seed, candidate) for candidate in match.matches),
        key=lambda s: s.score,
        reverse=True,
    )
    top = [s.business_id for s in scores[:max_peers]]
    return PeerGroup(
        id=group_id or str(uuid.uuid4()),
        criteria=match.criteria,
        business_ids=[seed.id, *top],
    )
