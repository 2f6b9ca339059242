# ==============================================================================
# Business Similarity - Pure Domain Logic
# ==============================================================================
"""
Similarity primitives for peer matching.

- Jaccard similarity over case-normalized string sets
- Revenue tier distance on the ordered REVENUE_TIERS ladder
- Weighted pairwise similarity between two business profiles
"""

from collections.abc import Iterable

from sitepulse.core.models import REVENUE_TIERS, BusinessProfile, SimilarityScore

# Pairwise score weights (sum to 1.0)
REVENUE_WEIGHT = 0.3
PRODUCT_TYPES_WEIGHT = 0.4
PLATFORM_WEIGHT = 0.3

# Revenue tolerance used by the pairwise score
SCORE_REVENUE_TIERS = 1


def _normalize(values: Iterable[str]) -> set[str]:
    return {v.strip().lower() for v in values}


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """
    |A ∩ B| / |A ∪ B| over case-normalized sets.

    Two empty sets are identical (1.0); exactly one empty set shares
    nothing (0.0).
    """
    set_a, set_b = _normalize(a), _normalize(b)
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def revenue_tier_index(revenue_range: str) -> int | None:
    """Position of a revenue band on the ladder, None for unknown labels."""
    try:
        return REVENUE_TIERS.index(revenue_range)
    except ValueError:
        return None


def is_revenue_within_tiers(range_a: str, range_b: str, max_difference: int) -> bool:
    """True when both bands are known and at most max_difference tiers apart."""
    tier_a = revenue_tier_index(range_a)
    tier_b = revenue_tier_index(range_b)
    if tier_a is None or tier_b is None:
        return False
    return abs(tier_a - tier_b) <= max_difference


def calculate_similarity_score(
    business: BusinessProfile, candidate: BusinessProfile
) -> SimilarityScore:
    """
    Weighted similarity of a candidate to a seed business.

    Industry must match exactly; otherwise the score is 0 regardless of the
    other attributes. With a matching industry the score is the sum of the
    revenue (within one tier), product types (Jaccard) and platform
    (exact match) contributions.
    """
    if business.industry != candidate.industry:
        return SimilarityScore(
            business_id=candidate.id,
            score=0.0,
            industry_match=False,
            revenue_match=False,
            product_types_similarity=0.0,
            platform_match=False,
        )

    revenue_match = is_revenue_within_tiers(
        business.revenue_range, candidate.revenue_range, SCORE_REVENUE_TIERS
    )
    product_similarity = jaccard_similarity(business.product_types, candidate.product_types)
    platform_match = business.platform == candidate.platform

    score = (
        (REVENUE_WEIGHT if revenue_match else 0.0)
        + product_similarity * PRODUCT_TYPES_WEIGHT
        + (PLATFORM_WEIGHT if platform_match else 0.0)
    )

    return SimilarityScore(
        business_id=candidate.id,
        score=min(1.0, round(score, 6)),
        industry_match=True,
        revenue_match=revenue_match,
        product_types_similarity=product_similarity,
        platform_match=platform_match,
    )
