# ==============================================================================
# Tests for Tiered Peer Matching
# ==============================================================================
"""
Unit tests for find_similar_businesses() and build_peer_group().

Tests cover:
- Strict tier selection for a well-populated industry
- Cascading to relaxed, broad and fallback tiers
- Seed and other-industry exclusion
- Peer group ordering, truncation and seed placement
"""

import logging

from conftest import make_business
from sitepulse.core.models import MatchTier
from sitepulse.core.peer_matcher import build_peer_group, find_similar_businesses


def _seed():
    return make_business(
        "seed",
        industry="fashion",
        revenue_range="$1M-5M",
        product_types=["clothing", "accessories"],
        platform="Shopify",
    )


def _candidates(count, prefix="c", **kwargs):
    defaults = {
        "industry": "fashion",
        "revenue_range": "$1M-5M",
        "product_types": ["clothing", "accessories"],
        "platform": "Shopify",
    }
    defaults.update(kwargs)
    return [make_business(f"{prefix}{i}", **defaults) for i in range(count)]


# ==============================================================================
# Tier selection
# ==============================================================================


class TestFindSimilarBusinesses:
    """Tests for find_similar_businesses()."""

    def test_strict_tier(self):
        """12 same-industry, same-revenue, same-platform candidates select the strict tier."""
        candidates = _candidates(12, product_types=["clothing", "accessories", "shoes"])
        match = find_similar_businesses(_seed(), candidates)

        assert match.tier == MatchTier.STRICT
        assert match.size >= 10
        assert all(b.industry == "fashion" for b in match.matches)
        assert match.criteria.tier == MatchTier.STRICT
        assert match.criteria.revenue_range == "$1M-5M"

    def test_excludes_seed_and_other_industries(self):
        seed = _seed()
        candidates = [seed, *_candidates(12), *_candidates(5, prefix="e", industry="electronics")]
        match = find_similar_businesses(seed, candidates)

        ids = {b.id for b in match.matches}
        assert "seed" not in ids
        assert not any(i.startswith("e") for i in ids)

    def test_relaxed_tier(self):
        """Adjacent revenue band and partial product overlap fail strict but pass relaxed."""
        candidates = _candidates(
            10, revenue_range="$5M-10M", product_types=["clothing", "shoes"], platform="Wix"
        )
        match = find_similar_businesses(_seed(), candidates)
        assert match.tier == MatchTier.RELAXED
        assert match.size == 10

    def test_broad_tier(self):
        candidates = _candidates(10, revenue_range="$10M-50M", product_types=["furniture"])
        match = find_similar_businesses(_seed(), candidates)
        assert match.tier == MatchTier.BROAD

    def test_fallback_tier_returns_whole_industry(self):
        candidates = _candidates(3) + _candidates(4, prefix="u", revenue_range="unknown")
        match = find_similar_businesses(_seed(), candidates)
        assert match.tier == MatchTier.FALLBACK
        assert match.size == 7

    def test_fallback_below_acceptable_size_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sitepulse.core.peer_matcher"):
            match = find_similar_businesses(_seed(), _candidates(2))
        assert match.tier == MatchTier.FALLBACK
        assert "Insufficient matches" in caplog.text

    def test_empty_industry(self):
        match = find_similar_businesses(_seed(), [])
        assert match.tier == MatchTier.FALLBACK
        assert match.matches == []

    def test_min_group_size_is_configurable(self):
        match = find_similar_businesses(_seed(), _candidates(3), min_group_size=3)
        assert match.tier == MatchTier.STRICT


# ==============================================================================
# Peer group construction
# ==============================================================================


class TestBuildPeerGroup:
    """Tests for build_peer_group()."""

    def test_seed_first_then_descending_score(self):
        seed = _seed()
        candidates = [
            make_business("low", revenue_range="$10M-50M", product_types=["x"], platform="Wix"),
            make_business("high", product_types=["clothing", "accessories"], platform="Shopify"),
            make_business("mid", product_types=["clothing"], platform="Shopify"),
        ]
        match = find_similar_businesses(seed, candidates)
        group = build_peer_group(seed, match, group_id="pg-1")

        assert group.id == "pg-1"
        assert group.business_ids == ["seed", "high", "mid", "low"]
        assert group.seed_business_id == "seed"
        assert group.peer_ids == ["high", "mid", "low"]
        assert group.criteria.tier == MatchTier.FALLBACK

    def test_truncates_to_max_peers(self):
        seed = _seed()
        match = find_similar_businesses(seed, _candidates(60))
        group = build_peer_group(seed, match)
        assert len(group.business_ids) == 51
        assert group.business_ids[0] == "seed"

    def test_ties_keep_candidate_order(self):
        seed = _seed()
        match = find_similar_businesses(seed, _candidates(12))
        group = build_peer_group(seed, match, max_peers=5)
        assert group.peer_ids == ["c0", "c1", "c2", "c3", "c4"]

    def test_new_id_per_group(self):
        seed = _seed()
        match = find_similar_businesses(seed, _candidates(12))
        assert build_peer_group(seed, match).id != build_peer_group(seed, match).id
