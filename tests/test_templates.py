# ==============================================================================
# Tests for Pattern Description Templates
# ==============================================================================
"""
Unit tests for template rendering and per-type pattern descriptions.
"""

import pytest

from sitepulse.core.models import PatternType
from sitepulse.core.templates import (
    MISSING_VALUE,
    PATTERN_TEMPLATES,
    describe_pattern,
    render_template,
    template_for,
)


class TestRenderTemplate:
    """Tests for render_template()."""

    def test_fills_placeholders(self):
        assert render_template("{{a}} and {{ b }}", {"a": 1, "b": "two"}) == "1 and two"

    def test_missing_value_marker(self):
        """A placeholder without a value renders the marker instead of failing."""
        assert render_template("rate={{rate}}", {}) == f"rate={MISSING_VALUE}"
        assert render_template("rate={{rate}}", {"rate": None}) == "rate=[data unavailable]"

    def test_falsy_values_are_rendered(self):
        assert render_template("{{n}}", {"n": 0}) == "0"

    def test_special_characters_not_escaped(self):
        assert render_template('"{{field}}"', {"field": "a&b"}) == '"a&b"'

    def test_text_without_placeholders(self):
        assert render_template("plain text", {"a": 1}) == "plain text"


class TestPatternTemplates:
    """Tests for the per-type template table."""

    def test_every_pattern_type_has_a_template(self):
        assert {tag for tag, _ in PATTERN_TEMPLATES} == set(PatternType)

    def test_template_for_unknown_type(self):
        with pytest.raises(KeyError):
            template_for("UNKNOWN")

    def test_describe_abandonment(self):
        text = describe_pattern(
            PatternType.ABANDONMENT,
            {"dropOffRate": 42.5, "stage": "Cart", "affectedSessions": 85},
        )
        assert text == "42.5% of users abandon at Cart (85 sessions)"

    def test_describe_hesitation(self):
        text = describe_pattern(
            PatternType.HESITATION,
            {"reEntryRate": 31.0, "field": "email", "affectedSessions": 40},
        )
        assert text == (
            '31.0% of users re-enter "email" field (hesitation indicator, 40 sessions)'
        )

    def test_describe_low_engagement_partial_metadata(self):
        text = describe_pattern(
            PatternType.LOW_ENGAGEMENT, {"page": "/pricing", "engagementGap": 45.0}
        )
        assert text.startswith("/pricing has 45.0% lower time-on-page")
        assert text.count(MISSING_VALUE) == 3
