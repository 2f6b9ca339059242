# ==============================================================================
# Pattern Description Templates
# ==============================================================================
"""
Human-readable pattern descriptions.

Each pattern type maps to one template with {{name}} placeholders, filled from
the pattern's camelCase metadata. A placeholder without a value renders as
"[data unavailable]" instead of failing. Templates are rendered with Jinja2.
"""

from collections.abc import Mapping
from typing import Any

from jinja2 import Environment, Undefined

from sitepulse.core.models import PatternType

MISSING_VALUE = "[data unavailable]"


class MissingValue(Undefined):
    """Renders an unknown placeholder as the missing-value marker."""

    def __str__(self) -> str:
        return MISSING_VALUE


# None in metadata means the value could not be computed
_env = Environment(
    undefined=MissingValue,
    finalize=lambda value: MISSING_VALUE if value is None else value,
)

PATTERN_TEMPLATES: tuple[tuple[PatternType, str], ...] = (
    (
        PatternType.ABANDONMENT,
        "{{dropOffRate}}% of users abandon at {{stage}} ({{affectedSessions}} sessions)",
    ),
    (
        PatternType.HESITATION,
        '{{reEntryRate}}% of users re-enter "{{field}}" field '
        "(hesitation indicator, {{affectedSessions}} sessions)",
    ),
    (
        PatternType.LOW_ENGAGEMENT,
        "{{page}} has {{engagementGap}}% lower time-on-page than site average "
        "({{timeOnPage}}s vs {{siteAverage}}s, {{affectedSessions}} sessions)",
    ),
)


def template_for(pattern_type: PatternType) -> str:
    for tag, template in PATTERN_TEMPLATES:
        if tag == pattern_type:
            return template
    raise KeyError(f"No description template for pattern type {pattern_type!r}")


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Replace each {{name}} with values[name], or the missing-value marker."""
    return _env.from_string(template).render(**values)


def describe_pattern(pattern_type: PatternType, metadata: Mapping[str, Any]) -> str:
    """Render the description for a pattern type from camelCase metadata."""
    return render_template(template_for(pattern_type), metadata)
