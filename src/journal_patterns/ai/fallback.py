"""Fallback Patterns: Fixed Outputs When the Model Can't Be Trusted.

The engine never shows raw model unreliability to the user. Every degraded
path ends in one of three fixed patterns:

- silent: nothing to say (gate rejection, provider failure, garbage output)
- banned language: the model spoke, but in words we refuse to pass on
- no clear pattern: the model chose silence after the gate passed

The last two still speak (soft-speak policy): once enough longitudinal data
exists, the user gets a neutral, time-based sentence instead of nothing.

Example:
    >>> no_clear_pattern(span_days=14).reflection
    'Over the past two weeks, I’m not seeing a clear repeating pattern yet.'
"""

from __future__ import annotations

from journal_patterns.core.eligibility import describe_time_range
from journal_patterns.core.models import ValidatedPattern

# =============================================================================
# Template Constants
# =============================================================================


BANNED_LANGUAGE_TEMPLATE: str = (
    "{time_range}, I’m noticing some repeating threads, "
    "but I can’t put them into words cleanly right now."
)

NO_CLEAR_PATTERN_TEMPLATE: str = "{time_range}, I’m not seeing a clear repeating pattern yet."


def _render(template: str, time_range: str) -> str:
    # Phrases are lowercase; the sentence still starts with a capital.
    return template.format(time_range=time_range[:1].upper() + time_range[1:])


def silent_pattern() -> ValidatedPattern:
    return ValidatedPattern(should_speak=False, reflection=None, themes=[], time_range=None)


def banned_language_pattern(span_days: int | None) -> ValidatedPattern:
    """Neutral reflection used when the model's wording was disallowed."""
    time_range = describe_time_range(span_days)
    return ValidatedPattern(
        should_speak=True,
        reflection=_render(BANNED_LANGUAGE_TEMPLATE, time_range),
        themes=[],
        time_range=time_range,
    )


def no_clear_pattern(span_days: int | None) -> ValidatedPattern:
    """Soft-speak reflection used when the model returned shouldSpeak=false."""
    time_range = describe_time_range(span_days)
    return ValidatedPattern(
        should_speak=True,
        reflection=_render(NO_CLEAR_PATTERN_TEMPLATE, time_range),
        themes=[],
        time_range=time_range,
    )
