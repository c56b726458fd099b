"""Shape validation and language sanitizing for recovered model output.

A recovered JSON value must pass two gates before it reaches a user:

1. Shape: it must look like ``ModelPatternResponse`` (strict types, no
   coercion, unknown keys ignored).
2. Language: neither the reflection nor any theme may contain a clinical
   label, a directive, or a platitude from BANNED_SUBSTRINGS.

Matching is plain case-insensitive substring search, so "progress" also
blocks "progressively" and "try " blocks "try to".
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from journal_patterns.core.errors import BannedLanguageError, SchemaInvalidError

logger = logging.getLogger(__name__)

MAX_THEMES = 3

BANNED_SUBSTRINGS: tuple[str, ...] = (
    # Clinical labels
    "postpartum depression",
    "ppd",
    "depression",
    "anxiety",
    "diagnos",
    # Directives
    "you should",
    "try ",
    "it might help",
    "you need to",
    # Platitudes
    "everything will be okay",
    "you're doing great",
    "at least",
    "the good news is",
    "progress",
    "growth",
    "resilience",
)


# =============================================================================
# Shape
# =============================================================================


class ModelPatternResponse(BaseModel):
    """The JSON object the model is instructed to return.

    Every key except ``themes`` must be present; ``themes`` defaults to an
    empty list only when the key is missing, not when it is null.
    """

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    should_speak: bool = Field(alias="shouldSpeak")
    time_range: str | None = Field(alias="timeRange")
    reflection: str | None
    themes: list[str] = Field(default_factory=list)
    invitation: str | None


def validate_shape(candidate: Any) -> ModelPatternResponse:
    """Validate a recovered value against the response shape.

    Raises:
        SchemaInvalidError: If the value is not an object of the right shape.
            Error details carry locations and types only, never input text.
    """
    if not isinstance(candidate, dict):
        raise SchemaInvalidError([{"loc": [], "type": f"expected_object:{type(candidate).__name__}"}])
    try:
        return ModelPatternResponse.model_validate(candidate)
    except ValidationError as e:
        errors = [{"loc": list(err["loc"]), "type": err["type"]} for err in e.errors()]
        raise SchemaInvalidError(errors) from e


def matches_response_shape(candidate: Any) -> bool:
    try:
        validate_shape(candidate)
    except SchemaInvalidError:
        return False
    return True


# =============================================================================
# Language
# =============================================================================


def find_banned_phrase(text: str) -> str | None:
    lower = text.lower()
    return next((phrase for phrase in BANNED_SUBSTRINGS if phrase in lower), None)


def contains_banned_language(text: str) -> bool:
    return find_banned_phrase(text) is not None


def sanitize_output(reflection: str | None, themes: list[str]) -> tuple[str | None, list[str]]:
    """Check the reflection and themes together for banned language.

    The invitation is never shown, so it is not checked.

    Args:
        reflection: Model reflection, possibly None.
        themes: Model themes.

    Returns:
        The inputs unchanged when clean.

    Raises:
        BannedLanguageError: If any banned substring appears.
    """
    combined = "\n".join([reflection or "", *themes])
    if not combined.strip():
        return reflection, themes

    phrase = find_banned_phrase(combined)
    if phrase is not None:
        logger.info(f"Model output rejected for banned phrase {phrase!r}")
        raise BannedLanguageError(phrase)
    return reflection, themes


def clean_themes(themes: list[str]) -> list[str]:
    """Trim, drop blanks, dedupe case-insensitively and keep the first three."""
    cleaned: list[str] = []
    seen: set[str] = set()
    for theme in themes:
        value = theme.strip()
        key = value.casefold()
        if not value or key in seen:
            continue
        seen.add(key)
        cleaned.append(value)
        if len(cleaned) == MAX_THEMES:
            break
    return cleaned
