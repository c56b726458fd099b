"""Tests for shape validation, language sanitizing and fallback patterns."""

from __future__ import annotations

import pytest

from journal_patterns.ai.fallback import (
    banned_language_pattern,
    no_clear_pattern,
    silent_pattern,
)
from journal_patterns.ai.validation import (
    BANNED_SUBSTRINGS,
    clean_themes,
    contains_banned_language,
    find_banned_phrase,
    matches_response_shape,
    sanitize_output,
    validate_shape,
)
from journal_patterns.core.errors import BannedLanguageError, SchemaInvalidError


def _response(**overrides) -> dict:
    data = {
        "shouldSpeak": True,
        "timeRange": "over the past week",
        "reflection": "Evenings look calmer than mornings.",
        "themes": ["evenings"],
        "invitation": None,
    }
    data.update(overrides)
    return data


# =============================================================================
# Shape
# =============================================================================


class TestValidateShape:
    """Tests for validate_shape()."""

    def test_valid_object(self) -> None:
        response = validate_shape(_response())

        assert response.should_speak is True
        assert response.time_range == "over the past week"
        assert response.themes == ["evenings"]

    def test_unknown_keys_are_ignored(self) -> None:
        assert validate_shape(_response(confidence=0.9)).reflection.startswith("Evenings")

    def test_missing_themes_defaults_to_empty(self) -> None:
        data = _response()
        del data["themes"]

        assert validate_shape(data).themes == []

    @pytest.mark.parametrize("key", ["shouldSpeak", "timeRange", "reflection", "invitation"])
    def test_other_keys_are_required(self, key: str) -> None:
        data = _response()
        del data[key]

        with pytest.raises(SchemaInvalidError):
            validate_shape(data)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"shouldSpeak": "true"},
            {"shouldSpeak": 1},
            {"themes": None},
            {"themes": "evenings"},
            {"themes": ["ok", 3]},
            {"reflection": 42},
            {"invitation": False},
        ],
    )
    def test_types_are_not_coerced(self, overrides: dict) -> None:
        with pytest.raises(SchemaInvalidError):
            validate_shape(_response(**overrides))

    def test_non_object_is_rejected(self) -> None:
        with pytest.raises(SchemaInvalidError) as exc_info:
            validate_shape(["not", "an", "object"])

        assert exc_info.value.details["errors"][0]["type"] == "expected_object:list"

    def test_error_details_do_not_echo_input(self) -> None:
        with pytest.raises(SchemaInvalidError) as exc_info:
            validate_shape(_response(reflection=["private journal words"]))

        assert "private journal words" not in repr(exc_info.value.details)

    def test_matches_response_shape(self) -> None:
        assert matches_response_shape(_response()) is True
        assert matches_response_shape({"tokens": 12}) is False


# =============================================================================
# Language
# =============================================================================


class TestBannedLanguage:
    """Tests for banned-substring detection."""

    @pytest.mark.parametrize("phrase", BANNED_SUBSTRINGS)
    def test_every_phrase_is_detected_case_insensitively(self, phrase: str) -> None:
        assert contains_banned_language(f"Lately {phrase.upper()} keeps coming up")

    def test_clean_text(self) -> None:
        assert find_banned_phrase("Over the past week, evenings look calmer.") is None

    def test_matching_is_substring_based(self) -> None:
        assert find_banned_phrase("Things shifted progressively") == "progress"

    def test_sanitize_checks_themes_too(self) -> None:
        with pytest.raises(BannedLanguageError) as exc_info:
            sanitize_output("Evenings look calmer.", ["sleep", "Anxiety"])

        assert exc_info.value.details == {"phrase": "anxiety"}

    def test_sanitize_passes_clean_output_through(self) -> None:
        assert sanitize_output("Calm evenings.", ["rest"]) == ("Calm evenings.", ["rest"])

    def test_sanitize_accepts_empty_output(self) -> None:
        assert sanitize_output(None, []) == (None, [])


class TestCleanThemes:
    """Tests for clean_themes()."""

    def test_trims_and_drops_blanks(self) -> None:
        assert clean_themes(["  sleep ", "", "   "]) == ["sleep"]

    def test_dedupes_case_insensitively(self) -> None:
        assert clean_themes(["Sleep", "sleep", "SLEEP", "work"]) == ["Sleep", "work"]

    def test_keeps_first_three(self) -> None:
        assert clean_themes(["a", "b", "c", "d", "e"]) == ["a", "b", "c"]


# =============================================================================
# Fallbacks
# =============================================================================


class TestFallbackPatterns:
    """Tests for the fixed fallback patterns."""

    def test_silent_pattern(self) -> None:
        pattern = silent_pattern()

        assert pattern.should_speak is False
        assert pattern.reflection is None
        assert pattern.time_range is None
        assert pattern.themes == []
        assert pattern.invitation is None

    def test_no_clear_pattern_uses_span(self) -> None:
        pattern = no_clear_pattern(span_days=14)

        assert pattern.should_speak is True
        assert pattern.time_range == "over the past two weeks"
        assert pattern.reflection == "Over the past two weeks, I’m not seeing a clear repeating pattern yet."
        assert pattern.themes == []

    def test_banned_language_pattern(self) -> None:
        pattern = banned_language_pattern(span_days=None)

        assert pattern.time_range == "over the past week"
        assert pattern.reflection == (
            "Over the past week, I’m noticing some repeating threads, "
            "but I can’t put them into words cleanly right now."
        )

    @pytest.mark.parametrize("factory", [no_clear_pattern, banned_language_pattern])
    def test_templates_never_contain_banned_language(self, factory) -> None:
        for span in (None, 7, 14, 30):
            assert not contains_banned_language(factory(span).reflection)
