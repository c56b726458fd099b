"""Reflection Engine for the Journal Pattern Reflection Engine.

This is the CORE PRODUCT. It connects entries -> gate -> prompt -> Gemini ->
recovery -> validation -> cache and always answers with a well-formed result.

Flow:
1. Order entries oldest -> newest and fingerprint them
2. Serve a fresh cached result for the same fingerprint (unless refresh)
3. Longitudinal gate (no model call when data is thin)
4. One model call with a bounded, single-blob prompt
5. Recover JSON, validate its shape, sanitize its language
6. Cache non-silent outcomes; on silence, fall back to a recent cached one

Model unreliability never reaches the caller. Every provider failure or bad
output degrades to a silent or templated success; only configuration and
internal faults produce a PatternsFailure.

Example:
    >>> from journal_patterns.ai import ReflectionEngine
    >>>
    >>> engine = ReflectionEngine()
    >>> result = engine.reflect("user-1", entries)
    >>> if result.ok and result.value.should_speak:
    ...     print(result.value.reflection)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from journal_patterns.ai.cache import CacheEntry, PatternCache, fingerprint_entries
from journal_patterns.ai.client import AIClient, AIUnavailableError, get_client
from journal_patterns.ai.fallback import banned_language_pattern, no_clear_pattern, silent_pattern
from journal_patterns.ai.prompts import TIME_RANGE_PHRASES, build_prompt_request
from journal_patterns.ai.recovery import parse_best_json, strip_code_fences
from journal_patterns.ai.validation import (
    clean_themes,
    matches_response_shape,
    sanitize_output,
    validate_shape,
)
from journal_patterns.config import AppConfig, get_config
from journal_patterns.core.eligibility import check_eligibility, describe_time_range, sort_entries
from journal_patterns.core.errors import (
    BannedLanguageError,
    EmptyAfterSanitizeError,
    GateRejectedError,
    InternalError,
    ProviderUnavailableError,
    ReflectionError,
    UnparseableOutputError,
)
from journal_patterns.core.models import (
    CacheMeta,
    DebugMeta,
    EligibilityDecision,
    ErrorInfo,
    JournalEntry,
    ModelAttempt,
    ModelReply,
    PatternDebug,
    PatternsFailure,
    PatternsResult,
    PatternsSuccess,
    ReflectionReason,
    ValidatedPattern,
)
from journal_patterns.utils.logging import LogContext

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Gemini is not configured."


def coerce_entries(entries: Iterable[JournalEntry | dict[str, Any]]) -> list[JournalEntry]:
    """Accept JournalEntry objects or raw rows (camelCase or column names)."""
    return [e if isinstance(e, JournalEntry) else JournalEntry.model_validate(e) for e in entries]


def build_debug_meta(entries: list[JournalEntry]) -> DebugMeta:
    vent_count = sum(1 for e in entries if e.vent_entry)
    return DebugMeta(
        total_count=len(entries),
        vent_count=vent_count,
        non_vent_count=len(entries) - vent_count,
    )


def _failure(error: InternalError) -> PatternsFailure:
    return PatternsFailure(error=ErrorInfo(message=error.message))


# =============================================================================
# Engine
# =============================================================================


class ReflectionEngine:
    """Generates longitudinal reflections from journal entries.

    The Gemini client is created lazily, only once a request has passed the
    longitudinal gate, so thin-data requests work without any credentials.

    Example:
        >>> engine = ReflectionEngine(cache=PatternCache(ttl_seconds=60))
        >>> result = engine.reflect("user-1", entries, debug=True)
        >>> result.to_payload()["debug"]["reason"]
        'spoke'
    """

    def __init__(
        self,
        client: AIClient | None = None,
        cache: PatternCache | None = None,
        config: AppConfig | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: AI client. If None, one is created from config on first use.
            cache: Result cache. If None, a fresh in-process cache is used.
            config: Application configuration. If None, loads from get_config().
        """
        self.config = config or get_config()
        self._client = client
        if cache is None:
            cache = PatternCache(ttl_seconds=self.config.cache.ttl_seconds)
        self.cache = cache
        self._logger = logging.getLogger(f"{__name__}.ReflectionEngine")

    @property
    def client(self) -> AIClient:
        if self._client is None:
            self._client = get_client(self.config)
        return self._client

    # =========================================================================
    # Public API
    # =========================================================================

    def generate_patterns(
        self,
        entries: Iterable[JournalEntry | dict[str, Any]],
        debug: bool = False,
    ) -> PatternsResult:
        """Run one reflection without touching the cache.

        Args:
            entries: The user's entries, in any order.
            debug: Attach a PatternDebug block to the result.

        Returns:
            PatternsSuccess for every model outcome, PatternsFailure only for
            missing credentials or an internal fault.
        """
        try:
            return self._generate(sort_entries(coerce_entries(entries)), debug)
        except AIUnavailableError as e:
            self._logger.warning(f"Gemini unavailable: {e.reason}")
            return _failure(InternalError(NOT_CONFIGURED_MESSAGE))
        except Exception as e:
            self._logger.error(f"Pattern generation failed: {type(e).__name__}")
            self._logger.debug("Pattern generation traceback", exc_info=True)
            return _failure(InternalError())

    def reflect(
        self,
        user_id: str,
        entries: Iterable[JournalEntry | dict[str, Any]],
        debug: bool = False,
        refresh: bool = False,
    ) -> PatternsResult:
        """Run a cached reflection for one user.

        Args:
            user_id: Cache slot owner.
            entries: The user's entries, in any order.
            debug: Attach debug, debugMeta and (on cache hits) cacheMeta.
            refresh: Skip the cache fast path. Writes still happen.

        Returns:
            Same contract as generate_patterns. A cache hit returns the
            stored result unchanged apart from debug metadata.
        """
        try:
            ordered = sort_entries(coerce_entries(entries))
        except Exception as e:
            self._logger.error(f"Entry validation failed: {type(e).__name__}")
            return _failure(InternalError())

        fingerprint = fingerprint_entries(ordered)
        debug_meta = build_debug_meta(ordered) if debug else None

        if not refresh:
            cached = self.cache.get(user_id)
            if cached is not None and self.cache.is_fresh(cached, fingerprint):
                self._logger.info("Serving cached reflection")
                return self._serve_cached(cached, debug_meta, fingerprint)

        result = self.generate_patterns(ordered, debug=debug)
        if not isinstance(result, PatternsSuccess):
            return result

        if result.is_silent:
            # Silence never replaces a recent answer, even for changed entries.
            cached = self.cache.get(user_id)
            if cached is not None and self.cache.is_fresh(cached):
                self._logger.info("Silent outcome; serving recent cached reflection")
                return self._serve_cached(cached, debug_meta, None)
        else:
            self.cache.put(
                user_id,
                CacheEntry(
                    user_id=user_id,
                    fingerprint=fingerprint,
                    timestamp_ms=self.cache.now_ms(),
                    value=result,
                ),
            )

        if debug_meta is not None:
            return result.model_copy(update={"debug_meta": debug_meta})
        return result

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _generate(self, entries: list[JournalEntry], debug: bool) -> PatternsSuccess:
        decision = check_eligibility(entries)
        attempt: ModelAttempt | None = None

        try:
            if not decision.eligible:
                raise GateRejectedError(decision.reason, decision.entries_count, decision.span_days)

            request = build_prompt_request(entries)
            with LogContext("Model call", logger=self._logger):
                attempt = self.client.generate_once(request)

            if not isinstance(attempt, ModelReply):
                raise ProviderUnavailableError(
                    status=attempt.error_status,
                    message=attempt.error_message,
                    retry_after=attempt.retry_after_seconds,
                    model_name=attempt.model_name,
                )

            pattern, reason = self._interpret(attempt.text, decision.span_days)
        except InternalError:
            raise
        except ReflectionError as e:
            pattern, reason = silent_pattern(), e.reason

        self._logger.info(f"Reflection outcome: {reason.value}")
        return PatternsSuccess(
            value=pattern,
            debug=self._build_debug(reason, decision, attempt) if debug else None,
        )

    def _interpret(
        self, text: str, span_days: int | None
    ) -> tuple[ValidatedPattern, ReflectionReason]:
        """Turn raw model text into a pattern, first matching rule wins.

        Raises:
            UnparseableOutputError: No JSON object could be recovered.
            SchemaInvalidError: The recovered object has the wrong shape.
            EmptyAfterSanitizeError: The model spoke but said nothing.
        """
        parsed = parse_best_json(text, matches_response_shape)
        if parsed is None:
            raise UnparseableOutputError(output_length=len(text))

        response = validate_shape(parsed)

        try:
            sanitize_output(response.reflection, response.themes)
        except BannedLanguageError:
            return banned_language_pattern(span_days), ReflectionReason.BANNED_LANGUAGE

        if not response.should_speak:
            return no_clear_pattern(span_days), ReflectionReason.MODEL_SILENCE

        reflection = (response.reflection or "").strip()
        if not reflection:
            raise EmptyAfterSanitizeError()

        return (
            ValidatedPattern(
                should_speak=True,
                reflection=reflection,
                themes=clean_themes(response.themes),
                time_range=self._resolve_time_range(response.time_range, span_days),
            ),
            ReflectionReason.SPOKE,
        )

    @staticmethod
    def _resolve_time_range(model_value: str | None, span_days: int | None) -> str:
        candidate = (model_value or "").strip().lower()
        if candidate in TIME_RANGE_PHRASES:
            return candidate
        return describe_time_range(span_days)

    # =========================================================================
    # Envelope helpers
    # =========================================================================

    def _build_debug(
        self,
        reason: ReflectionReason,
        decision: EligibilityDecision,
        attempt: ModelAttempt | None,
    ) -> PatternDebug:
        fields: dict[str, Any] = {
            "attempted": attempt is not None,
            "reason": reason,
            "entries_count": decision.entries_count,
            "span_days": decision.span_days,
            "model_name": attempt.model_name if attempt is not None else None,
        }

        if isinstance(attempt, ModelReply):
            fields["finish_reason"] = attempt.finish_reason
            fields["output_length"] = len(attempt.text)
            preview_chars = self.config.ai.output_preview_chars
            fields["output_preview"] = strip_code_fences(attempt.text)[:preview_chars]
        elif attempt is not None:
            fields["error_status"] = attempt.error_status
            fields["error_message"] = attempt.error_message
            fields["retry_after_seconds"] = attempt.retry_after_seconds

        return PatternDebug(**fields)

    def _serve_cached(
        self,
        cached: CacheEntry,
        debug_meta: DebugMeta | None,
        fingerprint: str | None,
    ) -> PatternsSuccess:
        if debug_meta is None:
            return cached.value

        cache_fields: dict[str, Any] = {"age_seconds": self.cache.age_ms(cached) // 1000}
        if fingerprint is not None:
            cache_fields["entries_fingerprint"] = fingerprint
        return cached.value.model_copy(
            update={"debug_meta": debug_meta, "cache_meta": CacheMeta(**cache_fields)}
        )
