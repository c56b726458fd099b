"""
Exception hierarchy for the reflection pipeline.

Rule: every error carries a machine-readable ``reason`` string so the
orchestrator can turn it into a debug reason code without parsing English
messages. Everything except InternalError is degraded by the engine into a
successful silent or templated envelope; callers never see these raised.
"""
from __future__ import annotations

from typing import Any

from journal_patterns.core.models import ReflectionReason


class ReflectionError(Exception):
    """Base class for all pipeline errors."""

    reason: ReflectionReason | None = None

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class GateRejectedError(ReflectionError):
    def __init__(self, reason: ReflectionReason, entries_count: int, span_days: int | None):
        self.reason = reason
        super().__init__(
            message=f"Not enough longitudinal signal ({reason.value}).",
            details={"entries_count": entries_count, "span_days": span_days},
        )


class ProviderUnavailableError(ReflectionError):
    """The single model call failed (rate limit, server error, refusal)."""

    def __init__(
        self,
        status: int | None,
        message: str,
        retry_after: int | None = None,
        model_name: str | None = None,
    ):
        self.status = status
        self.retry_after = retry_after
        self.model_name = model_name
        self.reason = (
            ReflectionReason.RATE_LIMITED if status == 429 else ReflectionReason.MODEL_ERROR
        )
        super().__init__(
            message=message,
            details={"status": status, "retry_after_seconds": retry_after},
        )


class UnparseableOutputError(ReflectionError):
    reason = ReflectionReason.INVALID_JSON

    def __init__(self, output_length: int):
        super().__init__(
            message="No JSON object could be recovered from the model output.",
            details={"output_length": output_length},
        )


class SchemaInvalidError(ReflectionError):
    reason = ReflectionReason.INVALID_SHAPE

    def __init__(self, errors: list[dict[str, Any]] | None = None):
        super().__init__(
            message="Recovered JSON does not match the expected shape.",
            details={"errors": errors} if errors else {},
        )


class BannedLanguageError(ReflectionError):
    reason = ReflectionReason.BANNED_LANGUAGE

    def __init__(self, phrase: str):
        # The matched phrase is safe to keep; the surrounding model text is not.
        super().__init__(
            message="Model output contains disallowed language.",
            details={"phrase": phrase},
        )


class EmptyAfterSanitizeError(ReflectionError):
    reason = ReflectionReason.EMPTY_REFLECTION

    def __init__(self):
        super().__init__(message="Reflection is empty after sanitizing.")


class InternalError(ReflectionError):
    """Configuration or programming fault. Surfaces as a failure envelope."""

    def __init__(self, message: str = "Failed to generate patterns.", details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details)
