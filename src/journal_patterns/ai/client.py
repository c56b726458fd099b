"""Gemini Client for the Journal Pattern Reflection Engine.

This module is the SOLE INTERFACE to the Gemini API. No other file in the
codebase imports google-generativeai.

The client provides:
- Exactly one generate_content call per request, never retried
- Streaming with a fallback to the aggregated candidate text
- Provider failures returned as values (ModelFailure), never raised
- Model name resolution: explicit config, else discovered once per client
- Security-first logging (never logs keys, prompts or responses)

There are no retries. A failed call is reported once, with the provider's
suggested retry delay when it sends one.

Example:
    >>> from journal_patterns.ai.client import get_client, AIUnavailableError
    >>>
    >>> try:
    ...     client = get_client()
    ...     attempt = client.generate_once(build_prompt_request(entries))
    ... except AIUnavailableError:
    ...     print("Gemini is not configured")

Security Rules:
- NEVER log API keys (ever, in any form)
- NEVER log prompts (they contain journal text)
- NEVER log model output (it paraphrases journal text)
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Iterable, Literal

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import GenerationConfig

from journal_patterns.ai.prompts import RESPONSE_SCHEMA
from journal_patterns.config import APIKeyNotFoundError, AppConfig, get_api_key, get_config
from journal_patterns.core.models import ModelAttempt, ModelFailure, ModelReply, PromptRequest

# =============================================================================
# Secure Logging Filter
# =============================================================================


class RedactingFilter(logging.Filter):
    """Logging filter that redacts anything that looks like a credential.

    Example:
        >>> logger.addFilter(RedactingFilter())
        >>> logger.info("Using key=AIzaSy123456789...")
        # Output: "Using key=[REDACTED]"
    """

    KEY_VALUE_PATTERNS = [
        re.compile(r'(api_key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(token\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r"(bearer\s+)([a-zA-Z0-9_\-]{20,})", re.IGNORECASE),
    ]
    # Gemini keys start with AIza
    STANDALONE_PATTERNS = [
        re.compile(r"\bAIza[a-zA-Z0-9_\-]{30,}\b"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True

    def _redact(self, text: str) -> str:
        for pattern in self.KEY_VALUE_PATTERNS:
            text = pattern.sub(r"\1[REDACTED]", text)
        for pattern in self.STANDALONE_PATTERNS:
            text = pattern.sub("[REDACTED]", text)
        return text


logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())


# =============================================================================
# Exception Hierarchy
# =============================================================================


class AIClientError(Exception):
    """Base exception for client construction errors.

    Provider errors during a call are not raised; they come back as
    ModelFailure values from generate_once.

    Attributes:
        message: Human-readable error description (safe to log).
        details: Additional context (don't log).
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class AIUnavailableError(AIClientError):
    """Gemini cannot be used at all (no key, SDK could not be configured).

    Attributes:
        reason: Why Gemini is unavailable.
    """

    def __init__(
        self,
        reason: Literal["no_api_key", "sdk_error"],
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.reason = reason
        default_messages = {
            "no_api_key": "No Gemini API key configured",
            "sdk_error": "Gemini SDK could not be configured",
        }
        super().__init__(
            message or default_messages.get(reason, f"AI unavailable: {reason}"),
            original_error=original_error,
        )


class APIKeyMissingError(AIUnavailableError):
    """No API key configured."""

    def __init__(
        self,
        suggestion: str = "Set GEMINI_API_KEY or store a key in the system keyring",
    ) -> None:
        self.suggestion = suggestion
        super().__init__(reason="no_api_key", message=f"No API key configured. {suggestion}")


# =============================================================================
# Helpers
# =============================================================================


_RETRY_DELAY_RE = re.compile(r"^(\d+)s$")


def normalize_model_name(name: str) -> str:
    """Ensure a model name carries the ``models/`` prefix."""
    trimmed = name.strip()
    if not trimmed or trimmed.startswith("models/"):
        return trimmed
    return f"models/{trimmed}"


def select_model_name(available: list[str], preferred: list[str], default: str) -> str:
    """Choose a model from those that support generateContent.

    Args:
        available: Names of models supporting generateContent, in listing order.
        preferred: Name prefixes in order of preference.
        default: Returned when ``available`` is empty.

    Returns:
        First model matching the earliest preferred prefix, else the first
        available model, else ``default``.
    """
    for prefix in preferred:
        hit = next((name for name in available if name.startswith(prefix)), None)
        if hit is not None:
            return hit
    return available[0] if available else default


def extract_error_status(error: Exception) -> int | None:
    """HTTP status carried by a provider exception, if it is an integer."""
    code = getattr(error, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return None


def extract_retry_after_seconds(error: Exception) -> int | None:
    """Parse the provider's suggested retry delay from error details.

    Understands both JSON-style details (``{"@type": "...RetryInfo",
    "retryDelay": "30s"}``) and protobuf RetryInfo messages with a
    ``retry_delay.seconds`` field.
    """
    details = getattr(error, "details", None)
    if not isinstance(details, (list, tuple)):
        return None

    for detail in details:
        if isinstance(detail, dict):
            if "RetryInfo" not in str(detail.get("@type", "")):
                continue
            delay = detail.get("retryDelay")
            match = _RETRY_DELAY_RE.match(delay) if isinstance(delay, str) else None
            return int(match.group(1)) if match else None

        seconds = getattr(getattr(detail, "retry_delay", None), "seconds", None)
        if isinstance(seconds, int) and not isinstance(seconds, bool):
            return seconds

    return None


def _candidate_parts(response: Any) -> list[Any] | None:
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None)
    return list(parts) if parts is not None else None


def _join_parts(parts: Iterable[Any]) -> str:
    return "".join(part.text for part in parts if isinstance(getattr(part, "text", None), str))


def _finish_reason(response: Any) -> str | None:
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return getattr(reason, "name", None) or str(reason)


# =============================================================================
# Main Client Class
# =============================================================================


class AIClient:
    """Single-shot Gemini client.

    Construction configures the SDK and fails fast when no key is available.
    The model name is resolved on first use and then reused for the life of
    the client.

    Example:
        >>> client = AIClient()
        >>> attempt = client.generate_once(request)
        >>> if attempt.ok:
        ...     print(attempt.finish_reason)
        ... else:
        ...     print(attempt.error_status, attempt.retry_after_seconds)
    """

    def __init__(self, config: AppConfig | None = None, api_key: str | None = None) -> None:
        """Initialize the client.

        Args:
            config: Application configuration. If None, loads from get_config().
            api_key: Override API key. If None, loads from configured sources.

        Raises:
            APIKeyMissingError: If no API key can be found.
        """
        self._config = config or get_config()
        self._resolved_model_name: str | None = None
        self._logger = logging.getLogger(f"{__name__}.AIClient")
        self._logger.addFilter(RedactingFilter())

        if api_key is None:
            try:
                api_key = get_api_key().get_secret_value()
            except APIKeyNotFoundError as e:
                self._logger.warning("No API key configured")
                raise APIKeyMissingError() from e

        # Configure the SDK (never log the key!)
        genai.configure(api_key=api_key)
        self._logger.debug("Gemini SDK configured")

    # =========================================================================
    # Model Resolution
    # =========================================================================

    @property
    def model_name(self) -> str:
        return self.resolve_model_name()

    def resolve_model_name(self) -> str:
        """Return the model to call, discovering it once if not configured."""
        if self._resolved_model_name is not None:
            return self._resolved_model_name

        explicit = self._config.ai.model_name
        if explicit and explicit.strip():
            self._resolved_model_name = normalize_model_name(explicit)
        else:
            self._resolved_model_name = self._discover_model_name()

        self._logger.info(f"Using model {self._resolved_model_name}")
        return self._resolved_model_name

    def _discover_model_name(self) -> str:
        default = normalize_model_name(self._config.ai.default_model)
        try:
            available = [
                model.name
                for model in genai.list_models()
                if isinstance(getattr(model, "name", None), str)
                and "generateContent" in (getattr(model, "supported_generation_methods", None) or [])
            ]
        except Exception as e:
            # Listing is best effort; any failure means the default model.
            self._logger.warning(f"Model listing failed, using default: {type(e).__name__}")
            return default

        preferred = [normalize_model_name(p) for p in self._config.ai.preferred_models]
        return select_model_name(available, preferred, default)

    # =========================================================================
    # Generation
    # =========================================================================

    def _get_generation_config(self) -> GenerationConfig:
        return GenerationConfig(
            temperature=self._config.ai.temperature,
            # Kept high so the JSON isn't truncated mid-object.
            max_output_tokens=self._config.ai.max_output_tokens,
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
        )

    def generate_once(self, request: PromptRequest) -> ModelAttempt:
        """Make exactly one streamed generate_content call.

        Args:
            request: System instruction plus the single user-text blob.

        Returns:
            ModelReply on success, ModelFailure on any provider error.
            Never raises for provider errors.
        """
        model_name = self.resolve_model_name()
        start_time = time.time()

        try:
            model = genai.GenerativeModel(
                model_name=model_name,
                system_instruction=request.system_instruction,
            )
            response = model.generate_content(
                [{"role": "user", "parts": [request.user_text]}],
                generation_config=self._get_generation_config(),
                stream=True,
            )
            reply = self._collect(model_name, response)
        except google_exceptions.GoogleAPICallError as e:
            failure = self._to_failure(model_name, e)
            self._logger.warning(
                f"Generation failed: {type(e).__name__} (status={failure.error_status}, "
                f"retry_after={failure.retry_after_seconds})"
            )
            return failure
        except Exception as e:
            # Blocked prompts, stopped candidates and transport errors are
            # provider failures too; the caller degrades them to silence.
            self._logger.error(f"Generation failed: {type(e).__name__}")
            return self._to_failure(model_name, e)

        latency_ms = (time.time() - start_time) * 1000
        self._logger.info(
            f"Generation finished: {reply.finish_reason or '?'} "
            f"{len(reply.text)} chars in {latency_ms:.0f}ms"
        )
        return reply

    def _collect(self, model_name: str, response: Any) -> ModelReply:
        """Accumulate a streamed response and reconcile it with the aggregate.

        The aggregated text can come back shorter than what was streamed, so
        the longer of the two wins.
        """
        streamed_text = ""
        streamed_chunks = 0
        for chunk in response:
            streamed_chunks += 1
            streamed_text += _join_parts(_candidate_parts(chunk) or [])

        parts = _candidate_parts(response)
        if parts:
            aggregated_text = _join_parts(parts)
        else:
            aggregated_text = self._response_text(response)

        text = streamed_text if len(streamed_text) >= len(aggregated_text) else aggregated_text

        if streamed_chunks > 1 and len(streamed_text) != len(aggregated_text):
            self._logger.debug(
                f"Stream/aggregate length mismatch: chunks={streamed_chunks} "
                f"streamed={len(streamed_text)} aggregated={len(aggregated_text)}"
            )

        return ModelReply(
            model_name=model_name,
            text=text,
            finish_reason=_finish_reason(response),
            parts_count=len(parts) if parts is not None else None,
        )

    @staticmethod
    def _response_text(response: Any) -> str:
        try:
            text = response.text
        except ValueError:
            # The SDK raises when the candidate has no text parts.
            return ""
        return text if isinstance(text, str) else ""

    @staticmethod
    def _to_failure(model_name: str, error: Exception) -> ModelFailure:
        message = getattr(error, "message", None)
        if not isinstance(message, str) or not message:
            message = str(error) or "Gemini request failed."
        return ModelFailure(
            model_name=model_name,
            error_status=extract_error_status(error),
            error_message=message,
            retry_after_seconds=extract_retry_after_seconds(error),
        )


# =============================================================================
# Module-Level Functions
# =============================================================================


def get_client(config: AppConfig | None = None) -> AIClient:
    """Factory function to create a configured AI client.

    Args:
        config: Optional configuration override.

    Returns:
        Configured AIClient instance.

    Raises:
        AIUnavailableError: If Gemini cannot be initialized.
    """
    try:
        return AIClient(config=config)
    except AIUnavailableError:
        raise
    except Exception as e:
        logger.error(f"Failed to create AI client: {type(e).__name__}")
        raise AIUnavailableError("sdk_error", original_error=e) from e
