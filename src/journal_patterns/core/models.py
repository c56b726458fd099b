"""Core data models for the Journal Pattern Reflection Engine.

Models follow the flow of a single reflection request:
1. INPUT (JournalEntry) - read-only rows handed over by the persistence layer
2. PER-CALL SCRATCH (EligibilityDecision, PromptRequest, ModelReply, ModelFailure)
3. CANONICAL OUTPUT (ValidatedPattern)
4. ENVELOPE (PatternsSuccess / PatternsFailure) - what the calling layer sees

Everything that crosses the wire serializes with camelCase keys so the
payload matches what the journaling front-end already consumes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class ReflectionReason(str, Enum):
    """Why a reflection request ended the way it did.

    Only surfaced to callers in debug mode, but always computed so logs and
    tests can branch on it.
    """

    NOT_ENOUGH_ENTRIES = "not_enough_entries"
    NOT_ENOUGH_SPAN = "not_enough_span"
    MODEL_SILENCE = "model_silence"
    RATE_LIMITED = "rate_limited"
    MODEL_ERROR = "model_error"
    BANNED_LANGUAGE = "banned_language"
    INVALID_JSON = "invalid_json"
    INVALID_SHAPE = "invalid_shape"
    EMPTY_REFLECTION = "empty_reflection"
    SPOKE = "spoke"


class _WireModel(BaseModel):
    """Base for models that serialize with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=False)


# =============================================================================
# Input
# =============================================================================


class JournalEntry(BaseModel):
    """One journal row as handed over by the persistence collaborator.

    Accepts both the camelCase shape used by the app and the snake_case
    column names of the ``journal_entries`` table, so raw rows validate
    without a mapping step.

    Attributes:
        entry_date: Calendar date in ISO form (YYYY-MM-DD).
        body: Free-text body of the entry.
        prompt1: First guided prompt shown to the user.
        prompt2: Second guided prompt shown to the user.
        p1_answer: Answer to the first prompt.
        p2_answer: Answer to the second prompt.
        vent_entry: True when the user marked the entry as venting.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entry_date: str = Field(validation_alias=AliasChoices("entry_date", "entryDate"))
    body: str = ""
    prompt1: str = Field(default="", validation_alias=AliasChoices("prompt1", "prompt_1"))
    prompt2: str = Field(default="", validation_alias=AliasChoices("prompt2", "prompt_2"))
    p1_answer: str = Field(default="", validation_alias=AliasChoices("p1_answer", "p1Answer"))
    p2_answer: str = Field(default="", validation_alias=AliasChoices("p2_answer", "p2Answer"))
    vent_entry: bool = Field(default=False, validation_alias=AliasChoices("vent_entry", "ventEntry"))

    @field_validator("body", "prompt1", "prompt2", "p1_answer", "p2_answer", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("vent_entry", mode="before")
    @classmethod
    def _none_to_false(cls, v: Any) -> Any:
        return False if v is None else v


# =============================================================================
# Per-call scratch
# =============================================================================


class EligibilityDecision(BaseModel):
    """Outcome of the longitudinal gate."""

    eligible: bool
    reason: ReflectionReason | None = None
    entries_count: int = 0
    span_days: int | None = None


class PromptRequest(BaseModel):
    """The two strings sent to the model: fixed policy and one data blob."""

    system_instruction: str
    user_text: str


class ModelReply(BaseModel):
    """Successful single call to the model provider."""

    ok: Literal[True] = True
    model_name: str
    text: str
    finish_reason: str | None = None
    parts_count: int | None = None


class ModelFailure(BaseModel):
    """Failed single call to the model provider."""

    ok: Literal[False] = False
    model_name: str
    error_status: int | None = None
    error_message: str = "Gemini request failed."
    retry_after_seconds: int | None = None


ModelAttempt = Union[ModelReply, ModelFailure]


# =============================================================================
# Output
# =============================================================================


class ValidatedPattern(_WireModel):
    """The canonical, user-facing reflection.

    ``reflection`` and ``time_range`` are both None exactly when
    ``should_speak`` is False. ``invitation`` is never populated.
    """

    should_speak: bool
    reflection: str | None = None
    themes: list[str] = Field(default_factory=list, max_length=3)
    time_range: str | None = None
    invitation: None = None

    @model_validator(mode="after")
    def _speaking_needs_text(self) -> ValidatedPattern:
        has_text = self.reflection is not None and self.time_range is not None
        no_text = self.reflection is None and self.time_range is None
        if self.should_speak and not has_text:
            raise ValueError("a spoken pattern needs reflection and time_range")
        if not self.should_speak and not no_text:
            raise ValueError("a silent pattern carries no reflection or time_range")
        return self


class PatternDebug(_WireModel):
    """Diagnostics attached to a result when the caller asks for debug.

    Only fields that were explicitly set are serialized, so an explicit
    ``model_name=None`` shows up as ``"modelName": null`` while fields that
    don't apply to an outcome are left out.
    """

    attempted: bool
    reason: ReflectionReason
    entries_count: int
    span_days: int | None = None
    model_name: str | None = None
    finish_reason: str | None = None
    output_length: int | None = None
    output_preview: str | None = None
    error_status: int | None = None
    error_message: str | None = None
    retry_after_seconds: int | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class DebugMeta(_WireModel):
    """Entry counts for the snapshot a request was computed from."""

    total_count: int
    vent_count: int
    non_vent_count: int


class CacheMeta(_WireModel):
    """Present only when a debug response was served from the cache."""

    served_from_cache: bool = True
    age_seconds: int
    entries_fingerprint: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ErrorInfo(BaseModel):
    message: str


class PatternsSuccess(BaseModel):
    """Success variant of the engine result."""

    ok: Literal[True] = True
    value: ValidatedPattern
    debug: PatternDebug | None = None
    debug_meta: DebugMeta | None = None
    cache_meta: CacheMeta | None = None

    @property
    def is_silent(self) -> bool:
        """True for an empty "nothing to say" outcome."""
        v = self.value
        return (
            not v.should_speak
            and v.reflection is None
            and v.time_range is None
            and v.invitation is None
            and not v.themes
        )

    def to_payload(self) -> dict[str, Any]:
        payload = self.value.to_wire()
        if self.debug is not None:
            payload["debug"] = self.debug.to_wire()
        if self.debug_meta is not None:
            payload["debugMeta"] = self.debug_meta.to_wire()
        if self.cache_meta is not None:
            payload["cacheMeta"] = self.cache_meta.to_wire()
        return payload


class PatternsFailure(BaseModel):
    """Failure variant, reserved for configuration and internal faults."""

    ok: Literal[False] = False
    error: ErrorInfo

    def to_payload(self) -> dict[str, Any]:
        return {"error": {"message": self.error.message}}


PatternsResult = Union[PatternsSuccess, PatternsFailure]
