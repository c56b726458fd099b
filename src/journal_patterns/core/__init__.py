"""Core models, gating and entry selection for the reflection engine."""

from journal_patterns.core.eligibility import (
    MIN_NON_VENT_ENTRIES,
    MIN_SPAN_DAYS,
    check_eligibility,
    compute_span_days,
    describe_time_range,
    parse_iso_date,
    sort_entries,
)
from journal_patterns.core.errors import (
    BannedLanguageError,
    EmptyAfterSanitizeError,
    GateRejectedError,
    InternalError,
    ProviderUnavailableError,
    ReflectionError,
    SchemaInvalidError,
    UnparseableOutputError,
)
from journal_patterns.core.models import (
    CacheMeta,
    DebugMeta,
    EligibilityDecision,
    ErrorInfo,
    JournalEntry,
    ModelAttempt,
    ModelFailure,
    ModelReply,
    PatternDebug,
    PatternsFailure,
    PatternsResult,
    PatternsSuccess,
    PromptRequest,
    ReflectionReason,
    ValidatedPattern,
)
from journal_patterns.core.selection import compact_entry_text, select_entries

__all__ = [
    # Models
    "CacheMeta",
    "DebugMeta",
    "EligibilityDecision",
    "ErrorInfo",
    "JournalEntry",
    "ModelAttempt",
    "ModelFailure",
    "ModelReply",
    "PatternDebug",
    "PatternsFailure",
    "PatternsResult",
    "PatternsSuccess",
    "PromptRequest",
    "ReflectionReason",
    "ValidatedPattern",
    # Gate
    "MIN_NON_VENT_ENTRIES",
    "MIN_SPAN_DAYS",
    "check_eligibility",
    "compute_span_days",
    "describe_time_range",
    "parse_iso_date",
    "sort_entries",
    # Selection
    "compact_entry_text",
    "select_entries",
    # Errors
    "BannedLanguageError",
    "EmptyAfterSanitizeError",
    "GateRejectedError",
    "InternalError",
    "ProviderUnavailableError",
    "ReflectionError",
    "SchemaInvalidError",
    "UnparseableOutputError",
]
