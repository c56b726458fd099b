"""Gemini-backed reflection pipeline.

Public entry point is ReflectionEngine; the other names are exported for
callers that need a single stage (the CLI's dry run, tests).
"""

from journal_patterns.ai.analyzer import ReflectionEngine
from journal_patterns.ai.cache import CacheEntry, PatternCache, fingerprint_entries
from journal_patterns.ai.client import (
    AIClient,
    AIClientError,
    AIUnavailableError,
    APIKeyMissingError,
    get_client,
)
from journal_patterns.ai.prompts import (
    RESPONSE_SCHEMA,
    SYSTEM_INSTRUCTION,
    TIME_RANGE_PHRASES,
    build_prompt_request,
)
from journal_patterns.ai.recovery import parse_best_json, strip_code_fences
from journal_patterns.ai.validation import BANNED_SUBSTRINGS, clean_themes, validate_shape

__all__ = [
    # Engine
    "ReflectionEngine",
    # Cache
    "CacheEntry",
    "PatternCache",
    "fingerprint_entries",
    # Client
    "AIClient",
    "AIClientError",
    "AIUnavailableError",
    "APIKeyMissingError",
    "get_client",
    # Prompts
    "RESPONSE_SCHEMA",
    "SYSTEM_INSTRUCTION",
    "TIME_RANGE_PHRASES",
    "build_prompt_request",
    # Recovery and validation
    "BANNED_SUBSTRINGS",
    "clean_themes",
    "parse_best_json",
    "strip_code_fences",
    "validate_shape",
]
