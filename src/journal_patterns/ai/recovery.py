"""Recover a JSON object from model output that is only mostly JSON.

Even with ``response_mime_type="application/json"`` the model sometimes:

- wraps the object in a markdown code fence
- prefixes it with prose or an example object
- emits near-JSON (trailing commas, bare keys, single quotes, Python literals)

Recovery runs in four steps:

1. strip_code_fences: keep the content of the first fenced block
2. scan_json_objects: find every top-level balanced ``{...}`` substring
3. try_parse_json_loose: strict parse, then one repair pass, then give up
4. parse_best_json: prefer the last candidate that has the expected shape

Example:
    >>> parse_best_json('Sure! ```json\\n{"shouldSpeak": false,}\\n```')
    {'shouldSpeak': False}
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum, auto
from typing import Any, Callable

logger = logging.getLogger(__name__)

FENCE = "```"

_LANGUAGE_TAG_RE = re.compile(r"^[ \t]*[A-Za-z][\w.+-]*[ \t]*\r?\n")

# Repairs are applied in this order, each once, over the whole candidate.
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_PYTHON_LITERALS = (
    (re.compile(r"\bTrue\b"), "true"),
    (re.compile(r"\bFalse\b"), "false"),
    (re.compile(r"\bNone\b"), "null"),
)
_BARE_KEY_RE = re.compile(r"([{\[,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_SINGLE_QUOTED_KEY_RE = re.compile(r"([{,]\s*)'([^'\\]*)'(\s*:)")
_SINGLE_QUOTED_VALUE_RE = re.compile(r":\s*'([^'\\]*)'")
_SINGLE_QUOTED_ITEM_RE = re.compile(r"([\[,]\s*)'([^'\\]*)'(?=\s*[,\]])")


class ScanState(Enum):
    """Lexical state of the brace scanner."""

    NORMAL = auto()
    IN_STRING = auto()
    ESCAPED = auto()


# =============================================================================
# Fences
# =============================================================================


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or the stripped text.

    An optional language tag on the first line of the block (``json``,
    ``JSON``, ``javascript``...) is dropped. An unclosed fence is ignored.
    """
    start = text.find(FENCE)
    if start == -1:
        return text.strip()
    end = text.find(FENCE, start + len(FENCE))
    if end == -1:
        return text.strip()

    inside = text[start + len(FENCE) : end]
    return _LANGUAGE_TAG_RE.sub("", inside, count=1).strip()


# =============================================================================
# Scanner
# =============================================================================


def _find_object_end(text: str, start: int) -> int | None:
    """Index of the brace closing the object opened at ``start``, if any.

    Braces are only counted in NORMAL state, so ``{`` and ``}`` inside
    double-quoted strings (including after escaped quotes) are ignored.
    """
    state = ScanState.NORMAL
    depth = 0

    for i in range(start, len(text)):
        ch = text[i]

        if state is ScanState.ESCAPED:
            state = ScanState.IN_STRING
        elif state is ScanState.IN_STRING:
            if ch == "\\":
                state = ScanState.ESCAPED
            elif ch == '"':
                state = ScanState.NORMAL
        elif ch == '"':
            state = ScanState.IN_STRING
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i

    return None


def scan_json_objects(text: str) -> list[str]:
    """Extract every top-level balanced ``{...}`` substring, in text order.

    An opener that never closes (truncated output) is skipped and the scan
    resumes at the next ``{`` after it, so a complete object that follows
    a broken one is still found.
    """
    objects: list[str] = []
    pos = 0

    while True:
        start = text.find("{", pos)
        if start == -1:
            break

        end = _find_object_end(text, start)
        if end is None:
            pos = start + 1
            continue

        objects.append(text[start : end + 1].strip())
        pos = end + 1

    return objects


# =============================================================================
# Loose parsing
# =============================================================================


def _double_quoted(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


def repair_near_json(candidate: str) -> str:
    """Apply one pass of best-effort repairs toward strict JSON.

    Handles trailing commas, Python ``True``/``False``/``None``, bare
    identifier keys and single-quoted keys, values and array items.

    Note:
        Single-quoted strings are assumed to contain no single quotes. A
        value like ``'it's fine'`` is not repaired and the candidate will
        still fail to parse.
    """
    repaired = _TRAILING_COMMA_RE.sub(r"\1", candidate)
    for pattern, replacement in _PYTHON_LITERALS:
        repaired = pattern.sub(replacement, repaired)
    repaired = _BARE_KEY_RE.sub(r'\1"\2"\3', repaired)
    repaired = _SINGLE_QUOTED_KEY_RE.sub(
        lambda m: f"{m.group(1)}{_double_quoted(m.group(2))}{m.group(3)}", repaired
    )
    repaired = _SINGLE_QUOTED_VALUE_RE.sub(lambda m: f": {_double_quoted(m.group(1))}", repaired)
    repaired = _SINGLE_QUOTED_ITEM_RE.sub(
        lambda m: f"{m.group(1)}{_double_quoted(m.group(2))}", repaired
    )
    return repaired


def try_parse_json_loose(candidate: str) -> Any | None:
    """Strict parse, else one repair pass and a second strict parse.

    Returns:
        The parsed value, or None if both attempts fail.
    """
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, RecursionError):
        pass

    try:
        return json.loads(repair_near_json(candidate))
    except (json.JSONDecodeError, RecursionError):
        return None


def parse_best_json(
    text: str,
    matches_shape: Callable[[Any], bool] | None = None,
) -> Any | None:
    """Pick the most plausible JSON object from raw model output.

    Candidates are tried from last to first, since models sometimes emit an
    example object before the real one. The first candidate that parses
    and satisfies ``matches_shape`` wins.

    Args:
        text: Raw model output.
        matches_shape: Predicate for the expected response shape. When
            omitted every parsed candidate matches.

    Returns:
        The chosen value. If nothing matches the shape, the parsed candidate
        met last in the iteration (earliest in the text). None when no
        candidate parses at all.
    """
    candidates = scan_json_objects(strip_code_fences(text))
    fallback: Any | None = None

    for candidate in reversed(candidates):
        parsed = try_parse_json_loose(candidate)
        if parsed is None:
            continue
        fallback = parsed
        if matches_shape is None or matches_shape(parsed):
            return parsed

    logger.debug(
        f"No shape-matching candidate among {len(candidates)} "
        f"(fallback={'yes' if fallback is not None else 'no'})"
    )
    return fallback
