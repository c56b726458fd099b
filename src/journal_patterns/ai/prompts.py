"""Prompt construction for the journal pattern reflection call.

This module is the SINGLE SOURCE of the text sent to Gemini. The request is
always two strings:

- SYSTEM_INSTRUCTION: fixed observer policy and output contract
- user text: one header line plus ONE JSON array blob of compacted entries

Entries are sent as a single content part rather than one message per
entry, which keeps the model's view of the data stable and ordered.

Example:
    >>> from journal_patterns.ai.prompts import build_prompt_request
    >>> request = build_prompt_request(sorted_entries)
    >>> client.generate_once(request)
"""

from __future__ import annotations

import json
import textwrap
from typing import Any

from journal_patterns.core.models import JournalEntry, PromptRequest
from journal_patterns.core.selection import compact_entry_text, select_entries

PROMPT_VERSION = "1.0.0"

TIME_RANGE_PHRASES: tuple[str, ...] = (
    "over the past week",
    "over the past two weeks",
    "over the past few weeks",
)

MAX_REFLECTION_CHARS = 240
MAX_THEME_CHARS = 20

USER_TEXT_HEADER = (
    "Entries (oldest to newest) as JSON. Each entry has a compact text field:"
)


# =============================================================================
# System Instruction
# =============================================================================


SYSTEM_INSTRUCTION = textwrap.dedent(
    """
    You are a journaling pattern observer. Reflect sustained patterns across time; do not advise.

    Scope & safety:
    - Do NOT diagnose, label conditions, assess risk, or provide therapy.
    - Do NOT give directives/suggestions.
    - Do NOT react to a single day/entry.

    Temporal reasoning:
    - Only speak about persistence/direction over days or weeks.
    - Use cautious, descriptive language.

    Venting rule:
    - Each entry has ventEntry:true|false.
    - Vent entries may be intense; use them only as background after repeated signals exist across non-vent entries.
    - A vent entry may never be the primary justification for speaking.

    Forbidden language (must not appear):
    - clinical labels (depression, anxiety, PPD, etc.)
    - directives (you should, try, you need to, it might help)
    - platitudes (everything will be okay, you’re doing great, at least, the good news is)

    Output contract:
    - Output ONLY a single-line minified JSON object.
    - It MUST be valid JSON (no trailing commas; all quotes/brace closed).
    - Before responding, verify your JSON parses.

    JSON shape:
    {"shouldSpeak":true,"timeRange":"string|null","reflection":"string|null","themes":["string"],"invitation":"string|null"}

    Field rules:
    - timeRange: "over the past week" | "over the past two weeks" | "over the past few weeks" | null
    - reflection: time-based, <= 240 characters, no advice.
    - themes: 0-3 short, concrete, non-clinical strings (<= 20 chars each).
    - invitation: ALWAYS null.

    If evidence is thin/unclear:
    - still set shouldSpeak=true and write: "Over the past week, I’m not seeing a clear repeating pattern yet."
    - themes=[] and invitation=null.
    """
).strip()


# Gemini's OpenAPI-style subset for GenerationConfig.response_schema.
RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "shouldSpeak": {"type": "BOOLEAN"},
        "timeRange": {"type": "STRING", "nullable": True},
        "reflection": {"type": "STRING", "nullable": True},
        "themes": {"type": "ARRAY", "items": {"type": "STRING"}, "max_items": 6},
        "invitation": {"type": "STRING", "nullable": True},
    },
    "required": ["shouldSpeak", "timeRange", "reflection", "themes", "invitation"],
}


# =============================================================================
# Builders
# =============================================================================


def prepare_entries_for_prompt(entries: list[JournalEntry]) -> list[dict[str, Any]]:
    """Select, bound and compact entries into the prompt payload rows.

    Args:
        entries: Entries sorted oldest -> newest.

    Returns:
        List of ``{"entryDate", "ventEntry", "text"}`` dicts, oldest first.
    """
    return [
        {
            "entryDate": entry.entry_date,
            "ventEntry": entry.vent_entry,
            "text": compact_entry_text(entry),
        }
        for entry in select_entries(entries)
    ]


def build_user_text(rows: list[dict[str, Any]]) -> str:
    # Compact separators keep the blob small; non-ASCII stays readable.
    blob = json.dumps(rows, ensure_ascii=False, separators=(",", ":"))
    return f"{USER_TEXT_HEADER}\n{blob}"


def build_prompt_request(entries: list[JournalEntry]) -> PromptRequest:
    """Build the system instruction and single user-text blob for one call.

    Deterministic for a given input.

    Args:
        entries: Entries sorted oldest -> newest.

    Returns:
        PromptRequest ready for AIClient.generate_once.
    """
    rows = prepare_entries_for_prompt(entries)
    return PromptRequest(system_instruction=SYSTEM_INSTRUCTION, user_text=build_user_text(rows))
