"""Entry selection and bounding for the model prompt.

If the prompt grows too large the model is left with almost no output
budget and truncates its JSON with finish_reason=MAX_TOKENS. This module
keeps the request small and its shape stable:

- at most MAX_ENTRIES entries and about MAX_CHARS_TOTAL characters
- newest non-vent entries first, then up to MAX_VENT_CONTEXT newest vent
  entries as background
- every field truncated to a fixed cap before cost accounting
- result reordered oldest -> newest for temporal coherence
"""

from __future__ import annotations

from journal_patterns.core.models import JournalEntry

MAX_ENTRIES = 30
MAX_CHARS_TOTAL = 8_000
MAX_VENT_CONTEXT = 6

BODY_CAP = 500
PROMPT_CAP = 140
ANSWER_CAP = 260
COMPACT_TEXT_CAP = 900

# Rough per-entry overhead for the JSON wrapper (date, flag, keys).
ENTRY_OVERHEAD_CHARS = 40


def bound_entry(entry: JournalEntry) -> JournalEntry:
    """Return a copy with each text field truncated to its cap."""
    return entry.model_copy(
        update={
            "body": entry.body[:BODY_CAP],
            "prompt1": entry.prompt1[:PROMPT_CAP],
            "prompt2": entry.prompt2[:PROMPT_CAP],
            "p1_answer": entry.p1_answer[:ANSWER_CAP],
            "p2_answer": entry.p2_answer[:ANSWER_CAP],
        }
    )


def compact_entry_text(entry: JournalEntry) -> str:
    """Collapse an entry's fields into one labelled text block."""
    parts = [
        entry.body.strip(),
        f"P1: {entry.prompt1.strip()}" if entry.prompt1.strip() else "",
        f"A1: {entry.p1_answer.strip()}" if entry.p1_answer.strip() else "",
        f"P2: {entry.prompt2.strip()}" if entry.prompt2.strip() else "",
        f"A2: {entry.p2_answer.strip()}" if entry.p2_answer.strip() else "",
    ]
    combined = "\n".join(p for p in parts if p)
    if len(combined) > COMPACT_TEXT_CAP:
        return f"{combined[:COMPACT_TEXT_CAP]}…"
    return combined


def entry_cost(entry: JournalEntry) -> int:
    return ENTRY_OVERHEAD_CHARS + len(compact_entry_text(entry))


def select_entries(entries: list[JournalEntry]) -> list[JournalEntry]:
    """Pick a token-safe subset of entries for the model.

    Args:
        entries: Entries sorted oldest -> newest.

    Returns:
        Bounded entries, oldest -> newest. Vent entries are included only
        as background; the instruction contract stops them being used as
        primary signal.
    """
    non_vent_newest = [e for e in reversed(entries) if not e.vent_entry]
    vent_newest = [e for e in reversed(entries) if e.vent_entry][:MAX_VENT_CONTEXT]

    picked: list[JournalEntry] = []
    used_chars = 0

    for entry in non_vent_newest + vent_newest:
        if len(picked) >= MAX_ENTRIES:
            break

        bounded = bound_entry(entry)
        cost = entry_cost(bounded)
        # Always admit the first entry so a single long entry still yields a prompt.
        if picked and used_chars + cost > MAX_CHARS_TOTAL:
            break

        picked.append(bounded)
        used_chars += cost

    # Vent context was appended after the non-vent run, so a plain reverse
    # would not interleave them by date.
    return sorted(picked, key=lambda e: e.entry_date)
