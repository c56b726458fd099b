"""Longitudinal gating: decide whether a reflection should even be attempted.

The engine stays silent until there are enough non-vent entries spread
over at least about a week. A single day or a thin burst of writing never
reaches the model.

Example:
    >>> from journal_patterns.core.eligibility import check_eligibility, sort_entries
    >>> decision = check_eligibility(sort_entries(entries))
    >>> if not decision.eligible:
    ...     print(decision.reason)  # ReflectionReason.NOT_ENOUGH_SPAN
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterable

from journal_patterns.core.models import EligibilityDecision, JournalEntry, ReflectionReason

MIN_NON_VENT_ENTRIES = 4
MIN_SPAN_DAYS = 6

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def sort_entries(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    """Return entries ordered oldest -> newest by entry date.

    ISO dates sort correctly as strings; the sort is stable so same-day
    entries keep their incoming order.
    """
    return sorted(entries, key=lambda e: e.entry_date)


def non_vent(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    return [e for e in entries if not e.vent_entry]


def parse_iso_date(value: str) -> date | None:
    """Parse a strict YYYY-MM-DD string as a UTC calendar date.

    Returns:
        The date, or None if the string is not a valid ISO calendar date.
    """
    match = _ISO_DATE_RE.match(value or "")
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def compute_span_days(entries: list[JournalEntry]) -> int | None:
    """Whole days between the first and last entry of an ordered list.

    Returns:
        Day count, or None when the list is empty or a boundary date
        cannot be parsed.
    """
    if not entries:
        return None
    first = parse_iso_date(entries[0].entry_date)
    last = parse_iso_date(entries[-1].entry_date)
    if first is None or last is None:
        return None
    return (last - first).days


def describe_time_range(span_days: int | None) -> str:
    """Map a span to one of the fixed time-range phrases."""
    if span_days is None:
        return "over the past week"
    if span_days >= 20:
        return "over the past few weeks"
    if span_days >= 13:
        return "over the past two weeks"
    return "over the past week"


def check_eligibility(entries: list[JournalEntry]) -> EligibilityDecision:
    """Apply the longitudinal gate to an ordered entry list.

    Vent entries never count toward eligibility. Requires at least
    MIN_NON_VENT_ENTRIES non-vent entries spanning MIN_SPAN_DAYS days.

    Args:
        entries: Entries sorted oldest -> newest.

    Returns:
        EligibilityDecision with a reason code when not eligible.
    """
    signal = non_vent(entries)
    span_days = compute_span_days(signal)

    if len(signal) < MIN_NON_VENT_ENTRIES:
        return EligibilityDecision(
            eligible=False,
            reason=ReflectionReason.NOT_ENOUGH_ENTRIES,
            entries_count=len(signal),
            span_days=span_days,
        )

    # An unparseable span is treated as too short.
    if span_days is None or span_days < MIN_SPAN_DAYS:
        return EligibilityDecision(
            eligible=False,
            reason=ReflectionReason.NOT_ENOUGH_SPAN,
            entries_count=len(signal),
            span_days=span_days,
        )

    return EligibilityDecision(eligible=True, entries_count=len(signal), span_days=span_days)
