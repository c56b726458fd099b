"""Tests for the longitudinal gate and time-range mapping."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import START_DATE, make_entries, make_entry
from journal_patterns.core.eligibility import (
    check_eligibility,
    compute_span_days,
    describe_time_range,
    non_vent,
    parse_iso_date,
    sort_entries,
)
from journal_patterns.core.models import ReflectionReason

# =============================================================================
# Ordering
# =============================================================================


class TestSortEntries:
    """Tests for sort_entries()."""

    def test_orders_oldest_first(self) -> None:
        entries = [
            make_entry("2026-03-09"),
            make_entry("2026-03-01"),
            make_entry("2026-03-05"),
        ]

        ordered = sort_entries(entries)

        assert [e.entry_date for e in ordered] == ["2026-03-01", "2026-03-05", "2026-03-09"]

    def test_same_day_entries_keep_input_order(self) -> None:
        first = make_entry("2026-03-02", body="morning")
        second = make_entry("2026-03-02", body="evening")

        ordered = sort_entries([make_entry("2026-03-03"), first, second])

        assert ordered[0] is first
        assert ordered[1] is second

    def test_non_vent_filters_vent_entries(self) -> None:
        entries = [make_entry("2026-03-01"), make_entry("2026-03-02", vent=True)]

        assert [e.entry_date for e in non_vent(entries)] == ["2026-03-01"]


# =============================================================================
# Dates and spans
# =============================================================================


class TestDates:
    """Tests for parse_iso_date() and compute_span_days()."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-03-01", date(2026, 3, 1)),
            ("2024-02-29", date(2024, 2, 29)),
            ("2026-02-30", None),
            ("2026-3-1", None),
            ("2026-03-01T10:00:00Z", None),
            ("", None),
        ],
    )
    def test_parse_iso_date(self, value: str, expected: date | None) -> None:
        assert parse_iso_date(value) == expected

    def test_span_of_empty_list_is_none(self) -> None:
        assert compute_span_days([]) is None

    def test_span_uses_first_and_last_entry(self) -> None:
        entries = make_entries(4, step_days=3)

        assert compute_span_days(entries) == 9

    def test_unparseable_boundary_gives_none(self) -> None:
        entries = [make_entry("yesterday"), make_entry("2026-03-09")]

        assert compute_span_days(entries) is None


class TestDescribeTimeRange:
    """Tests for describe_time_range()."""

    @pytest.mark.parametrize(
        "span,phrase",
        [
            (None, "over the past week"),
            (0, "over the past week"),
            (12, "over the past week"),
            (13, "over the past two weeks"),
            (19, "over the past two weeks"),
            (20, "over the past few weeks"),
            (90, "over the past few weeks"),
        ],
    )
    def test_thresholds(self, span: int | None, phrase: str) -> None:
        assert describe_time_range(span) == phrase


# =============================================================================
# Gate
# =============================================================================


class TestCheckEligibility:
    """Tests for check_eligibility()."""

    def test_empty_list_is_not_enough_entries(self) -> None:
        decision = check_eligibility([])

        assert decision.eligible is False
        assert decision.reason == ReflectionReason.NOT_ENOUGH_ENTRIES
        assert decision.entries_count == 0
        assert decision.span_days is None

    def test_three_entries_are_not_enough(self) -> None:
        decision = check_eligibility(make_entries(3, step_days=5))

        assert decision.eligible is False
        assert decision.reason == ReflectionReason.NOT_ENOUGH_ENTRIES
        assert decision.entries_count == 3
        assert decision.span_days == 10

    def test_vent_entries_never_count(self) -> None:
        entries = make_entries(3, step_days=4) + make_entries(6, step_days=1, vent=True)

        decision = check_eligibility(sort_entries(entries))

        assert decision.eligible is False
        assert decision.reason == ReflectionReason.NOT_ENOUGH_ENTRIES
        assert decision.entries_count == 3

    def test_short_span_is_rejected(self) -> None:
        decision = check_eligibility(make_entries(6, step_days=1))

        assert decision.eligible is False
        assert decision.reason == ReflectionReason.NOT_ENOUGH_SPAN
        assert decision.span_days == 5

    def test_vent_entries_do_not_stretch_the_span(self) -> None:
        entries = make_entries(4, step_days=1) + [
            make_entry(START_DATE + timedelta(days=20), vent=True)
        ]

        decision = check_eligibility(sort_entries(entries))

        assert decision.reason == ReflectionReason.NOT_ENOUGH_SPAN
        assert decision.span_days == 3

    def test_four_entries_over_six_days_is_eligible(self) -> None:
        entries = make_entries(4, step_days=2)

        decision = check_eligibility(entries)

        assert decision.eligible is True
        assert decision.reason is None
        assert decision.entries_count == 4
        assert decision.span_days == 6

    def test_unparseable_dates_count_as_short_span(self) -> None:
        entries = [make_entry("someday")] + make_entries(4, step_days=3)

        decision = check_eligibility(entries)

        assert decision.eligible is False
        assert decision.reason == ReflectionReason.NOT_ENOUGH_SPAN
        assert decision.span_days is None
