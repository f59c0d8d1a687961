"""Property-based tests for time arithmetic and log insertion.

Uses hypothesis to verify algorithmic properties hold for many inputs.
"""

from datetime import date, timedelta

from hypothesis import given, strategies as st

from mcp_timelog.checker import check_for_overlaps, find_gaps_in_day
from mcp_timelog.models import (
    TimeEntry,
    calculate_duration,
    fiscal_year_label,
    minutes_to_time,
    parse_time_to_minutes,
)
from mcp_timelog.parser import parse_log
from mcp_timelog.tracker import insert_entry


minutes_st = st.integers(min_value=0, max_value=24 * 60 - 1)
times_st = minutes_st.map(minutes_to_time)
dates_st = st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)).map(date.isoformat)


class TestDurationProperties:
    """Duration follows ((end - start + 1440) % 1440) / 60."""

    @given(start=minutes_st, end=minutes_st)
    def test_duration_formula(self, start, end):
        duration = calculate_duration(minutes_to_time(start), minutes_to_time(end))
        assert duration == ((end - start + 1440) % 1440) / 60

    @given(start=minutes_st, end=minutes_st)
    def test_duration_in_range(self, start, end):
        duration = calculate_duration(minutes_to_time(start), minutes_to_time(end))
        assert 0 <= duration < 24

    @given(value=minutes_st)
    def test_time_round_trip(self, value):
        assert parse_time_to_minutes(minutes_to_time(value)) == value


class TestFiscalYearProperties:
    """Fiscal-year labels."""

    @given(day=st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)))
    def test_label_spans_consecutive_years(self, day):
        first, second = fiscal_year_label(day.isoformat()).split("-")
        assert int(second) == int(first) + 1
        expected_first = day.year if day.month >= 7 else day.year - 1
        assert int(first) == expected_first

    @given(day=st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)))
    def test_next_day_same_year_unless_july_first(self, day):
        following = day + timedelta(days=1)
        same = fiscal_year_label(day.isoformat()) == fiscal_year_label(following.isoformat())
        assert same != (following.month == 7 and following.day == 1)


class TestInsertionProperties:
    """Inserted entries end up sorted and all parse back."""

    @given(starts=st.lists(st.integers(min_value=0, max_value=22 * 60), min_size=1, max_size=12))
    def test_entries_sorted_by_start(self, starts):
        content = ""
        for i, start in enumerate(starts):
            content = insert_entry(content, TimeEntry(
                date="2025-08-01",
                start_time=minutes_to_time(start),
                end_time=minutes_to_time(start + 30),
                task=f"Task {i}",
            ))

        parsed = parse_log(content)
        parsed_starts = [parse_time_to_minutes(e.start_time) for e in parsed.entries]
        assert parsed_starts == sorted(starts)
        assert len(parsed.entries) == len(starts)
        assert parsed.warnings == []

    @given(days=st.lists(dates_st, min_size=1, max_size=8))
    def test_one_header_per_date_and_month(self, days):
        content = ""
        for day in days:
            content = insert_entry(content, TimeEntry(
                date=day, start_time="09:00", end_time="10:00", task="T",
            ))

        parsed = parse_log(content)
        assert sorted(set(days)) == sorted(parsed.dates)
        assert len(parsed.months) == len(set(parsed.months))
        assert len(parsed.entries) == len(days)


class TestCheckerProperties:
    """Gaps and overlaps partition the differences between neighbours."""

    @given(intervals=st.lists(
        st.tuples(st.integers(min_value=0, max_value=20 * 60), st.integers(min_value=1, max_value=180)),
        min_size=1,
        max_size=10,
    ))
    def test_gap_and_overlap_never_both(self, intervals):
        entries = [
            TimeEntry(
                date="2025-08-01",
                start_time=minutes_to_time(start),
                end_time=minutes_to_time(start + length),
                task="T",
            )
            for start, length in intervals
        ]
        gaps = find_gaps_in_day(entries)
        overlaps = check_for_overlaps(entries)

        assert len(gaps) + len(overlaps) <= len(entries) - 1
        assert all(g.duration_hours > 0 for g in gaps)
        assert all(o.overlap_minutes > 0 for o in overlaps)
