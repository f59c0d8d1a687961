"""Tests for gap and overlap detection."""

from mcp_timelog.checker import (
    check_day_consistency,
    check_for_overlaps,
    find_gaps_in_day,
    find_overlaps_with,
    group_entries_by_date,
    group_entries_by_project,
    group_entries_by_tag,
    total_logged_hours,
)
from mcp_timelog.models import TimeEntry


def entry(start, end, task="T", date="2025-08-01", project=None, tags=None):
    return TimeEntry(
        date=date, start_time=start, end_time=end, task=task, project=project, tags=tags or []
    )


class TestFindGaps:
    """Tests for find_gaps_in_day."""

    def test_single_gap(self):
        gaps = find_gaps_in_day([entry("09:00", "10:00"), entry("10:30", "11:00")])

        assert len(gaps) == 1
        assert gaps[0].start == "10:00"
        assert gaps[0].end == "10:30"
        assert gaps[0].duration_hours == 0.5

    def test_back_to_back_has_no_gaps(self):
        assert find_gaps_in_day([entry("09:00", "10:00"), entry("10:00", "11:00")]) == []

    def test_unsorted_input_not_mutated(self):
        entries = [entry("13:00", "14:00", "B"), entry("09:00", "10:00", "A")]
        gaps = find_gaps_in_day(entries)

        assert [e.task for e in entries] == ["B", "A"]
        assert len(gaps) == 1
        assert gaps[0].duration_hours == 3.0

    def test_no_gap_before_first_or_after_last(self):
        assert find_gaps_in_day([entry("09:00", "10:00")]) == []

    def test_open_entries_ignored(self):
        gaps = find_gaps_in_day([entry("09:00", "10:00"), entry("11:00", None)])
        assert gaps == []


class TestCheckOverlaps:
    """Tests for check_for_overlaps."""

    def test_thirty_minute_overlap(self):
        overlaps = check_for_overlaps([entry("09:00", "10:00", "A"), entry("09:30", "10:30", "B")])

        assert len(overlaps) == 1
        assert overlaps[0].overlap_minutes == 30
        assert overlaps[0].first.task == "A"
        assert overlaps[0].second.task == "B"
        assert "30 minutes" in overlaps[0].describe()

    def test_touching_entries_do_not_overlap(self):
        assert check_for_overlaps([entry("09:00", "10:00"), entry("10:00", "11:00")]) == []

    def test_overnight_entry_overlaps_later_start(self):
        overlaps = check_for_overlaps([entry("22:00", "01:00"), entry("23:00", "23:30")])
        assert overlaps[0].overlap_minutes == 30

    def test_nested_entry_counts_only_shared_interval(self):
        overlaps = check_for_overlaps([entry("09:00", "12:00", "Outer"), entry("10:00", "10:30", "Inner")])
        assert overlaps[0].overlap_minutes == 30


class TestFindOverlapsWith:
    """Tests for comparing one entry against a whole day."""

    def test_reports_non_adjacent_overlap(self):
        day = [entry("09:00", "12:00", "Long"), entry("10:00", "10:30", "Short")]
        overlaps = find_overlaps_with(entry("11:00", "11:30", "New"), day)

        assert [(o.first.task, o.second.task, o.overlap_minutes) for o in overlaps] == [
            ("Long", "New", 30),
        ]

    def test_new_entry_first_when_earlier(self):
        overlaps = find_overlaps_with(entry("08:30", "09:15", "New"), [entry("09:00", "10:00", "Old")])
        assert overlaps[0].first.task == "New"
        assert overlaps[0].overlap_minutes == 15

    def test_touching_and_open_entries_ignored(self):
        day = [entry("09:00", "10:00"), entry("10:30", None)]
        assert find_overlaps_with(entry("10:00", "11:00"), day) == []


class TestTotalsAndGrouping:
    """Tests for totals and grouping helpers."""

    def test_total_skips_open(self):
        assert total_logged_hours([entry("09:00", "10:00"), entry("10:00", None)]) == 1.0

    def test_group_by_date(self):
        grouped = group_entries_by_date([
            entry("09:00", "10:00", date="2025-08-01"),
            entry("09:00", "10:00", date="2025-08-02"),
            entry("11:00", "12:00", date="2025-08-01"),
        ])
        assert sorted(grouped) == ["2025-08-01", "2025-08-02"]
        assert len(grouped["2025-08-01"]) == 2

    def test_group_by_project(self):
        grouped = group_entries_by_project([
            entry("09:00", "10:00", project="P"),
            entry("10:00", "11:00"),
        ])
        assert set(grouped) == {"P", None}

    def test_group_by_tag_repeats_entries(self):
        grouped = group_entries_by_tag([entry("09:00", "10:00", tags=["a", "b"])])
        assert set(grouped) == {"a", "b"}

    def test_day_consistency(self):
        gaps, overlaps = check_day_consistency(
            entry(s, e) for s, e in [("09:00", "10:00"), ("10:30", "11:30"), ("11:00", "12:00")]
        )
        assert len(gaps) == 1
        assert len(overlaps) == 1


class TestDocumentedExamples:
    """The worked examples for gaps and overlaps."""

    def test_half_hour_gap(self):
        gaps = find_gaps_in_day([entry("09:00", "10:00"), entry("10:30", "11:30")])
        assert [(g.start, g.end, g.duration_hours) for g in gaps] == [("10:00", "10:30", 0.5)]

    def test_thirty_minute_overlap_example(self):
        overlaps = check_for_overlaps([entry("09:00", "10:30"), entry("10:00", "11:00")])
        assert [o.overlap_minutes for o in overlaps] == [30]
