"""Temporal consistency checks over a day's entries.

Both checks are advisory: they report gaps and overlaps, they never modify
or reject entries. Active entries have no end time and are ignored.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .models import (
    Gap,
    Overlap,
    TimeEntry,
    calculate_duration,
    parse_time_to_minutes,
)


def _closed_by_start(entries: Iterable[TimeEntry]) -> list[TimeEntry]:
    """Closed entries sorted by start time (stable, input untouched)."""
    closed = [e for e in entries if not e.is_open]
    return sorted(closed, key=lambda e: parse_time_to_minutes(e.start_time))


def find_gaps_in_day(entries: Iterable[TimeEntry]) -> list[Gap]:
    """Find uncovered intervals between consecutive entries of one date.

    Nothing is reported before the first entry or after the last one.
    """
    ordered = _closed_by_start(entries)
    gaps = []
    for current, following in zip(ordered, ordered[1:]):
        current_end = current.end_minutes
        next_start = parse_time_to_minutes(following.start_time)
        if next_start > current_end:
            gaps.append(Gap(
                start=current.end_time,
                end=following.start_time,
                duration_hours=calculate_duration(current.end_time, following.start_time),
            ))
    return gaps


def check_for_overlaps(entries: Iterable[TimeEntry]) -> list[Overlap]:
    """Find adjacent entries (by start time) whose intervals intersect.

    The overlap is the shared interval, so an entry nested inside another
    counts only its own length.
    """
    ordered = _closed_by_start(entries)
    overlaps = []
    for current, following in zip(ordered, ordered[1:]):
        current_end = current.end_minutes
        next_start = following.start_minutes
        if current_end > next_start:
            overlaps.append(Overlap(
                first=current,
                second=following,
                overlap_minutes=min(current_end, following.end_minutes) - next_start,
            ))
    return overlaps


def find_overlaps_with(entry: TimeEntry, others: Iterable[TimeEntry]) -> list[Overlap]:
    """Every entry in ``others`` whose interval intersects ``entry``.

    Unlike ``check_for_overlaps`` this compares against all entries, not
    only the neighbours by start time. Open entries are ignored.
    """
    if entry.is_open:
        return []
    overlaps = []
    for other in _closed_by_start(others):
        shared = min(entry.end_minutes, other.end_minutes) - max(entry.start_minutes, other.start_minutes)
        if shared <= 0:
            continue
        first, second = (other, entry) if other.start_minutes <= entry.start_minutes else (entry, other)
        overlaps.append(Overlap(first=first, second=second, overlap_minutes=shared))
    return overlaps


def total_logged_hours(entries: Iterable[TimeEntry]) -> float:
    return sum(e.duration_hours for e in entries if not e.is_open)


def group_entries_by_date(entries: Iterable[TimeEntry]) -> dict[str, list[TimeEntry]]:
    grouped: dict[str, list[TimeEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.date, []).append(entry)
    return grouped


def group_entries_by_project(entries: Iterable[TimeEntry]) -> dict[Optional[str], list[TimeEntry]]:
    grouped: dict[Optional[str], list[TimeEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.project, []).append(entry)
    return grouped


def group_entries_by_tag(entries: Iterable[TimeEntry]) -> dict[str, list[TimeEntry]]:
    """Group entries by tag; an entry appears once under each of its tags."""
    grouped: dict[str, list[TimeEntry]] = {}
    for entry in entries:
        for tag in entry.tags:
            grouped.setdefault(tag, []).append(entry)
    return grouped


def check_day_consistency(entries: Iterable[TimeEntry]) -> tuple[list[Gap], list[Overlap]]:
    """Gaps and overlaps for the entries of a single date."""
    entries = list(entries)
    return find_gaps_in_day(entries), check_for_overlaps(entries)
