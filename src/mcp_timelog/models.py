"""Data models for time entries, projects, summaries and index results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date as date_cls
from datetime import datetime
from typing import Any, Optional

ACTIVE_MARKER = "[ACTIVE]"
MINUTES_PER_DAY = 24 * 60

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

# Fiscal years run July 1 - June 30
FISCAL_YEAR_START_MONTH = 7

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_time(value: str) -> bool:
    """Check for a strictly zero-padded 24-hour HH:MM time."""
    return bool(value) and _TIME_RE.match(value) is not None


def is_valid_date(value: str) -> bool:
    """Check for a YYYY-MM-DD string naming a real calendar date."""
    if not value or not _DATE_RE.match(value):
        return False
    try:
        date_cls.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_time_to_minutes(value: str) -> int:
    """Convert HH:MM to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight back to HH:MM."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def calculate_duration(start_time: str, end_time: str) -> float:
    """Duration in hours between two times of day.

    An end time earlier than the start time is treated as crossing midnight.
    """
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    if end < start:
        end += MINUTES_PER_DAY
    return (end - start) / 60


def fiscal_year_label(date_str: str) -> str:
    """Fiscal year label for a YYYY-MM-DD date, e.g. ``2025-2026``."""
    year, month = int(date_str[:4]), int(date_str[5:7])
    if month >= FISCAL_YEAR_START_MONTH:
        return f"{year}-{year + 1}"
    return f"{year - 1}-{year}"


def month_header_label(date_str: str) -> str:
    """Month section label for a date, e.g. ``August 2025``."""
    year, month = int(date_str[:4]), int(date_str[5:7])
    return f"{MONTH_NAMES[month - 1]} {year}"


def log_file_name(fiscal_label: str) -> str:
    return f"time-log-{fiscal_label}.md"


def today_str(now: datetime) -> str:
    return now.strftime("%Y-%m-%d")


def now_time_str(now: datetime) -> str:
    return now.strftime("%H:%M")


def normalize_tags(tags: Any) -> list[str]:
    """Trim, lower-case and de-duplicate tags, keeping first-seen order.

    Accepts a comma-separated string or any iterable of strings.
    """
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    result: list[str] = []
    for tag in tags:
        cleaned = str(tag).strip().lower()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


@dataclass
class TimeEntry:
    """A single time log entry.

    ``end_time`` is None while the entry is active (written with the
    ``[ACTIVE]`` marker in the log file).
    """
    date: str
    start_time: str
    end_time: Optional[str]
    task: str
    project: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    notes: Optional[str] = None

    # Source position
    line_number: Optional[int] = None
    file_path: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def duration_hours(self) -> float:
        if self.end_time is None:
            return 0.0
        return calculate_duration(self.start_time, self.end_time)

    @property
    def start_minutes(self) -> int:
        return parse_time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        """End as minutes since midnight, lifted past 1440 for overnight entries."""
        if self.end_time is None:
            raise ValueError("Active entry has no end time")
        end = parse_time_to_minutes(self.end_time)
        if end < self.start_minutes:
            end += MINUTES_PER_DAY
        return end

    def entry_line(self) -> str:
        """Render the bolded entry line (without notes)."""
        end = self.end_time if self.end_time is not None else ACTIVE_MARKER
        line = f"- **{self.start_time}-{end}**: {self.task}"
        if self.project:
            line += f" [[{self.project}]]"
        if self.tags:
            line += f" [{', '.join(self.tags)}]"
        return line

    def to_markdown(self) -> str:
        """Render the entry line plus its Notes line, if any."""
        lines = [self.entry_line()]
        if self.notes:
            lines.append(f"  - Notes: {self.notes}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert entry to dictionary for JSON serialization."""
        return {
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_hours": round(self.duration_hours, 4),
            "task": self.task,
            "project": self.project,
            "tags": list(self.tags),
            "notes": self.notes,
            "active": self.is_open,
            "line_number": self.line_number,
            "file_path": self.file_path,
        }


@dataclass
class Gap:
    """Uncovered interval between two consecutive entries on one date."""
    start: str
    end: str
    duration_hours: float

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "duration_hours": round(self.duration_hours, 4),
        }


@dataclass
class Overlap:
    """Two entries on one date whose intervals intersect."""
    first: TimeEntry
    second: TimeEntry
    overlap_minutes: int

    def describe(self) -> str:
        return (
            f"Time overlap on {self.first.date}: "
            f"{self.first.start_time}-{self.first.end_time} ({self.first.task}) "
            f"overlaps with {self.second.start_time}-{self.second.end_time} "
            f"({self.second.task}) by {self.overlap_minutes} minutes"
        )

    def to_dict(self) -> dict:
        return {
            "first": self.first.to_dict(),
            "second": self.second.to_dict(),
            "overlap_minutes": self.overlap_minutes,
        }


@dataclass
class ProjectRecord:
    """Project metadata sourced from a project file."""
    project_name: str
    departmental_goals: list[str] = field(default_factory=list)
    strategic_directions: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    status: Optional[str] = None
    start_date: Optional[str] = None
    summary: str = ""
    file_path: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "project_name": self.project_name,
            "departmental_goals": list(self.departmental_goals),
            "strategic_directions": list(self.strategic_directions),
            "tags": list(self.tags),
            "status": self.status,
            "start_date": self.start_date,
            "summary": self.summary,
            "file_path": self.file_path,
        }


@dataclass
class StartOptions:
    """Options for starting an active entry.

    ``date`` defaults to today and ``start_time`` to the current time.
    """
    task: str
    project: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    notes: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None


@dataclass
class FinishOptions:
    """Options for finishing the active entry.

    ``end_time`` defaults to the current time.
    """
    end_time: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class AddEntryOptions:
    """Options for adding an already-closed entry.

    ``date`` defaults to today; both times are required.
    """
    start_time: str
    end_time: str
    task: str
    project: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    notes: Optional[str] = None
    date: Optional[str] = None


def total_hours(entries: list[TimeEntry]) -> float:
    return sum(entry.duration_hours for entry in entries)


@dataclass
class DailySummary:
    date: str
    entries: list[TimeEntry]
    gaps: list[Gap]
    overlaps: list[Overlap] = field(default_factory=list)

    @property
    def total_logged_hours(self) -> float:
        return total_hours(self.entries)

    @property
    def total_gap_hours(self) -> float:
        return sum(gap.duration_hours for gap in self.gaps)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "entries": [e.to_dict() for e in self.entries],
            "gaps": [g.to_dict() for g in self.gaps],
            "overlaps": [o.to_dict() for o in self.overlaps],
            "total_logged_hours": round(self.total_logged_hours, 4),
            "total_gap_hours": round(self.total_gap_hours, 4),
        }


@dataclass
class ProjectSummary:
    project_name: str
    project: Optional[ProjectRecord]
    entries: list[TimeEntry]

    @property
    def total_hours(self) -> float:
        return total_hours(self.entries)

    def to_dict(self) -> dict:
        return {
            "project_name": self.project_name,
            "project": self.project.to_dict() if self.project else None,
            "entries": [e.to_dict() for e in self.entries],
            "entry_count": len(self.entries),
            "total_hours": round(self.total_hours, 4),
        }


@dataclass
class TagSummary:
    tag: str
    entries: list[TimeEntry]

    @property
    def total_hours(self) -> float:
        return total_hours(self.entries)

    @property
    def projects_used(self) -> list[Optional[str]]:
        seen: list[Optional[str]] = []
        for entry in self.entries:
            if entry.project not in seen:
                seen.append(entry.project)
        return seen

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "entries": [e.to_dict() for e in self.entries],
            "entry_count": len(self.entries),
            "total_hours": round(self.total_hours, 4),
            "projects_used": self.projects_used,
        }


@dataclass
class RangeSummary:
    start_date: str
    end_date: str
    entries: list[TimeEntry]

    @property
    def total_hours(self) -> float:
        return total_hours(self.entries)

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date,
            "end_date": self.end_date,
            "entries": [e.to_dict() for e in self.entries],
            "entry_count": len(self.entries),
            "total_hours": round(self.total_hours, 4),
        }


@dataclass
class IndexResult:
    """Outcome of an indexing pass: successes plus collected problems."""
    projects_indexed: int = 0
    entries_indexed: int = 0
    files_processed: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "projects_indexed": self.projects_indexed,
            "entries_indexed": self.entries_indexed,
            "files_processed": self.files_processed,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "ok": self.ok,
        }
