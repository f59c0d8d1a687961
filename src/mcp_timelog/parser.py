"""Line-oriented parser for fiscal-year time log files.

A log file looks like::

    # Time Log 2025-2026

    ## August 2025

    ### 2025-08-01
    - **09:00-10:30**: Write report [[Quarterly Review]] [writing, admin]
      - Notes: First draft
    - **10:30-[ACTIVE]**: Code review

Every line is classified first (see ``classify_line``) and only then
interpreted, so the two error policies stay separate: a malformed date header
is fatal for the whole file, a malformed entry line is skipped with a warning.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from .errors import FormatError
from .models import (
    ACTIVE_MARKER,
    MONTH_NAMES,
    TimeEntry,
    is_valid_date,
    is_valid_time,
    normalize_tags,
)

logger = logging.getLogger(__name__)


class LineKind(Enum):
    """Classification of a single log line."""
    TITLE = "title"
    MONTH_HEADER = "month_header"
    DATE_HEADER = "date_header"
    MALFORMED_DATE_HEADER = "malformed_date_header"
    HEADING = "heading"
    ENTRY = "entry"
    MALFORMED_ENTRY = "malformed_entry"
    NOTES = "notes"
    CONTINUATION = "continuation"
    BLANK = "blank"
    OTHER = "other"


TITLE_RE = re.compile(r"^# (?P<title>.+?)\s*$")
MONTH_HEADER_RE = re.compile(
    r"^## (?P<month>" + "|".join(MONTH_NAMES) + r") (?P<year>\d{4})\s*$"
)
DATE_HEADER_RE = re.compile(r"^### (?P<date>\d{4}-\d{2}-\d{2})\s*$")
# Anything that tries to be a date header: "### 2025-8-1", "### 2025/08/01"
DATE_LIKE_HEADER_RE = re.compile(r"^###\s*\d{1,4}\s*[-/.]\s*\d{1,2}")
ENTRY_RE = re.compile(
    r"^- \*\*(?P<start>\d{2}:\d{2})-(?P<end>\d{2}:\d{2}|"
    + re.escape(ACTIVE_MARKER)
    + r")\*\*:\s*(?P<body>.*\S)\s*$"
)
ENTRY_PREFIX = "- **"
NOTES_RE = re.compile(r"^ {2,}- Notes:\s*(?P<notes>.*?)\s*$")
ENTRY_BODY_RE = re.compile(
    r"^(?P<task>.+?)"
    r"(?:\s+\[\[(?P<project>[^\]]+)\]\])?"
    r"(?:\s+\[(?P<tags>[^\[\]]+)\])?"
    r"(?:\s+-\s+(?P<notes>.+?))?\s*$"
)


def classify_line(line: str) -> LineKind:
    """Classify a single line of a log file."""
    if not line.strip():
        return LineKind.BLANK
    if line.startswith("### "):
        match = DATE_HEADER_RE.match(line)
        if match and is_valid_date(match.group("date")):
            return LineKind.DATE_HEADER
        if match or DATE_LIKE_HEADER_RE.match(line):
            return LineKind.MALFORMED_DATE_HEADER
        return LineKind.HEADING
    if line.startswith("## "):
        if MONTH_HEADER_RE.match(line):
            return LineKind.MONTH_HEADER
        return LineKind.HEADING
    if line.startswith("#"):
        if TITLE_RE.match(line):
            return LineKind.TITLE
        return LineKind.HEADING
    if line.startswith(ENTRY_PREFIX):
        match = ENTRY_RE.match(line)
        if match is None:
            return LineKind.MALFORMED_ENTRY
        end = match.group("end")
        if not is_valid_time(match.group("start")):
            return LineKind.MALFORMED_ENTRY
        if end != ACTIVE_MARKER and not is_valid_time(end):
            return LineKind.MALFORMED_ENTRY
        return LineKind.ENTRY
    if NOTES_RE.match(line):
        return LineKind.NOTES
    if line[0] in " \t":
        return LineKind.CONTINUATION
    return LineKind.OTHER


def is_section_boundary(kind: LineKind) -> bool:
    """True for any heading line, which ends the current date section."""
    return kind in (
        LineKind.TITLE,
        LineKind.MONTH_HEADER,
        LineKind.DATE_HEADER,
        LineKind.MALFORMED_DATE_HEADER,
        LineKind.HEADING,
    )


def parse_entry_body(body: str) -> tuple[str, Optional[str], list[str], Optional[str]]:
    """Split the text after ``**HH:MM-HH:MM**:`` into its parts.

    Returns:
        Tuple of (task, project, tags, inline notes)
    """
    match = ENTRY_BODY_RE.match(body.strip())
    if match is None:  # pragma: no cover - the task group accepts any text
        return body.strip(), None, [], None
    project = match.group("project")
    notes = match.group("notes")
    return (
        match.group("task").strip(),
        project.strip() if project else None,
        normalize_tags(match.group("tags")),
        notes.strip() if notes else None,
    )


def parse_entry_line(line: str, date: str, line_number: Optional[int] = None) -> TimeEntry:
    """Parse one classified ENTRY line into a TimeEntry."""
    match = ENTRY_RE.match(line)
    if match is None:
        raise ValueError(f"Not a time entry line: {line!r}")
    end = match.group("end")
    task, project, tags, notes = parse_entry_body(match.group("body"))
    return TimeEntry(
        date=date,
        start_time=match.group("start"),
        end_time=None if end == ACTIVE_MARKER else end,
        task=task,
        project=project,
        tags=tags,
        notes=notes,
        line_number=line_number,
    )


def merge_notes(*parts: Optional[str]) -> Optional[str]:
    """Join non-empty note fragments with a single space."""
    kept = [p.strip() for p in parts if p and p.strip()]
    return " ".join(kept) if kept else None


@dataclass
class ParsedLog:
    """Structured view of one log file."""
    entries: list[TimeEntry] = field(default_factory=list)
    open_entries: list[TimeEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    dates: list[str] = field(default_factory=list)
    months: list[str] = field(default_factory=list)
    title: Optional[str] = None


def _walk(
    content: str,
    warnings: list[str],
    file_path: Optional[str] = None,
    parsed: Optional[ParsedLog] = None,
) -> Iterator[TimeEntry]:
    """Yield every entry (open and closed) once its notes are complete."""
    current_date: Optional[str] = None
    pending: Optional[TimeEntry] = None
    where = f"{file_path}:" if file_path else "line "

    for line_number, line in enumerate(content.splitlines(), start=1):
        kind = classify_line(line)

        if kind == LineKind.NOTES:
            if pending is not None:
                pending.notes = merge_notes(pending.notes, NOTES_RE.match(line).group("notes"))
            continue
        if kind in (LineKind.CONTINUATION, LineKind.BLANK):
            continue

        if pending is not None:
            yield pending
            pending = None

        if kind == LineKind.MALFORMED_DATE_HEADER:
            raise FormatError(
                f"Invalid date header at {where}{line_number}: {line.strip()!r}",
                line_number=line_number,
            )
        if kind == LineKind.DATE_HEADER:
            current_date = DATE_HEADER_RE.match(line).group("date")
            if parsed is not None:
                parsed.dates.append(current_date)
        elif kind == LineKind.MONTH_HEADER:
            current_date = None
            if parsed is not None:
                parsed.months.append(line[3:].strip())
        elif kind == LineKind.TITLE:
            current_date = None
            if parsed is not None and parsed.title is None:
                parsed.title = TITLE_RE.match(line).group("title")
        elif kind == LineKind.HEADING:
            current_date = None
        elif kind == LineKind.MALFORMED_ENTRY:
            warnings.append(f"Skipping malformed entry at {where}{line_number}: {line.strip()}")
        elif kind == LineKind.ENTRY:
            if current_date is None:
                warnings.append(
                    f"Skipping entry outside a date section at {where}{line_number}: {line.strip()}"
                )
                continue
            pending = parse_entry_line(line, current_date, line_number)
            pending.file_path = file_path

    if pending is not None:
        yield pending


def iter_entries(content: str, file_path: Optional[str] = None) -> Iterator[TimeEntry]:
    """Iterate the closed entries of a log file's content.

    Active entries and malformed lines are skipped. Each call starts a fresh
    pass, so the sequence can be restarted by calling again.

    Raises:
        FormatError: If a date header is malformed.
    """
    warnings: list[str] = []
    for entry in _walk(content, warnings, file_path):
        if not entry.is_open:
            yield entry
    for warning in warnings:
        logger.debug(warning)


def parse_log(content: str, file_path: Optional[str] = None) -> ParsedLog:
    """Parse log file content.

    Closed entries land in ``entries``; active entries are kept apart in
    ``open_entries`` so they never contribute durations.

    Raises:
        FormatError: If a date header is malformed.
    """
    parsed = ParsedLog()
    for entry in _walk(content, parsed.warnings, file_path, parsed):
        if entry.is_open:
            parsed.open_entries.append(entry)
        else:
            parsed.entries.append(entry)
    for warning in parsed.warnings:
        logger.warning(warning)
    return parsed


def parse_log_file(path: Path) -> ParsedLog:
    """Read and parse a log file from disk."""
    content = path.read_text(encoding="utf-8")
    return parse_log(content, str(path))


def scan_open_entries(content: str, file_path: Optional[str] = None) -> list[TimeEntry]:
    """Find active entries in log content."""
    warnings: list[str] = []
    return [e for e in _walk(content, warnings, file_path) if e.is_open]


def contains_active_marker(content: str) -> bool:
    """Fast check used before a full scan."""
    return f"-{ACTIVE_MARKER}**" in content
