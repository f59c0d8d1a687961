"""Active-entry tracking: start and finish the single in-progress entry.

There is no stored pointer to the active entry. Every operation scans the
log files for the ``[ACTIVE]`` marker, so a crash between start and finish
leaves nothing to repair beyond the log text itself.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .checker import find_overlaps_with
from .config import TimeLogConfig
from .errors import ConflictError, NotFoundError, ValidationError
from .locking import locked_rewrite
from .models import (
    MONTH_NAMES,
    AddEntryOptions,
    FinishOptions,
    Overlap,
    StartOptions,
    TimeEntry,
    fiscal_year_label,
    is_valid_date,
    is_valid_time,
    log_file_name,
    month_header_label,
    normalize_tags,
    now_time_str,
    parse_time_to_minutes,
    today_str,
)
from .parser import (
    DATE_HEADER_RE,
    ENTRY_RE,
    MONTH_HEADER_RE,
    LineKind,
    classify_line,
    contains_active_marker,
    is_section_boundary,
    merge_notes,
    parse_log,
    parse_log_file,
    scan_open_entries,
)
from .projects import ProjectCatalog

logger = logging.getLogger(__name__)

LOG_FILE_GLOB = "time-log-*.md"

# Text the entry grammar would read as project, tags or inline notes
TASK_RESERVED_RE = re.compile(r"\[\[|\]\]|\[[^\[\]]*\]|\s-\s")


@dataclass
class ActiveEntry:
    """The open entry plus where its block sits in its file."""
    entry: TimeEntry
    file_path: Path
    line_index: int     # 0-based index of the entry line
    block_end: int      # exclusive end of entry line + indented lines
    block_lines: list[str]

    def to_dict(self) -> dict:
        result = self.entry.to_dict()
        result["file_path"] = str(self.file_path)
        return result


# ========== Pure text operations ==========


def _month_key(line: str) -> tuple[int, int]:
    match = MONTH_HEADER_RE.match(line)
    return int(match.group("year")), MONTH_NAMES.index(match.group("month")) + 1


def _block_end(kinds: list[LineKind], index: int, limit: Optional[int] = None) -> int:
    """Index just past an entry line and its indented notes/continuation lines."""
    limit = len(kinds) if limit is None else limit
    end = index + 1
    while end < limit and kinds[end] in (LineKind.NOTES, LineKind.CONTINUATION):
        end += 1
    return end


def _next_boundary(kinds: list[LineKind], start: int, stops: tuple[LineKind, ...]) -> int:
    for i in range(start, len(kinds)):
        if kinds[i] in stops:
            return i
    return len(kinds)


def _splice_section(lines: list[str], index: int, section: list[str]) -> None:
    """Insert a new section, separated from its neighbours by one blank line."""
    before = lines[:index]
    after = lines[index:]
    while before and not before[-1].strip():
        before.pop()
    while after and not after[0].strip():
        after.pop(0)
    chunk = [""] if before else []
    chunk.extend(section)
    if after:
        chunk.append("")
    lines[:] = before + chunk + after


def insert_entry(content: str, entry: TimeEntry) -> str:
    """Return ``content`` with ``entry`` placed in its date section.

    The file title, month section and date section are created only when a
    scan of the content shows they are missing. New sections are placed in
    chronological order. Within a date the entry goes after every entry
    whose start time is earlier or equal (stable insertion by start time).
    """
    if not content.strip():
        content = f"# Time Log {fiscal_year_label(entry.date)}\n"

    lines = content.splitlines()
    kinds = [classify_line(line) for line in lines]
    block = entry.to_markdown().split("\n")
    date_header = f"### {entry.date}"

    date_index = next(
        (i for i, k in enumerate(kinds)
         if k == LineKind.DATE_HEADER and DATE_HEADER_RE.match(lines[i]).group("date") == entry.date),
        None,
    )

    if date_index is None:
        month_label = month_header_label(entry.date)
        month_index = next(
            (i for i, k in enumerate(kinds)
             if k == LineKind.MONTH_HEADER and lines[i][3:].strip() == month_label),
            None,
        )
        if month_index is None:
            wanted = (int(entry.date[:4]), int(entry.date[5:7]))
            insert_at = next(
                (i for i, k in enumerate(kinds)
                 if k == LineKind.MONTH_HEADER and _month_key(lines[i]) > wanted),
                len(lines),
            )
            _splice_section(lines, insert_at, [f"## {month_label}", "", date_header, *block])
        else:
            region_end = _next_boundary(
                kinds, month_index + 1, (LineKind.MONTH_HEADER, LineKind.TITLE)
            )
            insert_at = region_end
            for i in range(month_index + 1, region_end):
                if (kinds[i] == LineKind.DATE_HEADER
                        and DATE_HEADER_RE.match(lines[i]).group("date") > entry.date):
                    insert_at = i
                    break
            _splice_section(lines, insert_at, [date_header, *block])
        return "\n".join(lines) + "\n"

    section_end = date_index + 1
    while section_end < len(kinds) and not is_section_boundary(kinds[section_end]):
        section_end += 1

    new_start = parse_time_to_minutes(entry.start_time)
    insert_at = date_index + 1
    i = date_index + 1
    while i < section_end:
        if kinds[i] != LineKind.ENTRY:
            i += 1
            continue
        existing_start = parse_time_to_minutes(ENTRY_RE.match(lines[i]).group("start"))
        if existing_start > new_start:
            break
        i = insert_at = _block_end(kinds, i, section_end)

    lines[insert_at:insert_at] = block
    return "\n".join(lines) + "\n"


def locate_active(content: str, file_path: Path) -> Optional[ActiveEntry]:
    """Find the first active entry in ``content`` and its full block."""
    if not contains_active_marker(content):
        return None
    open_entries = scan_open_entries(content, str(file_path))
    if not open_entries:
        return None

    entry = open_entries[0]
    lines = content.splitlines()
    kinds = [classify_line(line) for line in lines]
    index = entry.line_number - 1
    end = _block_end(kinds, index)
    return ActiveEntry(
        entry=entry,
        file_path=file_path,
        line_index=index,
        block_end=end,
        block_lines=lines[index:end],
    )


def close_entry_block(active: ActiveEntry, end_time: str, notes: Optional[str] = None) -> tuple[TimeEntry, list[str]]:
    """Build the closed entry and the lines that replace the active block.

    Existing notes (inline and ``Notes:`` lines) are merged with ``notes``.
    Indented lines other than notes are kept below the entry.
    """
    source = active.entry
    closed = TimeEntry(
        date=source.date,
        start_time=source.start_time,
        end_time=end_time,
        task=source.task,
        project=source.project,
        tags=list(source.tags),
        notes=merge_notes(source.notes, notes),
        line_number=source.line_number,
        file_path=str(active.file_path),
    )
    extra = [
        line for line in active.block_lines[1:]
        if classify_line(line) == LineKind.CONTINUATION
    ]
    return closed, closed.to_markdown().split("\n") + extra


# ========== Tracker ==========

def _entry_key(entry: TimeEntry) -> tuple:
    return (entry.date, entry.start_time, entry.end_time, entry.task)



class TimeTracker:
    """Writes entries into the fiscal-year log files."""

    def __init__(
        self,
        config: TimeLogConfig,
        projects: Optional[ProjectCatalog] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.clock = clock
        self.projects = projects or ProjectCatalog(config.get_projects_path(), clock=clock)

    def log_path_for(self, date: str) -> Path:
        return self.config.get_time_logs_path() / log_file_name(fiscal_year_label(date))

    def log_files(self) -> list[Path]:
        """All log files, oldest fiscal year first."""
        logs_dir = self.config.get_time_logs_path()
        if not logs_dir.exists():
            return []
        return sorted(p for p in logs_dir.glob(LOG_FILE_GLOB) if p.is_file())

    def find_active_entry(self) -> Optional[ActiveEntry]:
        """Scan every log file for the active entry.

        Raises:
            FormatError: If a scanned file has a malformed date header.
        """
        for path in self.log_files():
            active = locate_active(path.read_text(encoding="utf-8"), path)
            if active is not None:
                return active
        return None

    def _validate_common(self, task: str, date: str) -> str:
        task = (task or "").strip()
        if not task:
            raise ValidationError("Task description is required")
        if "\n" in task or "\r" in task:
            raise ValidationError("Task description must be a single line")
        if TASK_RESERVED_RE.search(task):
            raise ValidationError(
                f"Task description {task!r} contains ' - ', '[[...]]' or '[...]', "
                "which the log format reads as notes, project or tags"
            )
        if not is_valid_date(date):
            raise ValidationError(f"Invalid date: {date!r}. Expected YYYY-MM-DD.")
        return task

    @staticmethod
    def _validate_time(value: str, field_name: str) -> None:
        if not is_valid_time(value):
            raise ValidationError(f"Invalid {field_name}: {value!r}. Expected HH:MM (24-hour).")

    @staticmethod
    def _clean_project(project: Optional[str]) -> Optional[str]:
        if not project or not project.strip():
            return None
        project = project.strip()
        if any(c in project for c in "[]\r\n"):
            raise ValidationError(f"Project name {project!r} must be a single line without '[' or ']'")
        return project

    @staticmethod
    def _clean_tags(tags) -> list[str]:
        # A plain string is a comma-separated list; list items are single tags
        if tags and not isinstance(tags, str):
            for tag in tags:
                if "," in str(tag):
                    raise ValidationError(f"Tag {tag!r} must not contain ','")
        normalized = normalize_tags(tags)
        for tag in normalized:
            if any(c in tag for c in "[]\r\n"):
                raise ValidationError(f"Tag {tag!r} must be a single line without '[' or ']'")
        return normalized

    @staticmethod
    def _clean_notes(notes: Optional[str]) -> Optional[str]:
        if not notes or not notes.strip():
            return None
        notes = notes.strip()
        if "\n" in notes or "\r" in notes:
            raise ValidationError("Notes must be a single line")
        return notes

    def _ensure_project(self, name: str) -> None:
        if not self.config.auto_create_projects:
            return
        try:
            created = self.projects.ensure_project(name)
        except (OSError, ValidationError) as e:
            logger.warning("Could not create project file for %r: %s", name, e)
            return
        if created is not None:
            logger.info("Created project file %s", created.name)

    def _write_entry(self, entry: TimeEntry) -> TimeEntry:
        path = self.log_path_for(entry.date)
        with locked_rewrite(path) as holder:
            # Refuse to write into a file whose section structure is broken
            scan_open_entries(holder[0], str(path))
            holder[0] = insert_entry(holder[0], entry)
            written = holder[0]

        entry.file_path = str(path)
        parsed = parse_log(written, str(path))
        for candidate in parsed.open_entries + parsed.entries:
            if _entry_key(candidate) == _entry_key(entry):
                entry.line_number = candidate.line_number
                break
        return entry

    def find_overlaps(self, entry: TimeEntry, written: bool = False) -> list[Overlap]:
        """Closed entries on the same date in the log file that overlap ``entry``.

        Args:
            entry: A closed entry
            written: ``entry`` is already in the file; leave one copy of it out
        """
        path = self.log_path_for(entry.date)
        if entry.is_open or not path.exists():
            return []
        others = [e for e in parse_log_file(path).entries if e.date == entry.date]
        if written:
            for i, other in enumerate(others):
                if _entry_key(other) == _entry_key(entry):
                    del others[i]
                    break
        return find_overlaps_with(entry, others)

    def start(self, options: StartOptions) -> TimeEntry:
        """Start a new active entry.

        Raises:
            ValidationError: On empty task, malformed date/time, or text the
                log format cannot hold.
            ConflictError: If an active entry already exists in any log file.
        """
        now = self.clock()
        date = options.date or today_str(now)
        task = self._validate_common(options.task, date)
        start_time = options.start_time or now_time_str(now)
        self._validate_time(start_time, "start time")
        project = self._clean_project(options.project)
        tags = self._clean_tags(options.tags)
        notes = self._clean_notes(options.notes)

        active = self.find_active_entry()
        if active is not None:
            raise ConflictError(
                f"An active entry already exists: '{active.entry.task}' started at "
                f"{active.entry.start_time} on {active.entry.date}. "
                "Finish the current entry before starting a new one."
            )

        if project:
            self._ensure_project(project)

        entry = TimeEntry(
            date=date,
            start_time=start_time,
            end_time=None,
            task=task,
            project=project,
            tags=tags,
            notes=notes,
        )
        self._write_entry(entry)
        logger.info("Started tracking %r at %s on %s", task, start_time, date)
        return entry

    def finish(self, options: Optional[FinishOptions] = None) -> TimeEntry:
        """Close the active entry.

        Raises:
            NotFoundError: If there is no active entry.
            ValidationError: On malformed end time or end not after start.
        """
        options = options or FinishOptions()
        notes = self._clean_notes(options.notes)
        active = self.find_active_entry()
        if active is None:
            raise NotFoundError('No active entry found. Use "start" to begin tracking time.')

        end_time = options.end_time or now_time_str(self.clock())
        self._validate_time(end_time, "end time")
        start_time = active.entry.start_time
        if parse_time_to_minutes(end_time) <= parse_time_to_minutes(start_time):
            raise ValidationError(
                f"End time ({end_time}) must be after start time ({start_time})"
            )

        with locked_rewrite(active.file_path) as holder:
            # Locate again under the lock; the file may have been edited
            current = locate_active(holder[0], active.file_path)
            if current is None:
                raise NotFoundError(f"Active entry disappeared from {active.file_path.name}")
            closed, replacement = close_entry_block(current, end_time, notes)
            lines = holder[0].splitlines()
            lines[current.line_index:current.block_end] = replacement
            holder[0] = "\n".join(lines) + "\n"

        logger.info(
            "Finished %r: %s-%s (%.2fh)", closed.task, closed.start_time, end_time, closed.duration_hours
        )
        return closed

    def prepare_entry(self, options: AddEntryOptions) -> TimeEntry:
        """Validate ``options`` and build the closed entry without writing it.

        An end time earlier than the start time records an overnight entry.

        Raises:
            ValidationError: On empty task, malformed date/times, text the
                log format cannot hold, or a zero-length interval.
        """
        date = options.date or today_str(self.clock())
        task = self._validate_common(options.task, date)
        self._validate_time(options.start_time, "start time")
        self._validate_time(options.end_time, "end time")
        if options.start_time == options.end_time:
            raise ValidationError(
                f"End time ({options.end_time}) must differ from start time ({options.start_time})"
            )
        return TimeEntry(
            date=date,
            start_time=options.start_time,
            end_time=options.end_time,
            task=task,
            project=self._clean_project(options.project),
            tags=self._clean_tags(options.tags),
            notes=self._clean_notes(options.notes),
        )

    def add_entry(self, options: AddEntryOptions) -> TimeEntry:
        """Insert an already-closed entry.

        Overlaps with existing entries are allowed; see ``find_overlaps``.
        """
        entry = self.prepare_entry(options)
        if entry.project:
            self._ensure_project(entry.project)
        self._write_entry(entry)
        logger.info("Added entry %r %s-%s on %s", entry.task, entry.start_time, entry.end_time, entry.date)
        return entry
