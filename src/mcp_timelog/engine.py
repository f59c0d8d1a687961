"""Time log engine - the single entry point for writers and readers.

Writes go to the Markdown log files through the tracker; reads come from the
SQLite index, bootstrapped from the Markdown files on first use when empty.
Totals are always recomputed from query results.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, Optional

from .checker import check_for_overlaps, find_gaps_in_day
from .config import TimeLogConfig
from .errors import PartialIndexError, ValidationError
from .index import TimeLogIndex
from .indexer import IndexSynchronizer
from .models import (
    AddEntryOptions,
    DailySummary,
    FinishOptions,
    IndexResult,
    Overlap,
    ProjectSummary,
    RangeSummary,
    StartOptions,
    TagSummary,
    TimeEntry,
    is_valid_date,
    normalize_tags,
    today_str,
)
from .projects import ProjectCatalog
from .tracker import ActiveEntry, TimeTracker

logger = logging.getLogger(__name__)


class TimeLogEngine:
    """Composes tracker, synchronizer and index for one workspace."""

    def __init__(self, config: TimeLogConfig, clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self.clock = clock
        self._ensure_directories()
        self.projects = ProjectCatalog(config.get_projects_path(), clock=clock)
        self.tracker = TimeTracker(config, self.projects, clock=clock)
        self._index: Optional[TimeLogIndex] = None
        self._synchronizer: Optional[IndexSynchronizer] = None
        self._initialized = False

    def _ensure_directories(self) -> None:
        """Create the time log directory; projects/ is created on first stub."""
        self.config.get_time_logs_path().mkdir(parents=True, exist_ok=True)

    @property
    def index(self) -> TimeLogIndex:
        """Lazily open and return the index (one handle per engine)."""
        if self._index is None:
            self._index = TimeLogIndex(self.config.get_index_path())
        return self._index

    @property
    def synchronizer(self) -> IndexSynchronizer:
        if self._synchronizer is None:
            self._synchronizer = IndexSynchronizer(self.config, self.index, self.projects)
        return self._synchronizer

    def initialize(self) -> Optional[IndexResult]:
        """Bootstrap the index from Markdown if it is empty."""
        self._initialized = True
        return self.synchronizer.initialize()

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def close(self) -> None:
        if self._index is not None:
            self._index.close()
            self._index = None
            self._synchronizer = None

    # ========== Write path ==========

    def _index_closed_entry(self, entry: TimeEntry) -> None:
        self._ensure_initialized()
        try:
            if entry.project and self.index.get_project(entry.project) is None:
                self._index_project(entry.project)
            self.index.insert_time_entry(entry)
        except sqlite3.Error as e:
            # The log file already holds the entry; a reindex will pick it up
            logger.warning("Could not index entry %s %s: %s", entry.date, entry.start_time, e)

    def _index_project(self, name: str) -> None:
        """Index the project file recorded under ``name``, e.g. a stub just created."""
        projects, _ = self.projects.parse_all()
        for project in projects:
            if project.project_name == name:
                self.index.insert_project(project)
                return

    def start(self, options: StartOptions) -> TimeEntry:
        """Start tracking a new active entry."""
        return self.tracker.start(options)

    def finish(self, options: Optional[FinishOptions] = None) -> TimeEntry:
        """Finish the active entry and index the closed result."""
        entry = self.tracker.finish(options)
        self._index_closed_entry(entry)
        return entry

    def add_entry(self, options: AddEntryOptions) -> TimeEntry:
        """Record an already-closed entry and index it."""
        entry = self.tracker.add_entry(options)
        self._index_closed_entry(entry)
        return entry

    def check_entry(self, options: AddEntryOptions) -> tuple[TimeEntry, list[Overlap]]:
        """Validate a closed entry and report the overlaps it would create, writing nothing."""
        entry = self.tracker.prepare_entry(options)
        return entry, self.tracker.find_overlaps(entry)

    def overlaps_for(self, entry: TimeEntry) -> list[Overlap]:
        """Overlaps between a written entry and the rest of its day."""
        return self.tracker.find_overlaps(entry, written=True)

    def active_entry(self) -> Optional[ActiveEntry]:
        return self.tracker.find_active_entry()

    # ========== Read path ==========

    @staticmethod
    def _require_date(value: str, label: str = "date") -> None:
        if not is_valid_date(value):
            raise ValidationError(f"Invalid {label}: {value!r}. Expected YYYY-MM-DD.")

    def daily_summary(self, date: Optional[str] = None) -> DailySummary:
        """Entries, gaps and overlaps for one date (default: today)."""
        date = date or today_str(self.clock())
        self._require_date(date)
        self._ensure_initialized()
        entries = self.index.entries_for_date(date)
        return DailySummary(
            date=date,
            entries=entries,
            gaps=find_gaps_in_day(entries),
            overlaps=check_for_overlaps(entries),
        )

    def project_summary(self, project_name: str) -> ProjectSummary:
        """All entries and total hours logged against a project."""
        name = (project_name or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        self._ensure_initialized()
        return ProjectSummary(
            project_name=name,
            project=self.index.get_project(name),
            entries=self.index.entries_for_project(name),
        )

    def tag_summary(self, tag: str) -> TagSummary:
        """All entries carrying a tag (tags compare lower-cased)."""
        normalized = normalize_tags([tag])
        if not normalized:
            raise ValidationError("Tag is required")
        self._ensure_initialized()
        return TagSummary(tag=normalized[0], entries=self.index.entries_for_tag(normalized[0]))

    def range_query(self, start_date: str, end_date: str) -> RangeSummary:
        """Entries dated within ``[start_date, end_date]`` inclusive."""
        self._require_date(start_date, "start date")
        self._require_date(end_date, "end date")
        if start_date > end_date:
            raise ValidationError(f"Start date {start_date} is after end date {end_date}")
        self._ensure_initialized()
        return RangeSummary(
            start_date=start_date,
            end_date=end_date,
            entries=self.index.entries_in_range(start_date, end_date),
        )

    def all_project_summaries(self) -> list[ProjectSummary]:
        self._ensure_initialized()
        return [
            ProjectSummary(
                project_name=project.project_name,
                project=project,
                entries=self.index.entries_for_project(project.project_name),
            )
            for project in self.index.all_projects()
        ]

    # ========== Index maintenance ==========

    def reindex(self, full: bool = True, strict: bool = False) -> IndexResult:
        """Re-synchronize the index with the Markdown files.

        Args:
            full: Clear the index first so rows deleted from the text vanish
            strict: Raise PartialIndexError if anything failed

        Returns:
            IndexResult with counts, warnings and errors
        """
        self._initialized = True
        if full:
            result = self.synchronizer.rebuild()
        else:
            result = self.synchronizer.index_all_data()
        if strict and not result.ok:
            raise PartialIndexError(
                f"Indexing finished with {len(result.errors)} error(s)", result
            )
        return result

    def index_status(self) -> dict[str, Any]:
        """Index statistics plus the current active entry, if any."""
        self._ensure_initialized()
        active = self.active_entry()
        return {
            "index_path": str(self.config.get_index_path()),
            "log_files": [p.name for p in self.tracker.log_files()],
            "active_entry": active.to_dict() if active else None,
            **self.index.get_stats(),
        }
