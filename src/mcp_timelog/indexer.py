"""Synchronize the SQLite index with the Markdown sources.

Synchronization is rebuild-only: every pass re-parses all project and log
files and inserts every record. Inserts are idempotent, so running a pass
again never duplicates rows. Rows whose source text was deleted stay in the
index until ``rebuild`` clears it.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .checker import check_for_overlaps, group_entries_by_date
from .config import TimeLogConfig
from .errors import FormatError
from .index import TimeLogIndex
from .models import IndexResult
from .parser import parse_log_file
from .projects import ProjectCatalog
from .tracker import LOG_FILE_GLOB

logger = logging.getLogger(__name__)


class IndexSynchronizer:
    """Rebuilds the index from project and log files.

    The index handle is injected so every step of a pass uses the same
    connection.
    """

    def __init__(
        self,
        config: TimeLogConfig,
        index: TimeLogIndex,
        projects: Optional[ProjectCatalog] = None,
    ):
        self.config = config
        self.index = index
        self.projects = projects or ProjectCatalog(config.get_projects_path())

    def initialize(self) -> Optional[IndexResult]:
        """Index everything if the store is empty; otherwise do nothing."""
        if self.index.count_time_entries() == 0 and self.index.count_projects() == 0:
            logger.info("Index is empty; indexing from Markdown files")
            return self.index_all_data()
        return None

    def find_time_log_files(self) -> list[Path]:
        """Log files sorted by fiscal year."""
        logs_dir = self.config.get_time_logs_path()
        if not logs_dir.exists():
            return []
        return sorted(p for p in logs_dir.glob(LOG_FILE_GLOB) if p.is_file())

    def index_projects(self, result: IndexResult) -> None:
        projects, errors = self.projects.parse_all()
        for path, message in errors:
            result.errors.append(f"Project parsing error in {path.name}: {message}")

        for project in projects:
            try:
                self.index.insert_project(project)
            except sqlite3.Error as e:
                result.errors.append(f"Database error for project {project.project_name}: {e}")
                continue
            result.projects_indexed += 1

    def index_time_log_file(self, path: Path, result: IndexResult) -> None:
        """Parse one log file and insert its closed entries.

        Overlaps are recorded as warnings; the file is still indexed.
        """
        try:
            parsed = parse_log_file(path)
        except (FormatError, OSError, UnicodeDecodeError) as e:
            result.errors.append(f"Failed to parse time log {path.name}: {e}")
            return

        result.files_processed += 1
        result.warnings.extend(parsed.warnings)

        for day_entries in group_entries_by_date(parsed.entries).values():
            for overlap in check_for_overlaps(day_entries):
                result.warnings.append(overlap.describe())

        for entry in parsed.entries:
            try:
                self.index.insert_time_entry(entry)
            except sqlite3.Error as e:
                result.errors.append(
                    f"Database error for entry on {entry.date} at {entry.start_time}: {e}"
                )
                continue
            result.entries_indexed += 1

        logger.debug("Indexed %d entries from %s", len(parsed.entries), path.name)

    def index_all_data(self) -> IndexResult:
        """Index all projects, then all log files in fiscal-year order."""
        result = IndexResult()

        self.index_projects(result)
        for path in self.find_time_log_files():
            self.index_time_log_file(path, result)

        logger.info(
            "Indexing complete. Projects: %d, time entries: %d, warnings: %d, errors: %d",
            result.projects_indexed,
            result.entries_indexed,
            len(result.warnings),
            len(result.errors),
        )
        for error in result.errors:
            logger.error(error)
        return result

    def rebuild(self) -> IndexResult:
        """Discard every indexed row and index everything again."""
        self.index.clear()
        return self.index_all_data()
