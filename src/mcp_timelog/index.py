"""SQLite index for time log queries.

The Markdown log and project files remain the source of truth; SQLite is a
derived projection that can be discarded and rebuilt at any time.

Index location: time-logs/.index.db (configurable)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from .models import ProjectRecord, TimeEntry

logger = logging.getLogger(__name__)


class TimeLogIndex:
    """SQLite index for time entries and projects.

    The schema is fully created before the constructor returns, so a handle
    is ready for inserts as soon as it exists.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        """Open (creating if needed) the index database.

        Args:
            db_path: Path to the SQLite file, or ":memory:"
        """
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            if str(self.db_path) != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(self.db_path))
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def _ensure_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        conn = self._get_connection()

        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            self._init_schema(conn)
        else:
            cursor = conn.execute("SELECT version FROM schema_version")
            row = cursor.fetchone()
            if row is None or row[0] < self.SCHEMA_VERSION:
                self._migrate_schema(conn, row[0] if row else 0)

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize the database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
            INSERT INTO schema_version (version) VALUES (1);

            CREATE TABLE IF NOT EXISTS time_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL,             -- YYYY-MM-DD
                start_time TEXT NOT NULL,       -- HH:MM
                end_time TEXT NOT NULL,         -- HH:MM
                duration_hours REAL NOT NULL,
                task TEXT NOT NULL,
                project TEXT NOT NULL DEFAULT '',  -- '' when absent, so UNIQUE holds
                tags TEXT NOT NULL DEFAULT '[]',   -- JSON array
                notes TEXT,
                file_path TEXT,
                line_number INTEGER,
                UNIQUE(date, start_time, end_time, task, project)
            );

            CREATE TABLE IF NOT EXISTS projects (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_name TEXT UNIQUE NOT NULL,
                departmental_goals TEXT,        -- JSON array
                strategic_directions TEXT,      -- JSON array
                tags TEXT,                      -- JSON array
                status TEXT,
                start_date TEXT,
                summary TEXT,
                file_path TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_time_entries_date ON time_entries(date);
            CREATE INDEX IF NOT EXISTS idx_time_entries_project ON time_entries(project);
        """)
        conn.commit()

    def _migrate_schema(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Migrate schema from an older version."""
        if from_version < 1:
            self._init_schema(conn)

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    # ========== Writes ==========

    def insert_time_entry(self, entry: TimeEntry) -> bool:
        """Insert a closed entry; duplicates are ignored.

        Returns:
            True if a new row was added
        """
        if entry.is_open:
            raise ValueError("Active entries are not indexed")
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO time_entries (
                date, start_time, end_time, duration_hours, task, project,
                tags, notes, file_path, line_number
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.date,
                entry.start_time,
                entry.end_time,
                entry.duration_hours,
                entry.task,
                entry.project or "",
                json.dumps(entry.tags),
                entry.notes,
                entry.file_path,
                entry.line_number,
            ),
        )
        conn.commit()
        return cursor.rowcount > 0

    def insert_project(self, project: ProjectRecord) -> None:
        """Insert or replace a project keyed by name."""
        conn = self._get_connection()
        conn.execute(
            """
            INSERT OR REPLACE INTO projects (
                project_name, departmental_goals, strategic_directions, tags,
                status, start_date, summary, file_path
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                project.project_name,
                json.dumps(project.departmental_goals),
                json.dumps(project.strategic_directions),
                json.dumps(project.tags),
                project.status,
                project.start_date,
                project.summary,
                project.file_path,
            ),
        )
        conn.commit()

    def clear(self) -> None:
        """Delete every row; the schema stays."""
        conn = self._get_connection()
        conn.execute("DELETE FROM time_entries")
        conn.execute("DELETE FROM projects")
        conn.commit()

    # ========== Reads ==========

    def count_time_entries(self) -> int:
        conn = self._get_connection()
        return conn.execute("SELECT COUNT(*) FROM time_entries").fetchone()[0]

    def count_projects(self) -> int:
        conn = self._get_connection()
        return conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0]

    def _select_entries(self, where: str, params: tuple) -> list[TimeEntry]:
        conn = self._get_connection()
        cursor = conn.execute(
            f"SELECT * FROM time_entries WHERE {where} ORDER BY date, start_time",
            params,
        )
        return [self._row_to_entry(row) for row in cursor.fetchall()]

    def entries_for_date(self, date: str) -> list[TimeEntry]:
        return self._select_entries("date = ?", (date,))

    def entries_for_project(self, project_name: str) -> list[TimeEntry]:
        return self._select_entries("project = ?", (project_name,))

    def entries_for_tag(self, tag: str) -> list[TimeEntry]:
        """Entries whose serialized tag list contains ``tag``."""
        return self._select_entries(
            "EXISTS (SELECT 1 FROM json_each(time_entries.tags) WHERE json_each.value = ?)",
            (tag,),
        )

    def entries_in_range(self, start_date: str, end_date: str) -> list[TimeEntry]:
        """Entries with ``start_date <= date <= end_date``."""
        return self._select_entries("date >= ? AND date <= ?", (start_date, end_date))

    def get_project(self, project_name: str) -> Optional[ProjectRecord]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM projects WHERE project_name = ?", (project_name,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_project(row)

    def all_projects(self) -> list[ProjectRecord]:
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM projects ORDER BY start_date, project_name")
        return [self._row_to_project(row) for row in cursor.fetchall()]

    def get_stats(self) -> dict[str, Any]:
        """Get index statistics."""
        conn = self._get_connection()
        stats: dict[str, Any] = {
            "total_entries": self.count_time_entries(),
            "total_projects": self.count_projects(),
        }

        row = conn.execute("SELECT MIN(date), MAX(date), SUM(duration_hours) FROM time_entries").fetchone()
        stats["date_range"] = {"min": row[0], "max": row[1]}
        stats["total_hours"] = round(row[2] or 0.0, 4)

        cursor = conn.execute(
            "SELECT project, SUM(duration_hours) FROM time_entries "
            "WHERE project != '' GROUP BY project ORDER BY SUM(duration_hours) DESC LIMIT 10"
        )
        stats["top_projects"] = {r[0]: round(r[1], 4) for r in cursor.fetchall()}
        return stats

    # ========== Row conversion ==========

    @staticmethod
    def _load_list(value: Optional[str]) -> list[str]:
        if not value:
            return []
        try:
            loaded = json.loads(value)
        except json.JSONDecodeError:
            return []
        return loaded if isinstance(loaded, list) else []

    def _row_to_entry(self, row: sqlite3.Row) -> TimeEntry:
        return TimeEntry(
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            task=row["task"],
            project=row["project"] or None,
            tags=self._load_list(row["tags"]),
            notes=row["notes"],
            line_number=row["line_number"],
            file_path=row["file_path"],
        )

    def _row_to_project(self, row: sqlite3.Row) -> ProjectRecord:
        return ProjectRecord(
            project_name=row["project_name"],
            departmental_goals=self._load_list(row["departmental_goals"]),
            strategic_directions=self._load_list(row["strategic_directions"]),
            tags=self._load_list(row["tags"]),
            status=row["status"],
            start_date=row["start_date"],
            summary=row["summary"] or "",
            file_path=row["file_path"],
        )
