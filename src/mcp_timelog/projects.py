"""Project files: Markdown with YAML front matter.

Example::

    ---
    project: Quarterly Review
    departmentalGoal: [Reporting]
    strategicDirection: [Transparency]
    tags: [finance]
    status: Active
    startDate: 2025-07-01
    ---

    # Quarterly Review

    ## Summary
    Prepare the quarterly numbers.
"""

from __future__ import annotations

import logging
import re
from datetime import date as date_cls
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from .errors import ValidationError
from .models import ProjectRecord, is_valid_date

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---\r?\n(?P<yaml>.*?)\r?\n---\r?\n?(?P<body>.*)$", re.DOTALL)
SUMMARY_RE = re.compile(r"^## Summary\s*\n(?P<summary>.*?)(?=\n## |\Z)", re.MULTILINE | re.DOTALL)

REQUIRED_FIELDS = ["project", "departmentalGoal", "strategicDirection", "status", "startDate"]
VALID_STATUSES = ["Active", "Completed", "On Hold", "Cancelled"]


class ProjectFileError(ValueError):
    """Raised when a project file cannot be parsed or fails validation."""
    pass


def _ensure_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _normalize_date(value: Any) -> str:
    # YAML turns unquoted 2025-07-01 into a date object
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date_cls):
        return value.isoformat()
    return str(value)


def sanitize_project_name(name: str) -> str:
    """Make a project name safe to use as a file name."""
    cleaned = re.sub(r'[<>:"/\\|?*]', "-", name.strip())
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = cleaned.strip(".")
    return cleaned[:100]


def parse_project_content(content: str, file_path: Optional[Path] = None) -> ProjectRecord:
    """Parse project file content into a ProjectRecord.

    Raises:
        ProjectFileError: On missing front matter, bad YAML, missing
            required fields, bad start date or unknown status.
    """
    where = str(file_path) if file_path else "<project>"
    match = FRONTMATTER_RE.match(content)
    if match is None:
        raise ProjectFileError(f"Invalid project file format: {where}. Missing frontmatter.")

    try:
        meta = yaml.safe_load(match.group("yaml")) or {}
    except yaml.YAMLError as e:
        raise ProjectFileError(f"Invalid YAML frontmatter in {where}: {e}") from e
    if not isinstance(meta, dict):
        raise ProjectFileError(f"Invalid YAML frontmatter in {where}: expected a mapping")

    missing = [f for f in REQUIRED_FIELDS if not meta.get(f)]
    if missing:
        raise ProjectFileError(f"Missing required fields in {where}: {', '.join(missing)}")

    start_date = _normalize_date(meta["startDate"])
    if not is_valid_date(start_date):
        raise ProjectFileError(
            f"Invalid startDate format in {where}: {meta['startDate']}. Expected YYYY-MM-DD."
        )

    status = str(meta["status"])
    if status not in VALID_STATUSES:
        raise ProjectFileError(
            f"Invalid status in {where}: {status}. Must be one of: {', '.join(VALID_STATUSES)}"
        )

    summary_match = SUMMARY_RE.search(match.group("body"))

    return ProjectRecord(
        project_name=str(meta["project"]).strip(),
        departmental_goals=_ensure_list(meta.get("departmentalGoal")),
        strategic_directions=_ensure_list(meta.get("strategicDirection")),
        tags=_ensure_list(meta.get("tags")),
        status=status,
        start_date=start_date,
        summary=summary_match.group("summary").strip() if summary_match else "",
        file_path=str(file_path) if file_path else None,
    )


def parse_project_file(path: Path) -> ProjectRecord:
    """Read and parse a single project file."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProjectFileError(f"Cannot read project file {path}: {e}") from e
    return parse_project_content(content, path)


class ProjectCatalog:
    """Access to the project files directory."""

    def __init__(self, projects_path: Path, clock: Callable[[], datetime] = datetime.now):
        self.projects_path = projects_path
        self.clock = clock

    def project_files(self) -> list[Path]:
        if not self.projects_path.exists():
            return []
        return sorted(p for p in self.projects_path.glob("*.md") if p.is_file())

    def parse_all(self) -> tuple[list[ProjectRecord], list[tuple[Path, str]]]:
        """Parse every project file.

        Returns:
            Tuple of (projects, errors) where errors pairs a file with its message
        """
        projects = []
        errors = []
        for path in self.project_files():
            try:
                projects.append(parse_project_file(path))
            except ProjectFileError as e:
                logger.warning("Skipping project file %s: %s", path.name, e)
                errors.append((path, str(e)))
        return projects, errors

    def _candidate_paths(self, name: str) -> list[Path]:
        sanitized = sanitize_project_name(name)
        normalized = re.sub(r"\s+", "-", sanitized.lower())
        return [
            self.projects_path / f"{name}.md",
            self.projects_path / f"{sanitized}.md",
            self.projects_path / f"{normalized}.md",
        ]

    def project_exists(self, name: str) -> bool:
        """True if a file or a front matter name matches (case-insensitive)."""
        if any(p.exists() for p in self._candidate_paths(name)):
            return True
        wanted = name.strip().lower()
        for path in self.project_files():
            if path.stem.lower() == wanted:
                return True
            try:
                record = parse_project_file(path)
            except ProjectFileError:
                continue
            if record.project_name.lower() == wanted:
                return True
        return False

    def create_project_stub(self, name: str) -> Path:
        """Write an auto-generated project file for a name seen in a log.

        Raises:
            ValidationError: If the name is empty after sanitizing.
            FileExistsError: If the target file already exists.
        """
        sanitized = sanitize_project_name(name)
        if not sanitized:
            raise ValidationError(f"Cannot create a project file for name: {name!r}")

        path = self.projects_path / f"{sanitized}.md"
        if path.exists():
            raise FileExistsError(f"Project file already exists: {path.name}")

        self.projects_path.mkdir(parents=True, exist_ok=True)
        # The file name is sanitized; the recorded name matches the log link
        display_name = name.strip()
        summary = f"Project created from wiki-link reference: [[{display_name}]]"
        meta = {
            "project": display_name,
            "departmentalGoal": ["General"],
            "strategicDirection": ["General"],
            "tags": [],
            "status": "Active",
            "startDate": self.clock().strftime("%Y-%m-%d"),
        }
        front = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True)
        content = (
            f"---\n{front}---\n\n# {display_name}\n\n"
            f"## Summary\n{summary}\n\n## Notes\n\n*Add project details here*\n"
        )
        path.write_text(content, encoding="utf-8")
        logger.info("Created project file %s", path)
        return path

    def ensure_project(self, name: str) -> Optional[Path]:
        """Create a stub if the project is unknown. Returns the new file, if any."""
        if self.project_exists(name):
            return None
        return self.create_project_stub(name)
