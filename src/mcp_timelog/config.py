"""Configuration loading for MCP Timelog.

Configuration is optional; without a file every setting has a default.
Supported formats are TOML and JSON, found in the project root.
"""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class TimeLogConfig:
    """Configuration for a time log workspace."""

    project_root: Path = field(default_factory=Path.cwd)

    # Directory structure (relative to project_root)
    time_logs_dir: str = "time-logs"
    projects_dir: str = "projects"
    index_file: str = "time-logs/.index.db"

    # Behaviour
    auto_create_projects: bool = True

    # Logging
    log_level: str = "WARNING"

    def get_time_logs_path(self) -> Path:
        return self.project_root / self.time_logs_dir

    def get_projects_path(self) -> Path:
        return self.project_root / self.projects_dir

    def get_index_path(self) -> Path:
        return self.project_root / self.index_file


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def dict_to_config(data: dict[str, Any], project_root: Path) -> TimeLogConfig:
    """Convert dictionary to TimeLogConfig."""
    config = TimeLogConfig(project_root=project_root)

    if "directories" in data:
        dirs = data["directories"]
        if "time_logs" in dirs:
            config.time_logs_dir = dirs["time_logs"]
        if "projects" in dirs:
            config.projects_dir = dirs["projects"]
        if "index" in dirs:
            config.index_file = dirs["index"]

    if "tracking" in data:
        track = data["tracking"]
        if "auto_create_projects" in track:
            config.auto_create_projects = bool(track["auto_create_projects"])

    if "logging" in data:
        level = str(data["logging"].get("level", config.log_level)).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}")
        config.log_level = level

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. timelog.toml
    2. timelog.json
    3. .timelog.toml
    4. .timelog.json
    """
    candidates = [
        "timelog.toml",
        "timelog.json",
        ".timelog.toml",
        ".timelog.json",
    ]

    for name in candidates:
        path = project_root / name
        if path.exists():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> TimeLogConfig:
    """Load workspace configuration.

    Args:
        project_root: Root directory holding time-logs/ and projects/
        config_path: Optional explicit path to config file

    Returns:
        TimeLogConfig instance
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        return TimeLogConfig(project_root=project_root)

    logger.debug("Loading configuration from %s", config_path)
    suffix = config_path.suffix.lower()

    if suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), project_root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), project_root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
