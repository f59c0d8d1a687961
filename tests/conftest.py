"""Shared pytest fixtures for mcp-timelog tests."""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from mcp_timelog.config import TimeLogConfig
from mcp_timelog.engine import TimeLogEngine


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: str) -> None:
        """Set the clock from ``YYYY-MM-DD HH:MM``."""
        self.now = datetime.strptime(value, "%Y-%m-%d %H:%M")


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return TimeLogConfig(project_root=temp_project)


@pytest.fixture
def clock():
    """A clock fixed at 2025-08-01 09:00."""
    return FixedClock(datetime(2025, 8, 1, 9, 0))


@pytest.fixture
def engine(config, clock):
    """Create a test engine with proper cleanup."""
    eng = TimeLogEngine(config, clock=clock)
    yield eng
    # Cleanup: close the index database connection
    eng.close()


@pytest.fixture
def engine_factory(temp_project, clock):
    """Factory fixture that creates engines and ensures cleanup.

    Usage:
        def test_example(engine_factory, config):
            engine = engine_factory(config)
    """
    engines = []

    def _create(config):
        eng = TimeLogEngine(config, clock=clock)
        engines.append(eng)
        return eng

    yield _create

    for eng in engines:
        eng.close()


def write_log(config: TimeLogConfig, name: str, content: str) -> Path:
    """Write a log file under the configured time-logs directory."""
    path = config.get_time_logs_path() / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def write_project(config: TimeLogConfig, name: str, status: str = "Active", tags=None) -> Path:
    """Write a valid project file."""
    path = config.get_projects_path() / f"{name}.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    tag_list = ", ".join(tags or [])
    path.write_text(
        "---\n"
        f"project: {name}\n"
        "departmentalGoal: [Operations]\n"
        "strategicDirection: [Efficiency]\n"
        f"tags: [{tag_list}]\n"
        f"status: {status}\n"
        "startDate: 2025-07-01\n"
        "---\n\n"
        f"# {name}\n\n"
        "## Summary\n"
        f"Work on {name}.\n",
        encoding="utf-8",
    )
    return path
