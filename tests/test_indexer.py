"""Tests for synchronizing the index with Markdown files."""

import pytest

from mcp_timelog.index import TimeLogIndex
from mcp_timelog.indexer import IndexSynchronizer

from conftest import write_log, write_project


LOG_2025 = """# Time Log 2025-2026

## August 2025

### 2025-08-01
- **09:00-10:00**: Write report [[Alpha]] [writing]
- **09:30-10:30**: Review [[Alpha]]
- **11:00-[ACTIVE]**: Still going
"""

LOG_2024 = """# Time Log 2024-2025

## June 2025

### 2025-06-30
- **14:00-15:00**: Wrap up [[Alpha]]
"""


@pytest.fixture
def index():
    idx = TimeLogIndex(":memory:")
    yield idx
    idx.close()


@pytest.fixture
def synchronizer(config, index):
    return IndexSynchronizer(config, index)


class TestIndexAllData:
    """Tests for a full indexing pass."""

    def test_indexes_projects_and_entries(self, synchronizer, config, index):
        write_project(config, "Alpha")
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        write_log(config, "time-log-2024-2025.md", LOG_2024)

        result = synchronizer.index_all_data()

        assert result.ok
        assert result.projects_indexed == 1
        assert result.entries_indexed == 3
        assert result.files_processed == 2
        assert index.count_time_entries() == 3

    def test_active_entries_not_indexed(self, synchronizer, config, index):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        synchronizer.index_all_data()

        tasks = [e.task for e in index.entries_for_date("2025-08-01")]
        assert "Still going" not in tasks

    def test_overlap_reported_as_warning(self, synchronizer, config):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        result = synchronizer.index_all_data()

        assert any("overlap" in w and "30 minutes" in w for w in result.warnings)
        assert result.ok

    def test_bad_file_does_not_abort_pass(self, synchronizer, config, index):
        write_log(config, "time-log-2024-2025.md", "### 2025-6-30\n- **09:00-10:00**: X\n")
        write_log(config, "time-log-2025-2026.md", LOG_2025)

        result = synchronizer.index_all_data()

        assert not result.ok
        assert "time-log-2024-2025.md" in result.errors[0]
        assert result.files_processed == 1
        assert index.count_time_entries() == 2

    def test_bad_project_file_collected(self, synchronizer, config):
        write_project(config, "Alpha")
        (config.get_projects_path() / "bad.md").write_text("nothing", encoding="utf-8")

        result = synchronizer.index_all_data()

        assert result.projects_indexed == 1
        assert any("bad.md" in e for e in result.errors)

    def test_second_pass_adds_nothing(self, synchronizer, config, index):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        synchronizer.index_all_data()
        synchronizer.index_all_data()

        assert index.count_time_entries() == 2

    def test_missing_directory(self, synchronizer):
        result = synchronizer.index_all_data()
        assert result.files_processed == 0
        assert result.ok


class TestInitializeAndRebuild:
    """Tests for bootstrap and rebuild."""

    def test_initialize_on_empty(self, synchronizer, config, index):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        result = synchronizer.initialize()

        assert result is not None
        assert index.count_time_entries() == 2

    def test_initialize_skips_populated(self, synchronizer, config):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        synchronizer.initialize()
        assert synchronizer.initialize() is None

    def test_rebuild_is_idempotent(self, synchronizer, config, index):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        synchronizer.rebuild()
        first = index.count_time_entries()
        synchronizer.rebuild()

        assert index.count_time_entries() == first

    def test_rebuild_drops_deleted_lines(self, synchronizer, config, index):
        path = write_log(config, "time-log-2025-2026.md", LOG_2025)
        synchronizer.rebuild()
        path.write_text(LOG_2025.replace("- **09:30-10:30**: Review [[Alpha]]\n", ""), encoding="utf-8")

        synchronizer.index_all_data()
        assert index.count_time_entries() == 2

        synchronizer.rebuild()
        assert index.count_time_entries() == 1

    def test_files_in_fiscal_year_order(self, synchronizer, config):
        write_log(config, "time-log-2025-2026.md", LOG_2025)
        write_log(config, "time-log-2024-2025.md", LOG_2024)

        names = [p.name for p in synchronizer.find_time_log_files()]
        assert names == ["time-log-2024-2025.md", "time-log-2025-2026.md"]
