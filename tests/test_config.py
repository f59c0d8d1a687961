"""Tests for configuration loading."""

import json

import pytest

from mcp_timelog.config import (
    TimeLogConfig,
    dict_to_config,
    find_config_file,
    load_config,
)


class TestFindConfigFile:
    """Tests for find_config_file."""

    def test_finds_toml_first(self, temp_project):
        (temp_project / "timelog.toml").write_text("")
        (temp_project / "timelog.json").write_text("{}")

        assert find_config_file(temp_project).name == "timelog.toml"

    def test_finds_json(self, temp_project):
        (temp_project / "timelog.json").write_text("{}")
        assert find_config_file(temp_project).name == "timelog.json"

    def test_finds_dotfile_config(self, temp_project):
        (temp_project / ".timelog.toml").write_text("")
        assert find_config_file(temp_project).name == ".timelog.toml"

    def test_returns_none_if_no_config(self, temp_project):
        assert find_config_file(temp_project) is None


class TestDictToConfig:
    """Tests for dict_to_config."""

    def test_defaults(self, temp_project):
        config = dict_to_config({}, temp_project)

        assert config.time_logs_dir == "time-logs"
        assert config.projects_dir == "projects"
        assert config.index_file == "time-logs/.index.db"
        assert config.auto_create_projects is True
        assert config.log_level == "WARNING"

    def test_all_sections(self, temp_project):
        config = dict_to_config({
            "directories": {"time_logs": "logs", "projects": "proj", "index": "cache/idx.db"},
            "tracking": {"auto_create_projects": False},
            "logging": {"level": "debug"},
        }, temp_project)

        assert config.get_time_logs_path() == temp_project / "logs"
        assert config.get_projects_path() == temp_project / "proj"
        assert config.get_index_path() == temp_project / "cache" / "idx.db"
        assert config.auto_create_projects is False
        assert config.log_level == "DEBUG"

    def test_invalid_log_level(self, temp_project):
        with pytest.raises(ValueError, match="Invalid log level"):
            dict_to_config({"logging": {"level": "LOUD"}}, temp_project)


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_file_gives_defaults(self, temp_project):
        config = load_config(temp_project)

        assert isinstance(config, TimeLogConfig)
        assert config.project_root == temp_project

    def test_load_toml(self, temp_project):
        (temp_project / "timelog.toml").write_text(
            '[directories]\ntime_logs = "hours"\n\n[tracking]\nauto_create_projects = false\n'
        )
        config = load_config(temp_project)

        assert config.time_logs_dir == "hours"
        assert config.auto_create_projects is False

    def test_load_json(self, temp_project):
        (temp_project / "timelog.json").write_text(json.dumps({"logging": {"level": "INFO"}}))
        assert load_config(temp_project).log_level == "INFO"

    def test_explicit_path(self, temp_project):
        path = temp_project / "custom.toml"
        path.write_text('[directories]\nprojects = "p"\n')

        assert load_config(temp_project, path).projects_dir == "p"

    def test_unsupported_suffix(self, temp_project):
        path = temp_project / "timelog.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config(temp_project, path)
