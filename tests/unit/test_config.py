"""
Unit tests for runtime configuration merging.
"""

from pathlib import Path

import pytest

from mdb_schema.config import (
    load_config,
    make_default_config,
    merge_configs,
    parse_connect,
    parse_yes_no_option,
    read_config_from_config_file,
    read_config_from_env,
)
from mdb_schema.exceptions import ConfigurationError


class TestParsers:
    @pytest.mark.parametrize("value,expected", [("yes", True), ("YES", True), ("true", True), ("no", False), ("0", False), (None, None), (True, True)])
    def test_parse_yes_no(self, value, expected):
        assert parse_yes_no_option(value) is expected

    def test_parse_yes_no_invalid(self):
        with pytest.raises(ConfigurationError, match="--force"):
            parse_yes_no_option("maybe", "--force")

    def test_parse_connect(self):
        assert parse_connect("db.example.com:27018") == ("db.example.com", 27018)

    @pytest.mark.parametrize("value", ["localhost", ":27017", "localhost:port", "localhost:70000"])
    def test_parse_connect_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_connect(value)


class TestConfigSources:
    def test_defaults(self):
        config = make_default_config()
        assert config["start_mongodb"] is True
        assert config["mongo_port"] == 27017

    def test_missing_default_config_file_ignored(self, tmp_path):
        assert read_config_from_config_file(str(tmp_path)) == {}

    def test_missing_explicit_config_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            read_config_from_config_file(str(tmp_path), str(tmp_path / "nope.toml"))

    def test_config_file(self, tmp_path):
        hz_dir = tmp_path / ".hz"
        hz_dir.mkdir()
        (hz_dir / "config.toml").write_text('project_name = "blog"\nconnect = "db:27018"\ndebug = true\n')

        config = read_config_from_config_file(str(tmp_path))

        assert config == {
            "project_name": "blog",
            "mongo_host": "db",
            "mongo_port": 27018,
            "start_mongodb": False,
            "debug": True,
        }

    def test_invalid_config_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("project_name = \n")

        with pytest.raises(ConfigurationError, match="Failed to read"):
            read_config_from_config_file(str(tmp_path), str(path))

    def test_env(self):
        config = read_config_from_env({"HZ_PROJECT_NAME": "blog", "HZ_START_MONGODB": "no", "OTHER": "x"})
        assert config == {"project_name": "blog", "start_mongodb": False}

    def test_connect_and_start_conflict(self):
        with pytest.raises(ConfigurationError, match="both"):
            read_config_from_env({"HZ_CONNECT": "db:1", "HZ_START_MONGODB": "yes"})

    def test_merge_ignores_none(self):
        merged = merge_configs({"a": 1, "b": 2}, {"a": None, "b": 3})
        assert merged == {"a": 1, "b": 3}


class TestLoadConfig:
    def test_flags_override_env_and_file(self, tmp_path):
        hz_dir = tmp_path / ".hz"
        hz_dir.mkdir()
        (hz_dir / "config.toml").write_text('project_name = "from_file"\n')

        config = load_config(
            {"project_path": str(tmp_path), "project_name": "from_flags", "connect": "localhost:27019"},
            environ={"HZ_PROJECT_NAME": "from_env"},
        )

        assert config["project_name"] == "from_flags"
        assert config["mongo_port"] == 27019
        assert config["start_mongodb"] is False

    def test_project_name_defaults_to_directory(self, tmp_path):
        project = tmp_path / "my_blog"
        project.mkdir()

        config = load_config({"project_path": str(project)}, environ={})

        assert config["project_name"] == "my_blog"
        assert Path(config["project_path"]) == project
