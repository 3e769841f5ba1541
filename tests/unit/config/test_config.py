"""
Unit tests for configuration models and ConfigManager.
"""

import json

import pytest
from pydantic import ValidationError

from git_context.config import (
    ConfigManager,
    GitContextConfig,
    GitInfo,
    LogConfig,
    TrackerConfig,
)


class TestGitInfo:
    def test_strips_git_version_prefix(self):
        assert GitInfo(version="git version 2.43.0\n").version == "2.43.0"

    @pytest.mark.parametrize(
        "version,major,minor,expected",
        [
            ("2.43.0", 2, 11, True),
            ("2.7.4", 2, 11, False),
            ("2.11.0", 2, 11, True),
            ("2.43.0.windows.1", 2, 11, True),
            ("garbage", 2, 0, False),
        ],
    )
    def test_validate_version(self, version, major, minor, expected):
        assert GitInfo(version=version).validate_version(major, minor) is expected

    def test_version_must_be_text(self):
        with pytest.raises(ValidationError):
            GitInfo(version=243)


class TestConfigModels:
    def test_defaults(self):
        config = GitContextConfig()

        assert config.git.path == "git"
        assert config.tracker == TrackerConfig()
        assert config.tracker.debounce_seconds == 0.05
        assert config.log.porcelain_version == 2
        assert config.blame.ignore_whitespace is False
        assert config.default_encoding == "utf-8"

    def test_porcelain_version_is_checked(self):
        with pytest.raises(ValidationError):
            LogConfig(porcelain_version=3)


class TestConfigManager:
    def test_load_defaults_without_file(self, tmp_path):
        manager = ConfigManager(tmp_path / "missing.json")
        assert manager.load() == GitContextConfig()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        manager = ConfigManager(path)
        config = GitContextConfig(
            git=GitInfo(path="/usr/local/bin/git", version="2.44.0"),
            log=LogConfig(max_count=50, porcelain_version=1),
        )

        manager.save(config)
        loaded = ConfigManager(path).load()

        assert loaded == config
        assert json.loads(path.read_text())["log"]["max_count"] == 50

    def test_invalid_file_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"log": {"porcelain_version": 7}}')

        with pytest.raises(ValueError, match="Failed to load config"):
            ConfigManager(path).load()

    def test_get_config_loads_once(self, tmp_path):
        manager = ConfigManager(tmp_path / "config.json")
        assert manager.get_config() is manager.get_config()

    def test_save_without_config(self, tmp_path):
        with pytest.raises(ValueError):
            ConfigManager(tmp_path / "config.json").save()

    def test_create_default_config(self, tmp_path):
        path = tmp_path / "config.json"
        config = ConfigManager(path).create_default_config("/opt/git")

        assert config.git.path == "/opt/git"
        assert path.exists()
