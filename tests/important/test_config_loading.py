import pytest
import os
import json
from pathlib import Path
from unittest.mock import patch
from codestruct import (
    CONFIG_ENV_VAR,
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_CONFIG_PATH,
    ScanConfiguration,
    get_config_path,
    load_config,
    save_config,
)


@pytest.mark.important
class TestConfigLoading:
    """Configuration load/save with default fallback - Important Priority"""

    def test_missing_file_creates_defaults(self, tmp_path):
        config_path = tmp_path / "nested" / "config.json"

        config = load_config(config_path)

        assert config == ScanConfiguration.defaults()
        assert config_path.exists()
        data = json.loads(config_path.read_text(encoding="utf-8"))
        assert sorted(data["AllowedExtensions"]) == sorted(DEFAULT_ALLOWED_EXTENSIONS)
        assert "node_modules" in data["IgnoredDirectories"]

    def test_existing_file_is_used(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(
            json.dumps({"AllowedExtensions": ["RS", ".toml"], "IgnoredDirectories": ["target"]}),
            encoding="utf-8",
        )

        config = load_config(config_path)

        assert config.allowed_extensions == frozenset({"rs", "toml"})
        assert config.ignored_directory_names == frozenset({"target"})

    @pytest.mark.parametrize(
        "content",
        [
            "{ not json",
            json.dumps({"AllowedExtensions": ["py"]}),
            json.dumps({"AllowedExtensions": "py", "IgnoredDirectories": []}),
            json.dumps(["py"]),
        ],
    )
    def test_invalid_file_restores_defaults(self, tmp_path, content, caplog):
        config_path = tmp_path / "config.json"
        config_path.write_text(content, encoding="utf-8")

        config = load_config(config_path)

        assert config == ScanConfiguration.defaults()
        assert "restoring defaults" in caplog.text
        # defaults were written back over the broken file
        assert json.loads(config_path.read_text(encoding="utf-8"))["IgnoredDirectories"]

    def test_save_failure_is_not_fatal(self, tmp_path, caplog):
        config_path = tmp_path / "config.json"
        with patch("codestruct.open", side_effect=PermissionError("read-only"), create=True):
            config = load_config(config_path)

        assert config == ScanConfiguration.defaults()
        assert "Could not save configuration" in caplog.text

    def test_round_trip(self, tmp_path):
        config_path = tmp_path / "config.json"
        original = ScanConfiguration.from_lists(["go", "py"], ["vendor", ".git"])

        assert save_config(original, config_path) is True
        assert load_config(config_path) == original


class TestConfigPath:
    def test_explicit_path_wins(self, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, "/from/env.json")
        assert get_config_path("custom.json") == Path("custom.json")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, os.path.join("from", "env.json"))
        assert get_config_path() == Path("from", "env.json")

    def test_default_location(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert get_config_path() == DEFAULT_CONFIG_PATH
