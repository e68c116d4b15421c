"""
Unit tests for settings loading.
"""

import json
import tempfile
from pathlib import Path

import pytest
import yaml

from metadata_server.config.loader import SettingsLoader, load_settings


class TestSettingsLoader:
    """Test cases for SettingsLoader class."""

    def test_defaults_only(self):
        """Test loading with no sources."""
        settings = SettingsLoader().load()
        assert settings.listen == ":80"

    def test_yaml_file(self):
        """Test loading a YAML settings file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.yaml"
            path.write_text(yaml.safe_dump({"listen": ":8080", "listen-reload": ":8113"}))

            settings = SettingsLoader().add_file_source(path).load()

        assert settings.listen == ":8080"
        assert settings.listen_reload == ":8113"

    def test_json_file(self):
        """Test loading a JSON settings file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.json"
            path.write_text(json.dumps({"xff": True}))

            settings = SettingsLoader().add_file_source(path).load()

        assert settings.xff is True

    def test_empty_yaml_file(self):
        """Test that an empty settings file changes nothing."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.yml"
            path.write_text("")

            settings = SettingsLoader().add_file_source(path).load()

        assert settings.listen == ":80"

    def test_missing_required_file(self):
        """Test that a missing required file is an error."""
        with pytest.raises(FileNotFoundError):
            SettingsLoader().add_file_source("/nonexistent/settings.yaml")

    def test_missing_optional_file(self):
        """Test that a missing optional file is skipped."""
        loader = SettingsLoader().add_file_source("/nonexistent/settings.yaml", required=False)
        assert loader.sources == []

    def test_unsupported_format(self):
        """Test rejection of unknown file formats."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.toml"
            path.write_text("listen = ':80'")

            with pytest.raises(ValueError, match="Unsupported file format"):
                SettingsLoader().add_file_source(path).load()

    def test_file_must_be_mapping(self):
        """Test rejection of a list settings file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.yaml"
            path.write_text("- a\n")

            with pytest.raises(ValueError, match="must contain a mapping"):
                SettingsLoader().add_file_source(path).load()

    def test_env_vars(self):
        """Test settings from environment variables."""
        environ = {
            "METADATA_LISTEN": ":9000",
            "METADATA_XFF": "true",
            "METADATA_UNKNOWN": "ignored",
            "METADATA_DEBUG": "",
            "OTHER_LISTEN": ":1",
        }

        settings = SettingsLoader().add_env_source(environ).load()

        assert settings.listen == ":9000"
        assert settings.xff is True
        assert settings.debug is False

    def test_custom_env_prefix(self):
        """Test a custom environment prefix."""
        settings = SettingsLoader("RMS").add_env_source({"RMS_ANSWERS": "/a.yaml"}).load()
        assert settings.answers == Path("/a.yaml")

    def test_precedence(self):
        """Test that overrides beat env, which beats the file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "settings.yaml"
            path.write_text("listen: ':1000'\nlisten_reload: ':1001'\nanswers: /file.yaml\n")

            settings = load_settings(
                path,
                overrides={"listen": ":3000", "answers": None},
                environ={"METADATA_LISTEN": ":2000", "METADATA_LISTEN_RELOAD": ":2001"},
            )

        assert settings.listen == ":3000"
        assert settings.listen_reload == ":2001"
        assert settings.answers == Path("/file.yaml")

    def test_validation_error(self):
        """Test that invalid values are reported as ValueError."""
        with pytest.raises(ValueError, match="Settings validation failed"):
            load_settings(environ={"METADATA_LISTEN": "bad"})
