"""
Unit tests for the settings model.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from metadata_server.config.settings import ServiceSettings, parse_listen_address


class TestParseListenAddress:
    """Test cases for listen address parsing."""

    @pytest.mark.parametrize("value,expected", [
        (":80", ("0.0.0.0", 80)),
        ("127.0.0.1:8112", ("127.0.0.1", 8112)),
        ("localhost:9000", ("localhost", 9000)),
        ("[::1]:8080", ("::1", 8080)),
    ])
    def test_valid(self, value, expected):
        """Test valid addresses."""
        assert parse_listen_address(value) == expected

    @pytest.mark.parametrize("value", ["80", "host:", "host:http", ":0", ":70000"])
    def test_invalid(self, value):
        """Test invalid addresses."""
        with pytest.raises(ValueError):
            parse_listen_address(value)


class TestServiceSettings:
    """Test cases for ServiceSettings."""

    def test_defaults(self):
        """Test default settings."""
        settings = ServiceSettings()

        assert settings.listen == ":80"
        assert settings.listen_reload == "127.0.0.1:8112"
        assert settings.answers == Path("./answers.yaml")
        assert settings.xff is False
        assert settings.debug is False
        assert settings.log_file is None
        assert settings.log_format == "json"
        assert settings.watch is False
        assert settings.watch_debounce == 1.0

    def test_addresses(self):
        """Test parsed listener addresses."""
        settings = ServiceSettings(listen="10.0.0.1:8080")

        assert settings.listen_address == ("10.0.0.1", 8080)
        assert settings.reload_address == ("127.0.0.1", 8112)

    def test_log_level(self):
        """Test the log level follows the debug flag."""
        assert ServiceSettings().log_level == "INFO"
        assert ServiceSettings(debug=True).log_level == "DEBUG"

    def test_string_values_coerced(self):
        """Test coercion of environment-style strings."""
        settings = ServiceSettings(xff="true", answers="/etc/answers.yaml", watch_debounce="0.5")

        assert settings.xff is True
        assert settings.answers == Path("/etc/answers.yaml")
        assert settings.watch_debounce == 0.5

    def test_invalid_listen(self):
        """Test rejection of a bad listen address."""
        with pytest.raises(ValidationError):
            ServiceSettings(listen="nowhere")

    def test_invalid_assignment(self):
        """Test validation on assignment."""
        settings = ServiceSettings()
        with pytest.raises(ValidationError):
            settings.listen_reload = "bad"

    def test_unknown_field(self):
        """Test that unknown settings are rejected."""
        with pytest.raises(ValidationError):
            ServiceSettings(listen_port=80)

    def test_invalid_log_format(self):
        """Test rejection of an unknown log format."""
        with pytest.raises(ValidationError):
            ServiceSettings(log_format="xml")

    def test_non_positive_debounce(self):
        """Test rejection of a zero debounce."""
        with pytest.raises(ValidationError):
            ServiceSettings(watch_debounce=0)
