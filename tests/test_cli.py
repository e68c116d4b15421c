"""
Unit tests for the command line entry point.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from metadata_server import cli
from metadata_server.monitoring.logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the logging configuration done by main."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    handlers = list(root.handlers)
    level = root.level
    propagate = root.propagate
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = propagate


@pytest.fixture
def answers_file(tmp_path):
    """Valid answers file."""
    path = tmp_path / "answers.yaml"
    path.write_text("v1:\n  default:\n    x: 1\n")
    return path


class TestParser:
    """Test cases for argument parsing."""

    def test_defaults_left_unset(self):
        """Test that unset flags do not override other settings sources."""
        args = cli.build_parser().parse_args([])

        assert args.debug is None
        assert args.xff is None
        assert args.watch is None
        assert args.listen is None
        assert args.answers is None

    def test_flags(self):
        """Test every flag."""
        args = cli.build_parser().parse_args([
            "--debug", "--xff", "--watch",
            "--listen", ":8080",
            "--listenReload", ":8113",
            "--answers", "/a.yaml",
            "--log", "/tmp/m.log",
            "--pid-file", "/tmp/m.pid",
            "-c", "/etc/m.yaml",
        ])

        assert args.debug and args.xff and args.watch
        assert args.listen == ":8080"
        assert args.listen_reload == ":8113"
        assert args.answers == "/a.yaml"
        assert args.log_file == "/tmp/m.log"
        assert args.pid_file == "/tmp/m.pid"
        assert args.config == "/etc/m.yaml"


class TestMain:
    """Test cases for main."""

    def test_version(self, capsys):
        """Test printing the version."""
        assert cli.main(["--version"]) == 0
        assert "metadata-server" in capsys.readouterr().out

    def test_invalid_settings(self, capsys):
        """Test that invalid settings exit with a usage error."""
        assert cli.main(["--listen", "nowhere"]) == 2
        assert "Invalid settings" in capsys.readouterr().err

    def test_missing_answers_file(self, tmp_path):
        """Test that startup fails without an answers file."""
        assert cli.main(["--answers", str(tmp_path / "missing.yaml")]) == 1

    def test_invalid_answers_file(self, tmp_path):
        """Test that startup fails with a broken answers file."""
        path = tmp_path / "answers.yaml"
        path.write_text("- not versions\n")

        assert cli.main(["--answers", str(path)]) == 1

    def test_recursive_answers_file(self, tmp_path):
        """Test that a self-referencing alias fails startup cleanly."""
        path = tmp_path / "answers.yaml"
        path.write_text("v1:\n  default:\n    a: &x [*x]\n")

        assert cli.main(["--answers", str(path)]) == 1

    def test_serves_with_valid_answers(self, answers_file, tmp_path):
        """Test a normal start writes the pid and serves the loaded answers."""
        pid_file = tmp_path / "metadata.pid"
        served = {}

        async def fake_serve(settings, store, metrics):
            served["snapshot"] = store.snapshot
            served["running"] = store.is_running()

        with patch.object(cli, "serve", fake_serve):
            code = cli.main([
                "--answers", str(answers_file),
                "--pid-file", str(pid_file),
                "--log", str(tmp_path / "metadata.log"),
            ])

        assert code == 0
        assert served["snapshot"] == {"v1": {"default": {"x": 1}}}
        assert served["running"] is True
        assert pid_file.read_text() == str(os.getpid())
        assert Path(tmp_path / "metadata.log").exists()

    def test_unwritable_log_file(self, answers_file, tmp_path):
        """Test that an unusable log file fails startup."""
        log_file = tmp_path / "missing" / "metadata.log"
        assert cli.main(["--answers", str(answers_file), "--log", str(log_file)]) == 1
