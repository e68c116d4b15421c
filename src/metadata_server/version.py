"""
Version and build metadata for the metadata server.

Reported by ``--version``, the startup log line and the admin health endpoint.
"""

import os
import subprocess
from pathlib import Path

APP_NAME = "metadata-server"
VERSION = os.getenv("METADATA_VERSION", "0.1.0")


def get_git_sha() -> str:
    """
    Short commit SHA of the checkout the package runs from.

    Falls back to ``GIT_SHA`` for installs without a git checkout, such as
    container images.
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=Path(__file__).resolve().parent,
            capture_output=True,
            text=True,
            timeout=5
        )
    except (OSError, subprocess.SubprocessError):
        result = None

    if result is not None and result.returncode == 0:
        return result.stdout.strip()
    return os.getenv("GIT_SHA", "unknown")


GIT_SHA = get_git_sha()


def get_version_string() -> str:
    """Version line printed by ``metadata-server --version``."""
    return f"{APP_NAME} {VERSION} ({GIT_SHA})"
