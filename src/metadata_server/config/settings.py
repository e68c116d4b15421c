"""
Pydantic settings model for the metadata server.

Provides type-safe settings for the listeners, the answers file and logging.
"""

from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, field_validator


def parse_listen_address(value: str) -> Tuple[str, int]:
    """
    Split a ``[host]:port`` listen address.

    An empty host listens on all interfaces.

    Raises:
        ValueError: If the address has no valid port
    """
    host, sep, port = value.rpartition(":")
    if not sep:
        raise ValueError(f"Listen address must be [host]:port, got {value!r}")
    if not port.isdigit() or not 0 < int(port) <= 65535:
        raise ValueError(f"Invalid port in listen address {value!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


class BaseConfig(BaseModel):
    """Base configuration class with common settings."""

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        extra="forbid"
    )


class ServiceSettings(BaseConfig):
    """Metadata server settings."""

    listen: str = Field(default=":80", description="Address of the public listener")
    listen_reload: str = Field(
        default="127.0.0.1:8112",
        description="Address of the administrative reload listener"
    )
    answers: Path = Field(
        default=Path("./answers.yaml"),
        description="File containing the answers to respond with"
    )
    xff: bool = Field(default=False, description="Use X-Forwarded-For as the client key")
    debug: bool = Field(default=False, description="Enable debug logging")
    log_file: Optional[Path] = Field(default=None, description="Append logs to this file")
    log_format: Literal["json", "text"] = Field(default="json", description="Log record format")
    pid_file: Optional[Path] = Field(default=None, description="Write the process id here")
    watch: bool = Field(default=False, description="Reload when the answers file changes")
    watch_debounce: PositiveFloat = Field(
        default=1.0,
        description="Seconds to wait for more file changes before reloading"
    )

    @field_validator("listen", "listen_reload")
    @classmethod
    def validate_listen(cls, v: str) -> str:
        """Validate ``[host]:port`` addresses."""
        parse_listen_address(v)
        return v

    @property
    def log_level(self) -> str:
        """Log level implied by the debug flag."""
        return "DEBUG" if self.debug else "INFO"

    @property
    def listen_address(self) -> Tuple[str, int]:
        """Public listener host and port."""
        return parse_listen_address(self.listen)

    @property
    def reload_address(self) -> Tuple[str, int]:
        """Admin listener host and port."""
        return parse_listen_address(self.listen_reload)
