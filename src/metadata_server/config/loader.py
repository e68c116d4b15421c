"""
Hierarchical settings loading (overrides > env > file > defaults).

Settings come from the model defaults, an optional YAML or JSON settings file,
``METADATA_*`` environment variables and finally command line overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from .settings import ServiceSettings

DEFAULT_ENV_PREFIX = "METADATA"


class SettingsLoader:
    """Settings loader with hierarchical sources."""

    def __init__(self, env_prefix: str = DEFAULT_ENV_PREFIX):
        """
        Initialize settings loader.

        Args:
            env_prefix: Environment variable prefix
        """
        self.env_prefix = env_prefix
        self.supported_formats = {".json", ".yaml", ".yml"}

        # Settings sources (in order of precedence, lowest first)
        self.sources = []

    def add_file_source(self, file_path: Union[str, Path], required: bool = True) -> "SettingsLoader":
        """
        Add a settings file.

        Args:
            file_path: Path to YAML or JSON settings file
            required: Whether file is required to exist

        Returns:
            Self for method chaining
        """
        file_path = Path(file_path)

        if required and not file_path.exists():
            raise FileNotFoundError(f"Required settings file not found: {file_path}")

        if file_path.exists():
            self.sources.append(("file", file_path))

        return self

    def add_env_source(self, environ: Optional[Mapping[str, str]] = None) -> "SettingsLoader":
        """
        Add environment variables (``<PREFIX>_ANSWERS`` sets ``answers``).

        Returns:
            Self for method chaining
        """
        self.sources.append(("env", environ))
        return self

    def add_overrides(self, overrides: Mapping[str, Any]) -> "SettingsLoader":
        """
        Add explicit overrides; ``None`` values are ignored.

        Returns:
            Self for method chaining
        """
        self.sources.append(("overrides", {k: v for k, v in overrides.items() if v is not None}))
        return self

    def load(self) -> ServiceSettings:
        """
        Load settings from all sources.

        Raises:
            ValueError: If settings validation fails or a file cannot be read
        """
        settings_data: Dict[str, Any] = {}

        for source_type, source_value in self.sources:
            if source_type == "file":
                settings_data.update(self._load_file(source_value))
            elif source_type == "env":
                settings_data.update(self._load_env_vars(source_value))
            elif source_type == "overrides":
                settings_data.update(source_value)

        try:
            return ServiceSettings(**settings_data)
        except ValidationError as e:
            raise ValueError(f"Settings validation failed: {e}")

    def _load_file(self, file_path: Path) -> Dict[str, Any]:
        """Load settings from file."""
        suffix = file_path.suffix.lower()

        if suffix not in self.supported_formats:
            raise ValueError(f"Unsupported file format: {suffix}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                if suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f) or {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load settings file {file_path}: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Settings file {file_path} must contain a mapping")
        return {str(k).replace("-", "_"): v for k, v in data.items()}

    def _load_env_vars(self, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Load settings from environment variables."""
        environ = os.environ if environ is None else environ
        prefix = f"{self.env_prefix.upper()}_"
        fields = set(ServiceSettings.model_fields)

        env_data = {}
        for key, value in environ.items():
            if not key.upper().startswith(prefix):
                continue
            setting = key[len(prefix):].lower()
            converted = self._convert_env_value(value)
            if setting in fields and converted is not None:
                env_data[setting] = converted

        return env_data

    def _convert_env_value(self, value: str) -> Optional[str]:
        """Empty and null-like environment values leave a setting alone."""
        if value.lower() in ("null", "none", ""):
            return None
        return value


def load_settings(
    settings_file: Optional[Union[str, Path]] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> ServiceSettings:
    """
    Convenience function to load settings.

    Args:
        settings_file: Optional YAML or JSON settings file
        env_prefix: Environment variable prefix
        overrides: Values that take precedence over everything else
        environ: Environment to read instead of ``os.environ``

    Returns:
        Loaded settings
    """
    loader = SettingsLoader(env_prefix)

    if settings_file:
        loader.add_file_source(settings_file, required=True)

    loader.add_env_source(environ)

    if overrides:
        loader.add_overrides(overrides)

    return loader.load()
