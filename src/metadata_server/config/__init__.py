"""
Configuration management for the metadata server.

Provides the pydantic settings model, hierarchical settings loading and
answers file watching.
"""

from .settings import BaseConfig, ServiceSettings, parse_listen_address
from .loader import SettingsLoader, load_settings
from .hot_reload import AnswersFileHandler, AnswersFileWatcher

__all__ = [
    "BaseConfig",
    "ServiceSettings",
    "parse_listen_address",
    "SettingsLoader",
    "load_settings",
    "AnswersFileHandler",
    "AnswersFileWatcher",
]
