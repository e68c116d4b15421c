"""
Metadata server.

Serves per-client metadata answers, loaded from a YAML file, over HTTP as
plain text, JSON or YAML.
"""

from .answers import (
    DEFAULT_KEY,
    MAGIC_ARRAY_KEY,
    load_answers,
    merge_all_defaults,
    merge_defaults,
    parse_answers,
)
from .resolver import resolve
from .server import create_admin_app, create_app
from .store import AnswersStore, ReloadSource, StoreState
from .version import VERSION

__all__ = [
    'DEFAULT_KEY',
    'MAGIC_ARRAY_KEY',
    'load_answers',
    'merge_all_defaults',
    'merge_defaults',
    'parse_answers',
    'resolve',
    'create_app',
    'create_admin_app',
    'AnswersStore',
    'ReloadSource',
    'StoreState',
]

__version__ = VERSION
