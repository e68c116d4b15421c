"""
Answers document model.

An answers file maps version identifiers to client keys to an arbitrary tree
of scalars, lists and mappings::

    "2016-01-01":
      default:
        hostname: web
      10.0.0.5:
        hostname: web-5

The tree is parsed once, checked against the ``Versions -> Answers -> Value``
shape, and merged with each version's ``default`` entry before it is published.
Published trees are never modified; a reload always builds a new one.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .exceptions import AnswersLoadError

# Client key whose top-level fields are copied into every other client
DEFAULT_KEY = "default"

# Field that lets list elements be addressed by name instead of index, so that
# both things/0/stuff and things/asdf/stuff reach {name: asdf, stuff: 42}
MAGIC_ARRAY_KEY = "name"

Value = Union[None, bool, int, float, str, List["Value"], Dict[str, "Value"]]
Answers = Dict[str, Value]
Versions = Dict[str, Answers]


class ValueKind(str, Enum):
    """Variants of the answers value type."""
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


class AnswersLoader(yaml.SafeLoader):
    """SafeLoader that keeps timestamps as plain strings."""


AnswersLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp) for tag, regexp in resolvers
        if tag != "tag:yaml.org,2002:timestamp"
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Exponent floats without a dot or exponent sign (1e3, 1.5e3). Appended after
# the int resolvers, so plain integers still resolve as ints.
AnswersLoader.add_implicit_resolver(
    "tag:yaml.org,2002:float",
    re.compile(r"^[-+]?(\.[0-9]+|[0-9]+(\.[0-9]*)?)([eE][-+]?[0-9]+)?$"),
    list("-+0123456789."),
)


def kind_of(value: Any) -> ValueKind:
    """
    Classify a value.

    Raises:
        TypeError: If the value is outside the answers value type
    """
    if value is None:
        return ValueKind.NULL
    # bool before int, bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.MAPPING
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def is_container(value: Any) -> bool:
    """Check whether a value is a Mapping or a Sequence."""
    return isinstance(value, (dict, list))


def _key_to_str(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return ""
    if isinstance(key, (int, float)):
        return str(key)
    raise AnswersLoadError(
        f"Unsupported mapping key type: {type(key).__name__}",
        details={"key": repr(key)}
    )


def to_value(obj: Any) -> Value:
    """
    Convert a decoded YAML object into an answers value.

    Mapping keys become strings; anything outside the value type is rejected.

    Raises:
        AnswersLoadError: If the object contains an unsupported type
    """
    if isinstance(obj, dict):
        return {_key_to_str(k): to_value(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [to_value(item) for item in obj]
    try:
        kind_of(obj)
    except TypeError as e:
        raise AnswersLoadError(str(e), details={"value": repr(obj)})
    return obj


def parse_answers(data: Union[bytes, str]) -> Versions:
    """
    Decode an answers document.

    Args:
        data: YAML document text

    Returns:
        Versions mapping

    Raises:
        AnswersLoadError: If the document is not valid YAML or not a mapping
            of version to mapping of client key to value
    """
    try:
        document = yaml.load(data, Loader=AnswersLoader)
    except yaml.YAMLError as e:
        raise AnswersLoadError(f"Invalid answers YAML: {e}")

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise AnswersLoadError(
            "Answers must be a mapping of versions",
            details={"type": type(document).__name__}
        )

    try:
        document = to_value(document)
    except RecursionError:
        raise AnswersLoadError("Answers contain a recursive alias")

    versions: Versions = {}
    for version, answers in document.items():
        if answers is None:
            answers = {}
        if not isinstance(answers, dict):
            raise AnswersLoadError(
                f"Answers for version {version} must be a mapping of clients",
                details={"version": version, "type": type(answers).__name__}
            )
        versions[version] = answers
    return versions


def merge_defaults(answers: Answers) -> Answers:
    """
    Copy the default entry's top-level keys into every client mapping.

    Only keys missing from a client are filled in; nested values are taken
    wholesale. The input is left untouched.
    """
    defaults = answers.get(DEFAULT_KEY)
    if not isinstance(defaults, dict):
        return dict(answers)

    merged: Answers = {}
    for client, value in answers.items():
        if isinstance(value, dict):
            value = {**defaults, **value}
        merged[client] = value
    return merged


def merge_all_defaults(versions: Versions) -> Versions:
    """Apply :func:`merge_defaults` to every version."""
    return {version: merge_defaults(answers) for version, answers in versions.items()}


def load_answers(path: Union[str, Path]) -> Versions:
    """
    Read, parse and default-merge an answers file.

    Raises:
        AnswersLoadError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise AnswersLoadError(
            f"Failed to read answers file {path}: {e}",
            details={"path": str(path)}
        )
    return merge_all_defaults(parse_answers(data))
