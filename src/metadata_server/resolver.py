"""
Path resolution over an answers snapshot.

A query names a version, a client key and a list of path segments. Resolution
picks the version (``latest`` falls back to the highest version key), picks the
client's tree (falling back to ``default``) and walks the segments through
mappings and lists. Every failure collapses into the same not-found result.
"""

import re
from typing import List, Optional, Sequence, Tuple
from urllib.parse import unquote_plus

from .answers import DEFAULT_KEY, MAGIC_ARRAY_KEY, Answers, Value, Versions
from .exceptions import BadRequestError

LATEST_VERSION = "latest"

_INDEX_RE = re.compile(r"[+-]?[0-9]+")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def select_version(snapshot: Versions, requested: str) -> Optional[str]:
    """
    Pick the version key to serve.

    An existing key always wins, including a literal ``latest``. Otherwise
    ``latest`` means the highest key by code point order.
    """
    if requested in snapshot:
        return requested
    if requested == LATEST_VERSION and snapshot:
        return max(snapshot)
    return None


def select_client(answers: Answers, client_key: str) -> Tuple[Value, bool]:
    """Look up a client's tree, falling back to the default entry."""
    if client_key in answers:
        return answers[client_key], True
    if DEFAULT_KEY in answers:
        return answers[DEFAULT_KEY], True
    return None, False


def _find_by_name(items: List[Value], name: str) -> Tuple[Value, bool]:
    # First match wins when several elements share a name
    for item in items:
        if not isinstance(item, dict):
            continue
        item_name = item.get(MAGIC_ARRAY_KEY)
        if isinstance(item_name, str) and item_name == name:
            return item, True
    return None, False


def walk(node: Value, segments: Sequence[str]) -> Tuple[Value, bool]:
    """Descend through ``node`` one segment at a time."""
    for segment in segments:
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, list):
            if _INDEX_RE.fullmatch(segment):
                index = int(segment)
                if not 0 <= index < len(node):
                    return None, False
                node = node[index]
            else:
                node, found = _find_by_name(node, segment)
                if not found:
                    return None, False
        else:
            return None, False
    return node, True


def resolve(
    snapshot: Versions,
    requested_version: str,
    client_key: str,
    segments: Sequence[str]
) -> Tuple[Value, bool]:
    """
    Resolve a query against a snapshot.

    Args:
        snapshot: Published versions tree
        requested_version: Version from the request path
        client_key: Client network address
        segments: Decoded path segments after the version

    Returns:
        ``(value, True)`` when found, ``(None, False)`` otherwise
    """
    version = select_version(snapshot, requested_version)
    if version is None:
        return None, False

    root, found = select_client(snapshot[version], client_key)
    if not found:
        return None, False

    return walk(root, segments)


def unescape_segment(segment: str) -> str:
    """
    Query-unescape one path segment (``+`` becomes a space).

    Raises:
        BadRequestError: If the segment has a malformed percent escape
    """
    match = _BAD_ESCAPE_RE.search(segment)
    if match:
        bad = segment[match.start():match.start() + 3]
        raise BadRequestError(f'invalid URL escape "{bad}"', details={"segment": segment})
    return unquote_plus(segment)


def path_segments(escaped_path: str) -> List[str]:
    """
    Split a raw request path into decoded key segments.

    The leading slash and any trailing slashes are dropped, as is the version
    segment: ``/2016-01-01/things/0/`` gives ``["things", "0"]``.
    """
    path = escaped_path[1:] if escaped_path.startswith("/") else escaped_path
    parts = path.rstrip("/").split("/")[1:]
    return [unescape_segment(part) for part in parts]
