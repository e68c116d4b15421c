"""
Content negotiation and response rendering.

The output format is chosen once per request from the Accept header. JSON and
YAML are plain structural encodings. The text format is what guests parse with
shell tools, so its rules are fixed:

* null renders as nothing, strings verbatim, booleans as ``true``/``false``
* integers in decimal, floats in fixed point with trailing zeros and a
  trailing dot removed (``3.50`` -> ``3.5``, ``4.0`` -> ``4``)
* a mapping renders one query-escaped key per line, with a ``/`` suffix for
  mapping and list values, lines sorted
* a list renders one line per element in order: ``0=<name>`` for mappings with
  a string ``name`` field, ``0/`` for other containers, ``0`` otherwise
"""

import json
import math
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import quote_plus

import yaml

from .answers import MAGIC_ARRAY_KEY, ValueKind, is_container, kind_of
from .exceptions import RenderError

OFFERS = (
    "text/plain",
    "application/json",
    "application/yaml",
    "application/x-yaml",
    "text/yaml",
    "text/x-yaml",
)
DEFAULT_OFFER = "text/plain"


class ContentType(str, Enum):
    """Output formats."""
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


MEDIA_TYPES = {
    ContentType.TEXT: "text/plain",
    ContentType.JSON: "application/json",
    ContentType.YAML: "application/yaml",
}


def parse_accept(accept: Optional[str]) -> List[Tuple[str, float]]:
    """Parse an Accept header into ``(media range, quality)`` pairs."""
    specs = []
    if not accept:
        return specs

    for part in accept.split(","):
        params = part.split(";")
        value = params[0].strip().lower()
        if not value:
            continue
        quality = 1.0
        for param in params[1:]:
            name, _, raw = param.strip().partition("=")
            if name.strip().lower() != "q":
                continue
            try:
                quality = float(raw.strip())
            except ValueError:
                quality = -1.0
        # Qualities are 0 to 1; nan, inf and out of range values drop the range
        if not 0.0 <= quality <= 1.0:
            continue
        specs.append((value, quality))
    return specs


def negotiate_content_type(
    accept: Optional[str],
    offers: Sequence[str] = OFFERS,
    default: str = DEFAULT_OFFER
) -> str:
    """
    Pick the best offer for an Accept header.

    Higher quality wins; at equal quality an exact match beats ``type/*``,
    which beats ``*/*``; remaining ties go to the earlier offer. Ranges with
    ``q=0`` are ignored.
    """
    best_offer = default
    best_quality = -1.0
    best_wild = 3

    specs = parse_accept(accept)
    for offer in offers:
        for value, quality in specs:
            if quality == 0.0 or quality < best_quality:
                continue
            if value == "*/*":
                if quality > best_quality or best_wild > 2:
                    best_quality, best_wild, best_offer = quality, 2, offer
            elif value.endswith("/*"):
                if offer.startswith(value[:-1]) and (quality > best_quality or best_wild > 1):
                    best_quality, best_wild, best_offer = quality, 1, offer
            elif value == offer and (quality > best_quality or best_wild > 0):
                best_quality, best_wild, best_offer = quality, 0, offer
    return best_offer


def content_type_for(accept: Optional[str]) -> ContentType:
    """Map an Accept header to an output format."""
    negotiated = negotiate_content_type(accept)
    if "json" in negotiated:
        return ContentType.JSON
    elif "yaml" in negotiated:
        return ContentType.YAML
    return ContentType.TEXT


def format_float(value: float) -> str:
    """Format a float the way the text output expects."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:f}".rstrip("0").rstrip(".")


def _escape(key: str) -> str:
    return quote_plus(key, safe="")


def render_text(value: Any) -> str:
    """
    Render a value in the canonical text format.

    Raises:
        RenderError: If the value is outside the answers value type
    """
    try:
        kind = kind_of(value)
    except TypeError:
        raise RenderError("Value is of a type I don't know how to handle")

    if kind is ValueKind.NULL:
        return ""
    if kind is ValueKind.STRING:
        return value
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind is ValueKind.INTEGER:
        return str(value)
    if kind is ValueKind.FLOAT:
        return format_float(value)

    if kind is ValueKind.MAPPING:
        lines = [
            f"{_escape(key)}/\n" if is_container(child) else f"{_escape(key)}\n"
            for key, child in value.items()
        ]
        return "".join(sorted(lines))

    lines = []
    for index, item in enumerate(value):
        name = item.get(MAGIC_ARRAY_KEY) if isinstance(item, dict) else None
        if isinstance(name, str):
            lines.append(f"{index}={_escape(name)}\n")
        elif is_container(item):
            lines.append(f"{index}/\n")
        else:
            lines.append(f"{index}\n")
    return "".join(lines)


def render_json(value: Any) -> str:
    """Render a value as compact JSON."""
    try:
        return json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise RenderError(f"Error serializing to JSON: {e}")


def render_yaml(value: Any) -> str:
    """Render a value as a block-style YAML document."""
    try:
        document = yaml.safe_dump(value, default_flow_style=False, allow_unicode=True)
    except yaml.YAMLError as e:
        raise RenderError(f"Error serializing to YAML: {e}")
    # Bare scalars get an explicit document end marker
    if document.endswith("\n...\n"):
        document = document[:-len("...\n")]
    return document


_RENDERERS = {
    ContentType.TEXT: render_text,
    ContentType.JSON: render_json,
    ContentType.YAML: render_yaml,
}


def render(value: Any, content_type: ContentType) -> Tuple[str, str]:
    """
    Render a resolved value.

    Returns:
        ``(body, media_type)``
    """
    return _RENDERERS[content_type](value), MEDIA_TYPES[content_type]


def render_error(message: str, code: int, content_type: ContentType) -> Tuple[str, str]:
    """
    Render an error body.

    Text errors are the bare message; JSON and YAML errors are an object with
    ``message``, ``type`` and ``code``.
    """
    if content_type is ContentType.TEXT:
        body = message
    else:
        body = _RENDERERS[content_type]({"message": message, "type": "error", "code": code})
    if not body.endswith("\n"):
        body += "\n"
    return body, MEDIA_TYPES[content_type]
