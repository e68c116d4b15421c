"""
Unit tests for content negotiation and rendering.
"""

import json
import math

import pytest
import yaml

from metadata_server.exceptions import RenderError
from metadata_server.renderer import (
    ContentType,
    content_type_for,
    format_float,
    negotiate_content_type,
    parse_accept,
    render,
    render_error,
    render_json,
    render_text,
    render_yaml,
)


class TestNegotiation:
    """Test cases for Accept header negotiation."""

    @pytest.mark.parametrize("accept,expected", [
        (None, "text/plain"),
        ("", "text/plain"),
        ("application/json", "application/json"),
        ("application/x-yaml", "application/x-yaml"),
        ("text/yaml", "text/yaml"),
        ("text/*", "text/plain"),
        ("*/*", "text/plain"),
        ("application/*", "application/json"),
        ("text/html", "text/plain"),
        ("application/json;q=0.5, application/yaml", "application/yaml"),
        ("application/json, */*;q=0.1", "application/json"),
        ("*/*;q=0.9, text/yaml;q=0.9", "text/yaml"),
        ("application/json;q=0", "text/plain"),
        ("APPLICATION/JSON", "application/json"),
    ])
    def test_negotiate(self, accept, expected):
        """Test picking an offer for an Accept header."""
        assert negotiate_content_type(accept) == expected

    @pytest.mark.parametrize("accept,expected", [
        (None, ContentType.TEXT),
        ("application/json", ContentType.JSON),
        ("application/yaml", ContentType.YAML),
        ("application/x-yaml", ContentType.YAML),
        ("text/x-yaml", ContentType.YAML),
        ("image/png", ContentType.TEXT),
    ])
    def test_content_type_for(self, accept, expected):
        """Test mapping an Accept header to an output format."""
        assert content_type_for(accept) is expected

    def test_parse_accept_skips_bad_quality(self):
        """Test that ranges with an unparseable quality are dropped."""
        specs = parse_accept("application/json;q=abc, text/plain;q=0.3")
        assert specs == [("text/plain", 0.3)]

    def test_parse_accept_skips_out_of_range_quality(self):
        """Test that qualities outside 0 to 1 are dropped."""
        specs = parse_accept(
            "application/json;q=nan, application/yaml;q=inf, text/yaml;q=2, "
            "text/x-yaml;q=-0.5, text/plain;q=1"
        )
        assert specs == [("text/plain", 1.0)]

    def test_nan_quality_does_not_win(self):
        """Test that a nan quality cannot beat an explicit match."""
        accept = "application/json;q=nan, application/yaml;q=0.5"
        assert negotiate_content_type(accept) == "application/yaml"


class TestFormatFloat:
    """Test cases for float formatting."""

    @pytest.mark.parametrize("value,expected", [
        (3.5, "3.5"),
        (4.0, "4"),
        (0.0, "0"),
        (100.0, "100"),
        (-0.25, "-0.25"),
        (1.123456789, "1.123457"),
    ])
    def test_fixed_point(self, value, expected):
        """Test trailing zeros and dots are removed."""
        assert format_float(value) == expected

    def test_non_finite(self):
        """Test NaN and infinities."""
        assert format_float(math.nan) == "NaN"
        assert format_float(math.inf) == "+Inf"
        assert format_float(-math.inf) == "-Inf"


class TestRenderText:
    """Test cases for the text format."""

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        ("hello world", "hello world"),
        (True, "true"),
        (False, "false"),
        (1, "1"),
        (3.5, "3.5"),
    ])
    def test_scalars(self, value, expected):
        """Test rendering scalar values."""
        assert render_text(value) == expected

    def test_mapping_lines_sorted(self):
        """Test that mapping keys are listed sorted with container markers."""
        assert render_text({"b": {"c": 2}, "a": 1}) == "a\nb/\n"

    def test_mapping_keys_escaped(self):
        """Test that mapping keys are query-escaped."""
        value = {"b": [], "a": 1, "a b": [1], "x/y": "z"}
        assert render_text(value) == "a\na+b/\nb/\nx%2Fy\n"

    def test_sequence_lines(self):
        """Test list lines for named, container and scalar elements."""
        value = [
            {"name": "asdf", "stuff": 42},
            {"stuff": 43},
            [1, 2],
            "plain",
            {"name": "with space"},
            {"name": 7},
        ]
        expected = "0=asdf\n1/\n2/\n3\n4=with+space\n5/\n"
        assert render_text(value) == expected

    def test_empty_containers(self):
        """Test empty mappings and lists render nothing."""
        assert render_text({}) == ""
        assert render_text([]) == ""

    def test_unknown_type(self):
        """Test that values outside the answers type are rejected."""
        with pytest.raises(RenderError) as exc_info:
            render_text({1, 2})
        assert exc_info.value.message == "Value is of a type I don't know how to handle"


class TestRenderStructured:
    """Test cases for JSON and YAML output."""

    def test_json_compact_and_sorted(self):
        """Test JSON encoding."""
        assert render_json({"b": [1, 2.5], "a": None}) == '{"a":null,"b":[1,2.5]}'

    def test_json_scalar(self):
        """Test JSON encoding of a bare string."""
        assert render_json("five") == '"five"'

    def test_json_non_ascii(self):
        """Test that non-ASCII text is kept as is."""
        assert render_json({"k": "é"}) == '{"k":"é"}'

    def test_json_nan_rejected(self):
        """Test that NaN cannot be encoded."""
        with pytest.raises(RenderError):
            render_json({"x": math.nan})

    def test_yaml_mapping(self):
        """Test block-style YAML encoding."""
        body = render_yaml({"a": 1, "b": {"c": [1, 2]}})
        assert body == "a: 1\nb:\n  c:\n  - 1\n  - 2\n"
        assert yaml.safe_load(body) == {"a": 1, "b": {"c": [1, 2]}}

    def test_yaml_scalar_without_end_marker(self):
        """Test that bare scalars are not followed by a document end marker."""
        assert render_yaml(42) == "42\n"
        assert render_yaml("five") == "five\n"

    def test_render_returns_media_type(self):
        """Test that render reports the media type of each format."""
        assert render(1, ContentType.TEXT) == ("1", "text/plain")
        assert render(1, ContentType.JSON) == ("1", "application/json")
        assert render(1, ContentType.YAML) == ("1\n", "application/yaml")


class TestRenderError:
    """Test cases for error bodies."""

    def test_text_error(self):
        """Test that text errors are the bare message."""
        assert render_error("Not found", 404, ContentType.TEXT) == ("Not found\n", "text/plain")

    def test_json_error(self):
        """Test the JSON error object."""
        body, media_type = render_error("Not found", 404, ContentType.JSON)
        assert media_type == "application/json"
        assert body.endswith("\n")
        assert json.loads(body) == {"message": "Not found", "type": "error", "code": 404}

    def test_yaml_error(self):
        """Test the YAML error object."""
        body, media_type = render_error("Not found", 404, ContentType.YAML)
        assert media_type == "application/yaml"
        assert yaml.safe_load(body) == {"message": "Not found", "type": "error", "code": 404}
