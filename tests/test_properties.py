import logging

import pytest

from config_relay.errors import ParseError
from config_relay.properties import decode_properties, format_properties, parse_properties


def test_parse_simple():
    assert parse_properties("foo.bar=Hi!\n") == {"foo.bar": "Hi!"}


def test_parse_splits_on_first_equals_and_strips():
    text = "  url = jdbc:h2:mem:test;MODE=PostgreSQL  \nempty=\n"
    assert parse_properties(text) == {
        "url": "jdbc:h2:mem:test;MODE=PostgreSQL",
        "empty": "",
    }


def test_parse_ignores_comments_and_blank_lines():
    text = "# comment\n! also a comment\n\n   \na=1\n"
    assert parse_properties(text, strict=True) == {"a": "1"}


def test_parse_skips_malformed_lines(caplog):
    text = "a=1\nnot_a_property_line\n=no key\nb=2\n"
    with caplog.at_level(logging.WARNING, logger="config_relay.properties"):
        props = parse_properties(text, source="app.properties")

    assert props == {"a": "1", "b": "2"}
    assert "app.properties:2" in caplog.text
    assert "app.properties:3" in caplog.text


def test_parse_strict_rejects_malformed_line():
    with pytest.raises(ParseError) as excinfo:
        parse_properties("a=1\nnot_a_property_line\n", strict=True, source="app.properties")

    assert excinfo.value.line_no == 2
    assert excinfo.value.source == "app.properties"


def test_parse_duplicate_key_last_wins_in_first_position():
    props = parse_properties("a=1\nb=2\na=3\n")
    assert props == {"a": "3", "b": "2"}
    assert list(props) == ["a", "b"]


def test_decode_rejects_invalid_utf8():
    with pytest.raises(ParseError):
        decode_properties(b"a=\xff\xfe\n")


def test_format_properties():
    assert format_properties({"a": "1", "foo.bar": "Hi!"}) == "a=1\nfoo.bar=Hi!\n"
    assert parse_properties(format_properties({"x": "y=z"})) == {"x": "y=z"}
