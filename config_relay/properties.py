"""
Parsing of newline delimited ``key=value`` property files.

Blank lines and lines starting with ``#`` or ``!`` are ignored. Lines that
are neither comments nor ``key=value`` records are skipped with a warning,
unless parsing is strict, in which case the first such line raises
``ParseError``.
"""

import logging
from typing import Mapping

from config_relay.errors import ParseError

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("#", "!")


def parse_properties(
    text: str, strict: bool = False, source: str = "<string>"
) -> dict[str, str]:
    properties: dict[str, str] = {}

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue

        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            if strict:
                raise ParseError(f"not a key=value line: {raw_line!r}", source, line_no)
            logger.warning(
                "Skipping malformed property line %s:%d: %r", source, line_no, raw_line
            )
            continue

        properties[key] = value.strip()

    return properties


def decode_properties(
    content: bytes, strict: bool = False, source: str = "<bytes>"
) -> dict[str, str]:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"content is not valid UTF-8 ({e.reason})", source) from e
    return parse_properties(text, strict=strict, source=source)


def format_properties(properties: Mapping[str, str]) -> str:
    return "".join(f"{key}={value}\n" for key, value in properties.items())
