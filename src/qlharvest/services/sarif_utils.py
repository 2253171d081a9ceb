"""Helpers for SARIF plain text messages and regions."""

import re
from dataclasses import dataclass
from typing import Union

from qlharvest.domain.models import HighlightedRegion

# "[link text](4)", where "[" and "]" inside the text may be escaped
_LINK_RE = re.compile(r"\[(?P<text>(?:[^\\\[\]]|\\\\|\\\]|\\\[)*)\]\((?P<dest>[0-9]+)\)")
_ESCAPE_RE = re.compile(r"\\([\[\]\\])")


@dataclass
class SarifLink:
    dest: int
    text: str


def unescape_sarif_text(message: str) -> str:
    """Unescape "[", "]" and "\\" as used in SARIF plain text messages."""
    return _ESCAPE_RE.sub(r"\1", message)


def _is_escaped(message: str, index: int) -> bool:
    backslashes = 0
    while index > 0 and message[index - 1] == "\\":
        backslashes += 1
        index -= 1
    return backslashes % 2 == 1


def parse_sarif_plain_text_message(message: str) -> list[Union[str, SarifLink]]:
    """
    Split a plain text message into text parts and links to related locations.

    Text parts and links alternate, starting and ending with a (possibly empty)
    text part.
    """
    parts: list[Union[str, SarifLink]] = []
    cur_index = 0
    for match in _LINK_RE.finditer(message):
        if _is_escaped(message, match.start()):
            continue
        parts.append(unescape_sarif_text(message[cur_index:match.start()]))
        parts.append(SarifLink(dest=int(match.group("dest")), text=unescape_sarif_text(match.group("text"))))
        cur_index = match.end()
    parts.append(unescape_sarif_text(message[cur_index:]))
    return parts


def parse_sarif_region(region: dict) -> HighlightedRegion:
    """
    Read a SARIF region, applying the SARIF 2.1.0 defaults.

    A missing start line or end column falls back to 1; the end line defaults
    to the start line and the start column to 1. Columns are returned as
    written in the log.
    """
    start_line = region.get("startLine", 1)
    return HighlightedRegion(
        start_line=start_line,
        start_column=region.get("startColumn", 1),
        end_line=region.get("endLine", start_line),
        end_column=region.get("endColumn", 1),
    )


def parse_highlighted_line(line: str, line_number: int, region: HighlightedRegion) -> tuple[str, str, str]:
    """
    Split a line of code into the text before, inside and after a highlighted region.

    Args:
        line: The line of code
        line_number: 1-based number of the line in its file
        region: Highlighted region, with an exclusive end column

    Returns:
        Tuple of (plain_before, highlighted, plain_after)
    """
    if line_number < region.start_line or line_number > region.end_line:
        return line, "", ""

    start_column = region.start_column if line_number == region.start_line else 1
    end_column = region.end_column if line_number == region.end_line else len(line) + 1

    return (
        line[: start_column - 1],
        line[start_column - 1 : end_column - 1],
        line[end_column - 1 :],
    )
