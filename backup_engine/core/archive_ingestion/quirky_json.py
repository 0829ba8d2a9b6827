"""
Extraction of JSON payloads from export `.js` files.

Export metadata files are JavaScript, not JSON: each holds one or more
assignments such as `window.YTD.tweets.part0 = [ ... ]`. This module finds
every `= [` / `= {` assignment, cuts out the balanced literal that follows
and parses it with the json module.

Dependencies: json (stdlib)
System role: Tolerant decoder used by the archive parsing stage
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_ASSIGNMENT = re.compile(r"=\s*([\[{])")
_CLOSERS = {"]": "[", "}": "{"}
_BOM = "\ufeff"


def extract_json_literal(content: str, start: int) -> tuple[str, int] | None:
    """
    Cut the balanced JSON array/object literal that opens at `start`.

    Brackets inside double-quoted strings (with backslash escapes) are
    ignored, as is a closer that does not match the innermost opener.

    Args:
        content: Full file text
        start: Index of the opening `[` or `{`

    Returns:
        (literal, end_index) where end_index is the closing bracket, or None
        when the literal never closes
    """
    opening = content[start] if start < len(content) else ""
    if opening not in ("[", "{"):
        return None

    stack = [opening]
    in_string = False
    escaped = False

    for index in range(start + 1, len(content)):
        char = content[index]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in ("[", "{"):
            stack.append(char)
        elif char in _CLOSERS:
            if stack[-1] != _CLOSERS[char]:
                continue
            stack.pop()
            if not stack:
                return content[start : index + 1], index

    return None


def _items_of(parsed: Any) -> list[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        return [parsed]
    return []


def parse_archive_js(content: str) -> list[Any]:
    """
    Parse every assigned JSON literal in an export file.

    Arrays are flattened into the result and objects appended. A literal
    that fails to parse is skipped with a warning. When no assignment
    yields anything, the whole trimmed text is tried as plain JSON.

    Args:
        content: Text of a data/*.js file

    Returns:
        list: Parsed items ([] for unreadable content)

    Example:
        >>> parse_archive_js('foo = [1,"a]b",{"x":[2,3]}];')
        [1, 'a]b', {'x': [2, 3]}]
    """
    text = content[1:] if content.startswith(_BOM) else content
    items: list[Any] = []

    position = 0
    while True:
        match = _ASSIGNMENT.search(text, position)
        if match is None:
            break

        start = match.start(1)
        extracted = extract_json_literal(text, start)
        if extracted is None:
            position = start + 1
            continue

        literal, end = extracted
        try:
            items.extend(_items_of(json.loads(literal)))
        except json.JSONDecodeError as e:
            logger.warning(
                f"{__name__}:parse_archive_js - Skipping unparsable assignment segment: {e}",
                extra={"segment_start": start},
            )
        position = end + 1

    if items:
        return items

    trimmed = text.strip()
    if not trimmed:
        return []

    try:
        return _items_of(json.loads(trimmed))
    except json.JSONDecodeError:
        return []
