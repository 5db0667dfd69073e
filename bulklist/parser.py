"""Turn pasted or uploaded text into a list of :class:`WorkItem`.

Accepted input
--------------
* an ``id,description`` header row followed by data rows
* a plain list of ids, one per line, no header
* a mix of rows with and without the description column

Lines that do not yield an id are dropped, never rejected.
"""
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional, Union

from .models import WorkItem

logger = logging.getLogger(__name__)

TEMPLATE_TEXT = 'id,description\ntt0111161,"Your description here"'
TEMPLATE_FILENAME = "imdb_bulk_upload_template.csv"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
# Whitespace plus the byte-order mark, which pasted spreadsheet text often starts with
_EDGES = re.compile(r"^[\s\ufeff]+|[\s\ufeff]+$")


def parse(raw_text: Optional[str]) -> List[WorkItem]:
    """Parse ``raw_text`` into work items, preserving line order."""
    if not raw_text:
        return []

    lines = [_trim(line) for line in _LINE_BREAK.split(raw_text)]
    lines = [line for line in lines if line]
    if not lines:
        return []

    if _is_header(lines[0]):
        lines = lines[1:]

    items = []
    for line_number, line in enumerate(lines):
        item = _parse_line(line)
        if item is None:
            logger.debug("Dropping line %d without an id: %r", line_number, line)
            continue
        items.append(item)
    return items


def _trim(text: str) -> str:
    return _EDGES.sub("", text)


def _is_header(line: str) -> bool:
    first = line.lower()
    return first == "id" or first == "id,description" or first.startswith("id,")


def _parse_line(line: str) -> Optional[WorkItem]:
    fields = split_line(line)
    item_id = _trim(fields[0])
    if not item_id:
        return None
    annotation = _trim(fields[1]) if len(fields) > 1 else ""
    return WorkItem(id=item_id, annotation=annotation)


def split_line(line: str) -> List[str]:
    """Split one line on commas, honouring double-quoted fields.

    Inside quotes a doubled quote is a literal quote and commas do not split.
    Always returns at least one field.
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == '"':
            if in_quotes and line[i + 1:i + 2] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    fields.append("".join(current))
    return fields


def read_source(path: Union[str, Path]) -> str:
    """Read an uploaded file (``-`` for stdin) as text for :func:`parse`."""
    if str(path) == "-":
        return sys.stdin.read()
    # utf-8-sig strips the BOM spreadsheet exports like to add
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return f.read()
