"""Read and write the journal's line format.

    Currently:
    - 2024-01-10 09:15 | Write the parser @coding @done(2024-01-10 10:40)
    	Notes are indented continuation lines
    Archive:
    - 2024-01-09 16:00 | Old entry @from(Currently)

Lines the parser does not understand are never rejected: before the first
entry they are kept as leading text, after it unindented lines are kept as
trailing text and indented lines become note lines.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Union

from .errors import ParseError
from .models import Item, parse_timestamp, split_lines
from .store import UNCATEGORIZED, ContentStore

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r"^(?P<name>\S[\S ]+):\s*(@\S+\s*)*$")
ENTRY_RE = re.compile(r"^(?P<indent>\s*)- (?P<date>\d{4}-\d\d-\d\d \d\d:\d\d) \| (?P<title>.*)$")
ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    """Remove terminal color escape sequences."""
    return ANSI_RE.sub("", text)


def load_text(source: Union[str, Path, bytes]) -> str:
    """Decode journal content from a path or raw bytes.

    Raises:
        ParseError: If the content is not UTF-8 text
    """
    if isinstance(source, (str, Path)):
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise ParseError(f"Cannot read {source}: {e}")
    else:
        data = source

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Journal is not UTF-8 text: {e}")
    if "\x00" in text:
        raise ParseError("Journal contains binary data")
    return text


def parse(text: str) -> ContentStore:
    """Parse journal text into a ContentStore."""
    store = ContentStore()
    store.final_newline = text.endswith("\n") or not text
    current = None
    indent = None

    for line in split_lines(text):
        if not line.strip():
            continue

        m = ENTRY_RE.match(line)
        if m:
            try:
                date = parse_timestamp(m.group("date"))
            except ValueError:
                m = None
            if m:
                if current is None:
                    current = store.add_section(UNCATEGORIZED).name
                if indent is None:
                    indent = m.group("indent")
                store.push(Item(date=date, title=m.group("title"), section=current))
                continue

        m = HEADER_RE.match(line)
        if m:
            current = store.add_section(m.group("name").strip(), original=line).name
            continue

        if not store.items:
            store.leading_text.append(line)
        elif not line[:1].isspace():
            store.trailing_text.append(line)
        else:
            store.items[-1].note.lines.append(line)

    store.entry_indent = indent or ""
    logger.debug("Parsed %d items in %d sections", len(store.items), len(store.sections))
    return store


def serialize(store: ContentStore) -> str:
    """Render a store back to journal text, free of color escapes."""
    by_section: dict[str, list[Item]] = {}
    for item in store.items:
        by_section.setdefault(item.section.lower(), []).append(item)

    indent = store.entry_indent
    lines = list(store.leading_text)
    for section in store.sections:
        lines.append(section.header)
        for item in by_section.get(section.name.lower(), []):
            entry, *notes = item.to_lines()
            lines.append(indent + entry)
            lines.extend(notes)
    lines.extend(store.trailing_text)

    text = "\n".join(lines)
    if text and store.final_newline:
        text += "\n"
    return strip_ansi(text)
