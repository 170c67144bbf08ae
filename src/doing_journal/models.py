"""Data models for journal items, notes, sections and change reports."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from . import tags as tag_engine
from .tags import TagBool

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
ENTRY_PREFIX = "- "
NOTE_PREFIX = "\t"


def now() -> datetime:
    """Current local time truncated to the minute."""
    return datetime.now().replace(second=0, microsecond=0)


def format_timestamp(dt: datetime) -> str:
    """Format datetime the way entry lines store it (YYYY-MM-DD HH:MM)."""
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(s: str) -> datetime:
    """Parse an entry timestamp; seconds are accepted and dropped."""
    s = s.strip()
    for fmt in (TIMESTAMP_FORMAT, "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).replace(second=0)
        except ValueError:
            continue
    return datetime.fromisoformat(s).replace(second=0, microsecond=0, tzinfo=None)


def split_lines(text: str) -> list[str]:
    """Split on newlines only; a trailing newline does not start a line.

    Unlike str.splitlines, form feeds and Unicode line separators stay
    inside the line.
    """
    if not text:
        return []
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    if text.endswith("\n"):
        lines.pop()
    return lines


def cap_first(s: str) -> str:
    """Uppercase the first character, leaving the rest untouched."""
    return s[:1].upper() + s[1:]


@dataclass
class Note:
    """Ordered continuation lines attached to an item.

    Lines read from a file keep their original indentation so they are
    written back unchanged; lines added through the API are stored bare.
    """
    lines: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def good(self) -> bool:
        """True if any line has visible content."""
        return any(line.strip() for line in self.lines)

    def add(self, text: Union[str, Iterable[str], "Note", None], replace: bool = False) -> "Note":
        """Append text (split on newlines) or lines; ``replace`` discards existing lines."""
        if replace:
            self.lines = []
        if text is None:
            return self
        if isinstance(text, Note):
            new_lines = list(text.lines)
        elif isinstance(text, str):
            new_lines = split_lines(text)
        else:
            new_lines = [line for chunk in text for line in split_lines(str(chunk))]
        self.lines.extend(new_lines)
        return self

    def strip_lines(self) -> list[str]:
        return [line.strip() for line in self.lines]

    def compress(self) -> "Note":
        """Drop leading/trailing blank lines and collapse runs of blank lines."""
        out: list[str] = []
        for line in self.lines:
            if not line.strip() and (not out or not out[-1].strip()):
                continue
            out.append(line)
        while out and not out[-1].strip():
            out.pop()
        self.lines = out
        return self

    def to_lines(self) -> list[str]:
        """Lines as written to the journal file."""
        return [line if line[:1].isspace() else f"{NOTE_PREFIX}{line}" for line in self.lines]


@dataclass
class Section:
    """A named partition of items, remembering its header line as read."""
    name: str
    original: Optional[str] = None

    @property
    def header(self) -> str:
        return self.original if self.original is not None else f"{self.name}:"


@dataclass(eq=False)
class Item:
    """A single journal entry.

    Items compare by identity; ``id`` is assigned by the content store on
    insertion and is what update/delete operations resolve.
    """
    date: datetime
    title: str
    section: str
    note: Note = field(default_factory=Note)
    id: Optional[int] = None

    @property
    def tags(self) -> list[str]:
        return tag_engine.tag_names(self.title)

    def has_tags(self, tags, bool_mode: Union[str, TagBool, None] = TagBool.AND) -> bool:
        return tag_engine.has_tags(self.title, tags, bool_mode)

    def tag(self, name: str, **kwargs) -> "Item":
        """Apply tags.set_tag to this item's title in place."""
        self.title = tag_engine.set_tag(self.title, name, **kwargs)
        return self

    @property
    def finished(self) -> bool:
        return self.has_tags("done")

    @property
    def done_date(self) -> Optional[datetime]:
        value = tag_engine.tag_value(self.title, "done")
        if not value:
            return None
        try:
            return parse_timestamp(value)
        except ValueError:
            return None

    @property
    def interval(self) -> Optional[timedelta]:
        """Time between start and @done(date), or None if not positive."""
        done = self.done_date
        if done is None:
            return None
        elapsed = done - self.date
        return elapsed if elapsed > timedelta(0) else None

    @property
    def end_date(self) -> datetime:
        return self.done_date or self.date

    def same_time(self, other: "Item") -> bool:
        return self.date == other.date

    def overlapping_time(self, other: "Item") -> bool:
        """True if the [start, end] spans of both items intersect."""
        return self.date <= other.end_date and other.date <= self.end_date

    def copy(self) -> "Item":
        return copy.deepcopy(self)

    def search_text(self) -> str:
        text = self.title
        if self.note:
            text += " " + " ".join(self.note.strip_lines())
        return text

    def to_lines(self) -> list[str]:
        """Render as the entry line followed by its note lines."""
        return [f"{ENTRY_PREFIX}{format_timestamp(self.date)} | {self.title}", *self.note.to_lines()]

    def to_dict(self) -> dict:
        """Convert item to dictionary for JSON serialization."""
        interval = self.interval
        return {
            "id": self.id,
            "date": format_timestamp(self.date),
            "title": self.title,
            "section": self.section,
            "note": self.note.strip_lines(),
            "tags": self.tags,
            "interval": int(interval.total_seconds()) if interval else None,
        }


@dataclass
class ChangeReport:
    """Outcome of a mutation, returned instead of printing.

    The tool layer turns this into the user-facing message.
    """
    action: str
    items_affected: int = 0
    tags_added: list[str] = field(default_factory=list)
    tags_removed: list[str] = field(default_factory=list)
    skipped: int = 0
    detail: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.items_affected > 0 or bool(self.tags_added) or bool(self.tags_removed)

    def add_tags(self, added: Iterable[str] = (), removed: Iterable[str] = ()) -> None:
        for tag in added:
            if tag not in self.tags_added:
                self.tags_added.append(tag)
        for tag in removed:
            if tag not in self.tags_removed:
                self.tags_removed.append(tag)

    def summary(self) -> str:
        noun = "item" if self.items_affected == 1 else "items"
        parts = [f"{self.action}: {self.items_affected} {noun}"]
        if self.tags_added:
            parts.append("added " + ", ".join(f"@{t}" for t in self.tags_added))
        if self.tags_removed:
            parts.append("removed " + ", ".join(f"@{t}" for t in self.tags_removed))
        if self.skipped:
            parts.append(f"{self.skipped} skipped")
        if self.detail:
            parts.append(self.detail)
        return "; ".join(parts)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "items_affected": self.items_affected,
            "tags_added": self.tags_added,
            "tags_removed": self.tags_removed,
            "skipped": self.skipped,
            "detail": self.detail,
        }
