"""In-memory content store: sections, items and the unparsed text buffers."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable, Optional, Union

from .autotag import AutotagRules, autotag
from .dates import resolve_time
from .errors import DoingRuntimeError, EmptyInput, InvalidSection, ItemNotFound
from .filters import is_all, matches_search
from .models import ChangeReport, Item, Note, Section, cap_first, format_timestamp, now as current_time
from .tags import TagBool, add_tags, has_tags

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
ARCHIVE_SECTION = "Archive"

ItemRef = Union[int, Item]


class ContentStore:
    """Ordered sections and items for one load/mutate/save cycle.

    Sections keep insertion order and are matched case-insensitively.
    Items get a store-unique integer ``id`` when pushed; every mutation
    that targets a single item resolves it by that id.
    """

    def __init__(self):
        self.sections: list[Section] = []
        self.items: list[Item] = []
        self.leading_text: list[str] = []
        self.trailing_text: list[str] = []
        self.final_newline = True
        self.entry_indent = ""
        self._next_id = 1

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    # Sections

    def find_section(self, name: str) -> Optional[Section]:
        key = name.strip().lower()
        for section in self.sections:
            if section.name.lower() == key:
                return section
        return None

    def has_section(self, name: str) -> bool:
        return self.find_section(name) is not None

    def add_section(self, name: str, original: Optional[str] = None) -> Section:
        """Register a section, returning the existing one if the name is taken."""
        name = name.strip()
        if not name or is_all(name):
            raise InvalidSection(f"Invalid section name: {name!r}")
        existing = self.find_section(name)
        if existing:
            return existing
        section = Section(name=name if original is not None else cap_first(name), original=original)
        self.sections.append(section)
        logger.debug("Added section %s", section.name)
        return section

    def section_titles(self) -> list[str]:
        return [s.name for s in self.sections]

    def in_section(self, section: Optional[str]) -> list[Item]:
        """Items of one section in store order, or every item for "All"."""
        if is_all(section):
            return list(self.items)
        key = section.strip().lower()
        return [i for i in self.items if i.section.lower() == key]

    def guess_section(self, frag: Optional[str], default: str = "Currently", create: bool = False) -> str:
        """Resolve a section name fragment to an existing section name.

        "all" resolves to All. Otherwise an exact (case-insensitive) name wins,
        then the first section, in store order, containing the fragment's
        characters in sequence.

        Raises:
            InvalidSection: If nothing matches and ``create`` is False
        """
        if frag is not None and frag.strip().lower() == "all":
            return "All"
        frag = (frag or default).strip()

        exact = self.find_section(frag)
        if exact:
            return exact.name

        pattern = re.compile(".*?".join(re.escape(c) for c in frag), re.IGNORECASE)
        for section in self.sections:
            if pattern.search(section.name):
                logger.debug('Assuming "%s" from "%s"', section.name, frag)
                return section.name

        if create:
            return self.add_section(frag).name
        raise InvalidSection(f"Unknown section: {frag}")

    # Items

    def push(self, item: Item) -> Item:
        """Append an item, creating its section and assigning an id."""
        item.section = self.add_section(item.section).name
        item.id = self._next_id
        self._next_id += 1
        self.items.append(item)
        return item

    def _index(self, ref: ItemRef) -> int:
        item_id = ref.id if isinstance(ref, Item) else ref
        for idx, item in enumerate(self.items):
            if item.id == item_id:
                return idx
        raise ItemNotFound(f"Item {item_id!r} not found")

    def get(self, ref: ItemRef) -> Item:
        return self.items[self._index(ref)]

    def delete_item(self, ref: ItemRef) -> Item:
        """Remove an item.

        Raises:
            ItemNotFound: If the id is not in the store
        """
        item = self.items.pop(self._index(ref))
        logger.debug("Deleted %s", item.title)
        return item

    def update_item(self, ref: ItemRef, new_item: Item) -> Item:
        """Replace the item at ``ref``'s position, keeping its id.

        Raises:
            ItemNotFound: If the id is not in the store
        """
        idx = self._index(ref)
        new_item.id = self.items[idx].id
        new_item.section = self.add_section(new_item.section).name
        self.items[idx] = new_item
        return new_item

    def move_item(self, ref: ItemRef, section: str, label: bool = True) -> Item:
        """Reassign an item's section; ``label`` stamps @from(<old section>)."""
        item = self.get(ref)
        target = self.add_section(section).name
        original = item.section
        if label:
            item.tag("from", rename_to="from", value=original, force=True)
        item.section = target
        logger.debug("Moved %s from %s to %s", item.title, original, target)
        return item

    def add_item(
        self,
        title: str,
        section: Optional[str] = None,
        date: Optional[datetime] = None,
        note: Union[str, Iterable[str], Note, None] = None,
        timed: bool = False,
        rules: Optional[AutotagRules] = None,
        default_tags: Optional[list[str]] = None,
        auto_tag: bool = True,
        default_section: str = "Currently",
    ) -> Item:
        """Create and append an entry.

        The title is cap-first'd, autotagged, given the default tags and has
        its whitespace collapsed. With ``timed``, the most recent entry that
        is not yet done is closed with @done(<date>).

        Raises:
            EmptyInput: If the title is blank
        """
        title = (title or "").strip()
        if not title:
            raise EmptyInput("No content in entry title")
        date = date or current_time()
        section = (section or default_section).strip()

        title = cap_first(title)
        if auto_tag:
            if rules is not None and not rules.empty:
                title = autotag(title, rules).title
            if default_tags:
                title = add_tags(title, default_tags)
        title = re.sub(r"\s+", " ", title).strip()

        if timed:
            for previous in sorted(self.items, key=lambda i: i.date, reverse=True):
                if previous.finished:
                    continue
                previous.tag("done", value=format_timestamp(date))
                logger.debug("Closed %s", previous.title)
                break

        item = Item(date=date, title=title, section=section, note=Note().add(note))
        self.push(item)
        logger.info("New entry added to %s: %s", item.section, item.title)
        return item

    def dedup(self, items: Iterable[Item], no_overlap: bool = False) -> list[Item]:
        """Drop incoming items that duplicate one already in the journal.

        A duplicate starts at the same minute, or with ``no_overlap`` has an
        overlapping [start, done] span.
        """
        kept = []
        for incoming in items:
            existing = self.items
            if no_overlap:
                clash = any(incoming.overlapping_time(i) for i in existing)
            else:
                clash = any(incoming.same_time(i) for i in existing)
            if clash:
                logger.debug("Skipped duplicate %s", incoming.title)
            else:
                kept.append(incoming)
        return kept

    def merge_items(self, items: Iterable[Item]) -> int:
        """Push copies of items not already present by (date, title, section)."""
        seen = {(i.date, i.title, i.section.lower()) for i in self.items}
        added = 0
        for item in items:
            key = (item.date, item.title, item.section.lower())
            if key in seen:
                continue
            seen.add(key)
            copied = item.copy()
            copied.id = None
            self.push(copied)
            added += 1
        return added

    # Bulk selection

    def select_old_items(
        self,
        section: Optional[str] = "All",
        destination: Optional[str] = None,
        keep: int = 0,
        tags: Union[str, list[str], None] = None,
        bool_mode: Union[str, TagBool] = TagBool.PATTERN,
        search: Optional[str] = None,
        before: Optional[str] = None,
        case: str = "smart",
        now: Optional[datetime] = None,
    ) -> list[Item]:
        """Pick the items archive/rotate act on, oldest first.

        Candidates are the section's items (or every item) outside
        ``destination``. The ``keep`` most recent candidates are never
        selected; the rest must pass the tag, search and before filters.
        """
        if destination:
            dest = destination.strip().lower()
            candidates = [i for i in self.in_section(section) if i.section.lower() != dest]
        else:
            candidates = self.in_section(section)
        candidates.sort(key=lambda i: i.date)

        keep = max(int(keep or 0), 0)
        if keep:
            candidates = candidates[:-keep] if keep < len(candidates) else []

        cutoff = resolve_time(before, now=now, guess="begin") if before else None

        selected = []
        for item in candidates:
            if tags and not has_tags(item.title, tags, bool_mode):
                continue
            if search and not matches_search(item.search_text(), search, case):
                continue
            if cutoff is not None and item.date > cutoff:
                continue
            selected.append(item)
        return selected

    def archive(
        self,
        section: Optional[str] = "All",
        destination: str = ARCHIVE_SECTION,
        keep: int = 0,
        tags: Union[str, list[str], None] = None,
        bool_mode: Union[str, TagBool] = TagBool.PATTERN,
        search: Optional[str] = None,
        before: Optional[str] = None,
        label: bool = True,
        case: str = "smart",
        now: Optional[datetime] = None,
    ) -> ChangeReport:
        """Move old items from ``section`` (or all sections) to ``destination``."""
        destination = self.add_section(destination).name
        selected = self.select_old_items(
            section, destination=destination, keep=keep, tags=tags, bool_mode=bool_mode,
            search=search, before=before, case=case, now=now,
        )
        for item in selected:
            self.move_item(item, destination, label=label)

        source = "all sections" if is_all(section) else section
        logger.info("Archived %d items from %s to %s", len(selected), source, destination)
        return ChangeReport(action="Archived", items_affected=len(selected), detail=f"to {destination}")

    def extract(self, items: Iterable[Item]) -> "ContentStore":
        """Remove items and return a new store holding them under their sections.

        Raises:
            DoingRuntimeError: If an item disappeared from the store mid-operation
        """
        extracted = ContentStore()
        for item in items:
            try:
                removed = self.delete_item(item)
            except ItemNotFound:
                raise DoingRuntimeError(f"Failed to remove item from store: {item.title}")
            section = self.find_section(removed.section)
            if section and not extracted.has_section(section.name):
                extracted.add_section(section.name, original=section.original)
            moved = removed.copy()
            moved.id = None
            extracted.push(moved)
        return extracted
