"""Core journal engine - load, mutate and save one doing file."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .autotag import autotag
from .config import DoingConfig
from .dates import chronify_qty, resolve_range, resolve_time
from .editor import fork_editor, format_input
from .errors import EmptyInput, InvalidView, NoResults
from .filters import FilterCriteria, filter_items, is_all, normalize_case
from .locking import restore_backup, write_journal
from .models import ChangeReport, Item, Note, cap_first, format_timestamp, now as current_time
from .parser import load_text, parse, serialize
from .plugins import PluginRegistry, render_items
from .store import ARCHIVE_SECTION, ContentStore
from .tags import TagBool, has_tags, set_tag, split_tag_args

logger = logging.getLogger(__name__)

DateInput = Union[str, datetime, None]

VIEW_DEFAULT_COUNT = 10


class DoingEngine:
    """Load → mutate → save cycle over the configured journal file.

    Every mutating operation writes the whole file once at the end; a
    failure before that point leaves the file untouched.
    """

    def __init__(self, config: DoingConfig, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock or current_time
        self.plugins = PluginRegistry(config.export_plugins, config.import_plugins)
        self._store: Optional[ContentStore] = None

    @property
    def doing_file(self) -> Path:
        return self.config.get_doing_path()

    @property
    def store(self) -> ContentStore:
        """The parsed journal, loaded on first access."""
        if self._store is None:
            self.load()
        return self._store

    def now(self) -> datetime:
        return self.clock().replace(second=0, microsecond=0)

    def _run_hook(self, event: str, *args: Any) -> None:
        hook = self.config.hooks.get(event)
        if hook is not None:
            hook(self, *args)

    def _resolve_date(self, value: DateInput, guess: str = "begin") -> datetime:
        if value is None:
            return self.now()
        if isinstance(value, datetime):
            return value.replace(second=0, microsecond=0)
        return resolve_time(value, now=self.now(), guess=guess)

    # ========== File Operations ==========

    def load(self) -> ContentStore:
        """Parse the journal file (or start an empty one with the current section).

        Raises:
            ParseError: If the file is not readable text
        """
        path = self.doing_file
        if path.exists():
            store = parse(load_text(path))
        else:
            store = ContentStore()
            store.add_section(self.config.current_section)
            logger.debug("No journal at %s, starting empty", path)
        self._store = store
        self._run_hook("post_read")
        return store

    def write(self) -> None:
        """Serialize the store and replace the journal file."""
        path = self.doing_file
        self._run_hook("pre_write", path)
        write_journal(path, serialize(self.store), backup=self.config.backup)
        logger.debug("Wrote %s", path)

    def undo(self) -> bool:
        """Restore the journal from its ``~`` backup and reload it."""
        restored = restore_backup(self.doing_file)
        if restored:
            self.load()
            logger.info("Restored %s from backup", self.doing_file)
        return restored

    def rotation_path(self, date: Optional[datetime] = None) -> Path:
        """Sibling file named with ``_YYYY-MM-DD`` before the suffix."""
        stamp = (date or self.now()).strftime("%Y-%m-%d")
        path = self.doing_file
        if path.suffix:
            return path.with_name(f"{path.stem}_{stamp}{path.suffix}")
        return path.with_name(f"{path.name}_{stamp}")

    # ========== Sections and Views ==========

    def sections(self) -> list[str]:
        return self.store.section_titles()

    def add_section(self, name: str) -> str:
        section = self.store.add_section(name).name
        self.write()
        return section

    def guess_section(self, frag: Optional[str], create: bool = False) -> str:
        """Raises InvalidSection when nothing matches and ``create`` is False."""
        return self.store.guess_section(frag, default=self.config.current_section, create=create)

    def guess_view(self, frag: str) -> str:
        """Resolve a view name fragment.

        Raises:
            InvalidView: If no configured view matches
        """
        views = self.config.list_views()
        for view in views:
            if view.lower() == frag.strip().lower():
                return view
        pattern = re.compile(".*?".join(re.escape(c) for c in frag.strip()), re.IGNORECASE)
        for view in views:
            if pattern.search(view):
                logger.debug('Assuming "%s" from "%s"', view, frag)
                return view
        raise InvalidView(f"Unknown view: {frag}")

    def view_criteria(self, name: str, **overrides: Any) -> tuple[FilterCriteria, dict[str, Any]]:
        """Build filter criteria from a saved view plus caller overrides."""
        view_name = self.guess_view(name)
        view = dict(self.config.get_view(view_name) or {})
        view.update({k: v for k, v in overrides.items() if v is not None})

        criteria = FilterCriteria(
            section=view.get("section") or "All",
            count=int(view.get("count", VIEW_DEFAULT_COUNT) or 0),
            search=view.get("search"),
            before=view.get("before"),
            after=view.get("after"),
            only_timed=bool(view.get("only_timed", False)),
            age=view.get("age") or "newest",
            case=view.get("case") or self.config.search_case,
            negate=bool(view.get("not", False)),
        )
        if view.get("tags"):
            criteria.tag_filter = {"tags": view["tags"], "bool": view.get("tags_bool") or TagBool.PATTERN}
        if view.get("from"):
            criteria.date_filter = resolve_range(view["from"], now=self.now())

        view["name"] = view_name
        view["title"] = view.get("title") or cap_first(view_name)
        return criteria, view

    def view(self, name: str, output_format: Optional[str] = None, **overrides: Any) -> str:
        """Render a saved view."""
        criteria, view = self.view_criteria(name, **overrides)
        items = self.filter(criteria)
        if str(view.get("order", "asc")).lower().startswith("d"):
            items.reverse()
        fmt = output_format or view.get("output_format") or "doing"
        return self.render(items, fmt, title=view["title"], options=view)

    # ========== Queries ==========

    def criteria(self, **options: Any) -> FilterCriteria:
        """FilterCriteria from keyword options, with the configured search case."""
        options = {k: v for k, v in options.items() if v is not None}
        options.setdefault("case", self.config.search_case)
        if "date_range" in options:
            options["date_filter"] = resolve_range(options.pop("date_range"), now=self.now())
        return FilterCriteria.from_dict(options)

    def filter(self, criteria: Optional[FilterCriteria] = None, **options: Any) -> list[Item]:
        """Filter the journal's items; sections are matched by fragment.

        Returns:
            Items in display order (ascending by date)
        """
        criteria = criteria or self.criteria(**options)
        if not is_all(criteria.section):
            criteria = replace(criteria, section=self.guess_section(criteria.section))
        items = filter_items(self.store.items, criteria, now=self.now())
        logger.debug("Filter matched %d items", len(items))
        return items

    def last_entry(self, section: Optional[str] = None, **options: Any) -> Optional[Item]:
        """Most recent item matching the options, in the current section by default."""
        options.pop("count", None)
        items = self.filter(section=section or self.config.current_section, **options)
        return max(items, key=lambda i: i.date) if items else None

    def _select(self, count: int = 1, section: Optional[str] = None, **options: Any) -> list[Item]:
        items = self.filter(section=section or "All", count=count, **options)
        if not items:
            raise NoResults("No items matched your search")
        return items

    def render(
        self,
        items: list[Item],
        output_format: str = "doing",
        title: str = "",
        options: Optional[dict[str, Any]] = None,
    ) -> str:
        """Raises InvalidArgument for an unknown format."""
        return render_items(self.plugins, output_format, items, title=title, options=options)

    def show(self, section: Optional[str] = None, output_format: str = "doing", **options: Any) -> str:
        """Render filtered items from a section (All by default)."""
        items = self.filter(section=section or "All", **options)
        title = "All" if is_all(section) else self.guess_section(section)
        return self.render(items, output_format, title=title, options=options)

    def tag_totals(self, **options: Any) -> dict[str, int]:
        """Seconds of tracked time per tag over a selection; "All" is the grand total."""
        totals: dict[str, int] = {"All": 0}
        for item in self.filter(**options):
            interval = item.interval
            if not interval:
                continue
            seconds = int(interval.total_seconds())
            totals["All"] += seconds
            for tag in item.tags:
                key = tag.lower()
                if key == "done":
                    continue
                totals[key] = totals.get(key, 0) + seconds
        return totals

    # ========== Adding Entries ==========

    def add_item(
        self,
        title: str,
        section: Optional[str] = None,
        note: Union[str, list[str], Note, None] = None,
        back: DateInput = None,
        timed: bool = False,
        done: bool = False,
    ) -> Item:
        """Add a new entry.

        A trailing parenthetical in a single-line title becomes the note.

        Args:
            title: Entry text, may include @tags
            section: Section name or fragment (created if missing)
            note: Note text or lines
            back: Start time expression or datetime (default: now)
            timed: Close the previous open entry at this entry's start
            done: Add the entry already finished

        Raises:
            EmptyInput: If the title is blank
            InvalidTimeExpression: If ``back`` cannot be resolved
        """
        title, parsed_note = format_input(title)
        parsed_note.add(note)
        date = self._resolve_date(back)
        section = self.guess_section(section, create=True)

        item = self.store.add_item(
            title,
            section=section,
            date=date,
            note=parsed_note,
            timed=timed,
            rules=self.config.autotag,
            default_tags=self.config.default_tags,
            auto_tag=self.config.auto_tag,
            default_section=self.config.current_section,
        )
        if done:
            item.tag("done", value=format_timestamp(self.now()))

        self._run_hook("post_entry_added", item)
        self.write()
        return item

    def stop_start(
        self,
        tag: str,
        section: Optional[str] = None,
        archive: bool = False,
        back: DateInput = None,
        new_item: Optional[str] = None,
        note: Optional[str] = None,
    ) -> ChangeReport:
        """Finish every entry carrying ``tag``, optionally starting a new one with it.

        Completed entries lose ``tag`` and get @done(<back>).
        """
        tag = tag.strip().lstrip("@")
        section = self.guess_section(section or self.config.current_section)
        date = self._resolve_date(back)
        report = ChangeReport(action="Completed")

        for item in list(self.store.in_section(section)):
            if not has_tags(item.title, tag):
                continue
            old = item.copy()
            item.title = set_tag(item.title, tag, remove=True)
            item.tag("done", value=format_timestamp(date))
            if archive and section.lower() != ARCHIVE_SECTION.lower():
                self.store.move_item(item, ARCHIVE_SECTION, label=True)
            report.items_affected += 1
            self._run_hook("post_entry_updated", item, old)
            logger.info("Completed%s: %s", "/archived" if archive else "", item.title)

        if not report.items_affected:
            logger.debug("No active @%s entries found", tag)

        if new_item:
            title, new_note = format_input(new_item)
            new_note.add(note)
            item = self.store.add_item(
                set_tag(title, tag),
                section=self.config.current_section if is_all(section) else section,
                date=date,
                note=new_note,
                rules=self.config.autotag,
                default_tags=self.config.default_tags,
                auto_tag=self.config.auto_tag,
            )
            report.detail = f"started {item.title}"
            self._run_hook("post_entry_added", item)

        self.write()
        return report

    def repeat_item(
        self,
        item_id: Optional[int] = None,
        in_section: Optional[str] = None,
        note: Optional[str] = None,
        back: DateInput = None,
        **options: Any,
    ) -> Item:
        """Start a new copy of an entry, finishing the original if still open.

        Raises:
            NoResults: If no entry is found
        """
        options.setdefault("section", "All")
        item = self._target(item_id, **options)
        original = item.copy()
        if not item.finished:
            item.tag("done", value=format_timestamp(self.now()))
            self._run_hook("post_entry_updated", item, original)

        title = set_tag(item.title, "done", remove=True)
        section = self.guess_section(in_section, create=True) if in_section else item.section
        new_item = self.store.add_item(
            title,
            section=section,
            date=self._resolve_date(back),
            note=note,
            timed=True,
            auto_tag=False,
        )
        self._run_hook("post_entry_added", new_item)
        self.write()
        return new_item

    # ========== Modifying Entries ==========

    def _target(self, item_id: Optional[int] = None, **options: Any) -> Item:
        if item_id is not None:
            return self.store.get(item_id)
        item = self.last_entry(**options)
        if item is None:
            raise NoResults("No previous entry found")
        return item

    def tag_items(
        self,
        tags: Union[str, list[str], None] = None,
        count: int = 1,
        section: Optional[str] = None,
        date: bool = False,
        remove: bool = False,
        rename: Optional[str] = None,
        regex: bool = False,
        autotag_only: bool = False,
        took: Optional[str] = None,
        back: DateInput = None,
        note: Optional[str] = None,
        archive: bool = False,
        **options: Any,
    ) -> ChangeReport:
        """Add, remove or rename tags on the last ``count`` matching entries.

        Args:
            tags: Tags to add (or remove); ``name(value)`` sets a value
            count: Number of most recent matches to change, 0 for all
            section: Section to search (default: All)
            date: Stamp tags with the completion time
            remove: Remove the tags instead of adding them
            rename: Existing tag (or pattern) renamed to each of ``tags``
            regex: Treat remove/rename names as regular expressions
            autotag_only: Run the autotagger instead of applying ``tags``
            took: Duration the entries took; sets the completion time
            back: Completion time expression
            note: Text appended to each entry's note
            archive: Move changed entries to Archive (ignored when count is 0)
            **options: Filter options (search, tag, tag_bool, unfinished, ...)

        Returns:
            ChangeReport of tags added/removed and items changed

        Raises:
            NoResults: If nothing matches the filter
        """
        items = self._select(count=count, section=section, **options)
        report = ChangeReport(action="Tagged")
        wanted = split_tag_args(tags if tags else (None if rename or autotag_only else "done"))
        now = self.now()

        for item in items:
            old = item.copy()

            if autotag_only:
                if self.config.auto_tag:
                    result = autotag(item.title, self.config.autotag)
                    if result.changed:
                        item.title = result.title
                        report.add_tags(result.tags_added)
            else:
                if took:
                    elapsed = timedelta(seconds=chronify_qty(took))
                    if item.date + elapsed > now:
                        item.date = now - elapsed
                        done_date = now
                    else:
                        done_date = item.date + elapsed
                elif back is not None:
                    done_date = self._resolve_date(back)
                else:
                    done_date = now

                for tag in wanted:
                    before = item.title
                    if rename:
                        item.tag(rename, rename_to=tag.name, value=tag.value, regex=regex)
                        if item.title != before:
                            report.add_tags([tag.name], [rename])
                    elif remove:
                        item.tag(tag.name, remove=True, regex=regex)
                        if item.title != before:
                            report.add_tags(removed=[tag.name])
                    else:
                        if date:
                            value = format_timestamp(done_date)
                        else:
                            value = tag.value
                            if tag.name.lower() == "done":
                                item.tag("done", remove=True)
                        item.tag(tag.name, value=value)
                        if item.title != before:
                            report.add_tags([tag.name])

            if note:
                item.note.add(note)

            if archive:
                if count and item.section.lower() != ARCHIVE_SECTION.lower():
                    self.store.move_item(item, ARCHIVE_SECTION, label=True)
                elif not count:
                    logger.warning("Archiving is skipped when operating on all entries")

            if item.title != old.title or item.note != old.note or item.section != old.section or item.date != old.date:
                report.items_affected += 1
                self._run_hook("post_entry_updated", item, old)
            else:
                report.skipped += 1

        logger.info(report.summary())
        self.write()
        return report

    def tag_last(self, tags: Union[str, list[str]], **kwargs: Any) -> ChangeReport:
        """Tag the most recent entry (see tag_items)."""
        kwargs.setdefault("count", 1)
        return self.tag_items(tags, **kwargs)

    def autotag_items(self, count: int = 1, **options: Any) -> ChangeReport:
        return self.tag_items(None, count=count, autotag_only=True, **options)

    def finish_last(self, count: int = 1, date: bool = True, **kwargs: Any) -> ChangeReport:
        """Mark the last entries @done, stamped with the completion time by default."""
        report = self.tag_items("done", count=count, date=date, **kwargs)
        report.action = "Finished"
        return report

    def cancel_last(self, count: int = 1, **kwargs: Any) -> ChangeReport:
        """Mark open entries @done without a timestamp."""
        kwargs.setdefault("unfinished", True)
        report = self.tag_items("done", count=count, date=False, **kwargs)
        report.action = "Cancelled"
        return report

    def flag_last(self, count: int = 1, remove: bool = False, **kwargs: Any) -> ChangeReport:
        """Add (or remove) the configured marker tag."""
        report = self.tag_items(self.config.marker_tag, count=count, remove=remove, **kwargs)
        report.action = "Unflagged" if remove else "Flagged"
        return report

    def add_note(
        self,
        note: Union[str, list[str], None] = None,
        remove: bool = False,
        item_id: Optional[int] = None,
        **options: Any,
    ) -> Item:
        """Append to the last entry's note; ``remove`` clears it first.

        Raises:
            EmptyInput: If no note is given and not removing
            NoResults: If no entry is found
        """
        if not remove and not Note().add(note).good:
            raise EmptyInput("No note content given")
        item = self._target(item_id, **options)
        old = item.copy()
        item.note.add(note, replace=remove)
        item.note.compress()
        self._run_hook("post_entry_updated", item, old)
        self.write()
        return item

    def move_items(
        self,
        destination: str,
        count: int = 1,
        section: Optional[str] = None,
        label: bool = True,
        **options: Any,
    ) -> ChangeReport:
        """Move the last ``count`` matching entries to another section."""
        items = self._select(count=count, section=section, **options)
        destination = self.guess_section(destination, create=True)
        report = ChangeReport(action="Moved", detail=f"to {destination}")
        for item in items:
            if item.section.lower() == destination.lower():
                report.skipped += 1
                continue
            old = item.copy()
            self.store.move_item(item, destination, label=label)
            report.items_affected += 1
            self._run_hook("post_entry_updated", item, old)
        logger.info(report.summary())
        self.write()
        return report

    def delete_items(self, count: int = 1, section: Optional[str] = None, **options: Any) -> ChangeReport:
        """Delete the last ``count`` matching entries."""
        items = self._select(count=count, section=section, **options)
        for item in items:
            self.store.delete_item(item.id)
        report = ChangeReport(action="Deleted", items_affected=len(items))
        logger.info(report.summary())
        self.write()
        return report

    def update_item(
        self,
        item_id: int,
        title: Optional[str] = None,
        note: Union[str, list[str], None] = None,
        date: DateInput = None,
        section: Optional[str] = None,
    ) -> Item:
        """Replace fields of one entry by id.

        Raises:
            ItemNotFound: If the id is not in the journal
        """
        old = self.store.get(item_id)
        new = old.copy()
        if title is not None:
            if not title.strip():
                raise EmptyInput("No content in entry title")
            new.title = title.strip()
        if note is not None:
            new.note = Note().add(note)
        if date is not None:
            new.date = self._resolve_date(date)
        if section is not None:
            new.section = self.guess_section(section, create=True)
        self.store.update_item(item_id, new)
        self._run_hook("post_entry_updated", new, old)
        self.write()
        return new

    def reset_item(self, item_id: Optional[int] = None, resume: bool = False, **options: Any) -> Item:
        """Move an entry's start time to now; ``resume`` also removes @done."""
        item = self._target(item_id, **options)
        old = item.copy()
        item.date = self.now()
        if resume:
            item.tag("done", remove=True)
        logger.info("Reset%s %s in %s", " and resumed" if resume else "", item.title, item.section)
        self._run_hook("post_entry_updated", item, old)
        self.write()
        return item

    def edit_last(self, editor: Optional[str] = None, item_id: Optional[int] = None, **options: Any) -> Item:
        """Edit an entry's title and note in an external editor.

        Raises:
            MissingEditor: If no editor is configured
            UserCancelled: If the editor exits non-zero (nothing is written)
            EmptyInput: If the edited text has no title
        """
        item = self._target(item_id, **options)
        text = item.title
        if item.note:
            text += "\n" + "\n".join(item.note.strip_lines())
        title, note = format_input(fork_editor(text, editor=editor))

        new = item.copy()
        new.title = title
        new.note = note
        self.store.update_item(item, new)
        self._run_hook("post_entry_updated", new, item)
        self.write()
        return new

    # ========== Archive and Rotate ==========

    def archive(
        self,
        section: Optional[str] = None,
        destination: str = ARCHIVE_SECTION,
        keep: int = 0,
        tags: Union[str, list[str], None] = None,
        bool_mode: Union[str, TagBool] = TagBool.PATTERN,
        search: Optional[str] = None,
        before: Optional[str] = None,
        label: bool = True,
    ) -> ChangeReport:
        """Move old entries of a section (or All) to ``destination``, keeping the newest ``keep``."""
        section = self.guess_section(section or self.config.current_section)
        destination = self.guess_section(destination, create=True)
        report = self.store.archive(
            section,
            destination=destination,
            keep=keep,
            tags=tags,
            bool_mode=bool_mode,
            search=search,
            before=before,
            label=label,
            case=normalize_case(self.config.search_case),
            now=self.now(),
        )
        if report.items_affected:
            self.write()
        else:
            logger.info("No items were moved")
        return report

    def rotate(
        self,
        section: Optional[str] = "All",
        keep: int = 0,
        tags: Union[str, list[str], None] = None,
        bool_mode: Union[str, TagBool] = TagBool.PATTERN,
        search: Optional[str] = None,
        before: Optional[str] = None,
    ) -> ChangeReport:
        """Move old entries out of the journal into a dated sibling file.

        An existing sibling file for today is merged with, skipping entries
        it already holds.
        """
        section = "All" if is_all(section) else self.guess_section(section)
        selected = self.store.select_old_items(
            section,
            keep=keep,
            tags=tags,
            bool_mode=bool_mode,
            search=search,
            before=before,
            case=normalize_case(self.config.search_case),
            now=self.now(),
        )
        target_path = self.rotation_path()
        report = ChangeReport(action="Rotated", detail=f"to {target_path.name}")
        if not selected:
            logger.info("No items were rotated")
            return report

        extracted = self.store.extract(selected)
        extracted.entry_indent = self.store.entry_indent
        report.items_affected = len(selected)

        if target_path.exists():
            target = parse(load_text(target_path))
            for sect in extracted.sections:
                if not target.has_section(sect.name):
                    target.add_section(sect.name, original=sect.original)
            target.merge_items(extracted.items)
            logger.warning("Added entries to existing file: %s", target_path)
        else:
            target = extracted
            logger.warning("Created new file: %s", target_path)

        write_journal(target_path, serialize(target), backup=False)
        self.write()
        logger.info(report.summary())
        return report

    # ========== Import ==========

    def import_file(
        self,
        path: Union[str, Path],
        fmt: str = "doing",
        section: Optional[str] = None,
        tag: Union[str, list[str], None] = None,
        prefix: Optional[str] = None,
        no_overlap: bool = False,
        date_range: Optional[str] = None,
    ) -> ChangeReport:
        """Import entries from another file through an import plugin.

        Raises:
            InvalidArgument: For an unknown format
            FileNotFoundError: If ``path`` does not exist
        """
        path = Path(path).expanduser()
        if not path.is_absolute():
            path = self.config.project_root / path
        if not path.exists():
            raise FileNotFoundError(f"Import file not found: {path}")

        options: dict[str, Any] = {
            "section": self.guess_section(section, create=True) if section else None,
            "tag": tag,
            "prefix": prefix,
            "no_overlap": no_overlap,
            "default_section": self.config.current_section,
        }
        if date_range:
            start, end = resolve_range(date_range, now=self.now())
            options["after"] = start
            options["before"] = end or start.replace(hour=23, minute=59)

        added = self.plugins.importer(fmt).import_file(self.store, path, options)
        report = ChangeReport(action="Imported", items_affected=added, detail=f"from {path.name}")
        if added:
            self.write()
        return report
