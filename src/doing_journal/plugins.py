"""Export renderers and import adapters.

Exporters receive the filter engine's output already in display order and
must not re-sort it. Importers add items to a ContentStore and return how
many were added.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from .errors import InvalidArgument, ParseError
from .models import Item, Note, format_timestamp, parse_timestamp
from .parser import load_text, parse
from .tags import add_tags

logger = logging.getLogger(__name__)


class ExportPlugin:
    """Base class for output formats."""
    name = ""
    trigger = ""

    def render(self, items: Sequence[Item], variables: dict[str, Any]) -> str:
        raise NotImplementedError


class ImportPlugin:
    """Base class for input formats."""
    name = ""
    trigger = ""

    def import_file(self, store, path: Path, options: dict[str, Any]) -> int:
        raise NotImplementedError


class DoingExport(ExportPlugin):
    """The journal's own line format, grouped by section in first-seen order."""
    name = "doing"
    trigger = r"doing|te?xt"

    def render(self, items, variables):
        groups: dict[str, list[Item]] = {}
        for item in items:
            groups.setdefault(item.section, []).append(item)
        lines = []
        for section, section_items in groups.items():
            lines.append(f"{section}:")
            for item in section_items:
                lines.extend(item.to_lines())
        return "\n".join(lines) + ("\n" if lines else "")


class JsonExport(ExportPlugin):
    name = "json"
    trigger = r"json"

    def render(self, items, variables):
        return json.dumps(
            {
                "section": variables.get("title", ""),
                "items": [item.to_dict() for item in items],
            },
            indent=2,
        )


class MarkdownExport(ExportPlugin):
    """GitHub-style task list, one checkbox per item."""
    name = "markdown"
    trigger = r"markdown|mk?d(?:own)?"

    def render(self, items, variables):
        lines = [f"# {variables.get('title') or 'What are you doing?'}", ""]
        for item in items:
            box = "x" if item.finished else " "
            line = f"- [{box}] {item.title} ({format_timestamp(item.date)})"
            interval = item.interval
            if interval:
                minutes = int(interval.total_seconds() // 60)
                line += f" [{minutes // 60:02d}:{minutes % 60:02d}]"
            lines.append(line)
            for note_line in item.note.strip_lines():
                lines.append(f"    {note_line}")
        return "\n".join(lines) + "\n"


class FunctionExport(ExportPlugin):
    """Exporter backed by an ``export_<name>(items, variables)`` config function."""

    def __init__(self, name: str, func: Callable[[Sequence[Item], dict[str, Any]], str]):
        self.name = name
        self.trigger = re.escape(name)
        self.func = func

    def render(self, items, variables):
        return self.func(items, variables)


def _import_items(store, incoming: list[Item], options: dict[str, Any]) -> int:
    """Shared tail of the importers: retarget, tag, dedup and push."""
    section = options.get("section")
    prefix = options.get("prefix")
    tags = options.get("tag")
    after = options.get("after")
    before = options.get("before")

    prepared = []
    for item in incoming:
        if after is not None and item.date < after:
            continue
        if before is not None and item.date > before:
            continue
        item = item.copy()
        item.id = None
        if section:
            item.section = section
        if prefix:
            item.title = f"{prefix} {item.title}"
        if tags:
            item.title = add_tags(item.title, tags)
        prepared.append(item)

    kept = store.dedup(prepared, no_overlap=bool(options.get("no_overlap")))
    for item in kept:
        store.push(item)
    skipped = len(prepared) - len(kept)
    if skipped:
        logger.info("Skipped %d duplicate items", skipped)
    logger.info("Imported %d items", len(kept))
    return len(kept)


class DoingImport(ImportPlugin):
    """Import entries from another journal file."""
    name = "doing"
    trigger = r"doing"

    def import_file(self, store, path, options):
        source = parse(load_text(Path(path)))
        return _import_items(store, list(source.items), options)


class JsonImport(ImportPlugin):
    """Import the json exporter's output (an object with "items", or a bare list)."""
    name = "json"
    trigger = r"json"

    def import_file(self, store, path, options):
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ParseError(f"Cannot read JSON from {path}: {e}")

        records = data.get("items", []) if isinstance(data, dict) else data
        incoming = []
        for record in records:
            try:
                date = parse_timestamp(record["date"])
                title = str(record["title"])
            except (KeyError, TypeError, ValueError) as e:
                raise ParseError(f"Invalid item in {path}: {e}")
            note = Note().add(record.get("note") or None)
            incoming.append(Item(
                date=date,
                title=title,
                section=record.get("section") or options.get("default_section", "Currently"),
                note=note,
            ))
        return _import_items(store, incoming, options)


class FunctionImport(ImportPlugin):
    """Importer backed by an ``import_<name>(store, path, options)`` config function."""

    def __init__(self, name: str, func: Callable[..., Optional[int]]):
        self.name = name
        self.trigger = re.escape(name)
        self.func = func

    def import_file(self, store, path, options):
        return int(self.func(store, path, options) or 0)


class PluginRegistry:
    """Lookup of exporters and importers by format name."""

    def __init__(
        self,
        exporters: Optional[dict[str, Callable]] = None,
        importers: Optional[dict[str, Callable]] = None,
    ):
        self._exporters: list[ExportPlugin] = []
        self._importers: list[ImportPlugin] = []

        # Config functions go first so they can shadow a built-in name
        for name, func in (exporters or {}).items():
            self.register_export(FunctionExport(name, func))
        for name, func in (importers or {}).items():
            self.register_import(FunctionImport(name, func))

        for plugin in (DoingExport(), JsonExport(), MarkdownExport()):
            self.register_export(plugin)
        for plugin in (DoingImport(), JsonImport()):
            self.register_import(plugin)

    def register_export(self, plugin: ExportPlugin) -> None:
        self._exporters.append(plugin)

    def register_import(self, plugin: ImportPlugin) -> None:
        self._importers.append(plugin)

    @staticmethod
    def _find(plugins: list, fmt: str, kind: str):
        fmt = (fmt or "").strip()
        for plugin in plugins:
            if re.fullmatch(plugin.trigger, fmt, re.IGNORECASE):
                return plugin
        names = ", ".join(sorted({p.name for p in plugins}))
        raise InvalidArgument(f"Unknown {kind} format: {fmt!r} (available: {names})")

    def exporter(self, fmt: str) -> ExportPlugin:
        """Raises InvalidArgument for an unknown format."""
        return self._find(self._exporters, fmt, "export")

    def importer(self, fmt: str) -> ImportPlugin:
        """Raises InvalidArgument for an unknown format."""
        return self._find(self._importers, fmt, "import")

    def export_formats(self) -> list[str]:
        return list(dict.fromkeys(p.name for p in self._exporters))

    def import_formats(self) -> list[str]:
        return list(dict.fromkeys(p.name for p in self._importers))


def render_items(
    registry: PluginRegistry,
    fmt: str,
    items: Sequence[Item],
    title: str = "",
    options: Optional[dict[str, Any]] = None,
) -> str:
    """Render items through the exporter for ``fmt``."""
    variables = {"title": title, "options": dict(options or {}), "generated": datetime.now()}
    return registry.exporter(fmt).render(list(items), variables)
