"""Tests for export renderers and import adapters."""

import json

import pytest

from doing_journal.errors import InvalidArgument, ParseError
from doing_journal.plugins import (
    DoingExport,
    FunctionExport,
    MarkdownExport,
    PluginRegistry,
    render_items,
)
from doing_journal.store import ContentStore


class TestRegistry:
    """Tests for plugin lookup."""

    def test_builtin_formats(self):
        """Built-in exporters and importers are registered."""
        registry = PluginRegistry()
        assert registry.export_formats() == ["doing", "json", "markdown"]
        assert registry.import_formats() == ["doing", "json"]

    @pytest.mark.parametrize("fmt,cls", [("TXT", DoingExport), ("md", MarkdownExport), ("mkd", MarkdownExport)])
    def test_trigger_aliases(self, fmt, cls):
        """Format names match trigger patterns ignoring case."""
        assert isinstance(PluginRegistry().exporter(fmt), cls)

    def test_unknown_format(self):
        """Unknown formats list what is available."""
        with pytest.raises(InvalidArgument, match="available: doing, json, markdown"):
            PluginRegistry().exporter("xml")
        with pytest.raises(InvalidArgument):
            PluginRegistry().importer("xml")

    def test_config_function_shadows_builtin(self):
        """A configured exporter wins over a built-in of the same name."""
        registry = PluginRegistry(exporters={"doing": lambda items, variables: "custom"})
        assert isinstance(registry.exporter("doing"), FunctionExport)
        assert render_items(registry, "doing", []) == "custom"
        assert registry.export_formats() == ["doing", "json", "markdown"]


class TestExporters:
    """Tests for the built-in renderers."""

    def test_doing_groups_by_section(self, store):
        """Doing output starts a header whenever the section changes."""
        output = render_items(PluginRegistry(), "doing", [store.get(3), store.get(1)])
        assert output == (
            "Later:\n"
            "- 2024-01-09 15:00 | Review PR @review @done(2024-01-09 16:00)\n"
            "Currently:\n"
            "- 2024-01-10 09:00 | Write parser @coding\n"
        )

    def test_doing_empty(self):
        """No items renders nothing."""
        assert render_items(PluginRegistry(), "doing", []) == ""

    def test_json(self, store):
        """JSON output carries the title and item dicts."""
        data = json.loads(render_items(PluginRegistry(), "json", [store.get(2)], title="Currently"))
        assert data["section"] == "Currently"
        assert data["items"][0]["note"] == ["Discussed roadmap"]

    def test_markdown(self, store):
        """Markdown renders a task list with intervals and notes."""
        output = render_items(PluginRegistry(), "markdown", [store.get(3), store.get(2)], title="Week")
        assert output == (
            "# Week\n"
            "\n"
            "- [x] Review PR @review @done(2024-01-09 16:00) (2024-01-09 15:00) [01:00]\n"
            "- [ ] Team meeting @meeting (2024-01-10 10:30)\n"
            "    Discussed roadmap\n"
        )


class TestImporters:
    """Tests for the built-in importers."""

    def test_json_bare_list(self, temp_project):
        """A bare list of item objects is accepted."""
        path = temp_project / "items.json"
        path.write_text(json.dumps([{"date": "2024-01-05 09:00", "title": "A", "note": "n"}]))
        store = ContentStore()
        added = PluginRegistry().importer("json").import_file(store, path, {"default_section": "Now"})
        assert added == 1
        assert store.items[0].section == "Now"
        assert store.items[0].note.lines == ["n"]

    def test_json_invalid(self, temp_project):
        """Unreadable JSON is a parse error."""
        path = temp_project / "items.json"
        path.write_text("{not json")
        with pytest.raises(ParseError):
            PluginRegistry().importer("json").import_file(ContentStore(), path, {})

    def test_json_missing_field(self, temp_project):
        """Records without a title are a parse error."""
        path = temp_project / "items.json"
        path.write_text(json.dumps({"items": [{"date": "2024-01-05 09:00"}]}))
        with pytest.raises(ParseError):
            PluginRegistry().importer("json").import_file(ContentStore(), path, {})

    def test_doing_no_overlap(self, store, temp_project):
        """no_overlap skips entries inside an existing entry's span."""
        path = temp_project / "other.md"
        path.write_text("Later:\n- 2024-01-09 15:30 | Inside\n- 2024-01-09 17:00 | After\n")
        added = PluginRegistry().importer("doing").import_file(store, path, {"no_overlap": True})
        assert added == 1
        assert store.items[-1].title == "After"
