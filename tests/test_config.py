"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from doing_journal.config import (
    DoingConfig,
    dict_to_config,
    find_config_file,
    load_config,
    load_python_config,
)
from doing_journal.engine import DoingEngine
from doing_journal.errors import InvalidArgument

EXAMPLE_CONFIG = Path(__file__).parent.parent / "examples" / "doing_config.py"


class TestFindConfigFile:
    """Tests for find_config_file."""

    def test_finds_python_config(self, temp_project):
        """Python config is found first."""
        (temp_project / "doing_config.py").write_text("CONFIG = {}")
        (temp_project / "doing_config.toml").write_text("")

        found = find_config_file(temp_project)
        assert found.name == "doing_config.py"

    def test_finds_toml_config(self, temp_project):
        """TOML config is found if no Python config."""
        (temp_project / "doing_config.toml").write_text("")

        found = find_config_file(temp_project)
        assert found.name == "doing_config.toml"

    def test_finds_dotfile_config(self, temp_project):
        """Dotfile configs are found."""
        (temp_project / ".doing.json").write_text("{}")

        found = find_config_file(temp_project)
        assert found.name == ".doing.json"

    def test_returns_none_if_no_config(self, temp_project):
        """Returns None if no config file found."""
        assert find_config_file(temp_project) is None


class TestDictToConfig:
    """Tests for dict_to_config."""

    def test_defaults(self, temp_project):
        """An empty dict gives the defaults."""
        config = dict_to_config({}, temp_project)
        assert config.doing_file == "doing.md"
        assert config.current_section == "Currently"
        assert config.marker_tag == "flagged"
        assert config.auto_tag is True

    def test_values(self, temp_project):
        """Settings are read from their keys."""
        config = dict_to_config(
            {
                "current_section": "Now",
                "default_tags": "a, b",
                "marker_tag": "@star",
                "autotag": {"enabled": False, "whitelist": ["x"]},
                "search": {"case": "ignore"},
                "backup": False,
            },
            temp_project,
        )
        assert config.current_section == "Now"
        assert config.default_tags == ["a", "b"]
        assert config.marker_tag == "star"
        assert config.auto_tag is False
        assert config.autotag.whitelist == ["x"]
        assert config.search_case == "ignore"
        assert config.backup is False

    def test_views(self, temp_project):
        """Views keep their option tables."""
        config = dict_to_config({"views": {"done": {"tags": "done", "count": 5}}}, temp_project)
        assert config.list_views() == ["done"]
        assert config.get_view("done") == {"tags": "done", "count": 5}
        assert config.get_view("missing") is None

    def test_view_unknown_key(self, temp_project):
        """Unknown view keys are rejected."""
        with pytest.raises(InvalidArgument):
            dict_to_config({"views": {"bad": {"colour": "red"}}}, temp_project)

    def test_view_not_table(self, temp_project):
        """A view must be a table."""
        with pytest.raises(InvalidArgument):
            dict_to_config({"views": {"bad": "done"}}, temp_project)


class TestDoingPath:
    """Tests for resolving the journal path."""

    def test_relative_to_project_root(self, temp_project):
        """Relative paths resolve against the project root."""
        config = DoingConfig(project_root=temp_project, doing_file="notes/doing.md")
        assert config.get_doing_path() == temp_project / "notes" / "doing.md"

    def test_absolute(self, temp_project):
        """Absolute paths are used as given."""
        target = temp_project / "elsewhere.md"
        config = DoingConfig(project_root=Path("/unused"), doing_file=str(target))
        assert config.get_doing_path() == target


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_config_gives_defaults(self, temp_project):
        """No config file gives a default config."""
        config = load_config(temp_project)
        assert config.project_root == temp_project
        assert config.views == {}

    def test_toml(self, temp_project):
        """TOML config is loaded."""
        (temp_project / "doing_config.toml").write_text(
            'current_section = "Now"\n'
            "[views.done]\n"
            'tags = "done"\n'
            "count = 3\n"
        )
        config = load_config(temp_project)
        assert config.current_section == "Now"
        assert config.get_view("done") == {"tags": "done", "count": 3}

    def test_json(self, temp_project):
        """JSON config is loaded."""
        (temp_project / "doing_config.json").write_text(json.dumps({"marker_tag": "star"}))
        assert load_config(temp_project).marker_tag == "star"

    def test_python_hooks_filtered(self, temp_project):
        """Only known hook events are kept from a Python config."""
        (temp_project / "doing_config.py").write_text(
            "CONFIG = {'current_section': 'Now'}\n"
            "def hook_pre_write(engine, path):\n"
            "    pass\n"
            "def hook_bogus(engine):\n"
            "    pass\n"
        )
        config = load_config(temp_project)
        assert config.current_section == "Now"
        assert list(config.hooks) == ["pre_write"]

    def test_unsupported_suffix(self, temp_project):
        """Unknown config file types are rejected."""
        path = temp_project / "doing.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(temp_project, path)


class TestExampleConfig:
    """Tests against the shipped example Python config."""

    def test_functions_discovered(self):
        """Hooks, exporters and importers are found by name prefix."""
        config_dict, hooks, exporters, importers = load_python_config(EXAMPLE_CONFIG)
        assert "views" in config_dict
        assert set(hooks) == {"post_entry_added", "pre_write"}
        assert list(exporters) == ["csv"]
        assert list(importers) == ["csv"]

    @pytest.fixture
    def example_engine(self, temp_project, clock):
        config = load_config(temp_project, EXAMPLE_CONFIG)
        config.doing_file = "doing.md"
        return DoingEngine(config, clock=clock)

    def test_autotag_and_overtime_hook(self, example_engine):
        """Whitelist rules and the post_entry_added hook both apply."""
        item = example_engine.add_item("Planning meeting", back="yesterday 8pm")
        assert item.title == "Planning @meeting @overtime"

    def test_csv_export_and_import(self, example_engine, temp_project):
        """The csv exporter's output can be imported again."""
        example_engine.add_item("First task", back="2024-01-10 09:00")
        output = example_engine.show(output_format="csv")
        assert output.startswith("start,end,section,title,note")
        assert "2024-01-10 09:00,,Currently,First task," in output

        exported = temp_project / "items.csv"
        exported.write_text(output, encoding="utf-8")
        report = example_engine.import_file(exported, fmt="csv", section="Later")
        assert report.items_affected == 1
        assert example_engine.store.get(2).section == "Later"
