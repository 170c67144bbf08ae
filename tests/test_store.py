"""Tests for the in-memory content store."""

from datetime import datetime

import pytest

from doing_journal.autotag import AutotagRules
from doing_journal.errors import EmptyInput, InvalidSection, ItemNotFound
from doing_journal.models import Item
from doing_journal.store import ContentStore

NOW = datetime(2024, 1, 10, 12, 0)


class TestSections:
    """Tests for section management."""

    @pytest.mark.parametrize(
        "frag,expected",
        [("cur", "Currently"), ("LATER", "Later"), ("ltr", "Later"), ("all", "All"), (None, "Currently")],
    )
    def test_guess_section(self, store, frag, expected):
        """Exact names win, then fuzzy in-order character matches."""
        assert store.guess_section(frag) == expected

    def test_guess_unknown(self, store):
        """An unmatched fragment is an error unless create is set."""
        with pytest.raises(InvalidSection):
            store.guess_section("xyz")
        assert store.guess_section("xyz", create=True) == "Xyz"
        assert store.has_section("xyz")

    @pytest.mark.parametrize("name", ["", "  ", "All", "all"])
    def test_invalid_names(self, name):
        """Empty names and All cannot be sections."""
        with pytest.raises(InvalidSection):
            ContentStore().add_section(name)

    def test_add_existing_returns_it(self, store):
        """Adding a known name is a no-op."""
        section = store.add_section("later")
        assert section.name == "Later"
        assert len(store.sections) == 3


class TestItems:
    """Tests for adding and changing items."""

    def test_push_creates_section(self):
        """Pushing into an unknown section creates it."""
        store = ContentStore()
        item = store.push(Item(NOW, "A", "ideas"))
        assert item.id == 1
        assert store.section_titles() == ["Ideas"]

    def test_add_item_formats_title(self, store):
        """Titles are capitalized, tagged and whitespace-collapsed."""
        rules = AutotagRules(whitelist=["docs"])
        item = store.add_item("write   docs", date=NOW, rules=rules, default_tags=["work"])
        assert item.title == "Write @docs @work"
        assert item.section == "Currently"
        assert item.id == 5

    def test_add_item_without_autotag(self, store):
        """auto_tag=False skips rules and default tags."""
        rules = AutotagRules(whitelist=["docs"])
        item = store.add_item("docs", date=NOW, rules=rules, default_tags=["work"], auto_tag=False)
        assert item.title == "Docs"

    def test_add_item_blank(self, store):
        """Blank titles are rejected."""
        with pytest.raises(EmptyInput):
            store.add_item("   ")

    def test_timed_closes_latest_open(self, store):
        """timed stamps @done on the most recent unfinished entry."""
        store.add_item("Next thing", section="Later", date=NOW, timed=True)
        assert store.get(2).title == "Team meeting @meeting @done(2024-01-10 12:00)"
        assert not store.get(1).finished

    def test_note_attached(self, store):
        """Notes given as text are split into lines."""
        item = store.add_item("Task", date=NOW, note="one\ntwo")
        assert item.note.lines == ["one", "two"]

    def test_delete_unknown(self, store):
        """Deleting a missing id raises ItemNotFound."""
        with pytest.raises(ItemNotFound):
            store.delete_item(99)

    def test_update_keeps_id(self, store):
        """An updated item keeps its id and position."""
        store.update_item(1, Item(NOW, "Replaced", "Currently"))
        assert store.items[0].id == 1
        assert store.items[0].title == "Replaced"

    def test_move_labels(self, store):
        """Moving stamps @from with the old section."""
        item = store.move_item(1, "Later")
        assert item.section == "Later"
        assert item.title == "Write parser @coding @from(Currently)"

    def test_move_relabels(self, store):
        """An existing @from is overwritten."""
        item = store.move_item(4, "Later")
        assert item.title == "Old task @done(2024-01-08 12:00) @from(Archive)"


class TestDedup:
    """Tests for duplicate detection."""

    def test_same_time_any_section(self, store):
        """Same-minute items are duplicates whatever section they sit in."""
        dup = Item(datetime(2024, 1, 10, 9, 0), "Other", "Currently")
        elsewhere = Item(datetime(2024, 1, 10, 9, 0), "Other", "Later")
        fresh = Item(datetime(2024, 1, 10, 9, 1), "Other", "Later")
        assert store.dedup([dup, elsewhere, fresh]) == [fresh]

    def test_no_overlap(self, store):
        """no_overlap also rejects items inside an existing span."""
        inside = Item(datetime(2024, 1, 9, 15, 30), "Inside", "Later")
        assert store.dedup([inside]) == [inside]
        assert store.dedup([inside], no_overlap=True) == []

    def test_merge_items(self, store):
        """merge_items skips items already present by date, title and section."""
        other = ContentStore()
        other.push(store.get(1).copy())
        other.push(Item(NOW, "New", "Currently"))
        assert store.merge_items(other.items) == 1
        assert len(store) == 5


class TestArchive:
    """Tests for selecting and archiving old items."""

    def test_keep_most_recent(self, store):
        """keep protects the newest candidates."""
        selected = store.select_old_items("Currently", keep=1)
        assert [i.id for i in selected] == [1]

    def test_keep_two_of_five_moves_three_oldest(self):
        """With five items and keep=2, exactly the three oldest are archived."""
        store = ContentStore()
        for day in range(1, 6):
            store.push(Item(datetime(2024, 1, day, 9, 0), f"Task {day}", "Work"))
        report = store.archive("Work", keep=2, now=NOW)
        assert report.items_affected == 3
        archived = [i.title for i in store.items if i.section == "Archive"]
        assert archived == [
            "Task 1 @from(Work)",
            "Task 2 @from(Work)",
            "Task 3 @from(Work)",
        ]
        assert [i.title for i in store.in_section("Work")] == ["Task 4", "Task 5"]

    def test_destination_excluded(self, store):
        """Items already in the destination are never candidates."""
        selected = store.select_old_items("All", destination="Archive")
        assert [i.id for i in selected] == [3, 1, 2]

    def test_tag_and_before_filters(self, store):
        """Tags default to pattern mode; before is inclusive."""
        assert [i.id for i in store.select_old_items(tags="done", destination="Archive")] == [3]
        selected = store.select_old_items(before="2024-01-09 15:00", destination="Archive", now=NOW)
        assert [i.id for i in selected] == [3]

    def test_archive_moves_and_labels(self, store):
        """Archived items move to the destination with @from."""
        report = store.archive("Currently", keep=1, now=NOW)
        assert report.items_affected == 1
        assert report.detail == "to Archive"
        item = store.get(1)
        assert item.section == "Archive"
        assert item.title.endswith("@from(Currently)")

    def test_extract(self, store):
        """extract moves items into a new store under their sections."""
        extracted = store.extract([store.get(4)])
        assert len(store) == 3
        assert extracted.section_titles() == ["Archive"]
        assert extracted.items[0].title.startswith("Old task")
