"""Property-based tests for the parser, tag engine and filter engine.

Uses hypothesis to verify algorithmic properties hold for many inputs.
"""

from datetime import datetime, timedelta

from hypothesis import given, strategies as st

from doing_journal.filters import FilterCriteria, filter_items
from doing_journal.models import Item, format_timestamp
from doing_journal.parser import parse, serialize
from doing_journal.tags import has_tags, set_tag

BASE = datetime(2024, 1, 1, 0, 0)
NOW = datetime(2024, 2, 1, 0, 0)

words = st.text(alphabet="abcdefghijklmnopqrstuvwxyz ", min_size=0, max_size=30)
tag_names = st.from_regex(r"[a-z][a-z0-9_-]{0,7}", fullmatch=True)
titles = words.map(str.strip).filter(bool)
offsets = st.integers(min_value=0, max_value=60 * 24 * 30)


def make_items(entries):
    return [
        Item(date=BASE + timedelta(minutes=offset), title=title, section="Currently")
        for offset, title in entries
    ]


class TestRoundTripProperties:
    """Parsing then serializing a well-formed journal is lossless."""

    @given(
        sections=st.lists(st.sampled_from(["Currently", "Later", "Ideas"]), min_size=1, unique=True),
        entries=st.lists(st.tuples(offsets, titles), max_size=8),
        note=st.booleans(),
    )
    def test_round_trip(self, sections, entries, note):
        """serialize(parse(text)) == text for canonical journals."""
        lines = []
        for section in sections:
            lines.append(f"{section}:")
            for offset, title in entries:
                lines.append(f"- {format_timestamp(BASE + timedelta(minutes=offset))} | {title}")
                if note:
                    lines.append(f"\t{title}")
        text = "\n".join(lines) + "\n"

        assert serialize(parse(text)) == text

    @given(entries=st.lists(st.tuples(offsets, titles), min_size=1, max_size=8))
    def test_item_count_preserved(self, entries):
        """Every entry line becomes exactly one item."""
        lines = ["Currently:"]
        for offset, title in entries:
            lines.append(f"- {format_timestamp(BASE + timedelta(minutes=offset))} | {title}")
        assert len(parse("\n".join(lines)).items) == len(entries)


class TestTagProperties:
    """Tag mutations are idempotent."""

    @given(title=words, name=tag_names)
    def test_add_idempotent(self, title, name):
        """Adding a tag twice equals adding it once."""
        once = set_tag(title, name)
        assert set_tag(once, name) == once
        assert has_tags(once, name)

    @given(title=words, name=tag_names)
    def test_remove_idempotent(self, title, name):
        """Removing a tag twice equals removing it once, and it is gone."""
        tagged = set_tag(title, name)
        once = set_tag(tagged, name, remove=True)
        assert set_tag(once, name, remove=True) == once
        assert not has_tags(once, name)


class TestFilterProperties:
    """Filter results respect count and ordering."""

    @given(
        entries=st.lists(st.tuples(offsets, titles), max_size=20),
        count=st.integers(min_value=0, max_value=25),
        age=st.sampled_from(["newest", "oldest"]),
    )
    def test_count_and_order(self, entries, count, age):
        """count caps the result and output is ascending by date then title."""
        items = make_items(entries)
        result = filter_items(items, FilterCriteria(count=count, age=age), now=NOW)

        expected = len(items) if count == 0 else min(count, len(items))
        assert len(result) == expected
        keys = [(i.date, i.title.lower()) for i in result]
        assert keys == sorted(keys)

    @given(entries=st.lists(st.tuples(offsets, titles), min_size=1, max_size=20))
    def test_newest_keeps_latest(self, entries):
        """count=1 with newest keeps an item with the latest date."""
        items = make_items(entries)
        result = filter_items(items, FilterCriteria(count=1), now=NOW)
        assert result[0].date == max(i.date for i in items)
