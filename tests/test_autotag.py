"""Tests for rule-driven autotagging."""

from doing_journal.autotag import AutotagRules, autotag


class TestWhitelist:
    """Tests for whitelisted words."""

    def test_first_occurrence_converted(self):
        """Only the first untagged occurrence becomes a tag."""
        rules = AutotagRules(whitelist=["meeting"])
        result = autotag("meeting with meeting notes", rules)
        assert result.title == "@meeting with meeting notes"
        assert result.whitelisted == ["meeting"]
        assert result.changed

    def test_already_tagged_is_skipped(self):
        """A word already present as a tag is left alone."""
        rules = AutotagRules(whitelist=["meeting"])
        result = autotag("@meeting about meeting", rules)
        assert result.title == "@meeting about meeting"
        assert not result.changed

    def test_partial_word_not_converted(self):
        """Whitelisted words only match whole words."""
        rules = AutotagRules(whitelist=["code"])
        assert autotag("decoder work", rules).title == "decoder work"


class TestSynonyms:
    """Tests for synonym rules."""

    def test_synonym_appends_tag(self):
        """Any synonym word appends its tag."""
        rules = AutotagRules(synonyms={"writing": ["blog", "post"]})
        result = autotag("Draft blog entry", rules)
        assert result.title == "Draft blog entry @writing"
        assert result.tags_added == ["writing"]

    def test_existing_tag_not_duplicated(self):
        """A synonym tag already on the title is not added again."""
        rules = AutotagRules(synonyms={"writing": ["blog"]})
        assert autotag("Draft blog @writing", rules).title == "Draft blog @writing"

    def test_from_dict_accepts_single_word(self):
        """A synonym given as a string becomes a one-word list."""
        rules = AutotagRules.from_dict({"synonyms": {"writing": "blog"}})
        assert rules.synonyms == {"writing": ["blog"]}


class TestTransform:
    """Tests for transform rules."""

    def test_replace_flag(self):
        """With /r the matched tag is replaced by the computed tags."""
        rules = AutotagRules(transform=[r"pr-(\d+):pr @issue($1)/r"])
        result = autotag("Fix @pr-12 today", rules)
        assert result.title == "Fix @pr @issue(12) today"
        assert result.replaced == ["pr", "issue(12)"]

    def test_append_computed_tag(self):
        """Without /r the computed tag is appended."""
        rules = AutotagRules(transform=[r"(\w+)-\d+:$1"])
        result = autotag("Work @jira-123", rules)
        assert result.title == "Work @jira-123 @jira"
        assert result.transformed == ["jira"]

    def test_malformed_rule_ignored(self):
        """A rule without a colon is skipped."""
        rules = AutotagRules(transform=["nocolon"])
        assert autotag("Work @x", rules).title == "Work @x"


class TestRules:
    """Tests for the rules container."""

    def test_empty(self):
        """Rules with nothing configured are empty and change nothing."""
        rules = AutotagRules.from_dict(None)
        assert rules.empty
        assert not autotag("anything", rules).changed
