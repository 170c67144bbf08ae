"""Tests for time expression resolution."""

from datetime import datetime

import pytest

from doing_journal.dates import chronify_qty, resolve_range, resolve_time
from doing_journal.errors import InvalidTimeExpression

# Wednesday
NOW = datetime(2024, 1, 10, 12, 0)


class TestResolveTime:
    """Tests for resolve_time."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("90", datetime(2024, 1, 10, 10, 30)),
            ("1d", datetime(2024, 1, 9, 12, 0)),
            ("2h30m", datetime(2024, 1, 10, 9, 30)),
            ("3 hours ago", datetime(2024, 1, 10, 9, 0)),
            ("an hour ago", datetime(2024, 1, 10, 11, 0)),
            ("yesterday 5pm", datetime(2024, 1, 9, 17, 0)),
            ("3pm", datetime(2024, 1, 9, 15, 0)),
            ("noon", datetime(2024, 1, 10, 12, 0)),
            ("8:30am", datetime(2024, 1, 10, 8, 30)),
            ("last monday", datetime(2024, 1, 8, 0, 0)),
            ("dec 25", datetime(2023, 12, 25, 0, 0)),
            ("2024-01-05 14:00", datetime(2024, 1, 5, 14, 0)),
            ("now", NOW),
        ],
    )
    def test_past_bias(self, expression, expected):
        """Ambiguous expressions resolve into the past by default."""
        assert resolve_time(expression, now=NOW) == expected

    def test_future_clock(self):
        """With future, a clock time later today stays today."""
        assert resolve_time("3pm", now=NOW, future=True) == datetime(2024, 1, 10, 15, 0)

    def test_future_weekday(self):
        """With future, a bare weekday resolves forward."""
        assert resolve_time("friday", now=NOW, future=True) == datetime(2024, 1, 12, 0, 0)

    def test_in_duration(self):
        """'in N units' counts forward."""
        assert resolve_time("in 2 days", now=NOW) == datetime(2024, 1, 12, 12, 0)

    def test_guess_end(self):
        """A bare day with guess=end resolves to the end of that day."""
        assert resolve_time("yesterday", now=NOW, guess="end") == datetime(2024, 1, 9, 23, 59)

    @pytest.mark.parametrize("expression", ["", "   ", None, "bogus text", "25:00"])
    def test_invalid(self, expression):
        """Unparsable expressions raise InvalidTimeExpression."""
        with pytest.raises(InvalidTimeExpression):
            resolve_time(expression, now=NOW)


class TestResolveRange:
    """Tests for resolve_range."""

    def test_single(self):
        """A single expression gives an open-ended range."""
        assert resolve_range("yesterday", now=NOW) == (datetime(2024, 1, 9, 0, 0), None)

    def test_span(self):
        """Start uses the beginning of its day and end the end of its day."""
        start, end = resolve_range("monday to wednesday", now=NOW)
        assert start == datetime(2024, 1, 8, 0, 0)
        assert end == datetime(2024, 1, 10, 23, 59)

    def test_backwards_range_rejected(self):
        """An end before the start is an error."""
        with pytest.raises(InvalidTimeExpression):
            resolve_range("today to yesterday", now=NOW)


class TestChronifyQty:
    """Tests for duration parsing."""

    @pytest.mark.parametrize("qty", ["1:30", "90", "1.5h", "1h30m", "90m"])
    def test_ninety_minutes(self, qty):
        """Every accepted duration form resolves to seconds."""
        assert chronify_qty(qty) == 5400

    def test_days(self):
        """Day quantities are supported."""
        assert chronify_qty("2d") == 172800

    def test_invalid(self):
        """Garbage is rejected."""
        with pytest.raises(InvalidTimeExpression):
            chronify_qty("abc")
