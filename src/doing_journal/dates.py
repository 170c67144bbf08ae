"""Resolution of user-supplied time expressions into datetimes.

Accepted forms, tried in order:

    45            minutes ago
    1d2h30m       compound duration ago (each component optional)
    natural text  "yesterday 5pm", "last monday", "3 hours ago", "noon",
                  "2024-01-10 14:00", "1/10", "jan 10 2024", ...

All datetimes are naive local time at minute resolution.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Optional

from .errors import InvalidTimeExpression
from .models import now as current_time

MINUTES_RE = re.compile(r"^(\d+)$")
DURATION_RE = re.compile(r"^(?:(?P<day>\d+)d)?(?:(?P<hour>\d+)h)?(?:(?P<min>\d+)m)?$", re.IGNORECASE)
CLOCK_RE = re.compile(
    r"(?:^|\s)(?:at\s+)?(?P<clock>noon|midnight|\d{1,2}(?::\d{2})?\s*(?:am|pm|a|p)|\d{1,2}:\d{2})$"
)
RANGE_SPLIT_RE = re.compile(r"\s+(?:to|through|thru|until|-)\s+")

_UNITS = {
    "minute": 60, "min": 60, "m": 60,
    "hour": 3600, "hr": 3600, "h": 3600,
    "day": 86400, "d": 86400,
    "week": 604800, "wk": 604800, "w": 604800,
}
_UNIT_PATTERN = r"(minute|min|hour|hr|day|week|wk|m|h|d|w)s?"
_AMOUNT_PATTERN = r"(\d+|an?|one)"
AGO_RE = re.compile(rf"{_AMOUNT_PATTERN}\s*{_UNIT_PATTERN}\s+ago")
AHEAD_RE = re.compile(rf"(?:in\s+{_AMOUNT_PATTERN}\s*{_UNIT_PATTERN}|{_AMOUNT_PATTERN}\s*{_UNIT_PATTERN}\s+from\s+now)")

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_FULL_DATE_FORMATS = (
    "%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%m/%d/%y",
    "%B %d %Y", "%B %d, %Y", "%b %d %Y", "%b %d, %Y", "%d %B %Y", "%d %b %Y",
)
# Parsed with the year appended, so Feb 29 works
_PARTIAL_DATE_FORMATS = (
    ("%m/%d", "/", "%m/%d/%Y"),
    ("%B %d", " ", "%B %d %Y"),
    ("%b %d", " ", "%b %d %Y"),
    ("%d %B", " ", "%d %B %Y"),
    ("%d %b", " ", "%d %b %Y"),
)


def _amount(text: str) -> int:
    return 1 if text in ("a", "an", "one") else int(text)


def _parse_clock(text: str) -> Optional[tuple[int, int]]:
    """Parse "noon", "3pm", "8:30a", "15:45" into (hour, minute)."""
    if text == "noon":
        return 12, 0
    if text == "midnight":
        return 0, 0
    m = re.fullmatch(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm|a|p)?", text)
    if not m:
        return None
    hour = int(m.group(1))
    minute = int(m.group(2) or 0)
    meridian = m.group(3)
    if minute > 59:
        return None
    if meridian:
        if not 1 <= hour <= 12:
            return None
        hour %= 12
        if meridian.startswith("p"):
            hour += 12
    elif hour > 23:
        return None
    return hour, minute


def _split_clock(text: str) -> tuple[str, Optional[tuple[int, int]]]:
    """Separate a trailing time of day from the date part of an expression."""
    m = CLOCK_RE.search(text)
    if not m:
        return text, None
    clock = _parse_clock(m.group("clock").replace(" ", ""))
    if clock is None:
        return text, None
    return text[:m.start()].strip(), clock


def _parse_weekday(text: str, today: date, future: bool) -> Optional[date]:
    m = re.fullmatch(r"(?:(last|next|this)\s+)?([a-z]{3,})", text)
    if not m:
        return None
    modifier, name = m.groups()
    matches = [i for i, day in enumerate(WEEKDAYS) if day.startswith(name)]
    if len(matches) != 1:
        return None
    target = matches[0]
    weekday = today.weekday()

    if modifier == "last":
        return today - timedelta(days=(weekday - target) % 7 or 7)
    if modifier == "next":
        return today + timedelta(days=(target - weekday) % 7 or 7)
    if modifier == "this":
        return today + timedelta(days=target - weekday)
    if future:
        return today + timedelta(days=(target - weekday) % 7)
    return today - timedelta(days=(weekday - target) % 7)


def _parse_day(text: str, today: date, future: bool) -> Optional[date]:
    """Resolve the date part of an expression relative to today."""
    if text in ("today", "now"):
        return today
    if text == "yesterday":
        return today - timedelta(days=1)
    if text == "tomorrow":
        return today + timedelta(days=1)
    if text == "last week":
        return today - timedelta(weeks=1)
    if text == "next week":
        return today + timedelta(weeks=1)

    for fmt in _FULL_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    for fmt, sep, full_fmt in _PARTIAL_DATE_FORMATS:
        try:
            parsed = datetime.strptime(f"{text}{sep}{today.year}", full_fmt).date()
        except ValueError:
            continue
        if future and parsed < today:
            parsed = parsed.replace(year=today.year + 1)
        elif not future and parsed > today:
            parsed = parsed.replace(year=today.year - 1)
        return parsed

    return _parse_weekday(text, today, future)


def _parse_natural(text: str, now: datetime, future: bool, guess: str) -> Optional[datetime]:
    if text == "now":
        return now

    m = AGO_RE.fullmatch(text)
    if m:
        return now - timedelta(seconds=_amount(m.group(1)) * _UNITS[m.group(2)])

    m = AHEAD_RE.fullmatch(text)
    if m:
        amount = m.group(1) or m.group(3)
        unit = m.group(2) or m.group(4)
        return now + timedelta(seconds=_amount(amount) * _UNITS[unit])

    date_text, clock = _split_clock(text)

    if not date_text:
        if clock is None:
            return None
        result = now.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)
        if future and result < now:
            result += timedelta(days=1)
        elif not future and result > now:
            result -= timedelta(days=1)
        return result

    day = _parse_day(date_text, now.date(), future)
    if day is None:
        try:
            return datetime.fromisoformat(text).replace(second=0, microsecond=0, tzinfo=None)
        except ValueError:
            return None

    if clock is not None:
        return datetime.combine(day, time(*clock))
    if guess == "end":
        return datetime.combine(day, time(23, 59))
    return datetime.combine(day, time(0, 0))


def resolve_time(
    expression: Optional[str],
    now: Optional[datetime] = None,
    future: bool = False,
    guess: str = "begin",
) -> datetime:
    """Resolve a cutoff or date expression.

    Args:
        expression: Minutes ("90"), duration ("1d2h") or natural text
        now: Reference time (default: current time)
        future: Resolve ambiguous expressions forward instead of backward
        guess: "begin" or "end" - time used when only a day is given

    Returns:
        The resolved datetime

    Raises:
        InvalidTimeExpression: If the expression is empty or unparsable
    """
    if expression is None or not str(expression).strip():
        raise InvalidTimeExpression(f"Invalid time expression {expression!r}")

    text = str(expression).strip()
    now = now or current_time()

    m = MINUTES_RE.match(text)
    if m:
        return now - timedelta(minutes=int(m.group(1)))

    m = DURATION_RE.match(text)
    if m and any(m.groups()):
        return now - timedelta(
            days=int(m.group("day") or 0),
            hours=int(m.group("hour") or 0),
            minutes=int(m.group("min") or 0),
        )

    result = _parse_natural(re.sub(r"\s+", " ", text.lower()), now, future, guess)
    if result is None:
        raise InvalidTimeExpression(f"Invalid time expression {expression!r}")
    return result


def resolve_range(
    expression: str,
    now: Optional[datetime] = None,
    future: bool = False,
) -> tuple[datetime, Optional[datetime]]:
    """Resolve "<start> to <end>" into a pair; a single expression gives (start, None)."""
    if expression is None or not str(expression).strip():
        raise InvalidTimeExpression(f"Invalid date range {expression!r}")

    parts = RANGE_SPLIT_RE.split(str(expression).strip(), maxsplit=1)
    if len(parts) == 1:
        return resolve_time(parts[0], now=now, future=future, guess="begin"), None

    start = resolve_time(parts[0], now=now, future=future, guess="begin")
    end = resolve_time(parts[1], now=now, future=future, guess="end")
    if end < start:
        raise InvalidTimeExpression(f"Range end precedes start in {expression!r}")
    return start, end


def chronify_qty(qty: str) -> int:
    """Convert a duration ("1:30", "90", "1.5h", "2d", "1h30m") to seconds."""
    text = str(qty).strip()

    m = re.fullmatch(r"(\d+):(\d\d)", text)
    if m:
        return (int(m.group(1)) * 60 + int(m.group(2))) * 60

    m = re.fullmatch(r"(\d+(?:\.\d+)?)([mhd])?", text, re.IGNORECASE)
    if m:
        amount = float(m.group(1))
        unit = (m.group(2) or "m").lower()
        minutes = {"m": amount, "h": amount * 60, "d": amount * 60 * 24}[unit]
        return int(round(minutes)) * 60

    m = DURATION_RE.match(text)
    if text and m and any(m.groups()):
        return (
            int(m.group("day") or 0) * 86400
            + int(m.group("hour") or 0) * 3600
            + int(m.group("min") or 0) * 60
        )

    raise InvalidTimeExpression(f"Invalid duration {qty!r}")
