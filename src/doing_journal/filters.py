"""Filter engine: select and order items by section, tags, text and time."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union

from .dates import resolve_time
from .errors import InvalidArgument
from .models import Item, now as current_time
from .tags import TagBool, normalize_bool

ALL_SECTIONS = "All"


class CaseMode(Enum):
    """Case sensitivity for search strings."""
    SENSITIVE = "sensitive"
    IGNORE = "ignore"
    SMART = "smart"


class Age(Enum):
    """Which end of the timeline ``count`` keeps."""
    NEWEST = "newest"
    OLDEST = "oldest"


def normalize_case(value: Union[str, CaseMode, None], default: CaseMode = CaseMode.SMART) -> CaseMode:
    """Accept "c"/"sensitive", "i"/"ignore", "s"/"smart" (any prefix)."""
    if value is None or value == "":
        return default
    if isinstance(value, CaseMode):
        return value
    v = str(value).strip().lower()
    if v.startswith("c") or v.startswith("se"):
        return CaseMode.SENSITIVE
    if v.startswith("i"):
        return CaseMode.IGNORE
    if v.startswith("s"):
        return CaseMode.SMART
    raise InvalidArgument(f"Invalid case type: {value!r}")


def normalize_age(value: Union[str, Age, None], default: Age = Age.NEWEST) -> Age:
    if value is None or value == "":
        return default
    if isinstance(value, Age):
        return value
    v = str(value).strip().lower()
    if v.startswith("o"):
        return Age.OLDEST
    if v.startswith("n"):
        return Age.NEWEST
    raise InvalidArgument(f"Invalid age: {value!r} (use oldest or newest)")


def is_all(section: Optional[str]) -> bool:
    return section is None or section.strip().lower() == "all"


def matches_search(text: str, query: str, case: Union[str, CaseMode, None] = CaseMode.SMART) -> bool:
    """Match text against a search query.

    ``/regex/`` is a regular expression, a leading single quote means an
    exact (always case-sensitive) literal, anything else is a substring.
    Smart case is case-sensitive only when the query has an uppercase letter.
    """
    mode = normalize_case(case)
    if not query:
        return True

    if len(query) > 1 and query.startswith("/") and query.endswith("/"):
        pattern = query[1:-1]
        sensitive = mode is CaseMode.SENSITIVE or (mode is CaseMode.SMART and re.search(r"[A-Z]", pattern))
        try:
            return re.search(pattern, text, 0 if sensitive else re.IGNORECASE) is not None
        except re.error as e:
            raise InvalidArgument(f"Invalid search pattern {query!r}: {e}")

    if query.startswith("'"):
        literal = query[1:]
        if literal.endswith("'") and len(literal) > 1:
            literal = literal[:-1]
        return literal in text

    sensitive = mode is CaseMode.SENSITIVE or (mode is CaseMode.SMART and re.search(r"[A-Z]", query))
    if sensitive:
        return query in text
    return query.lower() in text.lower()


@dataclass
class FilterCriteria:
    """Independently optional filter fields, combined with AND.

    ``negate`` inverts each predicate separately (unfinished, tag, search,
    date range, tag_filter, before, after, today/yesterday); section and
    only_timed are never inverted.
    """
    section: Optional[str] = None
    unfinished: bool = False
    tag: Union[str, list[str], None] = None
    tag_bool: Union[str, TagBool] = TagBool.AND
    search: Optional[str] = None
    case: Union[str, CaseMode] = CaseMode.SMART
    exact: bool = False
    tag_filter: Optional[dict[str, Any]] = None
    date_filter: Optional[Sequence[Optional[datetime]]] = None
    only_timed: bool = False
    before: Optional[str] = None
    after: Optional[str] = None
    today: bool = False
    yesterday: bool = False
    negate: bool = False
    count: int = 0
    age: Union[str, Age] = Age.NEWEST

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FilterCriteria":
        """Build criteria from loose option dicts (accepts "not" and "bool")."""
        data = dict(data)
        if "not" in data:
            data["negate"] = data.pop("not")
        if "bool" in data and "tag_bool" not in data:
            data["tag_bool"] = data.pop("bool")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidArgument(f"Unknown filter options: {sorted(unknown)}")
        criteria = cls(**{k: v for k, v in data.items() if v is not None})
        criteria.count = int(criteria.count or 0)
        return criteria


def _flip(value: bool, negate: bool) -> bool:
    return not value if negate else bool(value)


def filter_items(
    items: Iterable[Item],
    criteria: Optional[FilterCriteria] = None,
    now: Optional[datetime] = None,
) -> list[Item]:
    """Filter items and return them in display (ascending date) order.

    Items are first sorted by (date, lowercase title) and then reversed, so
    ties break by reverse title, then by reverse insertion order. ``count``
    keeps the newest (default) or oldest matches; either way the result is
    chronological ascending.

    Raises:
        InvalidTimeExpression: If ``before``/``after`` cannot be resolved
        InvalidArgument: For unknown boolean/case/age names or bad regexes
    """
    crit = criteria or FilterCriteria()
    now = now or current_time()
    negate = crit.negate

    tag_bool = normalize_bool(crit.tag_bool)
    case = normalize_case(crit.case)
    age = normalize_age(crit.age)

    search = crit.search
    if search and crit.exact and not search.startswith("'"):
        search = f"'{search}"

    before_cutoff = resolve_time(crit.before, now=now, guess="begin") if crit.before else None
    after_cutoff = resolve_time(crit.after, now=now, guess="end") if crit.after else None

    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow_start = today_start + timedelta(days=1)
    yesterday_start = today_start - timedelta(days=1)

    tag_filter_tags = None
    tag_filter_bool = TagBool.AND
    if crit.tag_filter and crit.tag_filter.get("tags"):
        tag_filter_tags = crit.tag_filter["tags"]
        tag_filter_bool = normalize_bool(crit.tag_filter.get("bool"), TagBool.AND)

    section = None if is_all(crit.section) else crit.section.lower()

    def keep(item: Item) -> bool:
        if section is not None and item.section.lower() != section:
            return False

        if crit.unfinished and _flip(item.finished, negate):
            return False

        if crit.tag and not _flip(item.has_tags(crit.tag, tag_bool), negate):
            return False

        if search and not _flip(matches_search(item.search_text(), search, case), negate):
            return False

        if crit.date_filter and len(crit.date_filter) == 2 and crit.date_filter[0] is not None:
            start, end = crit.date_filter
            if end is not None:
                in_range = start <= item.date <= end
            else:
                in_range = item.date.date() == start.date()
            if not _flip(in_range, negate):
                return False

        if crit.only_timed and not item.interval:
            return False

        if tag_filter_tags and not _flip(item.has_tags(tag_filter_tags, tag_filter_bool), negate):
            return False

        if before_cutoff is not None and not _flip(item.date <= before_cutoff, negate):
            return False

        if after_cutoff is not None and not _flip(item.date >= after_cutoff, negate):
            return False

        if crit.today:
            if not _flip(today_start <= item.date < tomorrow_start, negate):
                return False
        elif crit.yesterday:
            if not _flip(yesterday_start <= item.date < today_start, negate):
                return False

        return True

    ordered = sorted(items, key=lambda i: (i.date, i.title.lower()))
    ordered.reverse()
    filtered = [item for item in ordered if keep(item)]

    count = crit.count if crit.count and crit.count > 0 else len(filtered)
    if age is Age.OLDEST:
        return list(reversed(filtered))[:count]
    return list(reversed(filtered[:count]))
