"""Tag engine: detect, add, remove, rename and dedup @tags in entry titles.

A title is tokenized into plain-text spans and Tag spans. Every mutation
edits that token list and re-renders it, so a title never ends up with two
tags of the same name.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from .errors import InvalidArgument

TAG_RE = re.compile(r"(?:(?<=\s)|^)@(?P<name>[^\s()]+)(?:\((?P<value>[^)]*)\))?(?=\s|$)")

# Tag arguments as given by callers: "tag", "@tag", "tag(value)", comma or space separated
TAG_ARG_RE = re.compile(r"@?(?P<name>[^\s,()@]+)(?:\((?P<value>[^)]*)\))?")


class TagBool(Enum):
    """How multiple requested tags combine."""
    AND = "and"
    OR = "or"
    NOT = "not"
    PATTERN = "pattern"


_BOOL_ALIASES = {
    "and": TagBool.AND, "all": TagBool.AND, "&": TagBool.AND, "&&": TagBool.AND,
    "or": TagBool.OR, "any": TagBool.OR, "|": TagBool.OR, "||": TagBool.OR,
    "not": TagBool.NOT, "none": TagBool.NOT, "!": TagBool.NOT,
    "pattern": TagBool.PATTERN, "pat": TagBool.PATTERN, "p": TagBool.PATTERN,
}


def normalize_bool(value: Union[str, TagBool, None], default: TagBool = TagBool.AND) -> TagBool:
    """Convert a user-supplied boolean name (AND/OR/NOT/PATTERN) to a TagBool."""
    if value is None or value == "":
        return default
    if isinstance(value, TagBool):
        return value
    try:
        return _BOOL_ALIASES[str(value).strip().lower()]
    except KeyError:
        raise InvalidArgument(f"Invalid tag boolean: {value!r} (use AND, OR, NOT or PATTERN)")


@dataclass
class Tag:
    """A single @name or @name(value) span inside a title."""
    name: str
    value: Optional[str] = None

    def __str__(self) -> str:
        if self.value is None:
            return f"@{self.name}"
        return f"@{self.name}({self.value})"

    @property
    def key(self) -> str:
        return self.name.lower()


Token = Union[str, Tag]


def tokenize(title: str) -> list[Token]:
    """Split a title into text spans and Tag spans, in order."""
    tokens: list[Token] = []
    pos = 0
    for m in TAG_RE.finditer(title):
        if m.start() > pos:
            tokens.append(title[pos:m.start()])
        tokens.append(Tag(m.group("name"), m.group("value")))
        pos = m.end()
    if pos < len(title):
        tokens.append(title[pos:])
    return tokens


def render(tokens: Iterable[Token]) -> str:
    return "".join(str(t) for t in tokens)


def parse_tags(title: str) -> list[Tag]:
    """All tags in a title, in order of appearance."""
    return [t for t in tokenize(title) if isinstance(t, Tag)]


def tag_names(title: str) -> list[str]:
    return [t.name for t in parse_tags(title)]


def tag_value(title: str, name: str) -> Optional[str]:
    """Value of the first tag called ``name`` (case-insensitive), or None."""
    key = name.lstrip("@").lower()
    for tag in parse_tags(title):
        if tag.key == key:
            return tag.value
    return None


def split_tag_list(tags: Union[str, Iterable[str], None]) -> list[str]:
    """Normalize "a, @b c" or ["a", "@b"] into bare tag names."""
    return [tag.name for tag in split_tag_args(tags)]


def split_tag_args(tags: Union[str, Iterable[str], None]) -> list[Tag]:
    """Like split_tag_list but keeps any ``(value)`` given with a name."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = [tags]
    result = []
    for chunk in tags:
        for m in TAG_ARG_RE.finditer(str(chunk)):
            result.append(Tag(m.group("name"), m.group("value")))
    return result


def _matcher(pattern: str, regex: bool = False) -> Callable[[str], bool]:
    """Build a tag-name predicate; names support * and ? wildcards."""
    if regex:
        rx = re.compile(pattern, re.IGNORECASE)
        return lambda name: rx.fullmatch(name) is not None

    pattern = pattern.strip().lstrip("@").lower()
    if "*" in pattern or "?" in pattern:
        return lambda name: fnmatch.fnmatchcase(name.lower(), pattern)
    return lambda name: name.lower() == pattern


def _remove(tokens: list[Token], predicate: Callable[[Tag], bool]) -> list[Token]:
    """Drop tags matching predicate along with one adjoining space."""
    out = list(tokens)
    i = 0
    while i < len(out):
        token = out[i]
        if isinstance(token, Tag) and predicate(token):
            del out[i]
            prev = out[i - 1] if i > 0 else None
            nxt = out[i] if i < len(out) else None
            if isinstance(prev, str) and prev[-1:].isspace():
                out[i - 1] = prev[:-1]
            elif isinstance(nxt, str) and nxt[:1].isspace():
                out[i] = nxt[1:]
            continue
        i += 1
    return [t for t in out if t != ""]


def _append(tokens: list[Token], tag: Tag) -> list[Token]:
    out = list(tokens)
    if out and isinstance(out[-1], str):
        out[-1] = out[-1].rstrip()
        if not out[-1]:
            out.pop()
    if out:
        out.append(" ")
    out.append(tag)
    return out


def dedup_tags(title: str) -> str:
    """Remove repeated tags, keeping the first occurrence of each name."""
    seen: set[str] = set()

    def duplicate(tag: Tag) -> bool:
        if tag.key in seen:
            return True
        seen.add(tag.key)
        return False

    return render(_remove(tokenize(title), duplicate))


def set_tag(
    title: str,
    name: str,
    value: Optional[str] = None,
    remove: bool = False,
    rename_to: Optional[str] = None,
    regex: bool = False,
    force: bool = False,
) -> str:
    """Add, remove or rename one tag in a title.

    Args:
        title: Title text to modify
        name: Tag name (wildcards allowed for remove/rename, or a regex if ``regex``)
        value: Value for an added tag, or replacement value when renaming
        remove: Strip every matching tag
        rename_to: Replace matching tags in place with this name
        regex: Treat ``name`` as a regular expression
        force: Re-insert the tag even if already present (refreshes its value);
            when renaming, add ``rename_to`` if nothing matched

    Returns:
        The new title. Adding a tag that is present with no new value is a no-op.
    """
    tokens = tokenize(title)

    if remove or rename_to:
        match = _matcher(name, regex=regex)
        if rename_to:
            new_name = rename_to.strip().lstrip("@")
            found = False
            for i, token in enumerate(tokens):
                if isinstance(token, Tag) and match(token.name):
                    tokens[i] = Tag(new_name, value if value is not None else token.value)
                    found = True
            if not found and force:
                tokens = _append(tokens, Tag(new_name, value))
        else:
            tokens = _remove(tokens, lambda t: match(t.name))
    else:
        name = name.strip().lstrip("@")
        key = name.lower()
        present = any(isinstance(t, Tag) and t.key == key for t in tokens)
        if not present or value is not None or force:
            tokens = _remove(tokens, lambda t: t.key == key)
            tokens = _append(tokens, Tag(name, value))

    return dedup_tags(render(tokens)).strip()


def add_tags(title: str, tags: Union[str, Iterable[str]], remove: bool = False) -> str:
    """Apply set_tag for each tag in a list (or comma/space separated string)."""
    for tag in split_tag_args(tags):
        title = set_tag(title, tag.name, value=tag.value, remove=remove)
    return title


def matches_tag_pattern(names: list[str], expression: str) -> bool:
    """Evaluate a +include / -exclude tag expression left to right.

    ``+tag`` must be present, ``-tag`` (or ``!tag``) must be absent, and if
    any unprefixed terms are given at least one of them must be present.
    """
    def found(term: str) -> bool:
        match = _matcher(term)
        return any(match(n) for n in names)

    optional_seen = False
    optional_hit = False
    for term in re.split(r"[,\s]+", expression.strip()):
        if not term:
            continue
        if term.startswith("+"):
            if not found(term[1:]):
                return False
        elif term[0] in "-!":
            if found(term[1:]):
                return False
        else:
            optional_seen = True
            optional_hit = optional_hit or found(term)
    return optional_hit or not optional_seen


def has_tags(
    title: str,
    tags: Union[str, Iterable[str], None],
    bool_mode: Union[str, TagBool, None] = TagBool.AND,
) -> bool:
    """Check the title's tags against requested names under AND/OR/NOT/PATTERN."""
    mode = normalize_bool(bool_mode)
    names = tag_names(title)

    if mode is TagBool.PATTERN:
        expression = tags if isinstance(tags, str) else " ".join(tags or [])
        return matches_tag_pattern(names, expression)

    wanted = split_tag_list(tags)
    if not wanted:
        return True

    hits = []
    for want in wanted:
        match = _matcher(want)
        hits.append(any(match(n) for n in names))

    if mode is TagBool.AND:
        return all(hits)
    if mode is TagBool.OR:
        return any(hits)
    return not any(hits)
