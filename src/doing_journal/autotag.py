"""Rule-driven autotagging of entry titles.

Rules come from configuration:

    whitelist  words converted in place to @word on first untagged occurrence
    synonyms   {tag: [word, ...]} - tag appended when any word appears
    transform  "regex:replacement[/r]" - computed tags appended, or with /r
               the matched tag is replaced by them
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from .tags import add_tags, dedup_tags, tag_names

logger = logging.getLogger(__name__)

TRANSFORM_FLAG_RE = re.compile(r"/(r+)$")


@dataclass
class AutotagRules:
    """Autotag configuration block."""
    whitelist: list[str] = field(default_factory=list)
    synonyms: dict[str, list[str]] = field(default_factory=dict)
    transform: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "AutotagRules":
        data = data or {}
        synonyms = {}
        for tag, words in (data.get("synonyms") or {}).items():
            synonyms[tag] = [words] if isinstance(words, str) else list(words)
        return cls(
            whitelist=list(data.get("whitelist") or []),
            synonyms=synonyms,
            transform=list(data.get("transform") or []),
        )

    @property
    def empty(self) -> bool:
        return not (self.whitelist or self.synonyms or self.transform)


@dataclass
class AutotagResult:
    """Title after autotagging plus what each pass contributed."""
    title: str
    original: str
    whitelisted: list[str] = field(default_factory=list)
    synonyms: list[str] = field(default_factory=list)
    transformed: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.title != self.original

    @property
    def tags_added(self) -> list[str]:
        tail = sorted(set(self.synonyms + self.transformed))
        return self.whitelisted + tail + self.replaced


def _bounded(pattern: str, flags: int = 0) -> re.Pattern:
    return re.compile(rf"(?:(?<=\s)|^){pattern}(?=\s|$)", flags)


def _parse_transform(rule: str) -> Optional[tuple[str, str, str]]:
    """Split "regex:replacement[/flags]" into its parts, or None if malformed."""
    if not re.search(r"\S+:\S+", rule):
        return None
    pattern, _, replacement = rule.partition(":")
    flags = ""
    m = TRANSFORM_FLAG_RE.search(replacement)
    if m:
        flags = m.group(1)
        replacement = replacement[:m.start()]
    replacement = re.sub(r"\$(\d)", r"\\\1", replacement)
    pattern = "@" + pattern.lstrip("@")
    return pattern, replacement, flags


def autotag(title: str, rules: AutotagRules) -> AutotagResult:
    """Apply whitelist, synonym and transform rules to a title.

    Only the first untagged occurrence of a whitelisted word is converted,
    and no pass adds a tag the title already carries.
    """
    result = AutotagResult(title=title, original=title)
    text = title
    current_tags = {t.lower() for t in tag_names(text)}

    for word in rules.whitelist:
        word = word.strip()
        if not word:
            continue
        if re.search(rf"@{re.escape(word)}\b", text, re.IGNORECASE):
            continue

        def convert(m: re.Match, word: str = word) -> str:
            found = m.group(1)
            if not re.search(r"[A-Z]", word):
                found = found.lower()
            result.whitelisted.append(found)
            return f"@{found}"

        text = _bounded(f"({re.escape(word)})", re.IGNORECASE).sub(convert, text, count=1)

    whitelisted = {w.lower() for w in result.whitelisted}
    for tag, words in rules.synonyms.items():
        if tag.lower() in current_tags or tag.lower() in whitelisted:
            continue
        for word in words:
            if re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE):
                if tag not in result.synonyms:
                    result.synonyms.append(tag)
                break

    for rule in rules.transform:
        parsed = _parse_transform(rule)
        if parsed is None:
            logger.debug("Autotag: ignoring malformed transform %r", rule)
            continue
        pattern, replacement, flags = parsed
        try:
            rx = _bounded(pattern)
        except re.error as e:
            logger.debug("Autotag: invalid transform pattern %r: %s", pattern, e)
            continue

        m = rx.search(text)
        if not m:
            continue

        new_tag = replacement
        for idx, group in enumerate(m.groups(), start=1):
            new_tag = new_tag.replace(f"\\{idx}", group or "")
        names = [t.lstrip("@") for t in new_tag.split() if t.lstrip("@")]

        if "r" in flags:
            result.replaced.extend(names)
            text = text[:m.start()] + " ".join(f"@{n}" for n in names) + text[m.end():]
        else:
            for name in names:
                if name not in result.transformed:
                    result.transformed.append(name)

    if result.whitelisted:
        logger.debug("Autotag: whitelisted tags: %s", result.whitelisted)
    if result.synonyms:
        logger.debug("Autotag: synonyms: %s", result.synonyms)
    if result.transformed:
        logger.debug("Autotag: transforms: %s", result.transformed)
    if result.replaced:
        logger.debug("Autotag: transform replaced: %s", result.replaced)

    tail = sorted(set(result.synonyms + result.transformed))
    if tail:
        text = add_tags(text, tail)

    result.title = dedup_tags(text)
    if result.changed:
        logger.debug("Autotag: added %s to %r", result.tags_added, result.title)
    else:
        logger.debug("Autotag: no change to %r", title)
    return result
