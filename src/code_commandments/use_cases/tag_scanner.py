"""
Offset-based tag scanning shared by region extraction and rewriting.

This is deliberately not a markup parser. It finds opening and closing tags
by pattern, tracks nesting depth of one element name at a time, and reports
exact offsets into the scanned text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Iterator

# Attribute text may contain '>' inside quoted values.
_ATTRS = r"""(?P<attrs>(?:[\s/](?:"[^"]*"|'[^']*'|[^'">])*)?)"""
_ATTRIBUTE = re.compile(
    r"""([^\s"'=<>/]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+)))?"""
)


@dataclass(frozen=True)
class OpeningTag:
    """An opening or self-closing tag; start/end bound the whole '<...>' text."""
    name: str
    start: int
    end: int
    text: str
    attributes_text: str
    self_closing: bool

    @property
    def attributes(self) -> dict[str, str]:
        return TagScanner.parse_attributes(self.attributes_text)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def attribute(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)


@dataclass(frozen=True)
class ClosingTag:
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class Element:
    """
    An element located in some text.

    close is None for self-closing elements. inner_start/inner_end bound the
    body (empty for self-closing elements).
    """
    opening: OpeningTag
    close: ClosingTag | None
    text: str

    @property
    def name(self) -> str:
        return self.opening.name

    @property
    def start(self) -> int:
        return self.opening.start

    @property
    def end(self) -> int:
        return self.close.end if self.close is not None else self.opening.end

    @property
    def inner_start(self) -> int:
        return self.opening.end

    @property
    def inner_end(self) -> int:
        return self.close.start if self.close is not None else self.opening.end

    @property
    def inner(self) -> str:
        return self.text[self.inner_start - self.start:self.inner_end - self.start]

    @property
    def self_closing(self) -> bool:
        return self.close is None


class TagScanner:
    """
    Locate tags of given element names and their true matching closes.

    Names are escaped before being embedded in any pattern. Matching is
    case-sensitive unless case_sensitive=False.
    """

    def __init__(self, case_sensitive: bool = True) -> None:
        self._case_sensitive = case_sensitive
        self._flags = 0 if case_sensitive else re.IGNORECASE

    @property
    def case_sensitive(self) -> bool:
        return self._case_sensitive

    def same_name(self, left: str, right: str) -> bool:
        if self._case_sensitive:
            return left == right
        return left.lower() == right.lower()

    def iter_openings(self, text: str, names: Iterable[str], start: int = 0) -> Iterator[OpeningTag]:
        """Yield opening and self-closing tags of the given names in document order."""
        pattern = TagScanner._opening_pattern(TagScanner._names_key(names), self._flags)
        for match in pattern.finditer(text, start):
            yield TagScanner._to_opening(match)

    def find_opening(
        self,
        text: str,
        names: Iterable[str],
        start: int = 0,
        include_self_closing: bool = True,
    ) -> OpeningTag | None:
        for opening in self.iter_openings(text, names, start):
            if include_self_closing or not opening.self_closing:
                return opening
        return None

    def find_matching_close(self, text: str, opening: OpeningTag) -> ClosingTag | None:
        """
        Find the close that balances opening, or None.

        Same-name openings that are not self-closing increment depth, same-name
        closes decrement it, and self-closing occurrences leave it unchanged.
        A self-closing opening has no close.
        """
        if opening.self_closing:
            return None
        pattern = TagScanner._token_pattern(TagScanner._names_key([opening.name]), self._flags)
        depth = 1
        for match in pattern.finditer(text, opening.end):
            if match.group("close") is not None:
                depth -= 1
                if depth == 0:
                    return ClosingTag(name=match.group("cname"), start=match.start(), end=match.end())
            elif not TagScanner._is_self_closing(match.group("attrs")):
                depth += 1
        return None

    def element_at(self, text: str, opening: OpeningTag) -> Element | None:
        """The whole element starting at opening, or None when it is never closed."""
        if opening.self_closing:
            return Element(opening=opening, close=None, text=opening.text)
        close = self.find_matching_close(text, opening)
        if close is None:
            return None
        return Element(opening=opening, close=close, text=text[opening.start:close.end])

    @staticmethod
    def parse_attributes(attributes_text: str) -> dict[str, str]:
        """Attribute name to value; valueless attributes map to ''."""
        body = attributes_text.strip()
        if body.endswith("/"):
            body = body[:-1]
        attributes: dict[str, str] = {}
        for match in _ATTRIBUTE.finditer(body):
            value = next((g for g in match.groups()[1:] if g is not None), "")
            attributes.setdefault(match.group(1), value)
        return attributes

    @staticmethod
    def _names_key(names: Iterable[str]) -> tuple[str, ...]:
        if isinstance(names, str):
            names = [names]
        key = tuple(sorted(set(names), key=lambda n: (-len(n), n)))
        if not key or any(not name for name in key):
            raise ValueError("Element names must be non-empty strings")
        return key

    @staticmethod
    @lru_cache(maxsize=256)
    def _opening_pattern(names: tuple[str, ...], flags: int) -> "re.Pattern[str]":
        alternation = "|".join(re.escape(name) for name in names)
        return re.compile(rf"<(?P<name>{alternation}){_ATTRS}>", flags)

    @staticmethod
    @lru_cache(maxsize=256)
    def _token_pattern(names: tuple[str, ...], flags: int) -> "re.Pattern[str]":
        alternation = "|".join(re.escape(name) for name in names)
        return re.compile(
            rf"(?P<open><(?P<oname>{alternation}){_ATTRS}>)"
            rf"|(?P<close></(?P<cname>{alternation})\s*>)",
            flags,
        )

    @staticmethod
    def _is_self_closing(attrs: str | None) -> bool:
        return bool(attrs) and attrs.rstrip().endswith("/")

    @staticmethod
    def _to_opening(match: "re.Match[str]") -> OpeningTag:
        attrs = match.group("attrs") or ""
        return OpeningTag(
            name=match.group("name"),
            start=match.start(),
            end=match.end(),
            text=match.group(0),
            attributes_text=attrs,
            self_closing=TagScanner._is_self_closing(attrs),
        )
