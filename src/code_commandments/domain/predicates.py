"""Composable predicates for filter/reject stages and rule conditions."""

from __future__ import annotations

import re
from typing import Callable, Iterable

from code_commandments.domain.context import MatchRecord

Predicate = Callable[[object], bool]


class Predicates:
    """Factories returning single-argument predicates."""

    @staticmethod
    def matches_pattern(pattern: str, flags: int = 0) -> Callable[[str], bool]:
        compiled = re.compile(pattern, flags)
        return lambda value: compiled.search(value) is not None

    @staticmethod
    def matches_any_pattern(patterns: Iterable[str], flags: int = 0) -> Callable[[str], bool]:
        compiled = [re.compile(p, flags) for p in patterns]
        return lambda value: any(c.search(value) is not None for c in compiled)

    @staticmethod
    def contains(needle: str) -> Callable[[str], bool]:
        return lambda value: needle in value

    @staticmethod
    def contains_any(needles: Iterable[str]) -> Callable[[str], bool]:
        needles = tuple(needles)
        return lambda value: any(n in value for n in needles)

    @staticmethod
    def starts_with(prefix: str) -> Callable[[str], bool]:
        return lambda value: value.startswith(prefix)

    @staticmethod
    def ends_with(suffix: str) -> Callable[[str], bool]:
        return lambda value: value.endswith(suffix)

    @staticmethod
    def equals(expected: object) -> Predicate:
        return lambda value: value == expected

    @staticmethod
    def is_empty() -> Predicate:
        return lambda value: not value

    @staticmethod
    def is_not_empty() -> Predicate:
        return lambda value: bool(value)

    @staticmethod
    def has_group(key: str | int) -> Callable[[MatchRecord], bool]:
        """True when the match captured a non-empty value for the group."""
        return lambda match: match.has_capture(key)

    @staticmethod
    def group_matches(key: str | int, pattern: str) -> Callable[[MatchRecord], bool]:
        compiled = re.compile(pattern)
        return lambda match: compiled.search(match.capture(key)) is not None

    @staticmethod
    def match_text(inner: Callable[[str], bool]) -> Callable[[MatchRecord], bool]:
        """Lift a string predicate to test a match's text."""
        return lambda match: inner(match.text)

    @staticmethod
    def all_of(*predicates: Predicate) -> Predicate:
        return lambda value: all(p(value) for p in predicates)

    @staticmethod
    def any_of(*predicates: Predicate) -> Predicate:
        return lambda value: any(p(value) for p in predicates)

    @staticmethod
    def negate(predicate: Predicate) -> Predicate:
        return lambda value: not predicate(value)

    @staticmethod
    def always() -> Predicate:
        return lambda value: True

    @staticmethod
    def never() -> Predicate:
        return lambda value: False
