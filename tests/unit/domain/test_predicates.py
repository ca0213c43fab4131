"""Unit tests for Predicates."""

import re

from code_commandments.domain.context import MatchRecord
from code_commandments.domain.predicates import Predicates


def _match(text: str, **captures: str) -> MatchRecord:
    return MatchRecord(rule_tag="r", text=text, line=1, offset=0, captures=captures)


class TestStringPredicates:

    def test_patterns(self) -> None:
        assert Predicates.matches_pattern(r"^\d+$")("123")
        assert Predicates.matches_pattern("abc", re.IGNORECASE)("xABCx")
        assert Predicates.matches_any_pattern(["^a", "b$"])("cab")
        assert not Predicates.matches_any_pattern(["^a", "b$"])("cba")

    def test_substring_predicates(self) -> None:
        assert Predicates.contains("log")("console.log")
        assert Predicates.contains_any(["x", "log"])("console.log")
        assert Predicates.starts_with("con")("console")
        assert Predicates.ends_with("le")("console")

    def test_emptiness(self) -> None:
        assert Predicates.is_empty()("")
        assert Predicates.is_not_empty()([1])
        assert Predicates.equals(3)(3)


class TestMatchPredicates:

    def test_has_group(self) -> None:
        assert Predicates.has_group("name")(_match("t", name="user"))
        assert not Predicates.has_group("name")(_match("t", name=""))
        assert not Predicates.has_group(1)(_match("t"))

    def test_group_matches(self) -> None:
        assert Predicates.group_matches("1", "^use")(_match("t", **{"1": "useStore"}))

    def test_match_text(self) -> None:
        assert Predicates.match_text(Predicates.contains("$t("))(_match("{{ $t('x') }}"))


class TestCombinators:

    def test_all_any_negate(self) -> None:
        positive = Predicates.matches_pattern(r"^\d+$")
        short = Predicates.matches_pattern(r"^.{0,3}$")
        assert Predicates.all_of(positive, short)("12")
        assert not Predicates.all_of(positive, short)("12345")
        assert Predicates.any_of(positive, short)("abc")
        assert Predicates.negate(positive)("abc")

    def test_constants(self) -> None:
        assert Predicates.always()(None)
        assert not Predicates.never()(None)
