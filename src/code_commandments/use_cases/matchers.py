"""Textual and structural matchers producing MatchRecords for a Context."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterator, Mapping, Union

from code_commandments.domain.context import (
    Context,
    DeclarationTree,
    DeclaredEntity,
    MatchRecord,
    MemberRef,
    StatementRef,
)
from code_commandments.domain.text import TextLocator

logger = logging.getLogger(__name__)

PatternSpec = Union[str, Mapping[str, str]]
StructuralNode = Union[DeclaredEntity, MemberRef, StatementRef]
OffsetMap = Callable[[int], int]


class TextualMatcher:
    """
    Run named regular expressions over a document or one of its regions.

    Patterns compile at construction, so an invalid pattern fails there with
    re.error. Offsets found in a region are translated to absolute offsets
    before lines are counted, so lines always refer to the whole document.
    """

    def __init__(self, patterns: PatternSpec, per_line: bool = False, flags: int = 0) -> None:
        if isinstance(patterns, str):
            patterns = {patterns: patterns}
        if not patterns:
            raise ValueError("At least one pattern is required")
        self._patterns: dict[str, re.Pattern[str]] = {
            name: re.compile(pattern, flags) for name, pattern in patterns.items()
        }
        self._per_line = per_line

    @property
    def pattern_names(self) -> tuple[str, ...]:
        return tuple(self._patterns)

    def match(self, context: Context, region: str | None = None) -> list[MatchRecord]:
        """
        Match the named region, else the active region, else the whole text.

        A region known to be missing yields no matches.
        """
        kind = region if region is not None else context.active_region
        if kind is None:
            return self.match_document(context)
        found = context.region(kind)
        if found is None:
            return []
        return self._safe_scan(context, found.content, found.to_absolute)

    def match_document(self, context: Context) -> list[MatchRecord]:
        return self._safe_scan(context, context.text, lambda offset: offset)

    def _safe_scan(self, context: Context, scanned: str, to_absolute: OffsetMap) -> list[MatchRecord]:
        try:
            if self._per_line:
                return list(self._scan_lines(context, scanned, to_absolute))
            return sorted(self._scan(context, scanned, to_absolute), key=lambda m: m.offset or 0)
        except Exception as exc:  # matcher failures degrade to no matches
            logger.warning("Pattern matching failed for %s: %s", context.path, exc)
            return []

    def _scan(self, context: Context, scanned: str, to_absolute: OffsetMap) -> Iterator[MatchRecord]:
        for name, pattern in self._patterns.items():
            for found in pattern.finditer(scanned):
                offset = to_absolute(found.start())
                yield MatchRecord(
                    rule_tag=name,
                    text=found.group(0),
                    line=TextLocator.line_number(context.text, offset),
                    offset=offset,
                    captures=TextualMatcher.captures_of(found),
                    snippet=context.snippet_at(offset),
                    pattern=pattern.pattern,
                )

    def _scan_lines(self, context: Context, scanned: str, to_absolute: OffsetMap) -> Iterator[MatchRecord]:
        """First occurrence of each pattern on each line; the snippet is the trimmed line."""
        line_start = 0
        for line in scanned.split("\n"):
            for name, pattern in self._patterns.items():
                found = pattern.search(line)
                if found is None:
                    continue
                offset = to_absolute(line_start + found.start())
                yield MatchRecord(
                    rule_tag=name,
                    text=found.group(0),
                    line=TextLocator.line_number(context.text, offset),
                    offset=offset,
                    captures=TextualMatcher.captures_of(found),
                    snippet=line.strip(),
                    pattern=pattern.pattern,
                )
            line_start += len(line) + 1

    @staticmethod
    def captures_of(found: "re.Match[str]") -> dict[str, str]:
        """Numbered groups keyed "1", "2", ... plus named groups; unmatched groups are ''."""
        captures = {str(i): value or "" for i, value in enumerate(found.groups(), start=1)}
        for name, value in found.groupdict().items():
            captures[name] = value or ""
        return captures


class StructuralMatcher:
    """
    Walk a declaration tree and record every node a predicate accepts.

    scope selects what the predicate receives: DeclaredEntity ("entities"),
    MemberRef ("members") or StatementRef ("statements"). Records carry no
    offset; their line is the node's own line. A missing tree or a failing
    predicate yields no matches.
    """

    SCOPES = ("entities", "members", "statements")

    def __init__(
        self,
        predicate: Callable[[StructuralNode], bool],
        rule_tag: str = "structure",
        scope: str = "members",
    ) -> None:
        if not callable(predicate):
            raise TypeError("predicate must be callable")
        if scope not in self.SCOPES:
            raise ValueError(f"scope must be one of {', '.join(self.SCOPES)}, got {scope!r}")
        self._predicate = predicate
        self._rule_tag = rule_tag
        self._scope = scope

    def match(self, context: Context) -> list[MatchRecord]:
        tree = context.declaration_tree
        if tree is None:
            return []
        try:
            return [self._record(node) for node in self._walk(tree) if self._predicate(node)]
        except Exception as exc:  # predicate failures degrade to no matches
            logger.warning("Structural matching failed for %s: %s", context.path, exc)
            return []

    def _walk(self, tree: DeclarationTree) -> Iterator[StructuralNode]:
        for entity in tree.entities:
            if self._scope == "entities":
                yield entity
                continue
            for member in entity.members:
                if self._scope == "members":
                    yield MemberRef(entity=entity, member=member)
                    continue
                for statement in member.statements:
                    yield StatementRef(entity=entity, member=member, statement=statement)

    def _record(self, node: StructuralNode) -> MatchRecord:
        if isinstance(node, DeclaredEntity):
            return MatchRecord(
                rule_tag=self._rule_tag,
                text=node.name,
                line=node.line,
                captures={"entity": node.name},
            )
        if isinstance(node, MemberRef):
            return MatchRecord(
                rule_tag=self._rule_tag,
                text=node.qualified_name,
                line=node.member.line,
                captures={"entity": node.entity.name, "member": node.member.name},
            )
        return MatchRecord(
            rule_tag=self._rule_tag,
            text=node.statement.source,
            line=node.statement.line,
            captures={"entity": node.entity.name, "member": node.member.name},
        )
