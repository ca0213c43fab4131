"""
Built-in pipeline stages.

Every stage is a callable Context -> Context | StageSignal with a readable
name. Stages never mutate the context they receive; collection filters build a
new Context with replaced tuples.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Union

from code_commandments.domain.classification import EntityClassifier
from code_commandments.domain.context import Context, DeclaredEntity, DeclaredMember, MatchRecord, MemberRef
from code_commandments.domain.protocols import DeclarationParserProtocol
from code_commandments.domain.signals import Channel, Collect, ReturnVerdict, SkipRun, StageOutcome
from code_commandments.domain.verdict import Finding, Verdict
from code_commandments.use_cases.matchers import StructuralMatcher, TextualMatcher
from code_commandments.use_cases.region_extractor import RegionExtractor

ContextPredicate = Callable[[Context], bool]
FindingResult = Union[Finding, Iterable[Finding], None]
Template = Union[str, Callable[[MatchRecord], str], None]

COLLECTIONS = ("matches", "entities", "members")
_FIELD = re.compile(r"\{(\w+)\}")


class StageSupport:
    """Helpers shared by collecting stages."""

    @staticmethod
    def normalize_findings(result: object) -> tuple[Finding, ...]:
        """Accept a Finding, an iterable of Findings or None."""
        if result is None:
            return ()
        if isinstance(result, Finding):
            return (result,)
        if isinstance(result, (str, bytes)):
            raise TypeError("Expected Finding, iterable of Finding or None, got a string")
        findings = tuple(result)  # type: ignore[arg-type]
        for finding in findings:
            if not isinstance(finding, Finding):
                raise TypeError(f"Expected Finding, got {type(finding).__name__}")
        return findings

    @staticmethod
    def collection(context: Context, name: str) -> tuple[object, ...]:
        return getattr(context, name)

    @staticmethod
    def replace_collection(context: Context, name: str, items: Iterable[object]) -> Context:
        if name == "matches":
            return context.with_matches(items)  # type: ignore[arg-type]
        if name == "entities":
            return context.with_entities(items)  # type: ignore[arg-type]
        return context.with_members(items)  # type: ignore[arg-type]

    @staticmethod
    def render(template: Template, match: MatchRecord) -> str | None:
        """
        Fill a string template from the match, or call it with the match.

        {text}, {line}, {rule_tag} and any capture ({1}, {name}) are replaced;
        unknown fields stay literal.
        """
        if template is None:
            return None
        if callable(template):
            return template(match)
        fields = dict(match.captures)
        fields.update(text=match.text, line=str(match.line), rule_tag=match.rule_tag)
        return _FIELD.sub(lambda m: fields.get(m.group(1), m.group(0)), template)

    @staticmethod
    def validate_collection(name: str) -> str:
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection {name!r}; expected one of {', '.join(COLLECTIONS)}")
        return name


class ReturnPassWhen:
    def __init__(self, predicate: ContextPredicate) -> None:
        self._predicate = predicate
        self.name = "return_pass_when"

    def __call__(self, context: Context) -> StageOutcome:
        if self._predicate(context):
            return ReturnVerdict(Verdict.passed())
        return context


class SkipWhen:
    def __init__(self, predicate: ContextPredicate, reason: Union[str, Callable[[Context], str]]) -> None:
        self._predicate = predicate
        self._reason = reason
        self.name = "skip_when"

    def __call__(self, context: Context) -> StageOutcome:
        if not self._predicate(context):
            return context
        reason = self._reason(context) if callable(self._reason) else self._reason
        return SkipRun(reason)


class SkipIfNoRegion:
    """Skip unless at least one of the region kinds is present; found regions are cached."""

    def __init__(self, kinds: tuple[str, ...], extractor: RegionExtractor, reason: str | None = None) -> None:
        self._kinds = kinds
        self._extractor = extractor
        self._reason = reason or f"No {' or '.join(kinds)} region"
        self.name = f"skip_if_no_region({', '.join(kinds)})"

    def __call__(self, context: Context) -> StageOutcome:
        found = False
        for kind in self._kinds:
            context, region = self._extractor.resolve(context, kind)
            found = found or region is not None
        if not found:
            return SkipRun(self._reason)
        return context


class ExtractRegion:
    """
    Extract a region and make it the target of textual matching.

    When missing: skip if required, pass if pass_if_missing, otherwise carry
    on with the missing region active so textual matches find nothing.
    """

    def __init__(
        self,
        kind: str,
        extractor: RegionExtractor,
        required: bool = False,
        pass_if_missing: bool = False,
    ) -> None:
        self._kind = kind
        self._extractor = extractor
        self._required = required
        self._pass_if_missing = pass_if_missing
        self.name = f"extract_region({kind})"

    def __call__(self, context: Context) -> StageOutcome:
        context, region = self._extractor.resolve(context, self._kind)
        if region is None:
            if self._pass_if_missing:
                return ReturnVerdict(Verdict.passed())
            if self._required:
                return SkipRun(f"No {self._kind} region")
        return context.with_active_region(self._kind)


class ParseDeclarations:
    def __init__(self, parser: DeclarationParserProtocol, required: bool = False) -> None:
        self._parser = parser
        self._required = required
        self.name = "parse_declarations"

    def __call__(self, context: Context) -> StageOutcome:
        if context.declaration_tree is not None:
            return context
        tree = self._parser.parse(context.path, context.text)
        if tree is None and self._required:
            return SkipRun("Document could not be parsed")
        return context.with_declaration_tree(tree)


class MatchPatterns:
    """Replace the context's matches with those of a textual matcher; a named region is extracted on demand."""

    def __init__(
        self,
        matcher: TextualMatcher,
        region: str | None = None,
        whole_document: bool = False,
        extractor: RegionExtractor | None = None,
    ) -> None:
        self._matcher = matcher
        self._region = region
        self._whole_document = whole_document
        self._extractor = extractor
        self.name = f"match_patterns({', '.join(matcher.pattern_names)})"

    def __call__(self, context: Context) -> StageOutcome:
        if self._whole_document:
            return context.with_matches(self._matcher.match_document(context))
        if self._region is not None and self._extractor is not None:
            context, _ = self._extractor.resolve(context, self._region)
        return context.with_matches(self._matcher.match(context, self._region))


class MatchStructure:
    def __init__(self, matcher: StructuralMatcher) -> None:
        self._matcher = matcher
        self.name = "match_structure"

    def __call__(self, context: Context) -> StageOutcome:
        return context.with_matches(self._matcher.match(context))


class ExtractEntities:
    """Copy entities from the declaration tree, classifying each when a classifier is given."""

    def __init__(self, classifier: EntityClassifier | None = None) -> None:
        self._classifier = classifier
        self.name = "extract_entities"

    def __call__(self, context: Context) -> StageOutcome:
        tree = context.declaration_tree
        if tree is None:
            return context.with_entities(())
        entities: Iterable[DeclaredEntity] = tree.entities
        if self._classifier is not None:
            entities = [entity.with_category(self._classifier(entity)) for entity in entities]
        return context.with_entities(entities)


class ExtractMembers:
    """Members of the extracted entities."""

    def __init__(self, only_public: bool = False, exclude_constructor: bool = False, exclude_magic: bool = False) -> None:
        self._only_public = only_public
        self._exclude_constructor = exclude_constructor
        self._exclude_magic = exclude_magic
        self.name = "extract_members"

    def __call__(self, context: Context) -> StageOutcome:
        members = [
            MemberRef(entity=entity, member=member)
            for entity in context.entities
            for member in entity.members
            if self._keep(member)
        ]
        return context.with_members(members)

    def _keep(self, member: DeclaredMember) -> bool:
        if self._only_public and not member.is_public:
            return False
        if self._exclude_constructor and member.is_constructor:
            return False
        if self._exclude_magic and member.is_magic and not member.is_constructor:
            return False
        return True


class FilterLongMembers:
    def __init__(self, max_lines: int) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be positive")
        self._max_lines = max_lines
        self.name = f"filter_long_members({max_lines})"

    def __call__(self, context: Context) -> StageOutcome:
        return context.with_members(
            ref for ref in context.members if ref.member.line_count > self._max_lines
        )


class FilterCollection:
    """Keep (or, with keep=False, drop) the items of a collection a predicate accepts."""

    def __init__(self, collection: str, predicate: Callable[[object], bool], keep: bool = True) -> None:
        self._collection = StageSupport.validate_collection(collection)
        self._predicate = predicate
        self._keep = keep
        self.name = f"{'filter' if keep else 'reject'}_{collection}"

    def __call__(self, context: Context) -> StageOutcome:
        items = StageSupport.collection(context, self._collection)
        kept = [item for item in items if bool(self._predicate(item)) == self._keep]
        return StageSupport.replace_collection(context, self._collection, kept)


class MapToFindings:
    """
    Call fn once with the context, or once per item of a collection.

    over is None (context), a collection name, or a selector returning the
    items to visit.
    """

    def __init__(
        self,
        fn: Callable[[object], FindingResult],
        over: Union[str, Callable[[Context], Iterable[object]], None] = None,
        channel: Channel = Channel.VIOLATION,
    ) -> None:
        if isinstance(over, str):
            StageSupport.validate_collection(over)
        elif over is not None and not callable(over):
            raise TypeError("over must be None, a collection name or a callable")
        self._fn = fn
        self._over = over
        self._channel = channel
        self.name = f"map_to_{'findings' if channel is Channel.VIOLATION else 'warnings'}"

    def __call__(self, context: Context) -> StageOutcome:
        if self._over is None:
            findings = StageSupport.normalize_findings(self._fn(context))
        else:
            items = (
                StageSupport.collection(context, self._over)
                if isinstance(self._over, str)
                else self._over(context)
            )
            findings = tuple(
                finding for item in items for finding in StageSupport.normalize_findings(self._fn(item))
            )
        return Collect(findings=findings, channel=self._channel)


class ForEachMatch:
    def __init__(self, fn: Callable[[MatchRecord, Context], FindingResult], channel: Channel = Channel.VIOLATION) -> None:
        self._fn = fn
        self._channel = channel
        self.name = "for_each_match"

    def __call__(self, context: Context) -> StageOutcome:
        findings = tuple(
            finding
            for match in context.matches
            for finding in StageSupport.normalize_findings(self._fn(match, context))
        )
        return Collect(findings=findings, channel=self._channel)


class FindingsFromMatches:
    """One finding per match, from a message and optional suggestion template."""

    def __init__(self, message: Template, suggestion: Template = None, channel: Channel = Channel.VIOLATION) -> None:
        if message is None or not (isinstance(message, str) or callable(message)):
            raise TypeError("message must be a string or a callable of the match")
        if suggestion is not None and not (isinstance(suggestion, str) or callable(suggestion)):
            raise TypeError("suggestion must be a string, a callable of the match or None")
        self._message = message
        self._suggestion = suggestion
        self._channel = channel
        self.name = "findings_from_matches"

    def __call__(self, context: Context) -> StageOutcome:
        findings = tuple(
            Finding(
                line=match.line,
                message=StageSupport.render(self._message, match) or "",
                snippet=match.snippet,
                suggestion=StageSupport.render(self._suggestion, match),
            )
            for match in context.matches
        )
        return Collect(findings=findings, channel=self._channel)
