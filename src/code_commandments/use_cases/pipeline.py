"""Use Case: compose stages into a pipeline and judge a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Mapping, Sequence, Union

from code_commandments.domain.classification import BaseClassClassifier, EntityClassifier
from code_commandments.domain.config import EngineConfig
from code_commandments.domain.context import Context, MatchRecord
from code_commandments.domain.protocols import DeclarationParserProtocol
from code_commandments.domain.signals import Channel, Collect, ReturnVerdict, SkipRun, Stage
from code_commandments.domain.verdict import Finding, Verdict
from code_commandments.use_cases.matchers import StructuralMatcher, TextualMatcher
from code_commandments.use_cases.region_extractor import RegionExtractor
from code_commandments.use_cases.stages import (
    ContextPredicate,
    ExtractEntities,
    ExtractMembers,
    ExtractRegion,
    FilterCollection,
    FilterLongMembers,
    FindingResult,
    FindingsFromMatches,
    ForEachMatch,
    MapToFindings,
    MatchPatterns,
    MatchStructure,
    ParseDeclarations,
    ReturnPassWhen,
    SkipIfNoRegion,
    SkipWhen,
    Template,
)

logger = logging.getLogger(__name__)

Over = Union[str, Callable[[Context], Iterable[object]], None]


@dataclass(frozen=True)
class NamedStage:
    name: str
    fn: Stage


@dataclass(frozen=True)
class PipelineState:
    """
    State of one run. early_verdict and skip_reason are set at most once and
    never cleared; findings only ever accumulate.
    """
    context: Context
    violations: tuple[Finding, ...] = ()
    warnings: tuple[Finding, ...] = ()
    early_verdict: Verdict | None = None
    skip_reason: str | None = None

    @property
    def terminated(self) -> bool:
        return self.early_verdict is not None or self.skip_reason is not None

    def apply(self, outcome: object) -> "PipelineState":
        if isinstance(outcome, Context):
            return replace(self, context=outcome)
        if isinstance(outcome, ReturnVerdict):
            return replace(self, early_verdict=outcome.verdict)
        if isinstance(outcome, SkipRun):
            return replace(self, skip_reason=outcome.reason)
        if isinstance(outcome, Collect):
            if outcome.channel is Channel.WARNING:
                return replace(self, warnings=self.warnings + outcome.findings)
            return replace(self, violations=self.violations + outcome.findings)
        raise TypeError(f"Stage returned {type(outcome).__name__}; expected a Context or a stage signal")

    def judge(self) -> Verdict:
        """Early verdict, then skip, then violations, then warnings, then pass."""
        if self.early_verdict is not None:
            return self.early_verdict
        if self.skip_reason is not None:
            return Verdict.skipped(self.skip_reason)
        return Verdict.from_findings(self.violations, self.warnings)


class Pipeline:
    """
    Immutable, fluent composition of stages.

    Every builder method returns a new Pipeline, so a partially built pipeline
    can be shared and extended. Invalid composition raises TypeError or
    ValueError while building; running never raises for document content.
    A stage that fails mid-run ends the run as skipped.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        parser: DeclarationParserProtocol | None = None,
        stages: Sequence[NamedStage] = (),
        extractor: RegionExtractor | None = None,
    ) -> None:
        self._config = config or EngineConfig.default()
        self._parser = parser
        self._stages = tuple(stages)
        self._extractor = extractor or RegionExtractor(self._config)

    @classmethod
    def create(
        cls,
        config: EngineConfig | None = None,
        parser: DeclarationParserProtocol | None = None,
    ) -> "Pipeline":
        return cls(config=config, parser=parser)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    # Composition

    def pipe(self, stage: Stage, name: str | None = None) -> "Pipeline":
        if not callable(stage):
            raise TypeError(f"Stage must be callable, got {type(stage).__name__}")
        label = name or getattr(stage, "name", None) or getattr(stage, "__name__", type(stage).__name__)
        return Pipeline(
            config=self._config,
            parser=self._parser,
            stages=self._stages + (NamedStage(str(label), stage),),
            extractor=self._extractor,
        )

    def through(self, stages: Iterable[Stage]) -> "Pipeline":
        pipeline = self
        for stage in stages:
            pipeline = pipeline.pipe(stage)
        return pipeline

    def return_pass_when(self, predicate: ContextPredicate) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        return self.pipe(ReturnPassWhen(predicate))

    def return_pass_if_content_matches(self, pattern: str) -> "Pipeline":
        """Pass documents whose whole text matches pattern."""
        matcher = TextualMatcher(pattern)
        return self.pipe(ReturnPassWhen(lambda ctx: bool(matcher.match_document(ctx))),
                         name="return_pass_if_content_matches")

    def return_pass_if_region_matches(self, pattern: str, region: str | None = None) -> "Pipeline":
        """
        Pass documents whose region (active by default) matches pattern.

        A named region is extracted on demand.
        """
        matcher = TextualMatcher(pattern)
        extractor = self._extractor

        def region_matches(context: Context) -> bool:
            if region is not None:
                context, _ = extractor.resolve(context, region)
            return bool(matcher.match(context, region))

        return self.pipe(ReturnPassWhen(region_matches), name="return_pass_if_region_matches")

    def skip_when(self, predicate: ContextPredicate, reason: Union[str, Callable[[Context], str]]) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        if not reason:
            raise ValueError("A skip needs a reason")
        return self.pipe(SkipWhen(predicate, reason))

    def skip_if_no_region(self, *kinds: str, reason: str | None = None) -> "Pipeline":
        """Skip unless one of the kinds is present (behavior or presentation by default)."""
        kinds = kinds or ("behavior", "presentation")
        Pipeline._require_names(kinds)
        return self.pipe(SkipIfNoRegion(tuple(kinds), self._extractor, reason))

    def only_paths_containing(self, *fragments: str) -> "Pipeline":
        """Pass every document whose path contains none of the fragments."""
        Pipeline._require_names(fragments)
        return self.pipe(ReturnPassWhen(lambda ctx: not ctx.path_contains(*fragments)),
                         name="only_paths_containing")

    def exclude_paths_containing(self, *fragments: str) -> "Pipeline":
        Pipeline._require_names(fragments)
        return self.pipe(ReturnPassWhen(lambda ctx: ctx.path_contains(*fragments)),
                         name="exclude_paths_containing")

    def extract_region(self, kind: str, required: bool = False) -> "Pipeline":
        Pipeline._require_names([kind])
        return self.pipe(ExtractRegion(kind, self._extractor, required=required))

    def in_region(self, kind: str) -> "Pipeline":
        """Extract the region and pass documents that do not have it."""
        Pipeline._require_names([kind])
        return self.pipe(ExtractRegion(kind, self._extractor, pass_if_missing=True))

    def in_behavior(self) -> "Pipeline":
        return self.in_region("behavior")

    def in_presentation(self) -> "Pipeline":
        return self.in_region("presentation")

    def parse_declarations(
        self,
        parser: DeclarationParserProtocol | None = None,
        required: bool = False,
    ) -> "Pipeline":
        chosen = parser or self._parser
        if chosen is None:
            raise ValueError("parse_declarations needs a declaration parser")
        return self.pipe(ParseDeclarations(chosen, required=required))

    def match_patterns(
        self,
        patterns: Union[str, Mapping[str, str]],
        region: str | None = None,
        per_line: bool = False,
        flags: int = 0,
    ) -> "Pipeline":
        matcher = TextualMatcher(patterns, per_line=per_line, flags=flags)
        return self.pipe(MatchPatterns(matcher, region=region, extractor=self._extractor))

    def match_all(self, patterns: Union[str, Mapping[str, str]], per_line: bool = False, flags: int = 0) -> "Pipeline":
        """Match the whole document, regardless of the active region."""
        matcher = TextualMatcher(patterns, per_line=per_line, flags=flags)
        return self.pipe(MatchPatterns(matcher, whole_document=True))

    def match_structure(
        self,
        predicate: Callable[[object], bool],
        rule_tag: str = "structure",
        scope: str = "members",
    ) -> "Pipeline":
        return self.pipe(MatchStructure(StructuralMatcher(predicate, rule_tag=rule_tag, scope=scope)))

    def extract_entities(self, classifier: EntityClassifier | None = None) -> "Pipeline":
        """Copy entities from the tree; classify with base_class_map when configured."""
        if classifier is None and self._config.base_class_map:
            classifier = BaseClassClassifier(self._config.base_class_map)
        return self.pipe(ExtractEntities(classifier))

    def extract_members(
        self,
        only_public: bool = False,
        exclude_constructor: bool = False,
        exclude_magic: bool = False,
    ) -> "Pipeline":
        return self.pipe(ExtractMembers(only_public, exclude_constructor, exclude_magic))

    def filter_long_members(self, max_lines: int | None = None) -> "Pipeline":
        return self.pipe(FilterLongMembers(max_lines or self._config.long_member_threshold))

    def filter_matches(self, predicate: Callable[[MatchRecord], bool]) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        return self.pipe(FilterCollection("matches", predicate))

    def reject_matches(self, predicate: Callable[[MatchRecord], bool]) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        return self.pipe(FilterCollection("matches", predicate, keep=False))

    def filter_entities(self, predicate: Callable[[object], bool]) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        return self.pipe(FilterCollection("entities", predicate))

    def reject_entities(self, predicate: Callable[[object], bool]) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        return self.pipe(FilterCollection("entities", predicate, keep=False))

    def filter_category(self, category: str) -> "Pipeline":
        return self.pipe(FilterCollection("entities", lambda entity: entity.category == category),
                         name=f"filter_category({category})")

    def filter_members(self, predicate: Callable[[object], bool]) -> "Pipeline":
        Pipeline._require_callable(predicate, "predicate")
        return self.pipe(FilterCollection("members", predicate))

    def map_to_findings(self, fn: Callable[[object], FindingResult], over: Over = None) -> "Pipeline":
        Pipeline._require_callable(fn, "fn")
        return self.pipe(MapToFindings(fn, over, Channel.VIOLATION))

    def map_to_warnings(self, fn: Callable[[object], FindingResult], over: Over = None) -> "Pipeline":
        Pipeline._require_callable(fn, "fn")
        return self.pipe(MapToFindings(fn, over, Channel.WARNING))

    def for_each_match(self, fn: Callable[[MatchRecord, Context], FindingResult]) -> "Pipeline":
        Pipeline._require_callable(fn, "fn")
        return self.pipe(ForEachMatch(fn))

    def findings_from_matches(self, message: Template, suggestion: Template = None) -> "Pipeline":
        return self.pipe(FindingsFromMatches(message, suggestion, Channel.VIOLATION))

    def warnings_from_matches(self, message: Template, suggestion: Template = None) -> "Pipeline":
        return self.pipe(FindingsFromMatches(message, suggestion, Channel.WARNING))

    def add_findings(self, findings: Iterable[Finding]) -> "Pipeline":
        collected = Collect.violations(findings)
        return self.pipe(lambda ctx: collected, name="add_findings")

    # Execution

    def judge(self, path: str, text: str) -> Verdict:
        return self.run(Context.from_document(
            path, text, self._config.snippet_length, self._config.snippet_lead))

    def run(self, context: Context) -> Verdict:
        return self.run_state(context).judge()

    def run_state(self, context: Context) -> PipelineState:
        """Run every stage and return the final state, for diagnostics as much as judging."""
        excluded = self._config.excluded_path_fragments
        if excluded and context.path_contains(*excluded):
            return PipelineState(context=context, early_verdict=Verdict.passed())
        state = PipelineState(context=context)
        for stage in self._stages:
            if state.terminated:
                break
            try:
                state = state.apply(stage.fn(state.context))
            except Exception as exc:  # stage failures end the run as data
                logger.warning("Stage '%s' failed on %s: %s", stage.name, context.path, exc)
                state = replace(state, skip_reason=f"Stage '{stage.name}' failed: {exc}")
        return state

    @staticmethod
    def _require_callable(value: object, label: str) -> None:
        if not callable(value):
            raise TypeError(f"{label} must be callable, got {type(value).__name__}")

    @staticmethod
    def _require_names(names: Iterable[str]) -> None:
        names = list(names)
        if not names or any(not isinstance(name, str) or not name for name in names):
            raise ValueError("Expected one or more non-empty names")
