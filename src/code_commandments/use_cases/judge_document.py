"""Use Case: judge and repent one document against a battery of rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from code_commandments.domain.protocols import CommandmentProtocol, RepenterProtocol
from code_commandments.domain.rewrite import RewriteResult
from code_commandments.domain.verdict import Verdict
from code_commandments.use_cases.pipeline import Pipeline
from code_commandments.use_cases.rewriter import Condition, Describe, NestedTagRewriter, Transform

logger = logging.getLogger(__name__)


class PipelineCommandment:
    """A rule whose judgement is a pipeline run."""

    def __init__(
        self,
        name: str,
        pipeline: Pipeline,
        description: str = "",
        applicable_extensions: Iterable[str] = (),
    ) -> None:
        if not name:
            raise ValueError("A commandment needs a name")
        self._name = name
        self._pipeline = pipeline
        self._description = description
        self._extensions = tuple(ext.lower().lstrip(".") for ext in applicable_extensions)

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def applicable_extensions(self) -> tuple[str, ...]:
        return self._extensions

    def judge(self, path: str, text: str) -> Verdict:
        return self._pipeline.judge(path, text)


class TagRewriteRepenter:
    """A fix that rewrites qualifying elements, optionally only inside one region."""

    def __init__(
        self,
        name: str,
        rewriter: NestedTagRewriter,
        element_names: Iterable[str],
        condition: Condition,
        transform: Transform,
        describe: Describe | None = None,
        region: str | None = None,
        applicable_extensions: Iterable[str] = (),
    ) -> None:
        self._name = name
        self._rewriter = rewriter
        self._element_names = tuple(element_names)
        self._condition = condition
        self._transform = transform
        self._describe = describe
        self._region = region
        self._extensions = tuple(ext.lower().lstrip(".") for ext in applicable_extensions)

    @property
    def name(self) -> str:
        return self._name

    def can_repent(self, path: str) -> bool:
        return DocumentJudgment.applies(self._extensions, path)

    def repent(self, path: str, text: str) -> RewriteResult:
        if self._region is None:
            return self._rewriter.rewrite(
                text, self._element_names, self._condition, self._transform, self._describe)
        return self._rewriter.rewrite_region(
            text, self._region, self._element_names, self._condition, self._transform, self._describe)


@dataclass(frozen=True)
class DocumentJudgment:
    """Verdict of every applicable rule on one document, keyed by rule name."""
    path: str
    verdicts: Mapping[str, Verdict] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "verdicts", MappingProxyType(dict(self.verdicts)))

    @property
    def merged(self) -> Verdict:
        """All verdicts folded with Verdict.merge; pass when no rule applied."""
        verdicts = list(self.verdicts.values())
        if not verdicts:
            return Verdict.passed()
        merged = verdicts[0]
        for verdict in verdicts[1:]:
            merged = merged.merge(verdict)
        return merged

    @property
    def sinners(self) -> tuple[str, ...]:
        return tuple(name for name, verdict in self.verdicts.items() if verdict.has_violations)

    def format(self) -> str:
        lines = []
        for name, verdict in self.verdicts.items():
            if verdict.is_pass:
                continue
            lines.append(f"[{name}] {verdict.format(self.path)}")
        return "\n".join(lines)

    @staticmethod
    def applies(extensions: Sequence[str], path: str) -> bool:
        if not extensions:
            return True
        name = path.rsplit("/", 1)[-1]
        return "." in name and name.rsplit(".", 1)[-1].lower() in extensions


class JudgeDocumentUseCase:
    """Run every applicable rule against a document; a failing rule is reported as skipped."""

    def __init__(self, commandments: Sequence[CommandmentProtocol]) -> None:
        names = [c.name for c in commandments]
        if len(set(names)) != len(names):
            raise ValueError("Commandment names must be unique")
        self._commandments = tuple(commandments)

    def execute(self, path: str, text: str) -> DocumentJudgment:
        verdicts: dict[str, Verdict] = {}
        for commandment in self._commandments:
            if not DocumentJudgment.applies(commandment.applicable_extensions, path):
                continue
            try:
                verdicts[commandment.name] = commandment.judge(path, text)
            except Exception as exc:  # one broken rule must not abort the battery
                logger.warning("Commandment '%s' failed on %s: %s", commandment.name, path, exc)
                verdicts[commandment.name] = Verdict.skipped(f"Commandment '{commandment.name}' failed: {exc}")
        return DocumentJudgment(path=path, verdicts=verdicts)


class RepentDocumentUseCase:
    """Apply repenters in order, each to the previous one's output."""

    def __init__(self, repenters: Sequence[RepenterProtocol]) -> None:
        self._repenters = tuple(repenters)

    def execute(self, path: str, text: str) -> RewriteResult:
        result = RewriteResult.unchanged(text)
        for repenter in self._repenters:
            if not repenter.can_repent(path):
                continue
            try:
                step = repenter.repent(path, result.new_text)
            except Exception as exc:  # leave the text as the previous repenter left it
                logger.warning("Repenter '%s' failed on %s: %s", repenter.name, path, exc)
                continue
            if step.failed:
                logger.debug("Repenter '%s' did not apply to %s: %s", repenter.name, path, step.failure_reason)
            result = result.then(step)
        return result
