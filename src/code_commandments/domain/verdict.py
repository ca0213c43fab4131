"""Verdict model: the four-state outcome of judging one document."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class VerdictKind(Enum):
    """Outcome of a pipeline run."""
    PASS = "pass"
    VIOLATIONS = "violations"
    WARNINGS = "warnings"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Finding:
    """One reported issue. line is None for document-wide findings."""
    line: int | None
    message: str
    snippet: str | None = None
    suggestion: str | None = None

    @classmethod
    def at(
        cls,
        line: int,
        message: str,
        snippet: str | None = None,
        suggestion: str | None = None,
    ) -> "Finding":
        return cls(line=line, message=message, snippet=snippet, suggestion=suggestion)

    @classmethod
    def general(cls, message: str, suggestion: str | None = None) -> "Finding":
        """A finding not tied to a specific line."""
        return cls(line=None, message=message, suggestion=suggestion)

    def format(self, path: str) -> str:
        """Render as 'path:line: message' with the snippet and suggestion indented below."""
        location = f"{path}:{self.line}" if self.line is not None else path
        out = f"{location}: {self.message}"
        if self.snippet:
            out += f"\n    > {self.snippet}"
        if self.suggestion:
            out += f"\n    Suggestion: {self.suggestion}"
        return out

    def to_dict(self) -> dict[str, object]:
        return {
            "line": self.line,
            "message": self.message,
            "snippet": self.snippet,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class Verdict:
    """
    Terminal, immutable result of one pipeline run.

    Shape is validated on construction: violations and warnings carry at least
    one finding, pass and skipped carry none, and only skipped carries a reason.
    Prefer the factories over the constructor.
    """
    kind: VerdictKind
    findings: tuple[Finding, ...] = ()
    skip_reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "findings", tuple(self.findings))
        if self.kind in (VerdictKind.VIOLATIONS, VerdictKind.WARNINGS) and not self.findings:
            raise ValueError(f"A {self.kind.value} verdict requires at least one finding")
        if self.kind in (VerdictKind.PASS, VerdictKind.SKIPPED) and self.findings:
            raise ValueError(f"A {self.kind.value} verdict cannot carry findings")
        if self.kind is not VerdictKind.SKIPPED and self.skip_reason is not None:
            raise ValueError("Only a skipped verdict carries a skip reason")

    @classmethod
    def passed(cls) -> "Verdict":
        return cls(kind=VerdictKind.PASS)

    @classmethod
    def violations(cls, findings: Iterable[Finding]) -> "Verdict":
        return cls(kind=VerdictKind.VIOLATIONS, findings=tuple(findings))

    @classmethod
    def warnings(cls, findings: Iterable[Finding]) -> "Verdict":
        return cls(kind=VerdictKind.WARNINGS, findings=tuple(findings))

    @classmethod
    def skipped(cls, reason: str) -> "Verdict":
        return cls(kind=VerdictKind.SKIPPED, skip_reason=reason)

    @classmethod
    def from_findings(
        cls,
        violations: Iterable[Finding] = (),
        warnings: Iterable[Finding] = (),
    ) -> "Verdict":
        """Violations outrank warnings; pass when neither is present."""
        violations = tuple(violations)
        if violations:
            return cls.violations(violations)
        warnings = tuple(warnings)
        if warnings:
            return cls.warnings(warnings)
        return cls.passed()

    @property
    def is_pass(self) -> bool:
        return self.kind is VerdictKind.PASS

    @property
    def is_skipped(self) -> bool:
        return self.kind is VerdictKind.SKIPPED

    @property
    def has_violations(self) -> bool:
        return self.kind is VerdictKind.VIOLATIONS

    @property
    def has_warnings(self) -> bool:
        return self.kind is VerdictKind.WARNINGS

    def merge(self, other: "Verdict") -> "Verdict":
        """
        Combine the verdicts of two rules on the same document.

        Findings of both are pooled with the usual precedence. The result is
        skipped only when both inputs are skipped; the first reason is kept.
        """
        if self.is_skipped and other.is_skipped:
            return self
        violations = [f for v in (self, other) if v.has_violations for f in v.findings]
        warnings = [f for v in (self, other) if v.has_warnings for f in v.findings]
        return Verdict.from_findings(violations, warnings)

    def format(self, path: str) -> str:
        if self.is_skipped:
            return f"{path}: skipped ({self.skip_reason})"
        if self.is_pass:
            return f"{path}: ok"
        return "\n".join(finding.format(path) for finding in self.findings)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "findings": [finding.to_dict() for finding in self.findings],
            "skip_reason": self.skip_reason,
        }
