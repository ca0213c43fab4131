"""Signals a stage may return instead of a new Context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Union

from code_commandments.domain.context import Context
from code_commandments.domain.verdict import Finding, Verdict


class Channel(Enum):
    """Finding channel: must-fix violations or should-consider warnings."""
    VIOLATION = "violation"
    WARNING = "warning"


@dataclass(frozen=True)
class ReturnVerdict:
    """End the run now with this verdict."""
    verdict: Verdict


@dataclass(frozen=True)
class SkipRun:
    """End the run now as skipped."""
    reason: str


@dataclass(frozen=True)
class Collect:
    """Append findings to a channel; the context passes through unchanged."""
    findings: tuple[Finding, ...]
    channel: Channel = Channel.VIOLATION

    def __post_init__(self) -> None:
        object.__setattr__(self, "findings", tuple(self.findings))

    @classmethod
    def violations(cls, findings: Iterable[Finding]) -> "Collect":
        return cls(findings=tuple(findings), channel=Channel.VIOLATION)

    @classmethod
    def warnings(cls, findings: Iterable[Finding]) -> "Collect":
        return cls(findings=tuple(findings), channel=Channel.WARNING)


StageSignal = Union[ReturnVerdict, SkipRun, Collect]
StageOutcome = Union[Context, ReturnVerdict, SkipRun, Collect]
Stage = Callable[[Context], StageOutcome]
