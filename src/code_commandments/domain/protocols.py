from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from code_commandments.domain.context import DeclarationTree
    from code_commandments.domain.rewrite import RewriteResult
    from code_commandments.domain.verdict import Verdict


class DeclarationParserProtocol(Protocol):
    """Turns document text into a declaration tree, or None when it cannot be parsed."""

    def parse(self, path: str, text: str) -> Optional["DeclarationTree"]:
        ...


class CommandmentProtocol(Protocol):
    """A rule: judges one document and reports a verdict."""

    @property
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    @property
    def applicable_extensions(self) -> tuple[str, ...]:
        """Lower-case extensions without the dot; empty means every document."""
        ...

    def judge(self, path: str, text: str) -> "Verdict":
        ...


class RepenterProtocol(Protocol):
    """A rule that can also fix what it reports."""

    @property
    def name(self) -> str:
        ...

    def can_repent(self, path: str) -> bool:
        ...

    def repent(self, path: str, text: str) -> "RewriteResult":
        ...
