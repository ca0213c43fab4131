"""Result of an automatic rewrite of one document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class RewriteResult:
    """
    Transformed text plus the penance log, one line per change applied.

    changed=False always means new_text is the input text unchanged.
    failure_reason explains why a rewrite could not be attempted at all.
    """
    changed: bool
    new_text: str
    penance: tuple[str, ...] = ()
    failure_reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "penance", tuple(self.penance))

    @classmethod
    def rewritten(cls, original: str, new_text: str, penance: Iterable[str]) -> "RewriteResult":
        """Changed when the text differs from the original."""
        if new_text == original:
            return cls.unchanged(original)
        return cls(changed=True, new_text=new_text, penance=tuple(penance))

    @classmethod
    def unchanged(cls, original: str) -> "RewriteResult":
        return cls(changed=False, new_text=original)

    @classmethod
    def unrepentant(cls, original: str, reason: str) -> "RewriteResult":
        return cls(changed=False, new_text=original, failure_reason=reason)

    @property
    def failed(self) -> bool:
        return self.failure_reason is not None

    def then(self, other: "RewriteResult") -> "RewriteResult":
        """Chain a rewrite applied to this result's new_text."""
        if not other.changed:
            return self
        return RewriteResult(
            changed=True,
            new_text=other.new_text,
            penance=self.penance + other.penance,
        )
