"""Entity classification supplied to stages instead of runtime reflection."""

from __future__ import annotations

from typing import Callable, Mapping, Optional

from code_commandments.domain.context import DeclaredEntity

EntityClassifier = Callable[[DeclaredEntity], Optional[str]]


class BaseClassClassifier:
    """
    Classify an entity by the base classes it names.

    lookup maps a base class name (bare or dotted) to a category, e.g.
    {"Model": "model", "django.db.models.Model": "model"}. The first base with
    a known category wins; bases are matched by full name and then by their
    last dotted segment.
    """

    def __init__(self, lookup: Mapping[str, str]) -> None:
        self._lookup = dict(lookup)

    def __call__(self, entity: DeclaredEntity) -> str | None:
        for base in entity.bases:
            if base in self._lookup:
                return self._lookup[base]
            short = base.rsplit(".", 1)[-1]
            if short in self._lookup:
                return self._lookup[short]
        return None


class NameSuffixClassifier:
    """Classify by entity name suffix, e.g. {"Controller": "controller"}."""

    def __init__(self, suffixes: Mapping[str, str]) -> None:
        self._suffixes = dict(suffixes)

    def __call__(self, entity: DeclaredEntity) -> str | None:
        for suffix, category in self._suffixes.items():
            if entity.name.endswith(suffix):
                return category
        return None
