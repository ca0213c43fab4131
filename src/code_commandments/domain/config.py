"""Engine configuration. Immutable value object built from a plain mapping."""

from __future__ import annotations

import logging

from code_commandments.domain.text import TextLocator

logger = logging.getLogger(__name__)


class EngineConfig:
    """
    Immutable configuration for pipelines, stages and the rewriter.

    Created from a mapping (typically the [tool.code-commandments] table a
    runner has already loaded). The engine never reads configuration files and
    never consults global state; every component receives an EngineConfig
    explicitly, so concurrent runs with different settings cannot interfere.
    """

    DEFAULT_MAX_REWRITE_PASSES = 10
    DEFAULT_LONG_MEMBER_THRESHOLD = 20

    KNOWN_KEYS = frozenset({
        "max_rewrite_passes",
        "snippet_length",
        "snippet_lead",
        "excluded_path_fragments",
        "behavior_tag",
        "presentation_tag",
        "long_member_threshold",
        "case_sensitive_tags",
        "base_class_map",
    })

    def __init__(self, config_dict: dict[str, object] | None = None) -> None:
        """Set config once at construction. No mutable state after init."""
        self._config: dict[str, object] = dict(config_dict or {})
        if self._config:
            self.validate_config(self._config)
        self._base_class_lookup = EngineConfig.invert_map(
            self._config.get("base_class_map", {}))

    @classmethod
    def default(cls) -> "EngineConfig":
        return cls({})

    def validate_config(self, config: dict[str, object]) -> None:
        """Raise ValueError for values no component could work with."""
        for key in ("max_rewrite_passes", "snippet_length", "long_member_threshold"):
            if key not in config:
                continue
            value = config[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"'{key}' must be a positive integer, got {value!r}")
        lead = config.get("snippet_lead")
        if lead is not None and (isinstance(lead, bool) or not isinstance(lead, int) or lead < 0):
            raise ValueError(f"'snippet_lead' must be a non-negative integer, got {lead!r}")
        for key in ("behavior_tag", "presentation_tag"):
            value = config.get(key)
            if value is not None and (not isinstance(value, str) or not value):
                raise ValueError(f"'{key}' must be a non-empty string, got {value!r}")
        unknown = set(config) - self.KNOWN_KEYS
        if unknown:
            logger.warning("Configuration Warning: unknown keys ignored: %s",
                           ", ".join(sorted(unknown)))

    @property
    def config(self) -> dict[str, object]:
        """Return a copy of the loaded configuration."""
        return dict(self._config)

    @property
    def max_rewrite_passes(self) -> int:
        """Hard cap on rewrite passes; reaching it is a normal termination."""
        return int(self._config.get("max_rewrite_passes", self.DEFAULT_MAX_REWRITE_PASSES))

    @property
    def snippet_length(self) -> int:
        return int(self._config.get("snippet_length", TextLocator.DEFAULT_SNIPPET_LENGTH))

    @property
    def snippet_lead(self) -> int:
        """Characters of context shown before a match in its snippet."""
        return int(self._config.get("snippet_lead", TextLocator.SNIPPET_LEAD))

    @property
    def excluded_path_fragments(self) -> tuple[str, ...]:
        """
        Path fragments whose documents always pass.

        Intended for the rule package's own sources, which contain the very
        patterns its rules look for.
        """
        raw = self._config.get("excluded_path_fragments", [])
        if isinstance(raw, (list, tuple)):
            return tuple(str(x) for x in raw if isinstance(x, str) and x)
        return ()

    @property
    def behavior_tag(self) -> str:
        return str(self._config.get("behavior_tag", "script"))

    @property
    def presentation_tag(self) -> str:
        return str(self._config.get("presentation_tag", "template"))

    @property
    def long_member_threshold(self) -> int:
        return int(self._config.get("long_member_threshold", self.DEFAULT_LONG_MEMBER_THRESHOLD))

    @property
    def case_sensitive_tags(self) -> bool:
        return bool(self._config.get("case_sensitive_tags", True))

    @property
    def base_class_map(self) -> dict[str, str]:
        """Base class name -> category, inverted from the configured category -> bases map."""
        return dict(self._base_class_lookup)

    def region_tag(self, kind: str) -> str:
        """Resolve a region kind ("behavior", "presentation") to its tag name."""
        if kind == "behavior":
            return self.behavior_tag
        if kind == "presentation":
            return self.presentation_tag
        return kind

    @staticmethod
    def invert_map(config_map: object) -> dict[str, str]:
        """
        Invert a map of {Category: [Item1, Item2]} or {Category: Item}
        to {Item1: Category, Item2: Category}.
        """
        inverted: dict[str, str] = {}
        if not isinstance(config_map, dict):
            return inverted
        for category, items in config_map.items():
            if isinstance(items, list):
                for item in items:
                    inverted[str(item)] = str(category)
            else:
                inverted[str(items)] = str(category)
        return inverted
