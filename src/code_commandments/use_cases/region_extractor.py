"""Use Case: locate tag-delimited regions within a document."""

from __future__ import annotations

import logging
from typing import Iterable

from code_commandments.domain.config import EngineConfig
from code_commandments.domain.context import Context, Region
from code_commandments.use_cases.tag_scanner import TagScanner

logger = logging.getLogger(__name__)


class RegionExtractor:
    """
    Extract the first top-level region of a tag, honouring nesting.

    The first opening of the tag that is not self-closing is depth 1. Further
    openings of the same name increment depth, closes decrement it, and the
    region ends before the close that returns depth to 0. Self-closing forms
    never change depth and are never regions themselves. A missing or never
    closed tag yields None; absence is normal and never raises.
    """

    def __init__(self, config: EngineConfig | None = None, scanner: TagScanner | None = None) -> None:
        self._config = config or EngineConfig.default()
        self._scanner = scanner or TagScanner(case_sensitive=self._config.case_sensitive_tags)

    @property
    def scanner(self) -> TagScanner:
        return self._scanner

    def extract(self, text: str, tag_name: str) -> Region | None:
        if not tag_name:
            raise ValueError("tag_name must be a non-empty string")
        opening = self._scanner.find_opening(text, [tag_name], include_self_closing=False)
        if opening is None:
            return None
        close = self._scanner.find_matching_close(text, opening)
        if close is None:
            logger.debug("Unclosed <%s> at offset %d; treating region as absent", tag_name, opening.start)
            return None
        return Region(
            tag=tag_name,
            content=text[opening.end:close.start],
            start_offset=opening.end,
            end_offset=close.start,
            open_tag_start=opening.start,
            close_tag_end=close.end,
            attributes=opening.attributes,
        )

    def extract_all(self, text: str, tag_names: Iterable[str]) -> dict[str, Region]:
        """Every requested region that is present, keyed by tag name."""
        regions: dict[str, Region] = {}
        for tag_name in tag_names:
            region = self.extract(text, tag_name)
            if region is not None:
                regions[tag_name] = region
        return regions

    def resolve(self, context: Context, kind: str) -> tuple[Context, Region | None]:
        """
        Region of a kind for this context, extracting it on first request.

        kind is "behavior", "presentation" or a literal tag name. The result,
        found or missing, is cached on the returned context.
        """
        if context.has_region(kind):
            return context, context.region(kind)
        if kind in context.missing_regions:
            return context, None
        region = self.extract(context.text, self._config.region_tag(kind))
        if region is None:
            return context.with_missing_region(kind), None
        return context.with_region(region, kind), region
