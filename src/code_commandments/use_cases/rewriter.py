"""Use Case: multi-pass rewriting of nested tagged elements."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from code_commandments.domain.config import EngineConfig
from code_commandments.domain.rewrite import RewriteResult
from code_commandments.domain.text import TextLocator
from code_commandments.use_cases.region_extractor import RegionExtractor
from code_commandments.use_cases.tag_scanner import Element, OpeningTag, TagScanner

logger = logging.getLogger(__name__)

Condition = Callable[[OpeningTag], bool]
Transform = Callable[[Element], str]
Describe = Callable[[Element, str], str]


@dataclass(frozen=True)
class _Step:
    text: str
    consumed: tuple[int, ...]
    penance: str


class NestedTagRewriter:
    """
    Rewrite elements one per pass until none qualify or the pass cap is hit.

    Each pass re-scans the updated text from the start, takes the first element
    whose opening tag satisfies the condition, finds its true matching close
    and splices in the transform's output. An element that is never closed is
    abandoned and the scan moves on. Elements a transform kept whole are
    remembered by the relocated offset of their opening tag, so a transform
    that leaves the element's marker in place cannot select the same element
    twice. Reaching
    the pass cap is a normal termination.
    """

    def __init__(
        self,
        max_passes: int | None = None,
        config: EngineConfig | None = None,
        scanner: TagScanner | None = None,
    ) -> None:
        self._config = config or EngineConfig.default()
        self._max_passes = max_passes if max_passes is not None else self._config.max_rewrite_passes
        if self._max_passes < 1:
            raise ValueError("max_passes must be positive")
        self._scanner = scanner or TagScanner(case_sensitive=False)
        self._extractor = RegionExtractor(self._config)

    @property
    def max_passes(self) -> int:
        return self._max_passes

    def rewrite(
        self,
        text: str,
        element_names: Iterable[str],
        condition: Condition,
        transform: Transform,
        describe: Describe | None = None,
    ) -> RewriteResult:
        names = NestedTagRewriter._validate(element_names, condition, transform)
        describe = describe or NestedTagRewriter.default_description
        current = text
        consumed: tuple[int, ...] = ()
        penance: list[str] = []
        for _ in range(self._max_passes):
            step = self._rewrite_first(current, names, condition, transform, describe, consumed)
            if step is None:
                break
            current, consumed = step.text, step.consumed
            penance.append(step.penance)
        else:
            if self._rewrite_first(current, names, condition, transform, describe, consumed) is not None:
                logger.info("Rewrite stopped at the %d pass limit with elements left", self._max_passes)
        return RewriteResult.rewritten(text, current, penance)

    def rewrite_region(
        self,
        text: str,
        region: str,
        element_names: Iterable[str],
        condition: Condition,
        transform: Transform,
        describe: Describe | None = None,
    ) -> RewriteResult:
        """Rewrite only inside a region (kind or tag name) and splice it back into text."""
        found = self._extractor.extract(text, self._config.region_tag(region))
        if found is None:
            return RewriteResult.unrepentant(text, f"No {region} region found")
        inner = self.rewrite(found.content, element_names, condition, transform, describe)
        if not inner.changed:
            return RewriteResult.unchanged(text)
        new_text = text[:found.start_offset] + inner.new_text + text[found.end_offset:]
        return RewriteResult.rewritten(text, new_text, inner.penance)

    def _rewrite_first(
        self,
        text: str,
        names: tuple[str, ...],
        condition: Condition,
        transform: Transform,
        describe: Describe,
        consumed: tuple[int, ...],
    ) -> _Step | None:
        for opening in self._scanner.iter_openings(text, names):
            if opening.start in consumed or not condition(opening):
                continue
            element = self._scanner.element_at(text, opening)
            if element is None:
                logger.debug("Abandoning unclosed <%s> at line %d",
                             opening.name, TextLocator.line_number(text, opening.start))
                continue
            replacement = transform(element)
            if replacement == element.text:
                continue
            new_text = text[:element.start] + replacement + text[element.end:]
            return _Step(
                text=new_text,
                consumed=NestedTagRewriter._relocate(consumed, element, replacement),
                penance=describe(element, replacement),
            )
        return None

    @staticmethod
    def _relocate(consumed: Sequence[int], element: Element, replacement: str) -> tuple[int, ...]:
        """
        Map remembered opening offsets into the spliced text.

        The element itself is remembered only when the transform kept it whole;
        a transform that rewrote its opening tag has neutralised it. Offsets in
        the body survive when the body (with its closing tag) is still present.
        Anything else lost in the transform is dropped.
        """
        delta = len(replacement) - (element.end - element.start)
        kept_at = replacement.find(element.text)
        if kept_at >= 0:
            body_at = kept_at + (element.inner_start - element.start)
        else:
            tail = element.text[len(element.opening.text):]
            body_at = replacement.find(tail) if tail else -1
        relocated: list[int] = []
        for offset in consumed:
            if offset < element.start:
                relocated.append(offset)
            elif offset >= element.end:
                relocated.append(offset + delta)
            elif body_at >= 0 and element.inner_start <= offset < element.inner_end:
                relocated.append(element.start + body_at + offset - element.inner_start)
        if kept_at >= 0:
            relocated.append(element.start + kept_at)
        return tuple(sorted(relocated))

    @staticmethod
    def _validate(element_names: Iterable[str], condition: Condition, transform: Transform) -> tuple[str, ...]:
        names = (element_names,) if isinstance(element_names, str) else tuple(element_names)
        if not names or any(not isinstance(name, str) or not name for name in names):
            raise ValueError("element_names must contain non-empty strings")
        if not callable(condition) or not callable(transform):
            raise TypeError("condition and transform must be callable")
        return names

    @staticmethod
    def default_description(element: Element, replacement: str) -> str:
        return f"Rewrote <{element.name}> element"


class ElementConditions:
    """Factories for opening-tag conditions."""

    @staticmethod
    def always() -> Condition:
        return lambda opening: True

    @staticmethod
    def has_attribute(*names: str) -> Condition:
        return lambda opening: any(opening.has_attribute(name) for name in names)

    @staticmethod
    def lacks_attribute(*names: str) -> Condition:
        return lambda opening: not any(opening.has_attribute(name) for name in names)


class ElementTransforms:
    """Factories for element transforms and matching penance descriptions."""

    @staticmethod
    def wrap_in(container: str, attributes: str = "") -> Transform:
        """Wrap the element, unchanged, in <container attributes>...</container>."""
        open_tag = f"<{container} {attributes}>" if attributes else f"<{container}>"
        return lambda element: f"{open_tag}{element.text}</{container}>"

    @staticmethod
    def _attribute_pattern(name: str) -> "re.Pattern[str]":
        return re.compile(
            rf"""(\s+)({re.escape(name)}(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?)(?=[\s/>])"""
        )

    @staticmethod
    def remove_attribute(opening_text: str, name: str) -> str:
        """Drop one attribute (with its value, if any) from an opening tag's text."""
        return ElementTransforms._attribute_pattern(name).sub("", opening_text, count=1)

    @staticmethod
    def lifted_directive(element: Element, names: Sequence[str]) -> tuple[str, str] | None:
        """(name, source text) of the first of names present on the element."""
        attributes = element.opening.attributes
        for name in names:
            if name not in attributes:
                continue
            found = ElementTransforms._attribute_pattern(name).search(element.opening.text)
            if found is not None:
                return name, found.group(2)
        return None

    @staticmethod
    def lift_attribute_into_wrapper(
        names: Sequence[str],
        container: str = "template",
        indent: str = "    ",
    ) -> Transform:
        """
        Move the first attribute in names off the element onto a new wrapper.

        <div v-if="ok">x</div> becomes
        <template v-if="ok">\\n    <div>x</div>\\n</template>.
        """
        def transform(element: Element) -> str:
            lifted = ElementTransforms.lifted_directive(element, names)
            if lifted is None:
                return element.text
            name, directive = lifted
            clean_open = ElementTransforms.remove_attribute(element.opening.text, name)
            clean = clean_open + element.text[len(element.opening.text):]
            return f"<{container} {directive}>\n{indent}{clean}\n</{container}>"
        return transform

    @staticmethod
    def describe_lift(names: Sequence[str], container: str = "template") -> Describe:
        def describe(element: Element, replacement: str) -> str:
            lifted = ElementTransforms.lifted_directive(element, names)
            directive = lifted[1] if lifted is not None else "?"
            return f"Wrapped <{element.name}> with {directive} in <{container}>"
        return describe

    @staticmethod
    def describe_wrap(container: str) -> Describe:
        return lambda element, replacement: f"Wrapped <{element.name}> in <{container}>"
