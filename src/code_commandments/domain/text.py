"""Offset, line and snippet helpers shared by matchers and findings."""

import re

_WHITESPACE_RUN = re.compile(r"\s+")


class TextLocator:
    """Line and snippet computations over the original document text."""

    DEFAULT_SNIPPET_LENGTH = 60
    SNIPPET_LEAD = 20

    @staticmethod
    def line_number(text: str, offset: int) -> int:
        """1-based line of an absolute offset: newlines before it, plus one."""
        if offset <= 0:
            return 1
        return text.count("\n", 0, min(offset, len(text))) + 1

    @staticmethod
    def line_offsets(text: str) -> list[int]:
        """Start offset of every line."""
        offsets = [0]
        for match in re.finditer("\n", text):
            offsets.append(match.end())
        return offsets

    @staticmethod
    def snippet(text: str, offset: int, length: int = DEFAULT_SNIPPET_LENGTH, lead: int = SNIPPET_LEAD) -> str:
        """
        Collapse a window of text around offset into a single-line snippet.

        The window opens lead characters before the offset. Ellipses mark
        text cut from either side.
        """
        start = max(0, offset - lead)
        window = text[start:start + length]
        snippet = _WHITESPACE_RUN.sub(" ", window).strip()
        if start > 0:
            snippet = "..." + snippet
        if start + length < len(text):
            snippet = snippet + "..."
        return snippet

    @staticmethod
    def line_text(text: str, line: int) -> str:
        lines = text.split("\n")
        if line < 1 or line > len(lines):
            return ""
        return lines[line - 1]
