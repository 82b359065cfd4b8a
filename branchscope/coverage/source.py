"""
BranchScope — Source Buffer

Maps character offsets to (line, column) positions and back. Parsers
that report UTF-8 byte columns (CPython's ``ast``) are converted to
character columns here so every range in the engine is character based.
"""

from __future__ import annotations

import re
from bisect import bisect_right

from branchscope.coverage.types import SourceLocation, SourceSpan

# Line terminators as the Python tokenizer counts them; str.splitlines
# also breaks on \f, \v, \x1c-\x1e, \x85 and \u2028/\u2029
_LINE_END = re.compile(r"(?<=\n)|(?<=\r)(?!\n)")


def split_lines(source: str) -> list[str]:
    """Split ``source`` after each \\n, \\r\\n or \\r, keeping the terminators."""
    lines = _LINE_END.split(source)
    if len(lines) > 1 and not lines[-1]:
        lines.pop()
    return lines


class SourceBuffer:
    """Line index over one source text."""

    def __init__(self, source: str, name: str = "<unknown>") -> None:
        self.source = source
        self.name = name
        self._lines = split_lines(source)
        self._line_starts: list[int] = []
        offset = 0
        for line in self._lines:
            self._line_starts.append(offset)
            offset += len(line)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line_text(self, line: int) -> str:
        """Text of 1-based ``line`` without its line terminator."""
        return self._lines[line - 1].rstrip("\r\n")

    def offset(self, line: int, column: int) -> int:
        """Character offset of 1-based ``line`` / 0-based ``column``."""
        if not 1 <= line <= len(self._lines):
            raise ValueError(f"{self.name}: line {line} out of range 1..{len(self._lines)}")
        return self._line_starts[line - 1] + column

    def position(self, offset: int) -> tuple[int, int]:
        """(1-based line, 0-based column) of a character offset."""
        index = max(0, bisect_right(self._line_starts, offset) - 1)
        return index + 1, offset - self._line_starts[index]

    def char_column(self, line: int, byte_column: int) -> int:
        """Convert a UTF-8 byte column on ``line`` to a character column."""
        encoded = self._lines[line - 1].encode("utf-8")
        return len(encoded[:byte_column].decode("utf-8", errors="replace"))

    def span(self, begin: int, end: int) -> SourceSpan:
        first_line, first_column = self.position(begin)
        last_line, last_column = self.position(end)
        return SourceSpan(
            begin=begin,
            end=end,
            first_line=first_line,
            first_column=first_column,
            last_line=last_line,
            last_column=last_column,
        )

    def location(
        self,
        begin: int,
        end: int,
        *,
        keyword: str | None = None,
        selector: tuple[int, int] | None = None,
    ) -> SourceLocation:
        """Build a SourceLocation for ``[begin, end)``."""
        span = self.span(begin, end)
        return SourceLocation(
            **span.model_dump(),
            keyword=keyword,
            selector=self.span(*selector) if selector is not None else None,
        )

    def locate(self, text: str, nth: int = 0, **kwargs: object) -> SourceLocation:
        """Location of the ``nth`` occurrence of ``text`` in the buffer."""
        start = -1
        for _ in range(nth + 1):
            start = self.source.find(text, start + 1)
            if start < 0:
                raise ValueError(f"{self.name}: occurrence {nth} of {text!r} not found")
        return self.location(start, start + len(text), **kwargs)  # type: ignore[arg-type]
