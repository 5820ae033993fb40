"""
Span utilities for tracking positions and ranges in calculation source text.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import bisect
from typing import Generic, List, Optional, TypeVar
from dataclasses import dataclass
from enum import Enum

# Type parameter for indexing system
IndexType = TypeVar('IndexType')


class IndexingSystem(Enum):
    """Different indexing systems for positions."""
    ZERO_INDEXED = "zero"  # 0-based indexing (used internally and by LSP)
    ONE_INDEXED = "one"    # 1-based indexing (used for CLI output)


class ZeroIndexed:
    """Marker class for zero-based indexing."""
    pass


class OneIndexed:
    """Marker class for one-based indexing."""
    pass


@dataclass(frozen=True, order=True)
class Position(Generic[IndexType]):
    """A position in a text document, ordered by line then column."""
    line: int
    column: int

    def __post_init__(self):
        if self.line < 0 or self.column < 0:
            raise ValueError(f"Invalid position: line={self.line}, column={self.column}")

    def to_one_indexed(self) -> 'Position[OneIndexed]':
        """Convert a zero-indexed position to one-indexed."""
        return Position[OneIndexed](line=self.line + 1, column=self.column + 1)

    def shifted(self, line_delta: int) -> 'Position[IndexType]':
        """Return the same column moved by a number of whole lines."""
        if line_delta == 0:
            return self
        return Position(self.line + line_delta, self.column)

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Range(Generic[IndexType]):
    """A range in a text document. The end position is exclusive."""
    start: Position[IndexType]
    end: Position[IndexType]

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Invalid range: start={self.start} > end={self.end}")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains_position(self, position: Position[IndexType]) -> bool:
        """Check if this range contains the given position (both ends inclusive)."""
        return self.start <= position <= self.end

    def contains_range(self, other: 'Range[IndexType]') -> bool:
        """Check if another range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def overlaps_with(self, other: 'Range[IndexType]') -> bool:
        """Check if this range shares at least one character with another range."""
        return self.start < other.end and other.start < self.end

    def shifted(self, line_delta: int) -> 'Range[IndexType]':
        """Return this range moved by a number of whole lines."""
        if line_delta == 0:
            return self
        return Range(self.start.shifted(line_delta), self.end.shifted(line_delta))

    def to_one_indexed(self) -> 'Range[OneIndexed]':
        """Convert to one-indexed range."""
        return Range[OneIndexed](
            start=self.start.to_one_indexed(),
            end=self.end.to_one_indexed()
        )

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class SpanBuilder:
    """Helper class for converting between offsets and positions in a text."""

    def __init__(self, content: Optional[str] = None):
        self._line_starts: Optional[List[int]] = None
        self._length = 0
        if content is not None:
            self.set_content(content)

    def set_content(self, content: str) -> None:
        """Set the content to build ranges from."""
        starts = [0]
        index = content.find('\n')
        while index != -1:
            starts.append(index + 1)
            index = content.find('\n', index + 1)
        self._line_starts = starts
        self._length = len(content)

    @property
    def line_count(self) -> int:
        if self._line_starts is None:
            raise ValueError("Content not set")
        return len(self._line_starts)

    def position_from_offset(self, offset: int) -> Position[ZeroIndexed]:
        """Convert a character offset to a zero-indexed position."""
        if self._line_starts is None:
            raise ValueError("Content not set")

        offset = max(0, min(offset, self._length))
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return Position[ZeroIndexed](line, offset - self._line_starts[line])

    def line_offset(self, line: int) -> int:
        """
        Get the offset of the first character of a line.

        Lines past the end of the content map to the content length.
        """
        if self._line_starts is None:
            raise ValueError("Content not set")
        if line >= len(self._line_starts):
            return self._length
        return self._line_starts[max(0, line)]

    def offset_from_position(self, position: Position[ZeroIndexed]) -> int:
        """Convert a zero-indexed position to a character offset."""
        if self._line_starts is None:
            raise ValueError("Content not set")

        if position.line >= len(self._line_starts):
            return self._length

        line_start = self._line_starts[position.line]
        if position.line + 1 < len(self._line_starts):
            line_end = self._line_starts[position.line + 1] - 1
        else:
            line_end = self._length
        return min(line_start + position.column, line_end)

    def range_from_offsets(self, start_offset: int, end_offset: int) -> Range[ZeroIndexed]:
        """Create a range from character offsets."""
        return Range[ZeroIndexed](
            self.position_from_offset(start_offset),
            self.position_from_offset(end_offset)
        )


def merge_ranges(ranges: List[Range[IndexType]]) -> Optional[Range[IndexType]]:
    """
    Merge multiple ranges into a single range covering all of them.

    Args:
        ranges: List of ranges to merge

    Returns:
        Merged range or None if input is empty
    """
    if not ranges:
        return None

    if len(ranges) == 1:
        return ranges[0]

    return Range(min(r.start for r in ranges), max(r.end for r in ranges))


# Convenience type aliases
ZeroPosition = Position[ZeroIndexed]
OnePosition = Position[OneIndexed]
ZeroRange = Range[ZeroIndexed]
OneRange = Range[OneIndexed]

# Export all public types
__all__ = [
    "Position",
    "Range",
    "SpanBuilder",
    "ZeroIndexed",
    "OneIndexed",
    "IndexingSystem",
    "ZeroPosition",
    "OnePosition",
    "ZeroRange",
    "OneRange",
    "merge_ranges"
]
