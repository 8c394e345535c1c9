"""Index-range math for a fixed-row-height scrolling list.

Kept apart from fetching so the windowing arithmetic can be reused by any
view (Qt item view, terminal table) without touching the paginator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional

from inkbook.errors import InvalidArgument


@dataclass(frozen=True)
class ViewportRange:
    """Inclusive ``[start, end]`` row index range."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise InvalidArgument(f"Invalid viewport range [{self.start}, {self.end}]")

    @property
    def count(self) -> int:
        return self.end - self.start + 1

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index <= self.end

    def expanded(self, overscan: int, total_rows: Optional[int] = None) -> "ViewportRange":
        """Grow the range by *overscan* rows on both sides, clamped to the data."""
        start = max(0, self.start - overscan)
        end = self.end + overscan
        if total_rows is not None:
            end = min(end, max(total_rows - 1, start))
        return ViewportRange(start, end)


def visible_range(
    scroll_offset: float,
    viewport_height: float,
    row_height: float,
    total_rows: Optional[int] = None,
) -> Optional[ViewportRange]:
    """Translate scroll geometry into the rows that intersect the viewport.

    Returns ``None`` when nothing is visible (zero height or scrolled past
    the known rows).
    """
    if row_height <= 0:
        raise InvalidArgument(f"row_height must be positive, got {row_height!r}")
    if viewport_height < 0:
        raise InvalidArgument(f"viewport_height must not be negative, got {viewport_height!r}")
    if viewport_height == 0:
        return None

    offset = max(0.0, float(scroll_offset))
    start = int(offset // row_height)
    end = int(math.ceil((offset + viewport_height) / row_height)) - 1
    if total_rows is not None:
        if total_rows <= 0 or start >= total_rows:
            return None
        end = min(end, total_rows - 1)
    return ViewportRange(start, max(start, end))


def content_height(row_count: int, row_height: float) -> float:
    """Total scrollable height for *row_count* rows."""
    return max(0, row_count) * row_height
