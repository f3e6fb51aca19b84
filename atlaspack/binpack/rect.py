"""Rectangle primitives for bin packing."""

from dataclasses import dataclass
from typing import List, Tuple


@dataclass
class Rect:
    """An axis-aligned rectangle with integer coordinates.

    A rectangle with zero height is the "does not fit" sentinel returned by
    the packing engine; real placements always have positive height.
    """
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @classmethod
    def null(cls) -> "Rect":
        """Return the non-placement sentinel."""
        return cls(0, 0, 0, 0)

    @property
    def is_null(self) -> bool:
        return self.height == 0

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def short_side_key(self) -> Tuple[int, int]:
        """Sort key for (short side, long side) ordering."""
        return (min(self.width, self.height), max(self.width, self.height))

    def position_key(self) -> Tuple[int, int, int, int]:
        """Sort key for (x, y, width, height) ordering."""
        return (self.x, self.y, self.width, self.height)

    def is_contained_in(self, other: "Rect") -> bool:
        """Check if this rectangle lies entirely inside ``other``."""
        return (
            self.x >= other.x
            and self.y >= other.y
            and self.x + self.width <= other.x + other.width
            and self.y + self.height <= other.y + other.height
        )

    def intersects(self, other: "Rect") -> bool:
        """Check if the interiors of two rectangles overlap."""
        return not (
            self.x >= other.x + other.width
            or self.x + self.width <= other.x
            or self.y >= other.y + other.height
            or self.y + self.height <= other.y
        )


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_by_short_side(a: Rect, b: Rect) -> int:
    """Compare on shorter side, then longer side. Returns -1, 0 or 1."""
    return _cmp(a.short_side_key(), b.short_side_key())


def compare_by_position(a: Rect, b: Rect) -> int:
    """Compare on x, y, width, height. Returns -1, 0 or 1."""
    return _cmp(a.position_key(), b.position_key())


class DisjointRectCollection:
    """A set of rectangles guaranteed to be pairwise non-overlapping.

    Used to verify that a packing result never places two images on top of
    each other.
    """

    def __init__(self):
        self.rects: List[Rect] = []

    def __len__(self) -> int:
        return len(self.rects)

    def add(self, rect: Rect) -> bool:
        """Add a rectangle if it does not overlap any member.

        Degenerate rectangles are accepted but not stored.

        Returns:
            True if the rectangle was accepted, False if it overlaps
        """
        if rect.width == 0 or rect.height == 0:
            return True

        if not self.disjoint(rect):
            return False

        self.rects.append(rect)
        return True

    def clear(self) -> None:
        self.rects.clear()

    def disjoint(self, rect: Rect) -> bool:
        """Check if ``rect`` overlaps none of the members."""
        if rect.width == 0 or rect.height == 0:
            return True
        return not any(existing.intersects(rect) for existing in self.rects)
