"""MaxRects free-rectangle bin packing.

Keeps the set of maximal free rectangles of a single fixed-size bin. Each
placement splits every free rectangle it touches into up to four residuals
and then prunes residuals that are contained in another free rectangle.

Five placement heuristics are supported:

- BSSF: place against the short side of the free rectangle it fits best
- BLSF: place against the long side of the free rectangle it fits best
- BAF: place into the smallest free rectangle it fits
- BL: Tetris-style, as low and then as far left as possible
- CP: touch the bin edges and placed rectangles as much as possible
"""

import math
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from atlaspack.binpack.rect import Rect
from atlaspack.utils import get_logger

logger = get_logger("binpack.max_rects")

Score = Tuple[float, float]

# Score of a size that fits nowhere
WORST_SCORE: Score = (math.inf, math.inf)


class FreeRectChoiceHeuristic(str, Enum):
    """Rules for choosing the free rectangle an item goes into."""
    BEST_SHORT_SIDE_FIT = "BestShortSideFit"
    BEST_LONG_SIDE_FIT = "BestLongSideFit"
    BEST_AREA_FIT = "BestAreaFit"
    BOTTOM_LEFT_RULE = "BottomLeftRule"
    CONTACT_POINT_RULE = "ContactPointRule"

    @property
    def short_name(self) -> str:
        return _SHORT_NAMES[self]

    @classmethod
    def parse(cls, name: str) -> "FreeRectChoiceHeuristic":
        """Parse a heuristic name, case-insensitively.

        Accepts the full names (``BestAreaFit``), the enum member names
        (``BEST_AREA_FIT``) and the short forms (``baf``).
        """
        key = name.strip().lower()
        for heuristic in cls:
            if key in (heuristic.value.lower(), heuristic.name.lower(), heuristic.short_name):
                return heuristic
        raise ValueError(f"Unknown heuristic: {name}")


_SHORT_NAMES = {
    FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT: "bssf",
    FreeRectChoiceHeuristic.BEST_LONG_SIDE_FIT: "blsf",
    FreeRectChoiceHeuristic.BEST_AREA_FIT: "baf",
    FreeRectChoiceHeuristic.BOTTOM_LEFT_RULE: "bl",
    FreeRectChoiceHeuristic.CONTACT_POINT_RULE: "cp",
}


def common_interval_length(i1_start: int, i1_end: int, i2_start: int, i2_end: int) -> int:
    """Length of the overlap of two 1-D intervals, 0 if they are apart."""
    if i1_end < i2_start or i2_end < i1_start:
        return 0
    return min(i1_end, i2_end) - max(i1_start, i2_start)


class MaxRectsBinPack:
    """Free-rectangle packing engine for one bin."""

    def __init__(self, bin_width: int, bin_height: int):
        """
        Initialize an empty bin.

        Args:
            bin_width: Width of the bin in pixels
            bin_height: Height of the bin in pixels
        """
        if bin_width <= 0 or bin_height <= 0:
            raise ValueError(f"Bin dimensions must be positive, got {bin_width}x{bin_height}")

        self.bin_width = bin_width
        self.bin_height = bin_height
        self.used_rectangles: List[Rect] = []
        self.free_rectangles: List[Rect] = [Rect(0, 0, bin_width, bin_height)]

    def insert(
        self,
        width: int,
        height: int,
        allow_rotation: bool,
        heuristic: FreeRectChoiceHeuristic,
    ) -> Rect:
        """
        Place a single rectangle into the bin.

        Args:
            width: Rectangle width
            height: Rectangle height
            allow_rotation: Also try the rectangle turned 90 degrees
            heuristic: Free rectangle choice rule

        Returns:
            The placement (with rotated dimensions if it was turned), or the
            null sentinel if the rectangle fits nowhere
        """
        node, _ = self.find_position(width, height, allow_rotation, heuristic)
        if node.is_null:
            return node

        self.place_rect(node)
        return node

    def insert_list(
        self,
        rects: Iterable[Rect],
        allow_rotation: bool,
        heuristic: FreeRectChoiceHeuristic,
    ) -> List[Rect]:
        """
        Place a batch of rectangles, globally best-scoring first.

        Each round scores every remaining size and commits only the best one.
        Stops when none of the remaining sizes fit.

        Args:
            rects: Sizes to place (only width and height are read)
            allow_rotation: Also try each rectangle turned 90 degrees
            heuristic: Free rectangle choice rule

        Returns:
            Placements in the order they were committed
        """
        remaining = [(r.width, r.height) for r in rects]
        placed: List[Rect] = []

        while remaining:
            best_score = WORST_SCORE
            best_index: Optional[int] = None
            best_node = Rect.null()

            for index, (width, height) in enumerate(remaining):
                node, score = self.find_position(width, height, allow_rotation, heuristic)
                if node.is_null:
                    continue
                if score < best_score:
                    best_score = score
                    best_index = index
                    best_node = node

            if best_index is None:
                break

            self.place_rect(best_node)
            del remaining[best_index]
            placed.append(best_node)

        if remaining:
            logger.debug(f"insert_list: {len(remaining)} rectangles did not fit")
        return placed

    def occupancy(self) -> float:
        """Fraction of the bin area covered by placed rectangles."""
        used_area = sum(r.area for r in self.used_rectangles)
        return used_area / (self.bin_width * self.bin_height)

    def find_position(
        self,
        width: int,
        height: int,
        allow_rotation: bool,
        heuristic: FreeRectChoiceHeuristic,
    ) -> Tuple[Rect, Score]:
        """
        Find the best placement for a rectangle without committing it.

        Candidates are visited in free-list order, upright before rotated;
        a candidate replaces the current best only if its score is strictly
        lower.

        Returns:
            (placement, score), or (null sentinel, WORST_SCORE)
        """
        best_node = Rect.null()
        best_score = WORST_SCORE

        orientations = [(width, height)]
        if allow_rotation:
            orientations.append((height, width))

        for free in self.free_rectangles:
            for w, h in orientations:
                if free.width < w or free.height < h:
                    continue
                score = self._score(heuristic, free, w, h)
                if score < best_score:
                    best_node = Rect(free.x, free.y, w, h)
                    best_score = score

        return best_node, best_score

    def _score(self, heuristic: FreeRectChoiceHeuristic, free: Rect, width: int, height: int) -> Score:
        """Score placing a width x height item at the corner of ``free``."""
        leftover_horiz = abs(free.width - width)
        leftover_vert = abs(free.height - height)
        short_side_fit = min(leftover_horiz, leftover_vert)
        long_side_fit = max(leftover_horiz, leftover_vert)

        if heuristic == FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT:
            return (short_side_fit, long_side_fit)
        elif heuristic == FreeRectChoiceHeuristic.BEST_LONG_SIDE_FIT:
            return (long_side_fit, short_side_fit)
        elif heuristic == FreeRectChoiceHeuristic.BEST_AREA_FIT:
            return (free.area - width * height, short_side_fit)
        elif heuristic == FreeRectChoiceHeuristic.BOTTOM_LEFT_RULE:
            return (free.y + height, free.x)
        elif heuristic == FreeRectChoiceHeuristic.CONTACT_POINT_RULE:
            # Bigger contact is better, negate to keep "lower wins"
            return (-self.contact_point_score(free.x, free.y, width, height), 0)
        raise ValueError(f"Unsupported heuristic: {heuristic}")

    def contact_point_score(self, x: int, y: int, width: int, height: int) -> int:
        """Total edge length a rectangle at (x, y) shares with the bin and placed rects.

        ``width`` and ``height`` are the footprint of the item being placed,
        not the size of the free rectangle it is placed into.
        """
        score = 0

        if x == 0 or x + width == self.bin_width:
            score += height
        if y == 0 or y + height == self.bin_height:
            score += width

        for used in self.used_rectangles:
            if used.x == x + width or used.x + used.width == x:
                score += common_interval_length(used.y, used.y + used.height, y, y + height)
            if used.y == y + height or used.y + used.height == y:
                score += common_interval_length(used.x, used.x + used.width, x, x + width)

        return score

    def place_rect(self, node: Rect) -> None:
        """Commit a placement: split and prune the free list, record the node."""
        kept: List[Rect] = []
        residuals: List[Rect] = []
        for free in self.free_rectangles:
            if free.intersects(node):
                residuals.extend(self._split_free_node(free, node))
            else:
                kept.append(free)

        self.free_rectangles = kept + residuals
        self._prune_free_list()
        self.used_rectangles.append(node)

    @staticmethod
    def _split_free_node(free: Rect, used: Rect) -> List[Rect]:
        """Parts of ``free`` lying outside ``used`` on each side."""
        residuals = []

        if used.x < free.right and used.right > free.x:
            # Above the used node
            if free.y < used.y < free.bottom:
                residuals.append(Rect(free.x, free.y, free.width, used.y - free.y))
            # Below the used node
            if used.bottom < free.bottom:
                residuals.append(Rect(free.x, used.bottom, free.width, free.bottom - used.bottom))

        if used.y < free.bottom and used.bottom > free.y:
            # Left of the used node
            if free.x < used.x < free.right:
                residuals.append(Rect(free.x, free.y, used.x - free.x, free.height))
            # Right of the used node
            if used.right < free.right:
                residuals.append(Rect(used.right, free.y, free.right - used.right, free.height))

        return residuals

    def _prune_free_list(self) -> None:
        """Drop every free rectangle contained in another one."""
        free = self.free_rectangles
        keep = [True] * len(free)

        for i in range(len(free)):
            if not keep[i]:
                continue
            for j in range(i + 1, len(free)):
                if not keep[j]:
                    continue
                if free[i].is_contained_in(free[j]):
                    keep[i] = False
                    break
                if free[j].is_contained_in(free[i]):
                    keep[j] = False

        self.free_rectangles = [rect for rect, k in zip(free, keep) if k]
