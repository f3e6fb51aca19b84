"""Rectangle bin packing engine.

Provides the MaxRects free-rectangle packer and its geometric primitives.
"""

from atlaspack.binpack.rect import (
    Rect,
    DisjointRectCollection,
    compare_by_short_side,
    compare_by_position,
)
from atlaspack.binpack.max_rects import (
    MaxRectsBinPack,
    FreeRectChoiceHeuristic,
    common_interval_length,
)

__all__ = [
    "Rect",
    "DisjointRectCollection",
    "compare_by_short_side",
    "compare_by_position",
    "MaxRectsBinPack",
    "FreeRectChoiceHeuristic",
    "common_interval_length",
]
