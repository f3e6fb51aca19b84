"""Per-atlas packing and the multi-atlas session driver.

A Packer fills one atlas from the end of a shared, area-sorted image queue
and hands whatever does not fit back to the caller for the next atlas.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from PIL import Image

from atlaspack.binpack.max_rects import FreeRectChoiceHeuristic, MaxRectsBinPack
from atlaspack.errors import CantFitError
from atlaspack.images import ImageRecord
from atlaspack.utils import format_size, get_logger

logger = get_logger("packer")


@dataclass
class Point:
    """Where an image landed in its atlas."""
    x: int
    y: int
    rotated: bool = False
    duplicate_of: Optional[int] = None  # Index of the aliased image

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_of is not None


class Packer:
    """Packs images into a single atlas."""

    def __init__(self, bin_width: int, bin_height: int, pad: int = 0):
        """
        Initialize an empty atlas.

        Args:
            bin_width: Maximum atlas width
            bin_height: Maximum atlas height
            pad: Padding added to the right and bottom of every image
        """
        self.width = bin_width
        self.height = bin_height
        self.pad = pad

        self.images: List[ImageRecord] = []
        self.points: List[Point] = []
        self.dup_lookup: Dict[int, int] = {}
        self.occupancy = 0.0

    def __len__(self) -> int:
        return len(self.images)

    def pack(
        self,
        queue: List[ImageRecord],
        unique: bool = False,
        rotate: bool = False,
        heuristic: FreeRectChoiceHeuristic = FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT,
    ) -> None:
        """
        Take images from the end of ``queue`` until one does not fit.

        The image that does not fit is put back on the end of the queue so
        the next atlas starts with it.

        Args:
            queue: Images sorted by ascending area; consumed in place
            unique: Alias byte-identical images instead of packing them twice
            rotate: Allow 90 degree rotation
            heuristic: Free rectangle choice rule
        """
        bin_pack = MaxRectsBinPack(self.width, self.height)
        max_x = 0
        max_y = 0

        logger.info("packing begin...")

        while queue:
            image = queue.pop()
            logger.debug(f"{len(queue)}: {image.name}")

            if unique and self._alias_duplicate(image):
                continue

            rect = bin_pack.insert(image.width + self.pad, image.height + self.pad, rotate, heuristic)
            if rect.is_null:
                queue.append(image)
                break

            if unique:
                self.dup_lookup[image.fingerprint] = len(self.points)

            self.points.append(Point(
                x=rect.x,
                y=rect.y,
                rotated=rotate and rect.width != image.width + self.pad,
            ))
            self.images.append(image)

            max_x = max(max_x, rect.x + rect.width)
            max_y = max(max_y, rect.y + rect.height)

        self.occupancy = bin_pack.occupancy()
        logger.info("packing complete. resizing...")

        # Empty bin keeps its full size
        if not self.points:
            return

        while self.width // 2 >= max_x:
            self.width //= 2
        while self.height // 2 >= max_y:
            self.height //= 2

    def _alias_duplicate(self, image: ImageRecord) -> bool:
        """Record ``image`` as a duplicate of an already packed image, if it is one."""
        index = self.dup_lookup.get(image.fingerprint)
        if index is None or not image.same_content(self.images[index]):
            return False

        original = self.points[index]
        self.points.append(Point(
            x=original.x,
            y=original.y,
            rotated=original.rotated,
            duplicate_of=index,
        ))
        self.images.append(image)
        logger.info(f"duplicate found: {image.name} -> {self.images[index].name}")
        return True

    def render(self) -> Image.Image:
        """Composite the packed images into an RGBA atlas."""
        atlas = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        for image, point in zip(self.images, self.points):
            if point.is_duplicate:
                continue
            tile = image.to_pil()
            if point.rotated:
                # 90 degrees clockwise
                tile = tile.transpose(Image.Transpose.ROTATE_270)
            atlas.paste(tile, (point.x, point.y))
        return atlas

    def save(self, path: Union[str, Path]) -> Path:
        """Render the atlas and write it to ``path``."""
        path = Path(path)
        self.render().save(path)
        logger.info(f"saving atlas. image size: {format_size(path.stat().st_size)}")
        return path


def sort_by_area(images: List[ImageRecord]) -> List[ImageRecord]:
    """Sort images by ascending area, keeping input order for equal areas."""
    return sorted(images, key=lambda img: img.width * img.height)


def pack_session(
    images: List[ImageRecord],
    bin_size: int,
    pad: int = 0,
    unique: bool = False,
    rotate: bool = False,
    heuristic: FreeRectChoiceHeuristic = FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT,
) -> List[Packer]:
    """
    Pack images into as many square atlases as needed.

    Args:
        images: Images to pack (not modified)
        bin_size: Side of each atlas before shrinking
        pad: Padding between images
        unique: Alias byte-identical images
        rotate: Allow 90 degree rotation
        heuristic: Free rectangle choice rule

    Returns:
        One finished Packer per atlas

    Raises:
        CantFitError: If an image does not fit even into an empty atlas
    """
    queue = sort_by_area(images)
    packers: List[Packer] = []

    while queue:
        logger.info(f"packing {len(queue)} images...")
        packer = Packer(bin_size, bin_size, pad)
        packer.pack(queue, unique=unique, rotate=rotate, heuristic=heuristic)
        logger.info(f"finished packing {len(packers)} - ({packer.width}x{packer.height})")

        if not packer.images:
            logger.error(f"packing failed, could not fit image {queue[-1].name}")
            raise CantFitError(queue[-1].name)
        packers.append(packer)

    return packers
