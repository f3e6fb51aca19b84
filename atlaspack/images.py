"""Image records fed to the packer.

Loads bitmaps with Pillow, optionally premultiplies and trims them, and
fingerprints the resulting pixels for duplicate detection.
"""

import hashlib
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import numpy as np
from PIL import Image

from atlaspack.config import IMAGE_EXTENSIONS
from atlaspack.utils import format_size, get_logger

logger = get_logger("images")


def is_image_file(path: Union[str, Path]) -> bool:
    """Check if a path has one of the supported image extensions."""
    return Path(path).suffix.lower().lstrip(".") in IMAGE_EXTENSIONS


def fingerprint(width: int, height: int, data: bytes) -> int:
    """64-bit content hash over the dimensions and pixel bytes."""
    h = hashlib.blake2b(digest_size=8)
    h.update(struct.pack("<ii", width, height))
    h.update(data)
    return int.from_bytes(h.digest(), "little")


def premultiply_alpha(img: Image.Image) -> Image.Image:
    """Multiply the colour channels of an RGBA image by its alpha."""
    pixels = np.asarray(img, dtype=np.float32)
    alpha = pixels[..., 3:4] / 255.0
    pixels[..., :3] = pixels[..., :3] * alpha
    return Image.fromarray(pixels.astype(np.uint8), "RGBA")


@dataclass
class ImageRecord:
    """A bitmap ready for packing.

    ``width``/``height`` are the packed (possibly trimmed) dimensions.
    ``frame_*`` describe where the trimmed pixels sit in the original
    bitmap: ``frame_x``/``frame_y`` are the negated trim offsets and
    ``frame_width``/``frame_height`` the untrimmed size.
    """
    name: str
    width: int
    height: int
    data: bytes = b""
    frame_x: int = 0
    frame_y: int = 0
    frame_width: Optional[int] = None
    frame_height: Optional[int] = None
    fingerprint: Optional[int] = None
    original_size: int = 0  # Bytes on disk

    def __post_init__(self):
        """Fill derived fields."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image {self.name} has invalid size {self.width}x{self.height}")
        if self.frame_width is None:
            self.frame_width = self.width
        if self.frame_height is None:
            self.frame_height = self.height
        if self.fingerprint is None:
            self.fingerprint = fingerprint(self.width, self.height, self.data)

    @property
    def area(self) -> int:
        return self.width * self.height

    def same_content(self, other: "ImageRecord") -> bool:
        """Check for identical dimensions and pixel bytes."""
        return (
            self.width == other.width
            and self.height == other.height
            and self.data == other.data
        )

    def to_pil(self) -> Image.Image:
        """Return the pixels as an RGBA Pillow image."""
        if not self.data:
            return Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        return Image.frombytes("RGBA", (self.width, self.height), self.data)

    @classmethod
    def from_image(
        cls,
        img: Image.Image,
        name: str,
        premultiply: bool = False,
        trim: bool = False,
        original_size: int = 0,
    ) -> "ImageRecord":
        """
        Build a record from a Pillow image.

        Args:
            img: Source image, any mode
            name: Name stored in the atlas metadata
            premultiply: Multiply colour channels by alpha
            trim: Crop away fully transparent borders
            original_size: Size of the source file in bytes

        Returns:
            The prepared image record
        """
        img = img.convert("RGBA")
        frame_width, frame_height = img.size

        if premultiply:
            img = premultiply_alpha(img)

        left, top = 0, 0
        if trim:
            bbox = img.getchannel("A").getbbox()
            if bbox is None:
                logger.warning(f"image is completely transparent: {name}")
            elif bbox != (0, 0, frame_width, frame_height):
                left, top = bbox[0], bbox[1]
                img = img.crop(bbox)

        return cls(
            name=name,
            width=img.width,
            height=img.height,
            data=img.tobytes(),
            frame_x=-left,
            frame_y=-top,
            frame_width=frame_width,
            frame_height=frame_height,
            original_size=original_size,
        )

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        name: Optional[str] = None,
        premultiply: bool = False,
        trim: bool = False,
    ) -> "ImageRecord":
        """Load and prepare an image file."""
        path = Path(path)
        if name is None:
            name = (path.parent / path.stem).as_posix()
        with Image.open(path) as img:
            img.load()
            return cls.from_image(
                img,
                name,
                premultiply=premultiply,
                trim=trim,
                original_size=path.stat().st_size,
            )


def iter_image_files(path: Union[str, Path]) -> List[Path]:
    """List image files under a file or directory, in a stable order."""
    path = Path(path)
    if path.is_dir():
        return sorted(p for p in path.rglob("*") if p.is_file() and is_image_file(p))
    return [path] if is_image_file(path) else []


def load_images(
    inputs: Iterable[Union[str, Path]],
    premultiply: bool = False,
    trim: bool = False,
) -> List[ImageRecord]:
    """
    Load every image found in the given files and directories.

    Args:
        inputs: Files or directories (searched recursively)
        premultiply: Multiply colour channels by alpha
        trim: Crop away fully transparent borders

    Returns:
        Image records in input order
    """
    images: List[ImageRecord] = []
    for input_path in inputs:
        input_path = Path(input_path)
        if input_path.is_dir():
            logger.info(f"Reading directory {input_path}")
        elif not is_image_file(input_path):
            logger.info(f"File {input_path} is not an image, skipping...")
            continue

        for file_path in iter_image_files(input_path):
            logger.info(f"Reading file {file_path}")
            images.append(ImageRecord.from_file(file_path, premultiply=premultiply, trim=trim))

    total = sum(img.original_size for img in images)
    logger.info(f"loaded {len(images)} images, size of all images: {format_size(total)}")
    return images
