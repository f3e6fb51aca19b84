"""Atlas metadata: which image lives where in which atlas page.

Written as JSON, XML or a compact little-endian binary layout.
"""

import json
import struct
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple, Union

from atlaspack.utils import get_logger

logger = get_logger("serial")

# Binary layout: u64 counts and string lengths, i32 coordinates, u8 booleans
_COUNT = struct.Struct("<Q")
_IMAGE = struct.Struct("<iiiiiiiiB")


@dataclass
class AtlasImage:
    """An image entry in the atlas metadata."""
    name: str
    x: int
    y: int
    width: int
    height: int
    frame_x: int = 0
    frame_y: int = 0
    frame_width: int = 0
    frame_height: int = 0
    rotated: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary using the short metadata keys."""
        return {
            "n": self.name,
            "x": self.x,
            "y": self.y,
            "w": self.width,
            "h": self.height,
            "fx": self.frame_x,
            "fy": self.frame_y,
            "fw": self.frame_width,
            "fh": self.frame_height,
            "r": self.rotated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AtlasImage":
        """Create from dictionary."""
        return cls(
            name=data["n"],
            x=data["x"],
            y=data["y"],
            width=data["w"],
            height=data["h"],
            frame_x=data.get("fx", 0),
            frame_y=data.get("fy", 0),
            frame_width=data.get("fw", data["w"]),
            frame_height=data.get("fh", data["h"]),
            rotated=bool(data.get("r", False)),
        )


@dataclass
class Texture:
    """One atlas page and the images packed into it."""
    name: str
    images: List[AtlasImage] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "n": self.name,
            "imgs": [img.to_dict() for img in self.images],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Texture":
        """Create from dictionary."""
        return cls(
            name=data["n"],
            images=[AtlasImage.from_dict(img) for img in data.get("imgs", [])],
        )


@dataclass
class Atlas:
    """Metadata for all pages of an atlas."""
    textures: List[Texture] = field(default_factory=list)

    @classmethod
    def from_packers(cls, packers: Sequence, base_name: str) -> "Atlas":
        """
        Build metadata from finished packers.

        Args:
            packers: Packer instances, one per page
            base_name: Page names are ``<base_name><index>``

        Returns:
            Atlas metadata
        """
        textures = []
        for idx, packer in enumerate(packers):
            texture = Texture(name=f"{base_name}{idx}")
            for image, point in zip(packer.images, packer.points):
                texture.images.append(AtlasImage(
                    name=image.name,
                    x=point.x,
                    y=point.y,
                    width=image.width,
                    height=image.height,
                    frame_x=image.frame_x,
                    frame_y=image.frame_y,
                    frame_width=image.frame_width,
                    frame_height=image.frame_height,
                    rotated=point.rotated,
                ))
            textures.append(texture)
        return cls(textures=textures)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"t": [tex.to_dict() for tex in self.textures]}

    @classmethod
    def from_dict(cls, data: dict) -> "Atlas":
        """Create from dictionary."""
        return cls(textures=[Texture.from_dict(tex) for tex in data.get("t", [])])

    # JSON

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def write_json(self, path: Union[str, Path]) -> None:
        Path(path).write_text(self.to_json(), encoding="utf-8")
        logger.info(f"writing json {path}")

    # XML

    def to_xml(self) -> ET.ElementTree:
        """Build the ``<Atlas><Texture><Image/>`` element tree."""
        root = ET.Element("Atlas")
        for texture in self.textures:
            tex_el = ET.SubElement(root, "Texture", n=texture.name)
            for img in texture.images:
                ET.SubElement(tex_el, "Image", {
                    "n": img.name,
                    "x": str(img.x),
                    "y": str(img.y),
                    "w": str(img.width),
                    "h": str(img.height),
                    "fx": str(img.frame_x),
                    "fy": str(img.frame_y),
                    "fw": str(img.frame_width),
                    "fh": str(img.frame_height),
                    "r": "1" if img.rotated else "0",
                })
        tree = ET.ElementTree(root)
        ET.indent(tree)
        return tree

    def write_xml(self, path: Union[str, Path]) -> None:
        self.to_xml().write(path, encoding="utf-8", xml_declaration=True)
        logger.info(f"writing xml {path}")

    # Binary

    def to_bytes(self) -> bytes:
        """Encode as little-endian binary."""
        out = bytearray(_COUNT.pack(len(self.textures)))
        for texture in self.textures:
            out += _pack_str(texture.name)
            out += _COUNT.pack(len(texture.images))
            for img in texture.images:
                out += _pack_str(img.name)
                out += _IMAGE.pack(
                    img.x, img.y, img.width, img.height,
                    img.frame_x, img.frame_y, img.frame_width, img.frame_height,
                    1 if img.rotated else 0,
                )
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Atlas":
        """Decode the binary layout written by ``to_bytes``."""
        offset = 0
        (num_textures,), offset = _unpack(_COUNT, data, offset)
        textures = []
        for _ in range(num_textures):
            name, offset = _unpack_str(data, offset)
            (num_images,), offset = _unpack(_COUNT, data, offset)
            texture = Texture(name=name)
            for _ in range(num_images):
                img_name, offset = _unpack_str(data, offset)
                values, offset = _unpack(_IMAGE, data, offset)
                texture.images.append(AtlasImage(img_name, *values[:8], rotated=bool(values[8])))
            textures.append(texture)
        if offset != len(data):
            raise ValueError(f"Trailing data in atlas binary: {len(data) - offset} bytes")
        return cls(textures=textures)

    def write_binary(self, path: Union[str, Path]) -> None:
        Path(path).write_bytes(self.to_bytes())
        logger.info(f"writing binary {path}")


def _pack_str(value: str) -> bytes:
    encoded = value.encode("utf-8")
    return _COUNT.pack(len(encoded)) + encoded


def _unpack(fmt: struct.Struct, data: bytes, offset: int) -> Tuple[tuple, int]:
    if offset + fmt.size > len(data):
        raise ValueError("Truncated atlas binary")
    return fmt.unpack_from(data, offset), offset + fmt.size


def _unpack_str(data: bytes, offset: int) -> Tuple[str, int]:
    (length,), offset = _unpack(_COUNT, data, offset)
    if offset + length > len(data):
        raise ValueError("Truncated atlas binary")
    return data[offset:offset + length].decode("utf-8"), offset + length
