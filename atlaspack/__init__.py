"""atlaspack - a texture atlas packer.

Packs images into power-of-two atlases with the MaxRects free-rectangle
algorithm and writes atlas metadata as JSON, XML or binary.
"""

__version__ = "0.1.0"
