"""Exceptions raised by atlaspack."""


class AtlasError(Exception):
    """Base class for atlas packing errors."""
    pass


class InvalidPaddingError(AtlasError):
    """Raised when the requested padding is outside 0..16."""

    def __init__(self, size: int):
        self.size = size
        super().__init__(f"invalid padding size: {size}")


class InvalidAtlasSizeError(AtlasError):
    """Raised when the atlas size is not one of the supported powers of two."""

    def __init__(self, size: int):
        self.size = size
        super().__init__(f"invalid atlas size: {size}")


class CantFitError(AtlasError):
    """Raised when an image does not fit even into an empty atlas."""

    def __init__(self, image_name: str):
        self.image_name = image_name
        super().__init__(f"packing failed, could not fit image {image_name}")
