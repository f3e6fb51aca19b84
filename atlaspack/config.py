"""Configuration management for atlaspack."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from atlaspack.binpack.max_rects import FreeRectChoiceHeuristic
from atlaspack.errors import InvalidAtlasSizeError, InvalidPaddingError

ATLAS_SIZES = (64, 128, 256, 512, 1024, 2048, 4096)
IMAGE_EXTENSIONS = ("ico", "jpg", "jpeg", "png", "pbm", "pgm", "ppm", "pam", "bmp", "tif", "tiff")
MAX_PADDING = 16


class Settings(BaseSettings):
    """Default packing settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ATLAS_",
        extra="ignore",
    )

    # Packing
    max_size: int = Field(default=4096, description="Max atlas size (power of two, 64..4096)")
    padding: int = Field(default=1, ge=0, le=MAX_PADDING, description="Padding between images")
    heuristic: FreeRectChoiceHeuristic = Field(
        default=FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT,
        description="Free rectangle choice heuristic",
    )

    # Output
    extension: str = Field(default="png", description="Image format for atlas pages")
    output_dir: Optional[Path] = Field(default=None, description="Directory for relative outputs")
    log_file: Optional[Path] = Field(default=Path("atlaspack.log"), description="Trace log file")

    @field_validator("max_size")
    @classmethod
    def _check_size(cls, value: int) -> int:
        if value not in ATLAS_SIZES:
            raise ValueError(f"max_size must be one of {ATLAS_SIZES}")
        return value

    @field_validator("extension")
    @classmethod
    def _check_extension(cls, value: str) -> str:
        value = value.lower()
        if value not in IMAGE_EXTENSIONS:
            raise ValueError(f"extension must be one of {IMAGE_EXTENSIONS}")
        return value

    @field_validator("heuristic", mode="before")
    @classmethod
    def _parse_heuristic(cls, value):
        if isinstance(value, str):
            return FreeRectChoiceHeuristic.parse(value)
        return value


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(settings: Settings) -> None:
    """Override global settings."""
    global _settings
    _settings = settings


@dataclass
class PackOptions:
    """Options for a single packing run."""
    size: int = 4096
    pad: int = 1
    heuristic: FreeRectChoiceHeuristic = FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT
    extension: str = "png"

    # Image preparation
    premultiply: bool = False
    trim: bool = False

    # Packing behaviour
    unique: bool = False
    rotate: bool = False

    # Metadata outputs
    xml: bool = False
    binary: bool = False
    json: bool = False

    def __post_init__(self):
        """Validate padding and atlas size."""
        if self.pad < 0 or self.pad > MAX_PADDING:
            raise InvalidPaddingError(self.pad)
        if self.size not in ATLAS_SIZES:
            raise InvalidAtlasSizeError(self.size)
        self.extension = self.extension.lower()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "size": self.size,
            "pad": self.pad,
            "heuristic": self.heuristic.value,
            "extension": self.extension,
            "premultiply": self.premultiply,
            "trim": self.trim,
            "unique": self.unique,
            "rotate": self.rotate,
            "xml": self.xml,
            "binary": self.binary,
            "json": self.json,
        }

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "PackOptions":
        """Create options from settings, with explicit overrides."""
        values = {
            "size": settings.max_size,
            "pad": settings.padding,
            "heuristic": settings.heuristic,
            "extension": settings.extension,
        }
        values.update(overrides)
        return cls(**values)
