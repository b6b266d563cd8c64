"""Pydantic models and enums shared by the engine, the backends and the API."""

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .errors import UnsupportedFormatError

# ─────────────────────────────────────────────────────────────
# Image formats
# ─────────────────────────────────────────────────────────────


class ImageFormat(StrEnum):
    GIF = "GIF"
    JPEG = "JPEG"
    PNG = "PNG"
    WEBP = "WEBP"

    @classmethod
    def from_name(cls, name: str) -> "ImageFormat":
        """Resolve a format name or file extension, case-insensitive ("jpg" == "JPEG")."""
        normalized = name.strip().lstrip(".").upper()
        if normalized == "JPG":
            normalized = "JPEG"
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedFormatError(
                f"Invalid image format: {name!r}. Supported formats are: GIF, JPG, JPEG, PNG, WEBP"
            ) from None

    @classmethod
    def from_mime(cls, mime_type: str) -> "ImageFormat":
        for image_format, mime in _MIME_TYPES.items():
            if mime == mime_type:
                return image_format
        raise UnsupportedFormatError(f"Image format not supported: {mime_type}")

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def pil_format(self) -> str:
        """Format name understood by ``PIL.Image.save``."""
        return self.value

    @property
    def extension(self) -> str:
        """File extension including the dot, as used by ``cv2.imencode``."""
        return ".jpg" if self is ImageFormat.JPEG else f".{self.value.lower()}"

    @property
    def supports_animation(self) -> bool:
        return self in (ImageFormat.GIF, ImageFormat.WEBP)


_MIME_TYPES: dict[ImageFormat, str] = {
    ImageFormat.GIF: "image/gif",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.WEBP: "image/webp",
}


# ─────────────────────────────────────────────────────────────
# Per-image options
# ─────────────────────────────────────────────────────────────


class ThumbOptions(BaseModel):
    """Settings of one image handle.

    Attributes:
        resize_up: Allow resize operations to scale past the current size
        quality: Encoder quality for JPEG and WEBP output (0-100)
        preserve_alpha: Keep the alpha channel of PNG images
        preserve_transparency: Keep the transparent color of GIF images
    """

    resize_up: bool = False
    quality: int = Field(default=100, ge=0, le=100)
    preserve_alpha: bool = True
    preserve_transparency: bool = True

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)
