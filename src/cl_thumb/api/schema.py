"""Thumbnail request parameters schema."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

ThumbnailMode = Literal["resize", "adaptive", "percent", "crop"]


class ThumbnailParams(BaseModel):
    """Parameters of one thumbnail request.

    Attributes:
        mode: Which transform to apply
            - resize: fit within width x height (either may be omitted)
            - adaptive: fill exactly width x height, cropping the overflow
            - percent: scale both axes by percent
            - crop: crop width x height from the center (height defaults to width)
        width: Target width in pixels
        height: Target height in pixels
        percent: Scale factor in percent, for mode "percent"
        image_format: Output format (default: same as the input)
        quality: JPEG/WEBP quality (0-100)
        resize_up: Allow enlarging past the source size
        backend: Image backend to use (default: first installed)
    """

    mode: ThumbnailMode = "resize"
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    percent: int | None = Field(default=None, gt=0)
    image_format: Literal["gif", "jpg", "jpeg", "png", "webp"] | None = None
    quality: int = Field(default=85, ge=0, le=100)
    resize_up: bool = False
    backend: Literal["pillow", "opencv"] | None = None

    @model_validator(mode="after")
    def validate_mode_arguments(self) -> "ThumbnailParams":
        """Ensure the dimensions needed by the chosen mode are present."""
        if self.mode == "resize" and self.width is None and self.height is None:
            raise ValueError("mode 'resize' needs width or height")
        if self.mode == "adaptive" and (self.width is None or self.height is None):
            raise ValueError("mode 'adaptive' needs width and height")
        if self.mode == "percent" and self.percent is None:
            raise ValueError("mode 'percent' needs percent")
        if self.mode == "crop" and self.width is None:
            raise ValueError("mode 'crop' needs width")
        return self
