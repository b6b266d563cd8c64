"""Thumb - chainable image handle driving an ImageBackend.

The handle owns the decoded image (through its backend), its current geometry
and its options. Every transform validates its arguments, derives the target
geometry, asks the backend to do the pixel work and then updates the geometry.
Transforms return the handle itself so calls can be chained:

    thumb.resize(800, 0).adaptive_resize(300, 300).save("out.jpg")

Out-of-bounds crop and resize requests are clamped, never rejected.
"""

import math
import os
import sys
from collections.abc import Mapping
from numbers import Real
from pathlib import Path
from typing import BinaryIO, Self

from loguru import logger
from pydantic import ValidationError

from .backends.base import ImageBackend
from .common.errors import ArgumentError, ResourceError, StateError, UnsupportedFormatError
from .common.geometry import (
    GeometryState,
    TargetGeometry,
    bounding_box_resize,
    center_offsets,
    clamp_box,
    clamp_crop,
    percent_resize,
    rotated_size,
    strict_fit_resize,
)
from .common.schemas import ImageFormat, ThumbOptions
from .utils.colors import opacity_to_alpha, parse_hex_color, validate_rgb

TRANSPARENT = (0, 0, 0, 0)


def _numeric(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ArgumentError(f"{name} must be numeric")
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        raise ArgumentError(f"{name} must be numeric")
    return number


def _pixels(name: str, value: object) -> int:
    """Whole pixels, truncating fractions."""
    return int(_numeric(name, value))


def _positive_pixels(name: str, value: object) -> int:
    pixels = _pixels(name, value)
    if pixels <= 0:
        raise ArgumentError(f"{name} must be numeric and greater than zero")
    return pixels


def _merge_options(current: ThumbOptions, updates: Mapping[str, object]) -> ThumbOptions:
    try:
        return ThumbOptions.model_validate({**current.model_dump(), **updates})
    except ValidationError as exc:
        raise ArgumentError(f"Invalid options: {exc}") from exc


class Thumb:
    """Mutable, chainable handle over one decoded image."""

    def __init__(
        self,
        backend: ImageBackend,
        image_format: ImageFormat,
        options: ThumbOptions | Mapping[str, object] | None = None,
    ) -> None:
        self._backend: ImageBackend = backend
        self._format: ImageFormat = image_format
        self._options: ThumbOptions = ThumbOptions()
        self._headers_sent: bool = False
        self._closed: bool = False

        width, height = backend.size
        try:
            if width <= 0 or height <= 0:
                raise UnsupportedFormatError(f"Image has no extent: {width}x{height}")
            _ = self.set_options(options)
        except Exception:
            self.close()
            raise

        self._geometry: GeometryState = GeometryState(width, height)

    # ─────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────

    @property
    def width(self) -> int:
        return self._geometry.width

    @property
    def height(self) -> int:
        return self._geometry.height

    @property
    def size(self) -> tuple[int, int]:
        return self._geometry.as_tuple()

    @property
    def image_format(self) -> ImageFormat:
        return self._format

    @property
    def content_type(self) -> str:
        return self._format.mime_type

    @property
    def backend(self) -> ImageBackend:
        return self._backend

    @property
    def options(self) -> ThumbOptions:
        return self._options

    def get_option(self, name: str, default: object = None) -> object:
        if name not in ThumbOptions.model_fields:
            return default
        return getattr(self._options, name)

    def set_option(self, name: str, value: object) -> Self:
        self._options = _merge_options(self._options, {name: value})
        return self

    def set_options(self, options: ThumbOptions | Mapping[str, object] | None) -> Self:
        """Merge ``options`` over the current options; unknown names raise ArgumentError."""
        if options is None:
            return self
        if isinstance(options, ThumbOptions):
            options = options.model_dump()
        self._options = _merge_options(self._options, options)
        return self

    def _apply_scale(self, target: TargetGeometry, operation: str) -> None:
        before = self.size
        # a sliver of an image can truncate to zero pixels; keep at least one
        new_width, new_height = max(target.new_width, 1), max(target.new_height, 1)

        self._backend.scale_to(new_width, new_height)
        self._geometry.update(new_width, new_height)
        logger.debug(f"{operation}: {before[0]}x{before[1]} -> {new_width}x{new_height}")

    # ─────────────────────────────────────────────────────────────
    # Transforms
    # ─────────────────────────────────────────────────────────────

    def resize(self, max_width: float = 0, max_height: float = 0) -> Self:
        """Shrink the image to fit within ``max_width x max_height``.

        A zero bound leaves that axis unconstrained. Unless the ``resize_up``
        option is set, bounds larger than the image are clamped to it, so the
        image is never enlarged.

        Raises:
            ArgumentError: If a bound is not numeric or negative, or both are zero
        """
        max_width = _pixels("max_width", max_width)
        max_height = _pixels("max_height", max_height)

        if max_width < 0 or max_height < 0:
            raise ArgumentError("max_width and max_height must not be negative")
        if max_width == 0 and max_height == 0:
            raise ArgumentError("resize needs max_width or max_height greater than zero")

        max_width, max_height = clamp_box(
            max_width, max_height, self._geometry, self._options.resize_up
        )
        target = bounding_box_resize(self.width, self.height, max_width, max_height)
        self._apply_scale(target, "resize")
        return self

    def adaptive_resize(self, width: float, height: float) -> Self:
        """Resize and center-crop so the image fills exactly ``width x height``.

        The image is first scaled so that it covers the box on both axes, then
        the overflow on the longer axis is cropped away evenly from both sides.

        Raises:
            ArgumentError: If width or height is not numeric or not positive
        """
        target_width = _positive_pixels("width", width)
        target_height = _positive_pixels("height", height)

        max_width, max_height = clamp_box(
            target_width, target_height, self._geometry, self._options.resize_up
        )
        covering = strict_fit_resize(self.width, self.height, max_width, max_height)
        self._apply_scale(covering, "adaptive_resize")

        # the box may only be clamped against the freshly scaled image
        max_width, max_height = clamp_box(
            target_width, target_height, self._geometry, self._options.resize_up
        )

        crop_x, crop_y = 0, 0
        if self.width > max_width:
            crop_x = (self.width - max_width) // 2
        elif self.height > max_height:
            crop_y = (self.height - max_height) // 2

        return self.crop(crop_x, crop_y, max_width, max_height)

    def resize_percent(self, percent: float = 0) -> Self:
        """Scale both axes by ``percent`` (100 keeps the size); zero or less does nothing."""
        percent = _pixels("percent", percent)

        target = percent_resize(self.width, self.height, percent)
        if target is None:
            logger.debug(f"resize_percent: {percent}% leaves the image untouched")
            return self

        self._apply_scale(target, "resize_percent")
        return self

    def crop_from_center(self, crop_width: float, crop_height: float | None = None) -> Self:
        """Crop a ``crop_width x crop_height`` box from the center (square by default)."""
        crop_width = _positive_pixels("crop_width", crop_width)
        crop_height = crop_width if crop_height is None else _positive_pixels("crop_height", crop_height)

        crop_width = min(crop_width, self.width)
        crop_height = min(crop_height, self.height)
        crop_x, crop_y = center_offsets(self.width, self.height, crop_width, crop_height)

        return self.crop(crop_x, crop_y, crop_width, crop_height)

    def crop(self, x: float, y: float, crop_width: float, crop_height: float) -> Self:
        """Crop ``crop_width x crop_height`` starting at ``(x, y)``.

        The region is clamped to the image: oversized crops shrink, regions
        running past the right or bottom edge are shifted back and negative
        offsets become zero.
        """
        x = _pixels("x", x)
        y = _pixels("y", y)
        crop_width = _positive_pixels("crop_width", crop_width)
        crop_height = _positive_pixels("crop_height", crop_height)

        region = clamp_crop(x, y, crop_width, crop_height, self._geometry)
        if (region.x, region.y, region.width, region.height) != (x, y, crop_width, crop_height):
            logger.debug(
                f"crop: ({x}, {y}, {crop_width}x{crop_height}) clamped to "
                f"({region.x}, {region.y}, {region.width}x{region.height})"
            )

        before = self.size
        self._backend.crop(region.x, region.y, region.width, region.height)
        self._geometry.update(region.width, region.height)
        logger.debug(f"crop: {before[0]}x{before[1]} -> {region.width}x{region.height}")
        return self

    def rotate(self, degrees: float, background: str | None = None) -> Self:
        """Rotate counter-clockwise by ``degrees``; the canvas grows to fit.

        Right angles swap (90, 270) or keep (180) the dimensions. Other angles
        take the bounding box of the rotated image, and the uncovered corners
        are filled with ``background`` (transparent or black when omitted).
        """
        degrees = _numeric("degrees", degrees)
        fill = TRANSPARENT if background is None else (*self._color(background), 255)

        before = self.size
        new_width, new_height = rotated_size(self.width, self.height, degrees)
        self._backend.rotate(degrees, fill)
        self._geometry.update(new_width, new_height)
        logger.debug(f"rotate {degrees:g}: {before[0]}x{before[1]} -> {new_width}x{new_height}")
        return self

    # ─────────────────────────────────────────────────────────────
    # Drawing
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def _color(color: object) -> tuple[int, int, int]:
        if not isinstance(color, str):
            raise ArgumentError(f"Color must be a hex string, got {color!r}")
        return parse_hex_color(color)

    def background(self, color: str, opacity: float = 100) -> Self:
        """Put a solid background of ``color`` ("#rgb" or "#rrggbb") behind the image.

        ``opacity`` is the background's opacity in percent.
        """
        rgb = self._color(color)
        alpha = opacity_to_alpha(_numeric("opacity", opacity))
        self._backend.fill_background(rgb, alpha)
        logger.debug(f"background: {color} at alpha {alpha}")
        return self

    def copy_merge(
        self,
        other: "Thumb",
        dst_x: float,
        dst_y: float,
        src_x: float,
        src_y: float,
        src_w: float,
        src_h: float,
        pct: float = 100,
    ) -> Self:
        """Blend the ``(src_x, src_y, src_w, src_h)`` part of ``other`` onto this image.

        The part lands at ``(dst_x, dst_y)`` with ``pct`` percent opacity. The
        image size does not change.
        """
        if not isinstance(other, Thumb):
            raise ArgumentError("copy_merge needs another Thumb to merge from")

        overlay = other.encode(ImageFormat.PNG)
        self._backend.composite(
            overlay,
            _pixels("dst_x", dst_x),
            _pixels("dst_y", dst_y),
            _pixels("src_x", src_x),
            _pixels("src_y", src_y),
            _positive_pixels("src_w", src_w),
            _positive_pixels("src_h", src_h),
            min(max(_pixels("pct", pct), 0), 100),
        )
        return self

    def ttf_text(
        self,
        size: float,
        angle: float,
        x: float,
        y: float,
        color: tuple[int, int, int],
        font_path: str | Path,
        text: str,
    ) -> Self:
        """Write ``text`` in a TrueType font with its baseline starting at ``(x, y)``.

        Raises:
            ArgumentError: On non-numeric geometry or an invalid color
            ResourceError: If the font cannot be read or the backend cannot render text
        """
        size = _numeric("size", size)
        if size <= 0:
            raise ArgumentError("size must be numeric and greater than zero")

        self._backend.draw_text(
            size,
            _numeric("angle", angle),
            _pixels("x", x),
            _pixels("y", y),
            validate_rgb(color),
            str(font_path),
            str(text),
        )
        return self

    # ─────────────────────────────────────────────────────────────
    # Output
    # ─────────────────────────────────────────────────────────────

    def encode(self, image_format: ImageFormat | str | None = None) -> bytes:
        """Encode the current image, in the source format unless one is given."""
        if image_format is None:
            target = self._format
        elif isinstance(image_format, ImageFormat):
            target = image_format
        else:
            target = ImageFormat.from_name(image_format)
        return self._backend.to_bytes(target, self._options)

    def to_bytes(self) -> bytes:
        return self.encode()

    def __bytes__(self) -> bytes:
        return self.encode()

    def show(self, stream: BinaryIO | None = None, raw_data: bool = False) -> Self:
        """Write a Content-Type header block and the encoded image to ``stream``.

        With ``raw_data`` only the image bytes are written. ``stream`` defaults
        to standard output.

        Raises:
            StateError: If this handle has already written its headers
        """
        if not raw_data and self._headers_sent:
            raise StateError("Cannot show image, headers have already been sent")

        data = self.encode()
        out = stream if stream is not None else sys.stdout.buffer

        if not raw_data:
            _ = out.write(f"Content-Type: {self.content_type}\r\n\r\n".encode("ascii"))
            self._headers_sent = True

        _ = out.write(data)
        return self

    def save(self, path: str | Path, image_format: ImageFormat | str | None = None) -> Self:
        """Write the image to ``path``.

        The format is ``image_format`` when given, else the file extension, else
        the source format.

        Raises:
            UnsupportedFormatError: If the format is not GIF, JPG, JPEG, PNG or WEBP
            ResourceError: If the target directory is not writable
        """
        path = Path(path)
        if isinstance(image_format, ImageFormat):
            target = image_format
        elif image_format is not None:
            target = ImageFormat.from_name(image_format)
        elif path.suffix:
            target = ImageFormat.from_name(path.suffix)
        else:
            target = self._format

        directory = path.parent if str(path.parent) else Path(".")
        if not os.access(directory, os.W_OK):
            raise ResourceError(f"File not writeable: {path}")

        self._backend.write(path, target, self._options)
        logger.info(f"Saved {self.width}x{self.height} {target} image to {path}")
        return self

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Release the decoded image; safe to call more than once."""
        if not self._closed:
            self._backend.release()
            self._closed = True

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Thumb({self._backend.name}, {self._format}, {self.width}x{self.height}"
            f"{', closed' if self._closed else ''})"
        )
