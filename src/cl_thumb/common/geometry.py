"""Pure dimension calculations and the mutable geometry state of an image.

Every function here works on whole pixels with exact integer arithmetic, so
the results do not depend on floating point rounding:

- ``scale_to_width`` truncates the derived height
- ``scale_to_height`` rounds the derived width up
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class TargetGeometry:
    """Width/height computed for the next transform."""

    new_width: int
    new_height: int


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle that lies completely inside the current image."""

    x: int
    y: int
    width: int
    height: int


@dataclass
class GeometryState:
    """Current pixel dimensions of an image handle.

    Both dimensions are positive; ``update`` replaces them together or not at all.
    """

    width: int
    height: int

    def __post_init__(self) -> None:
        _check_extent(self.width, self.height)

    def update(self, width: int, height: int) -> None:
        _check_extent(width, height)
        self.width, self.height = width, height

    def as_tuple(self) -> tuple[int, int]:
        return self.width, self.height


def _check_extent(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def scale_to_width(width: int, height: int, max_width: int) -> TargetGeometry:
    """Scale so the width becomes ``max_width``; the height is truncated.

    Args:
        width: Current width, must be positive
        height: Current height
        max_width: Width to scale to

    Returns:
        TargetGeometry with ``new_width == max_width``
    """
    return TargetGeometry(
        new_width=max_width,
        new_height=height * max_width // width,
    )


def scale_to_height(width: int, height: int, max_height: int) -> TargetGeometry:
    """Scale so the height becomes ``max_height``; the width is rounded up."""
    return TargetGeometry(
        new_width=_ceil_div(width * max_height, height),
        new_height=max_height,
    )


def bounding_box_resize(
    width: int,
    height: int,
    max_width: int,
    max_height: int,
) -> TargetGeometry:
    """Fit ``width x height`` into a max box; a zero bound leaves that axis free.

    Two passes run one after the other. The height-driven pass runs last and
    overwrites the width-driven result whenever ``max_height`` is set, so the
    width-driven result is only returned when ``max_height == 0``.
    """
    new_size = TargetGeometry(width, height)

    if max_width > 0:
        new_size = scale_to_width(width, height, max_width)

        if max_height > 0 and new_size.new_height > max_height:
            new_size = scale_to_height(new_size.new_width, new_size.new_height, max_height)

    if max_height > 0:
        new_size = scale_to_height(width, height, max_height)

        if max_width > 0 and new_size.new_width > max_width:
            new_size = scale_to_width(new_size.new_width, new_size.new_height, max_width)

    return new_size


def strict_fit_resize(
    width: int,
    height: int,
    max_width: int,
    max_height: int,
) -> TargetGeometry:
    """Scale so the image covers the whole ``max_width x max_height`` box.

    The axis scaled first depends on the longer side of the box and of the
    source. If the first pass leaves the other axis short of the box, the
    other axis function is applied to the original dimensions instead.
    Neither returned dimension is ever smaller than the box.
    """
    if max_width >= max_height:
        if width > height:
            new_size = scale_to_height(width, height, max_height)
            if new_size.new_width < max_width:
                new_size = scale_to_width(width, height, max_width)
        else:
            new_size = scale_to_width(width, height, max_width)
            if new_size.new_height < max_height:
                new_size = scale_to_height(width, height, max_height)
    else:
        if width >= height:
            new_size = scale_to_width(width, height, max_width)
            if new_size.new_height < max_height:
                new_size = scale_to_height(width, height, max_height)
        else:
            new_size = scale_to_height(width, height, max_height)
            if new_size.new_width < max_width:
                new_size = scale_to_width(width, height, max_width)

    return new_size


def percent_resize(width: int, height: int, percent: int) -> TargetGeometry | None:
    """Scale both axes by ``percent``; None when ``percent <= 0`` (nothing to do)."""
    if percent <= 0:
        return None

    return TargetGeometry(
        new_width=_ceil_div(width * percent, 100),
        new_height=_ceil_div(height * percent, 100),
    )


def clamp_box(
    max_width: int,
    max_height: int,
    current: GeometryState,
    allow_upscale: bool,
) -> tuple[int, int]:
    """Clamp a requested box to the current size unless upscaling is allowed."""
    if allow_upscale:
        return max_width, max_height

    return min(max_width, current.width), min(max_height, current.height)


def clamp_crop(
    x: int,
    y: int,
    crop_width: int,
    crop_height: int,
    current: GeometryState,
) -> CropRegion:
    """Bring a crop request inside the current bounds.

    Oversized crops shrink to the image, regions running past the right or
    bottom edge are shifted back, and negative offsets become zero.
    """
    crop_width = min(crop_width, current.width)
    crop_height = min(crop_height, current.height)

    if x + crop_width > current.width:
        x = current.width - crop_width

    if y + crop_height > current.height:
        y = current.height - crop_height

    return CropRegion(
        x=max(x, 0),
        y=max(y, 0),
        width=crop_width,
        height=crop_height,
    )


def center_offsets(width: int, height: int, inner_width: int, inner_height: int) -> tuple[int, int]:
    """Top-left offsets placing an inner box at the center (never negative)."""
    return max(0, (width - inner_width) // 2), max(0, (height - inner_height) // 2)


def rotated_size(width: int, height: int, degrees: float) -> tuple[int, int]:
    """Size of the canvas holding ``width x height`` rotated by ``degrees``.

    Right angles are exact (a swap for 90/270, unchanged for 0/180); other
    angles give the rounded-up bounding box of the rotated rectangle.
    """
    quarter_turns, remainder = divmod(degrees % 360, 90)
    if remainder == 0:
        return (height, width) if quarter_turns % 2 else (width, height)

    radians = math.radians(degrees)
    cos, sin = abs(math.cos(radians)), abs(math.sin(radians))
    # round() strips float noise such as 200.00000000000003 before the ceil
    new_width = math.ceil(round(width * cos + height * sin, 6))
    new_height = math.ceil(round(width * sin + height * cos, 6))
    return max(new_width, 1), max(new_height, 1)
