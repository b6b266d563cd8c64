import re
from collections.abc import Sequence

from ..common.errors import ArgumentError

_HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_hex_color(color: str) -> tuple[int, int, int]:
    """Parse "#rgb", "rgb", "#rrggbb" or "rrggbb" into an RGB tuple."""
    match = _HEX_PATTERN.match(color.strip())
    if match is None:
        raise ArgumentError(f"Invalid color: {color!r}")

    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)

    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def validate_rgb(color: Sequence[int]) -> tuple[int, int, int]:
    if isinstance(color, str) or not isinstance(color, Sequence) or len(color) != 3 or any(
        isinstance(c, bool) or not isinstance(c, int) or not 0 <= c <= 255 for c in color
    ):
        raise ArgumentError(f"Color must be three integers in 0..255, got {color!r}")
    return color[0], color[1], color[2]


def opacity_to_alpha(opacity: float) -> int:
    """Map a 0-100 opacity percentage to an 8-bit alpha value."""
    opacity = min(max(opacity, 0), 100)
    return round(opacity * 255 / 100)
