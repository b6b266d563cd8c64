"""Test configuration and fixtures for cl_thumb.

This module provides:
- Pytest configuration (markers, dependency checks)
- An in-memory recording backend for engine tests without any imaging library
- Synthetic image fixtures generated with Pillow
"""

from collections.abc import Callable
from pathlib import Path
from typing import Self, override

import pytest

from cl_thumb.backends.base import ImageBackend
from cl_thumb.common.geometry import rotated_size
from cl_thumb.common.schemas import ImageFormat, ThumbOptions
from cl_thumb.thumb import Thumb

FONT_CANDIDATES = [
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/TTF/DejaVuSans.ttf"),
    Path("/Library/Fonts/Arial.ttf"),
    Path("/System/Library/Fonts/Supplemental/Arial.ttf"),
    Path("C:/Windows/Fonts/arial.ttf"),
]


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_freetype: requires an OpenCV build with the freetype module",
    )
    config.addinivalue_line(
        "markers",
        "requires_font: requires a TrueType font on the system",
    )


def pytest_runtest_setup(item):
    """Skip tests whose optional system resources are missing."""
    if item.get_closest_marker("requires_freetype"):
        import cv2

        if not hasattr(cv2, "freetype"):
            pytest.skip("OpenCV built without freetype. Install opencv-contrib-python-headless")


# ============================================================================
# Recording backend
# ============================================================================


class RecordingBackend(ImageBackend):
    """Backend that only tracks geometry and records every call.

    Crops outside the current bounds fail the test, so every engine test also
    checks that crop regions are clamped before they reach a backend.
    """

    name: str = "recording"

    def __init__(self, width: int, height: int) -> None:
        self._size: tuple[int, int] = (width, height)
        self.calls: list[tuple[object, ...]] = []
        self.released: int = 0

    @classmethod
    @override
    def open(cls, data: bytes, image_format: ImageFormat) -> Self:
        width, height = data.decode().split("x")
        return cls(int(width), int(height))

    @property
    @override
    def size(self) -> tuple[int, int]:
        return self._size

    @override
    def scale_to(self, width: int, height: int) -> None:
        assert width > 0 and height > 0
        self.calls.append(("scale_to", width, height))
        self._size = (width, height)

    @override
    def crop(self, x: int, y: int, width: int, height: int) -> None:
        current_width, current_height = self._size
        assert x >= 0 and y >= 0
        assert x + width <= current_width and y + height <= current_height
        self.calls.append(("crop", x, y, width, height))
        self._size = (width, height)

    @override
    def rotate(self, degrees: float, background: tuple[int, int, int, int]) -> None:
        self.calls.append(("rotate", degrees, background))
        self._size = rotated_size(*self._size, degrees)

    @override
    def composite(
        self,
        overlay: bytes,
        dst_x: int,
        dst_y: int,
        src_x: int,
        src_y: int,
        src_w: int,
        src_h: int,
        pct: int,
    ) -> None:
        self.calls.append(("composite", overlay, dst_x, dst_y, src_x, src_y, src_w, src_h, pct))

    @override
    def draw_text(
        self,
        size: float,
        angle: float,
        x: int,
        y: int,
        color: tuple[int, int, int],
        font_path: str,
        text: str,
    ) -> None:
        self.calls.append(("draw_text", size, angle, x, y, color, font_path, text))

    @override
    def fill_background(self, color: tuple[int, int, int], alpha: int) -> None:
        self.calls.append(("fill_background", color, alpha))

    @override
    def to_bytes(self, image_format: ImageFormat, options: ThumbOptions) -> bytes:
        width, height = self._size
        return f"{image_format}:{width}x{height}".encode()

    @override
    def release(self) -> None:
        self.released += 1


@pytest.fixture
def make_fake_thumb() -> Callable[..., Thumb]:
    """Build a Thumb over a RecordingBackend of the given size."""

    def _make(
        width: int,
        height: int,
        options: dict[str, object] | None = None,
        image_format: ImageFormat = ImageFormat.PNG,
    ) -> Thumb:
        return Thumb(RecordingBackend(width, height), image_format, options)

    return _make


# ============================================================================
# Synthetic images
# ============================================================================


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a synthetic image file and return its path.

    The left half is red and the right half blue so crops and rotations can
    be checked by color.
    """
    from PIL import Image, ImageDraw

    def _make(
        width: int = 200,
        height: int = 100,
        image_format: str = "PNG",
        mode: str = "RGB",
        name: str | None = None,
    ) -> Path:
        fill = (255, 0, 0, 255) if mode == "RGBA" else (255, 0, 0)
        img = Image.new(mode, (width, height), fill)
        draw = ImageDraw.Draw(img)
        draw.rectangle(
            [width // 2, 0, width - 1, height - 1],
            fill=(0, 0, 255, 255) if mode == "RGBA" else (0, 0, 255),
        )

        suffix = {"JPEG": "jpg"}.get(image_format, image_format.lower())
        path = tmp_path / (name or f"synthetic_{width}x{height}_{mode}.{suffix}")
        save_kwargs: dict[str, object] = {"quality": 95} if image_format == "JPEG" else {}
        img.save(path, image_format, **save_kwargs)
        return path

    return _make


@pytest.fixture
def synthetic_image(make_image: Callable[..., Path]) -> Path:
    """2000x1000 JPEG."""
    return make_image(2000, 1000, "JPEG")


@pytest.fixture
def alpha_png(tmp_path: Path) -> Path:
    """100x100 PNG, opaque red on the left and fully transparent on the right."""
    from PIL import Image

    img = Image.new("RGBA", (100, 100), (255, 0, 0, 255))
    img.paste((0, 0, 0, 0), (50, 0, 100, 100))
    path = tmp_path / "alpha.png"
    img.save(path, "PNG")
    return path


@pytest.fixture
def animated_gif(tmp_path: Path) -> Path:
    """60x40 GIF with three frames of different colors."""
    from PIL import Image

    frames = [Image.new("RGB", (60, 40), color) for color in ((255, 0, 0), (0, 255, 0), (0, 0, 255))]
    path = tmp_path / "animated.gif"
    frames[0].save(path, "GIF", save_all=True, append_images=frames[1:], duration=120, loop=0)
    return path


@pytest.fixture
def font_path() -> Path:
    """Path to a TrueType font available on this machine."""
    for candidate in FONT_CANDIDATES:
        if candidate.exists():
            return candidate

    for fonts_dir in (Path("/usr/share/fonts"), Path("/usr/local/share/fonts")):
        if fonts_dir.exists():
            found = sorted(fonts_dir.rglob("*.ttf"))
            if found:
                return found[0]

    pytest.skip("No TrueType font available on this system")
