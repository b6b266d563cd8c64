"""Tests for the OpenCV backend on real encoded images."""

from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import cv2
import pytest
from PIL import Image

from cl_thumb.backends.opencv_backend import OpenCVBackend
from cl_thumb.common.errors import ResourceError, UnsupportedFormatError
from cl_thumb.common.geometry import rotated_size
from cl_thumb.common.schemas import ImageFormat, ThumbOptions

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def open_backend(path: Path, image_format: ImageFormat = ImageFormat.PNG) -> OpenCVBackend:
    return OpenCVBackend.open(path.read_bytes(), image_format)


def decode(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


def near(pixel: tuple[int, ...], expected: tuple[int, ...], tolerance: int = 40) -> bool:
    return all(abs(a - b) <= tolerance for a, b in zip(pixel, expected))


# ============================================================================
# Test Class 1: Decoding
# ============================================================================


class TestOpen:
    """Test OpenCVBackend.open."""

    def test_open_png(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image(200, 100))
        assert backend.size == (200, 100)

    def test_open_jpeg(self, synthetic_image: Path) -> None:
        backend = open_backend(synthetic_image, ImageFormat.JPEG)
        assert backend.size == (2000, 1000)

    def test_open_grayscale(self, tmp_path: Path) -> None:
        """Test single channel input is expanded to three channels."""
        path = tmp_path / "gray.png"
        Image.new("L", (30, 20), 128).save(path)
        backend = open_backend(path)
        backend.crop(0, 0, 10, 10)
        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions()))
        assert img.mode == "RGB"

    def test_open_gif(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image(64, 32, "GIF"), ImageFormat.GIF)
        assert backend.size == (64, 32)

    def test_open_garbage(self) -> None:
        with pytest.raises(UnsupportedFormatError):
            _ = OpenCVBackend.open(b"definitely not an image", ImageFormat.JPEG)

    def test_released(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image())
        backend.release()
        with pytest.raises(ResourceError):
            _ = backend.size


# ============================================================================
# Test Class 2: Geometry
# ============================================================================


class TestGeometry:
    """Test scale_to, crop and rotate."""

    @pytest.mark.parametrize("size", [(80, 40), (400, 300)])
    def test_scale_to(self, make_image: Callable[..., Path], size: tuple[int, int]) -> None:
        """Test shrinking and enlarging both reach the requested size."""
        backend = open_backend(make_image(200, 100))
        backend.scale_to(*size)
        assert backend.size == size

    def test_crop(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image(200, 100))
        backend.crop(100, 0, 100, 100)
        assert backend.size == (100, 100)

        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGB")
        assert img.getpixel((50, 50)) == BLUE

    def test_rotate_quarter_turn(self, make_image: Callable[..., Path]) -> None:
        """Test 90 degrees counter-clockwise moves the red left half to the bottom."""
        backend = open_backend(make_image(200, 100))
        backend.rotate(90, (0, 0, 0, 0))
        assert backend.size == (100, 200)

        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGB")
        assert img.getpixel((50, 150)) == RED
        assert img.getpixel((50, 50)) == BLUE

    def test_rotate_half_turn(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image(200, 100))
        backend.rotate(180, (0, 0, 0, 0))
        assert backend.size == (200, 100)

        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGB")
        assert img.getpixel((10, 50)) == BLUE

    def test_rotate_arbitrary_angle(self, make_image: Callable[..., Path]) -> None:
        """Test the canvas is the bounding box and the corners get the background."""
        backend = open_backend(make_image(200, 100))
        backend.rotate(30, (0, 255, 0, 255))
        assert backend.size == rotated_size(200, 100, 30)

        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGB")
        assert img.getpixel((0, 0)) == (0, 255, 0)

    def test_rotate_full_turn_is_noop(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image(200, 100))
        backend.rotate(360, (0, 0, 0, 0))
        assert backend.size == (200, 100)


# ============================================================================
# Test Class 3: Drawing
# ============================================================================


class TestDrawing:
    """Test composite, fill_background and draw_text."""

    def test_composite(self, make_image: Callable[..., Path]) -> None:
        """Test the blue half of an overlay lands at the destination."""
        base = open_backend(make_image(200, 100))
        overlay = make_image(20, 20, name="overlay.png").read_bytes()

        base.composite(overlay, 5, 5, 10, 0, 10, 20, 100)
        assert base.size == (200, 100)

        img = decode(base.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGB")
        assert img.getpixel((10, 10)) == BLUE
        assert img.getpixel((30, 30)) == RED

    def test_composite_half_percent(self, make_image: Callable[..., Path]) -> None:
        """Test pct=50 mixes the overlay with the image."""
        base = open_backend(make_image(200, 100))
        overlay = make_image(20, 20, name="overlay.png").read_bytes()

        base.composite(overlay, 0, 0, 10, 0, 10, 10, 50)
        img = decode(base.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGB")
        assert near(img.getpixel((5, 5)), (128, 0, 128), tolerance=2)

    def test_composite_outside_canvas(self, make_image: Callable[..., Path]) -> None:
        """Test a region entirely off-canvas changes nothing."""
        base = open_backend(make_image(200, 100))
        before = base.to_bytes(ImageFormat.PNG, ThumbOptions())
        overlay = make_image(20, 20, name="overlay.png").read_bytes()

        base.composite(overlay, 500, 500, 0, 0, 20, 20, 100)
        assert base.to_bytes(ImageFormat.PNG, ThumbOptions()) == before

    def test_fill_background(self, alpha_png: Path) -> None:
        backend = open_backend(alpha_png)
        backend.fill_background((0, 255, 0), 255)

        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions())).convert("RGBA")
        assert img.getpixel((75, 50)) == (0, 255, 0, 255)
        assert img.getpixel((25, 50)) == (255, 0, 0, 255)

    def test_fill_background_on_opaque_image(self, make_image: Callable[..., Path]) -> None:
        """Test an opaque image keeps its colors and gains an alpha channel."""
        backend = open_backend(make_image(200, 100))
        backend.fill_background((0, 255, 0), 128)

        img = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions()))
        assert img.mode == "RGBA"
        assert img.getpixel((10, 10)) == (255, 0, 0, 255)

    @pytest.mark.skipif(hasattr(cv2, "freetype"), reason="OpenCV has the freetype module")
    def test_draw_text_without_freetype(self, make_image: Callable[..., Path]) -> None:
        backend = open_backend(make_image(200, 100))
        with pytest.raises(ResourceError, match="freetype"):
            backend.draw_text(12, 0, 0, 20, (0, 0, 0), "font.ttf", "Hi")

    @pytest.mark.requires_freetype
    @pytest.mark.requires_font
    def test_draw_text(self, make_image: Callable[..., Path], font_path: Path) -> None:
        backend = open_backend(make_image(200, 100))
        before = backend.to_bytes(ImageFormat.PNG, ThumbOptions())

        backend.draw_text(40, 0, 10, 70, (255, 255, 255), str(font_path), "Hi")
        assert backend.size == (200, 100)
        assert backend.to_bytes(ImageFormat.PNG, ThumbOptions()) != before


# ============================================================================
# Test Class 4: Encoding
# ============================================================================


class TestEncoding:
    """Test to_bytes and write."""

    @pytest.mark.parametrize("image_format", [ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.WEBP])
    def test_formats(self, make_image: Callable[..., Path], image_format: ImageFormat) -> None:
        backend = open_backend(make_image(64, 32))
        img = decode(backend.to_bytes(image_format, ThumbOptions()))
        assert img.format == image_format.pil_format
        assert img.size == (64, 32)

    def test_gif(self, make_image: Callable[..., Path]) -> None:
        """Test GIF input decodes and encodes back to GIF."""
        backend = open_backend(make_image(64, 32, "GIF"), ImageFormat.GIF)
        backend.scale_to(32, 16)
        img = decode(backend.to_bytes(ImageFormat.GIF, ThumbOptions(preserve_transparency=False)))
        assert img.format == "GIF"
        assert img.size == (32, 16)
        assert near(img.convert("RGB").getpixel((4, 8)), RED)

    def test_jpeg_flattens_alpha_on_white(self, alpha_png: Path) -> None:
        backend = open_backend(alpha_png)
        img = decode(backend.to_bytes(ImageFormat.JPEG, ThumbOptions()))
        assert img.mode == "RGB"
        assert near(img.getpixel((75, 50)), (255, 255, 255))
        assert near(img.getpixel((25, 50)), RED)

    def test_png_alpha_option(self, alpha_png: Path) -> None:
        backend = open_backend(alpha_png)

        kept = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions()))
        assert kept.mode == "RGBA"
        assert kept.getpixel((75, 50))[3] == 0

        flattened = decode(backend.to_bytes(ImageFormat.PNG, ThumbOptions(preserve_alpha=False)))
        assert flattened.mode == "RGB"
        assert flattened.getpixel((75, 50)) == (255, 255, 255)

    def test_quality_changes_jpeg_size(self, synthetic_image: Path) -> None:
        backend = open_backend(synthetic_image, ImageFormat.JPEG)
        backend.scale_to(400, 200)
        small = backend.to_bytes(ImageFormat.JPEG, ThumbOptions(quality=10))
        large = backend.to_bytes(ImageFormat.JPEG, ThumbOptions(quality=100))
        assert len(small) < len(large)

    def test_write(self, make_image: Callable[..., Path], tmp_path: Path) -> None:
        backend = open_backend(make_image(64, 32))
        target = tmp_path / "written.jpg"
        backend.write(target, ImageFormat.JPEG, ThumbOptions())

        decoded = cv2.imread(str(target))
        assert decoded is not None
        assert decoded.shape[:2] == (32, 64)
        assert near(tuple(int(v) for v in decoded[16, 5]), (0, 0, 255))  # BGR red
