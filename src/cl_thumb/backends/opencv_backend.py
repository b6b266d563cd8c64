"""OpenCV implementation of the image backend.

Buffers are numpy arrays in OpenCV channel order (BGR or BGRA). Only the first
frame of animated input is decoded.
"""

from typing import Self, cast, override

import cv2
import numpy as np
from numpy.typing import NDArray

from ..common.errors import ResourceError, UnsupportedFormatError
from ..common.geometry import rotated_size
from ..common.schemas import ImageFormat, ThumbOptions
from .base import ImageBackend

WHITE = (255, 255, 255)

_RIGHT_ANGLE_ROTATIONS: dict[int, int] = {
    90: cv2.ROTATE_90_COUNTERCLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_CLOCKWISE,
}


def _to_8bit_bgr(img: NDArray[np.generic]) -> NDArray[np.uint8]:
    """Bring any decoded array to 8-bit BGR or BGRA."""
    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        return cast(NDArray[np.uint8], cv2.cvtColor(img, cv2.COLOR_GRAY2BGR))
    return cast(NDArray[np.uint8], img)


def _has_alpha(img: NDArray[np.uint8]) -> bool:
    return img.ndim == 3 and img.shape[2] == 4


def _flatten(img: NDArray[np.uint8], color: tuple[int, int, int] = WHITE) -> NDArray[np.uint8]:
    """Drop the alpha channel by compositing over a solid RGB ``color``."""
    if not _has_alpha(img):
        return img
    alpha = img[:, :, 3:4].astype(np.float32) / 255.0
    background = np.array(color[::-1], dtype=np.float32)
    out = img[:, :, :3].astype(np.float32) * alpha + background * (1.0 - alpha)
    return np.clip(out + 0.5, 0, 255).astype(np.uint8)


def _blend_into(
    base: NDArray[np.uint8],
    layer_bgr: NDArray[np.uint8],
    layer_alpha: NDArray[np.float32],
) -> NDArray[np.uint8]:
    """Source-over blend of a BGR layer with a 0..1 alpha map onto ``base``."""
    alpha = layer_alpha[:, :, np.newaxis]
    out = base.copy()
    color = layer_bgr.astype(np.float32) * alpha + base[:, :, :3].astype(np.float32) * (1.0 - alpha)
    out[:, :, :3] = np.clip(color + 0.5, 0, 255).astype(np.uint8)
    if _has_alpha(base):
        base_alpha = base[:, :, 3].astype(np.float32) / 255.0
        merged = layer_alpha + base_alpha * (1.0 - layer_alpha)
        out[:, :, 3] = np.clip(merged * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return out


class OpenCVBackend(ImageBackend):
    """Image backend built on OpenCV and numpy."""

    name: str = "opencv"

    def __init__(self, image: NDArray[np.uint8]) -> None:
        self._image: NDArray[np.uint8] | None = image

    @classmethod
    @override
    def open(cls, data: bytes, image_format: ImageFormat) -> Self:
        buffer = np.frombuffer(data, dtype=np.uint8)
        try:
            decoded = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
        except cv2.error as exc:
            raise UnsupportedFormatError(f"OpenCV cannot decode {image_format} image: {exc}") from exc

        if decoded is None:
            raise UnsupportedFormatError(f"OpenCV cannot decode {image_format} image")

        return cls(_to_8bit_bgr(decoded))

    def _current(self) -> NDArray[np.uint8]:
        if self._image is None:
            raise ResourceError("Image resources have already been released")
        return self._image

    @property
    @override
    def size(self) -> tuple[int, int]:
        height, width = self._current().shape[:2]
        return int(width), int(height)

    @override
    def scale_to(self, width: int, height: int) -> None:
        img = self._current()
        current_width, current_height = self.size
        shrinking = width * height < current_width * current_height
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_CUBIC
        self._image = cast(
            NDArray[np.uint8],
            cv2.resize(img, (width, height), interpolation=interpolation),
        )

    @override
    def crop(self, x: int, y: int, width: int, height: int) -> None:
        img = self._current()
        self._image = img[y : y + height, x : x + width].copy()

    def _border_value(self, background: tuple[int, int, int, int]) -> tuple[int, ...]:
        red, green, blue, alpha = background
        if _has_alpha(self._current()):
            return blue, green, red, alpha
        return blue, green, red

    @override
    def rotate(self, degrees: float, background: tuple[int, int, int, int]) -> None:
        img = self._current()
        normalized = degrees % 360
        if normalized == 0:
            return

        if normalized in _RIGHT_ANGLE_ROTATIONS:
            self._image = cast(
                NDArray[np.uint8],
                cv2.rotate(img, _RIGHT_ANGLE_ROTATIONS[int(normalized)]),
            )
            return

        width, height = self.size
        new_width, new_height = rotated_size(width, height, degrees)

        # positive angles turn counter-clockwise in OpenCV image coordinates
        matrix = cv2.getRotationMatrix2D((width / 2, height / 2), degrees, 1.0)
        matrix[0, 2] += (new_width - width) / 2
        matrix[1, 2] += (new_height - height) / 2

        self._image = cast(
            NDArray[np.uint8],
            cv2.warpAffine(
                img,
                matrix,
                (new_width, new_height),
                flags=cv2.INTER_CUBIC,
                borderMode=cv2.BORDER_CONSTANT,
                borderValue=self._border_value(background),
            ),
        )

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
        img = self._current()
        decoded = cv2.imdecode(np.frombuffer(overlay, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if decoded is None:
            raise UnsupportedFormatError("OpenCV cannot decode merge image")
        merge_img = _to_8bit_bgr(decoded)

        width, height = self.size
        merge_height, merge_width = merge_img.shape[:2]

        # clip the source region to the merge image, then to the destination
        left, top = max(src_x, 0), max(src_y, 0)
        right = min(src_x + src_w, merge_width)
        bottom = min(src_y + src_h, merge_height)
        dst_x += left - src_x
        dst_y += top - src_y

        if dst_x < 0:
            left -= dst_x
            dst_x = 0
        if dst_y < 0:
            top -= dst_y
            dst_y = 0
        right = min(right, left + width - dst_x)
        bottom = min(bottom, top + height - dst_y)

        if right <= left or bottom <= top:
            return

        region = merge_img[top:bottom, left:right]
        alpha = np.full(region.shape[:2], max(min(pct, 100), 0) / 100.0, dtype=np.float32)
        if _has_alpha(region):
            alpha *= region[:, :, 3].astype(np.float32) / 255.0

        region_h, region_w = region.shape[:2]
        out = img.copy()
        target = out[dst_y : dst_y + region_h, dst_x : dst_x + region_w]
        out[dst_y : dst_y + region_h, dst_x : dst_x + region_w] = _blend_into(
            target, region[:, :, :3], alpha
        )
        self._image = out

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
        img = self._current()
        if not hasattr(cv2, "freetype"):
            raise ResourceError(
                "TrueType text needs an OpenCV build with the freetype module "
                "(opencv-contrib-python)"
            )

        renderer = cv2.freetype.createFreeType2()
        try:
            renderer.loadFontData(font_path, 0)
        except cv2.error as exc:
            raise ResourceError(f"Font not readable: {font_path}") from exc

        height, width = img.shape[:2]
        layer = np.zeros((height, width, 3), dtype=np.uint8)
        mask = np.zeros((height, width, 3), dtype=np.uint8)
        font_height = max(int(round(size)), 1)
        bgr = (color[2], color[1], color[0])

        renderer.putText(layer, text, (x, y), font_height, bgr, -1, cv2.LINE_AA, False)
        renderer.putText(mask, text, (x, y), font_height, WHITE, -1, cv2.LINE_AA, False)

        if angle:
            matrix = cv2.getRotationMatrix2D((float(x), float(y)), angle, 1.0)
            layer = cv2.warpAffine(layer, matrix, (width, height), flags=cv2.INTER_LINEAR)
            mask = cv2.warpAffine(mask, matrix, (width, height), flags=cv2.INTER_LINEAR)

        alpha = mask[:, :, 0].astype(np.float32) / 255.0
        self._image = _blend_into(img, layer, alpha)

    @override
    def fill_background(self, color: tuple[int, int, int], alpha: int) -> None:
        img = self._current()
        height, width = img.shape[:2]

        if _has_alpha(img):
            fg_alpha = img[:, :, 3].astype(np.float32) / 255.0
        else:
            fg_alpha = np.ones((height, width), dtype=np.float32)
        bg_alpha = alpha / 255.0

        out_alpha = fg_alpha + bg_alpha * (1.0 - fg_alpha)
        safe_alpha = np.where(out_alpha > 0, out_alpha, 1.0)[:, :, np.newaxis]

        background = np.array(color[::-1], dtype=np.float32)
        fg = img[:, :, :3].astype(np.float32)
        out_color = (
            fg * fg_alpha[:, :, np.newaxis]
            + background * bg_alpha * (1.0 - fg_alpha[:, :, np.newaxis])
        ) / safe_alpha

        out = np.empty((height, width, 4), dtype=np.uint8)
        out[:, :, :3] = np.clip(out_color + 0.5, 0, 255).astype(np.uint8)
        out[:, :, 3] = np.clip(out_alpha * 255.0 + 0.5, 0, 255).astype(np.uint8)
        self._image = out

    def _prepare(self, image_format: ImageFormat, options: ThumbOptions) -> NDArray[np.uint8]:
        img = self._current()
        if image_format is ImageFormat.JPEG:
            return _flatten(img)
        if image_format is ImageFormat.PNG and not options.preserve_alpha:
            return _flatten(img)
        if image_format is ImageFormat.GIF and not options.preserve_transparency:
            return _flatten(img)
        return img

    @override
    def to_bytes(self, image_format: ImageFormat, options: ThumbOptions) -> bytes:
        img = self._prepare(image_format, options)

        params: list[int] = []
        if image_format is ImageFormat.JPEG:
            params = [cv2.IMWRITE_JPEG_QUALITY, options.quality]
        elif image_format is ImageFormat.WEBP:
            params = [cv2.IMWRITE_WEBP_QUALITY, max(options.quality, 1)]

        try:
            ok, encoded = cv2.imencode(image_format.extension, img, params)
        except cv2.error as exc:
            raise UnsupportedFormatError(f"OpenCV cannot encode {image_format}: {exc}") from exc

        if not ok:
            raise UnsupportedFormatError(f"OpenCV cannot encode {image_format}")
        return encoded.tobytes()

    @override
    def release(self) -> None:
        self._image = None
