"""Pillow implementation of the image backend.

Animated GIF and WEBP input keeps all of its frames; every transform is
applied frame by frame and all frames are written back on save.
"""

from io import BytesIO
from pathlib import Path
from typing import IO, Self, override

from PIL import Image, ImageDraw, ImageFont, ImageSequence, UnidentifiedImageError

from ..common.errors import ResourceError, UnsupportedFormatError
from ..common.geometry import rotated_size
from ..common.schemas import ImageFormat, ThumbOptions
from .base import ImageBackend

WHITE = (255, 255, 255)


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info


def _normalize_mode(img: Image.Image) -> Image.Image:
    """Bring any decoded frame to RGB or RGBA."""
    return img.convert("RGBA" if _has_alpha(img) else "RGB")


def _flatten(img: Image.Image, color: tuple[int, int, int] = WHITE) -> Image.Image:
    if img.mode != "RGBA":
        return img.convert("RGB")
    background = Image.new("RGB", img.size, color)
    background.paste(img, mask=img.split()[3])  # 3 is the alpha channel
    return background


def _composite(base: Image.Image, layer: Image.Image, dest: tuple[int, int] = (0, 0)) -> Image.Image:
    """Alpha-composite ``layer`` onto ``base`` and return the result in base's mode."""
    out = base.convert("RGBA")
    out.alpha_composite(layer, dest=dest)
    return out if base.mode == "RGBA" else out.convert(base.mode)


class PillowBackend(ImageBackend):
    """Image backend built on Pillow."""

    name: str = "pillow"

    def __init__(
        self,
        frames: list[Image.Image],
        durations: list[int] | None = None,
        loop: int = 0,
    ) -> None:
        self._frames: list[Image.Image] = frames
        self._durations: list[int] = durations or [0] * len(frames)
        self._loop: int = loop

    @classmethod
    @override
    def open(cls, data: bytes, image_format: ImageFormat) -> Self:
        try:
            with Image.open(BytesIO(data)) as img:
                frames: list[Image.Image] = []
                durations: list[int] = []
                for frame in ImageSequence.Iterator(img):
                    frames.append(_normalize_mode(frame))
                    durations.append(int(frame.info.get("duration", 0)))
                loop = int(img.info.get("loop", 0))
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedFormatError(f"Pillow cannot decode {image_format} image: {exc}") from exc

        if not image_format.supports_animation:
            for extra in frames[1:]:
                extra.close()
            frames, durations = frames[:1], durations[:1]

        return cls(frames, durations=durations, loop=loop)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    @override
    def size(self) -> tuple[int, int]:
        return self._first_frame().size

    def _first_frame(self) -> Image.Image:
        if not self._frames:
            raise ResourceError("Image resources have already been released")
        return self._frames[0]

    def _replace(self, frames: list[Image.Image]) -> None:
        # the new frames exist before the old ones are closed
        old_frames, self._frames = self._frames, frames
        for frame in old_frames:
            frame.close()

    @override
    def scale_to(self, width: int, height: int) -> None:
        _ = self._first_frame()
        self._replace([frame.resize((width, height), Image.Resampling.LANCZOS) for frame in self._frames])

    @override
    def crop(self, x: int, y: int, width: int, height: int) -> None:
        _ = self._first_frame()
        self._replace([frame.crop((x, y, x + width, y + height)) for frame in self._frames])

    @override
    def rotate(self, degrees: float, background: tuple[int, int, int, int]) -> None:
        new_size = rotated_size(*self._first_frame().size, degrees)
        rotated: list[Image.Image] = []
        for frame in self._frames:
            fill = background if frame.mode == "RGBA" else background[:3]
            turned = frame.rotate(
                degrees,
                resample=Image.Resampling.BICUBIC,
                expand=True,
                fillcolor=fill,
            )
            # Pillow's expanded canvas can be a pixel larger; recenter on the exact one
            if turned.size != new_size:
                canvas = Image.new(frame.mode, new_size, fill)
                canvas.paste(
                    turned,
                    ((new_size[0] - turned.width) // 2, (new_size[1] - turned.height) // 2),
                )
                turned.close()
                turned = canvas
            rotated.append(turned)
        self._replace(rotated)

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
        _ = self._first_frame()
        try:
            with Image.open(BytesIO(overlay)) as merge_img:
                region = merge_img.convert("RGBA").crop((src_x, src_y, src_x + src_w, src_y + src_h))
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedFormatError(f"Pillow cannot decode merge image: {exc}") from exc

        if pct < 100:
            alpha = region.getchannel("A").point(lambda a: a * max(pct, 0) // 100)
            region.putalpha(alpha)

        # alpha_composite only accepts non-negative destinations
        if dst_x < 0 or dst_y < 0:
            region = region.crop((max(-dst_x, 0), max(-dst_y, 0), region.width, region.height))
            dst_x, dst_y = max(dst_x, 0), max(dst_y, 0)

        self._replace([_composite(frame, region, (dst_x, dst_y)) for frame in self._frames])

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
        _ = self._first_frame()
        try:
            font = ImageFont.truetype(font_path, size)
        except OSError as exc:
            raise ResourceError(f"Font not readable: {font_path}") from exc

        drawn: list[Image.Image] = []
        for frame in self._frames:
            layer = Image.new("RGBA", frame.size, (0, 0, 0, 0))
            ImageDraw.Draw(layer).text((x, y), text, font=font, fill=(*color, 255), anchor="ls")
            if angle:
                layer = layer.rotate(angle, resample=Image.Resampling.BICUBIC, center=(x, y))
            drawn.append(_composite(frame, layer))
        self._replace(drawn)

    @override
    def fill_background(self, color: tuple[int, int, int], alpha: int) -> None:
        _ = self._first_frame()
        filled: list[Image.Image] = []
        for frame in self._frames:
            background = Image.new("RGBA", frame.size, (*color, alpha))
            background.alpha_composite(frame.convert("RGBA"))
            filled.append(background)
        self._replace(filled)

    def _prepare(self, frame: Image.Image, image_format: ImageFormat, options: ThumbOptions) -> Image.Image:
        """Convert a frame to a mode the target format can hold."""
        if image_format is ImageFormat.JPEG:
            return _flatten(frame)
        if image_format is ImageFormat.PNG and not options.preserve_alpha:
            return _flatten(frame)
        if image_format is ImageFormat.GIF and not options.preserve_transparency:
            return _flatten(frame)
        return frame

    def _save(self, fp: IO[bytes] | Path, image_format: ImageFormat, options: ThumbOptions) -> None:
        frames = [self._prepare(frame, image_format, options) for frame in self._frames]
        if not frames:
            raise ResourceError("Image resources have already been released")

        save_kwargs: dict[str, object] = {}

        if image_format in (ImageFormat.JPEG, ImageFormat.WEBP):
            save_kwargs["quality"] = options.quality

        if image_format is ImageFormat.PNG:
            save_kwargs["optimize"] = True

        if image_format.supports_animation and len(frames) > 1:
            save_kwargs["save_all"] = True
            save_kwargs["append_images"] = frames[1:]
            save_kwargs["duration"] = self._durations
            save_kwargs["loop"] = self._loop

        frames[0].save(fp, format=image_format.pil_format, **save_kwargs)

    @override
    def to_bytes(self, image_format: ImageFormat, options: ThumbOptions) -> bytes:
        buffer = BytesIO()
        self._save(buffer, image_format, options)
        return buffer.getvalue()

    @override
    def write(self, path: str | Path, image_format: ImageFormat, options: ThumbOptions) -> None:
        self._save(Path(path), image_format, options)

    @override
    def release(self) -> None:
        self._replace([])
