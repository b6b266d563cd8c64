"""ImageBackend - abstract pixel surface driven by Thumb."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Self

from ..common.schemas import ImageFormat, ThumbOptions


class ImageBackend(ABC):
    """
    Decoded image owned by one Thumb.

    - Geometry is decided by the caller; a backend only executes it
    - Every transform builds its new buffer before dropping the old one
    - ``release()`` frees the buffer; the backend is unusable afterwards
    """

    name: str

    @classmethod
    @abstractmethod
    def open(cls, data: bytes, image_format: ImageFormat) -> Self:
        """Decode encoded image bytes.

        Raises:
            UnsupportedFormatError: If the library cannot decode ``data``
        """
        ...

    @property
    @abstractmethod
    def size(self) -> tuple[int, int]:
        """(width, height) of the current buffer."""
        ...

    @abstractmethod
    def scale_to(self, width: int, height: int) -> None: ...

    @abstractmethod
    def crop(self, x: int, y: int, width: int, height: int) -> None: ...

    @abstractmethod
    def rotate(self, degrees: float, background: tuple[int, int, int, int]) -> None:
        """Rotate counter-clockwise onto a ``rotated_size`` canvas; uncovered area gets ``background``."""
        ...

    @abstractmethod
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
        """Blend a region of the encoded ``overlay`` image onto this one at ``pct`` percent."""
        ...

    @abstractmethod
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
        """Render TrueType text with its baseline origin at (x, y)."""
        ...

    @abstractmethod
    def fill_background(self, color: tuple[int, int, int], alpha: int) -> None:
        """Composite the image over a solid ``color`` with the given 0-255 alpha."""
        ...

    @abstractmethod
    def to_bytes(self, image_format: ImageFormat, options: ThumbOptions) -> bytes: ...

    def write(self, path: str | Path, image_format: ImageFormat, options: ThumbOptions) -> None:
        _ = Path(path).write_bytes(self.to_bytes(image_format, options))

    @abstractmethod
    def release(self) -> None: ...
