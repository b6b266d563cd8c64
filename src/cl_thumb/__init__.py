"""cl_thumb - Chainable thumbnails over Pillow and OpenCV."""

from .backends import ImageBackend, available_backends, get_backend_class
from .common.errors import (
    ArgumentError,
    ResourceError,
    StateError,
    ThumbError,
    UnsupportedFormatError,
)
from .common.schemas import ImageFormat, ThumbOptions
from .factory import create_thumb
from .thumb import Thumb

__version__ = "0.1.0"

__all__ = [
    "Thumb",
    "ThumbOptions",
    "ImageFormat",
    "ImageBackend",
    "ThumbError",
    "ArgumentError",
    "UnsupportedFormatError",
    "ResourceError",
    "StateError",
    "__version__",
    "available_backends",
    "create_thumb",
    "get_backend_class",
]
