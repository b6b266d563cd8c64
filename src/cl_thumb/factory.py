"""Thumb construction from a file path or raw image bytes."""

from collections.abc import Mapping
from pathlib import Path

from loguru import logger

from .backends import get_backend_class
from .common.errors import ArgumentError
from .common.schemas import ThumbOptions
from .thumb import Thumb
from .utils.media_types import determine_image_format, read_image_file


def create_thumb(
    source: str | Path | bytes,
    options: ThumbOptions | Mapping[str, object] | None = None,
    *,
    is_data_stream: bool = False,
    backend: str | None = None,
) -> Thumb:
    """Decode an image and wrap it in a Thumb.

    Args:
        source: Path of the image file, or the encoded image itself
        options: ThumbOptions or a mapping of option names to values
        is_data_stream: Treat ``source`` as encoded image data rather than a path
            (implied when ``source`` is bytes)
        backend: "pillow" or "opencv"; None picks the first installed one

    Returns:
        A Thumb positioned on the decoded image

    Raises:
        FileNotFoundError: If the input file does not exist
        ResourceError: If the input cannot be read or no backend is installed
        UnsupportedFormatError: If the input is not GIF, JPEG, PNG or WEBP
        ArgumentError: If the backend name or an option is invalid
    """
    if isinstance(source, bytes | bytearray):
        data = bytes(source)
        origin = "<data stream>"
    elif is_data_stream:
        raise ArgumentError("A data stream source must be bytes")
    else:
        data = read_image_file(source)
        origin = str(source)

    image_format = determine_image_format(data)
    backend_class = get_backend_class(backend)
    image_backend = backend_class.open(data, image_format)

    thumb = Thumb(image_backend, image_format, options)
    logger.info(
        f"Opened {image_format} image {origin} ({thumb.width}x{thumb.height}) with {backend_class.name}"
    )
    return thumb
