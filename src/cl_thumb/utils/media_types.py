from pathlib import Path

import magic

from ..common.errors import ResourceError, UnsupportedFormatError
from ..common.schemas import ImageFormat


def determine_mime(data: bytes) -> str:
    # Create a Magic object
    mime = magic.Magic(mime=True)

    # Determine the file type
    file_type = mime.from_buffer(data)
    if not file_type:
        file_type = "application/octet-stream"
    return file_type


def determine_image_format(data: bytes) -> ImageFormat:
    """Sniff the format of encoded image bytes.

    Raises:
        UnsupportedFormatError: If the bytes are not GIF, JPEG, PNG or WEBP
    """
    if not data:
        raise UnsupportedFormatError("Image format not supported: empty input")
    return ImageFormat.from_mime(determine_mime(data))


def read_image_file(path: str | Path) -> bytes:
    """Read an input image file.

    Raises:
        FileNotFoundError: If the file does not exist
        ResourceError: If the file exists but cannot be read
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {path}")

    try:
        return path.read_bytes()
    except PermissionError as exc:
        raise ResourceError(f"Image file not readable: {path}") from exc
