from typing import override


class ThumbError(Exception):
    """
    Base class for every error raised by cl_thumb.

    Carries a human-readable message that is also the string form of the error.
    """

    def __init__(self, message: str = "An unknown thumbnail error occurred."):
        self.message: str = message
        super().__init__(self.message)

    @override
    def __str__(self):
        return self.message


class ArgumentError(ThumbError, ValueError):
    """Non-numeric or out-of-domain argument, invalid option or color."""


class UnsupportedFormatError(ThumbError, ValueError):
    """Input that cannot be decoded, or a save format outside GIF/JPEG/PNG/WEBP."""


class ResourceError(ThumbError, RuntimeError):
    """Unreadable input, unwritable target, or a backend capability that is missing."""


class StateError(ThumbError, RuntimeError):
    """Output requested in a state that no longer allows it (headers already sent)."""
