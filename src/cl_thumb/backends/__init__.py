"""Image backends and their lookup by name."""

import importlib
import importlib.util

from loguru import logger

from ..common.errors import ArgumentError, ResourceError
from .base import ImageBackend

# name -> (module, class, import name of the library it needs); order is preference
_BACKENDS: dict[str, tuple[str, str, str]] = {
    "pillow": (".pillow_backend", "PillowBackend", "PIL"),
    "opencv": (".opencv_backend", "OpenCVBackend", "cv2"),
}


def available_backends() -> list[str]:
    """Names of the backends whose imaging library is installed, in preference order."""
    return [
        name
        for name, (_, _, library) in _BACKENDS.items()
        if importlib.util.find_spec(library) is not None
    ]


def get_backend_class(name: str | None = None) -> type[ImageBackend]:
    """Resolve a backend class by name, or pick the first installed one.

    Raises:
        ArgumentError: If ``name`` is not a known backend
        ResourceError: If the requested backend (or, with no name, any backend)
            is not installed
    """
    if name is not None:
        key = name.strip().lower()
        if key not in _BACKENDS:
            raise ArgumentError(f"Invalid backend: {name}. Choose one of: {', '.join(_BACKENDS)}")
        if key not in available_backends():
            raise ResourceError(f"Backend '{key}' is not installed")
    else:
        installed = available_backends()
        if not installed:
            raise ResourceError("You must have either Pillow or OpenCV installed to use cl_thumb")
        key = installed[0]

    module_name, class_name, _ = _BACKENDS[key]
    module = importlib.import_module(module_name, __name__)
    backend_class: type[ImageBackend] = getattr(module, class_name)
    logger.debug(f"Using image backend: {key}")
    return backend_class


__all__ = ["ImageBackend", "available_backends", "get_backend_class"]
