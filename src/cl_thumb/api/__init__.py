"""HTTP thumbnail endpoint."""

from .routes import create_router, render_thumbnail
from .schema import ThumbnailParams

__all__ = ["ThumbnailParams", "create_router", "render_thumbnail"]
