"""Thumbnail route factory."""

from typing import Annotated, Literal

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import ValidationError

from ..common.errors import ArgumentError, ThumbError, UnsupportedFormatError
from ..common.schemas import ImageFormat
from ..factory import create_thumb
from .schema import ThumbnailMode, ThumbnailParams


def render_thumbnail(data: bytes, params: ThumbnailParams) -> tuple[bytes, str]:
    """Apply ``params`` to encoded image bytes.

    Returns:
        (encoded thumbnail, content type)
    """
    options = {"resize_up": params.resize_up, "quality": params.quality}

    with create_thumb(data, options, backend=params.backend) as thumb:
        match params.mode:
            case "resize":
                _ = thumb.resize(params.width or 0, params.height or 0)
            case "adaptive":
                _ = thumb.adaptive_resize(params.width or 0, params.height or 0)
            case "percent":
                _ = thumb.resize_percent(params.percent or 0)
            case "crop":
                _ = thumb.crop_from_center(params.width or 0, params.height)

        image_format = (
            ImageFormat.from_name(params.image_format) if params.image_format else thumb.image_format
        )
        return thumb.encode(image_format), image_format.mime_type


def create_router() -> APIRouter:
    """Create the thumbnail router.

    Returns:
        Configured APIRouter with the thumbnail endpoint
    """
    router = APIRouter()

    @router.post("/thumbnails")
    async def create_thumbnail(
        file: Annotated[UploadFile, File(description="Image to thumbnail (GIF, JPEG, PNG or WEBP)")],
        mode: Annotated[ThumbnailMode, Form(description="resize, adaptive, percent or crop")] = "resize",
        width: Annotated[int | None, Form(description="Target width in pixels")] = None,
        height: Annotated[int | None, Form(description="Target height in pixels")] = None,
        percent: Annotated[int | None, Form(description="Scale factor in percent")] = None,
        image_format: Annotated[
            Literal["gif", "jpg", "jpeg", "png", "webp"] | None,
            Form(description="Output format (default: input format)"),
        ] = None,
        quality: Annotated[int, Form(description="JPEG/WEBP quality (0-100)")] = 85,
        resize_up: Annotated[bool, Form(description="Allow enlarging")] = False,
        backend: Annotated[
            Literal["pillow", "opencv"] | None, Form(description="Image backend")
        ] = None,
    ) -> Response:
        """Create a thumbnail from an uploaded image.

        Returns:
            The encoded thumbnail with its image content type
        """
        try:
            params = ThumbnailParams(
                mode=mode,
                width=width,
                height=height,
                percent=percent,
                image_format=image_format,
                quality=quality,
                resize_up=resize_up,
                backend=backend,
            )
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        data = await file.read()

        try:
            content, media_type = await run_in_threadpool(render_thumbnail, data, params)
        except ArgumentError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except UnsupportedFormatError as exc:
            raise HTTPException(status_code=415, detail=str(exc)) from exc
        except ThumbError as exc:
            logger.error(f"Thumbnail of {file.filename} failed: {exc}")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return Response(content=content, media_type=media_type)

    # Mark function as used (accessed via FastAPI decorator)
    _ = create_thumbnail

    return router
