"""Image upload endpoints."""

import base64
import binascii
import logging
from typing import Annotated

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from peaceblog.api.deps import CurrentAdmin, UploadRateLimit
from peaceblog.config import settings
from peaceblog.services.storage import storage
from peaceblog.utils.image import (
    IMAGE_EXTENSIONS,
    detect_mime_type,
    extension_for,
    get_image_dimensions,
    strip_data_url_prefix,
)

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_PREFIX = "images"


class Base64ImageRequest(BaseModel):
    """Request body for a base64 image upload."""

    data: str = Field(min_length=1, description="Base64 image, optionally as a data: URL")
    filename: str | None = None


class ImageUploadResponse(BaseModel):
    """Response from an image upload."""

    url: str
    blob_key: str
    size: int
    mime_type: str
    width: int | None = None
    height: int | None = None


def bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def store_image(content: bytes, filename: str | None) -> ImageUploadResponse:
    """Validate image bytes and write them to storage."""
    if not content:
        raise bad_request("Empty file")

    if len(content) > settings.max_image_size:
        raise bad_request(f"File too large. Max size: {settings.max_image_size // (1024 * 1024)}MB")

    # Trust the bytes, not the client's content type
    mime_type = detect_mime_type(content)
    extension = extension_for(mime_type)
    if extension is None:
        raise bad_request(f"Invalid file type. Allowed: {', '.join(IMAGE_EXTENSIONS)}")

    url, blob_key = await storage.upload_file(
        data=content,
        prefix=IMAGE_PREFIX,
        extension=extension,
        filename=filename,
    )
    width, height = get_image_dimensions(content)
    logger.info(f"Stored image {blob_key} ({len(content)} bytes, {mime_type})")

    return ImageUploadResponse(
        url=url,
        blob_key=blob_key,
        size=len(content),
        mime_type=mime_type,
        width=width,
        height=height,
    )


@router.post("/upload", response_model=ImageUploadResponse)
async def upload_image(
    _admin: CurrentAdmin,
    _rate_limit: UploadRateLimit,
    file: Annotated[UploadFile, File()],
):
    """Upload an image file (admin only)."""
    content = await file.read()
    return await store_image(content, file.filename)


@router.post("/upload/base64", response_model=ImageUploadResponse)
async def upload_base64_image(
    request: Base64ImageRequest,
    _admin: CurrentAdmin,
    _rate_limit: UploadRateLimit,
):
    """Upload a base64-encoded image (admin only)."""
    try:
        content = base64.b64decode(strip_data_url_prefix(request.data), validate=True)
    except (binascii.Error, ValueError) as e:
        raise bad_request("Invalid base64 image data") from e

    return await store_image(content, request.filename)
