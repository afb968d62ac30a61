"""Image sniffing helpers for uploads."""

import io

from PIL import Image, UnidentifiedImageError

# Formats accepted for blog images, by MIME type
IMAGE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}

SIGNATURES: list[tuple[tuple[bytes, ...], str]] = [
    ((b"\x89PNG\r\n\x1a\n",), "image/png"),
    ((b"\xff\xd8\xff",), "image/jpeg"),
    ((b"GIF87a", b"GIF89a"), "image/gif"),
]


def detect_mime_type(data: bytes) -> str:
    """Detect an image MIME type from its magic bytes.

    Returns "application/octet-stream" for anything that isn't one of the
    accepted formats.
    """
    for prefixes, mime in SIGNATURES:
        if data.startswith(prefixes):
            return mime

    # WebP is a RIFF container with the format tag at offset 8
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"

    return "application/octet-stream"


def extension_for(mime_type: str) -> str | None:
    """File extension for an accepted image MIME type, or None."""
    return IMAGE_EXTENSIONS.get(mime_type)


def strip_data_url_prefix(base64_data: str) -> str:
    """Strip a data URL prefix (data:image/png;base64,...) if present."""
    base64_data = base64_data.strip()
    if base64_data.startswith("data:") and "," in base64_data:
        return base64_data.split(",", 1)[1]
    return base64_data


def get_image_dimensions(data: bytes) -> tuple[int | None, int | None]:
    """Read (width, height) with Pillow, or (None, None) if it can't be parsed."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.width, img.height
    except (UnidentifiedImageError, OSError):
        return None, None
