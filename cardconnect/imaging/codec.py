"""Size-bounded image encoding for document-store fields.

Firestore limits a single field to roughly 1MB and base64 inflates payloads
by about a third, so card photos are squeezed under ``image_max_bytes``
before they are base64-encoded:

  1. payloads already under the bound are passed through untouched;
  2. otherwise the photo is re-encoded as JPEG at decreasing quality;
  3. if the quality floor is reached and it is still too large, the raster
     is scaled by ``sqrt(bound / size)`` and encoded once more. That last
     result is returned even if it still overshoots (best effort).

Any decode or encode failure yields ``None``; callers upload the card
without an image instead of failing.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import math

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import settings

logger = logging.getLogger(__name__)

_IMAGE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


def _decode(data: bytes) -> Image.Image | None:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        image = ImageOps.exif_transpose(image)
    except _IMAGE_ERRORS as exc:
        logger.warning("Could not decode image payload (%d bytes): %s", len(data), exc)
        return None
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    return image


def _encode_jpeg(image: Image.Image, quality: int) -> bytes | None:
    buf = io.BytesIO()
    try:
        image.save(buf, format="JPEG", quality=quality, optimize=True)
    except _IMAGE_ERRORS as exc:
        logger.warning("JPEG encode failed at quality %d: %s", quality, exc)
        return None
    return buf.getvalue()


def compress_image(
    data: bytes | None,
    max_bytes: int | None = None,
    *,
    start_quality: int | None = None,
    quality_step: int | None = None,
    min_quality: int | None = None,
    resize_quality: int | None = None,
) -> bytes | None:
    """Return image bytes no larger than ``max_bytes`` where achievable."""
    if not data:
        return None

    max_bytes = max_bytes or settings.image_max_bytes
    if len(data) <= max_bytes:
        return data

    quality = start_quality or settings.image_start_quality
    step = quality_step or settings.image_quality_step
    floor = min_quality or settings.image_min_quality

    image = _decode(data)
    if image is None:
        return None

    encoded = _encode_jpeg(image, quality)
    while encoded is not None and len(encoded) > max_bytes and quality > floor:
        quality -= step
        encoded = _encode_jpeg(image, quality)

    if encoded is None:
        return None
    if len(encoded) <= max_bytes:
        logger.debug("Compressed image %d -> %d bytes at quality %d", len(data), len(encoded), quality)
        return encoded

    scale = math.sqrt(max_bytes / len(encoded))
    width, height = image.size
    new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
    resized = image.resize(new_size, Image.Resampling.LANCZOS)
    result = _encode_jpeg(resized, resize_quality or settings.image_resize_quality)
    if result is None:
        logger.warning("Could not encode resized image; keeping %d byte quality-reduced copy", len(encoded))
        return encoded
    logger.debug(
        "Resized image %sx%s -> %sx%s (%d bytes)",
        width, height, new_size[0], new_size[1], len(result),
    )
    return result


def encode_image_for_document(data: bytes | None, max_bytes: int | None = None) -> str | None:
    """Base64 text of ``compress_image(data)``, or None when there is no usable image."""
    compressed = compress_image(data, max_bytes)
    if compressed is None:
        return None
    return base64.b64encode(compressed).decode("ascii")


def decode_image_from_document(value: str | None) -> bytes | None:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Discarding malformed base64 image payload")
        return None


def prepare_local_image(data: bytes | None, quality: int | None = None) -> bytes | None:
    """Re-encode a captured photo as JPEG for local storage.

    Undecodable payloads are kept as-is so nothing the user captured is lost.
    """
    if not data:
        return None
    image = _decode(data)
    if image is None:
        return data
    encoded = _encode_jpeg(image, quality or settings.local_image_quality)
    return encoded if encoded is not None else data
