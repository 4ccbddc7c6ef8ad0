"""Tests for size-bounded image encoding."""

from __future__ import annotations

import base64
import io
import os

from PIL import Image

from cardconnect.imaging import codec
from cardconnect.imaging.codec import (
    compress_image,
    decode_image_from_document,
    encode_image_for_document,
    prepare_local_image,
)

JPEG_MAGIC = b"\xff\xd8"


def _noise_png(width: int, height: int, mode: str = "RGB") -> bytes:
    channels = len(mode)
    image = Image.frombytes(mode, (width, height), os.urandom(width * height * channels))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def test_empty_input_yields_none():
    assert compress_image(b"") is None
    assert compress_image(None) is None
    assert encode_image_for_document(b"") is None


def test_payload_under_bound_is_untouched():
    data = _noise_png(20, 20)
    assert compress_image(data, max_bytes=len(data)) is data


def test_undecodable_payload_over_bound_yields_none():
    assert compress_image(b"not an image" * 200, max_bytes=100) is None


def test_quality_reduction_brings_payload_under_bound():
    data = _noise_png(300, 300)
    assert len(data) > 250_000

    result = compress_image(data, max_bytes=250_000)
    assert result is not None
    assert result.startswith(JPEG_MAGIC)
    assert len(result) <= 250_000


def test_rgba_payload_is_flattened_to_jpeg():
    data = _noise_png(200, 200, mode="RGBA")
    result = compress_image(data, max_bytes=len(data) - 1)
    assert result is not None
    assert Image.open(io.BytesIO(result)).mode == "RGB"


def test_resize_fallback_shrinks_dimensions():
    data = _noise_png(600, 600)
    result = compress_image(data, max_bytes=20_000)
    assert result is not None
    assert result.startswith(JPEG_MAGIC)
    width, height = Image.open(io.BytesIO(result)).size
    assert width < 600 and height < 600
    assert abs(width - height) <= 1


def test_failed_resize_encode_keeps_quality_reduced_bytes(monkeypatch):
    real_encode = codec._encode_jpeg

    def _encode(image, quality):
        if image.size != (600, 600):
            return None
        return real_encode(image, quality)

    monkeypatch.setattr(codec, "_encode_jpeg", _encode)
    data = _noise_png(600, 600)
    result = compress_image(data, max_bytes=5_000, min_quality=10)
    assert result is not None
    assert result.startswith(JPEG_MAGIC)
    assert len(result) > 5_000
    assert Image.open(io.BytesIO(result)).size == (600, 600)
    assert result == real_encode(Image.open(io.BytesIO(data)).convert("RGB"), 10)


def test_encode_for_document_is_base64_of_compressed_bytes():
    data = _noise_png(16, 16)
    encoded = encode_image_for_document(data, max_bytes=1_000_000)
    assert base64.b64decode(encoded) == data


def test_decode_from_document():
    assert decode_image_from_document(base64.b64encode(b"abc").decode()) == b"abc"
    assert decode_image_from_document(None) is None
    assert decode_image_from_document("") is None
    assert decode_image_from_document("***not base64***") is None


def test_prepare_local_image_reencodes_as_jpeg():
    result = prepare_local_image(_noise_png(32, 32))
    assert result.startswith(JPEG_MAGIC)


def test_prepare_local_image_keeps_undecodable_bytes():
    assert prepare_local_image(b"raw-bytes") == b"raw-bytes"
    assert prepare_local_image(b"") is None


def test_two_megabyte_photo_meets_default_bound_or_is_resized():
    data = _noise_png(820, 820)
    assert len(data) > 2_000_000

    result = compress_image(data)
    assert result is not None
    if len(result) > 700_000:
        assert Image.open(io.BytesIO(result)).size[0] < 820
