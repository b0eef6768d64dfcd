"""Tests for screenshot decoding and resize before the coach model (scale by long side, JPEG)."""

import base64
import io

import pytest
from PIL import Image

from tenk.services.image_resize import decode_data_url, resize_image_for_ai


def _make_image_bytes(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    color = (100, 150, 200, 128) if mode == "RGBA" else (100, 150, 200)
    img = Image.new(mode, (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def test_decode_data_url_with_prefix_and_bare():
    raw = b"hello"
    encoded = base64.b64encode(raw).decode()
    assert decode_data_url(f"data:image/png;base64,{encoded}") == raw
    assert decode_data_url(encoded) == raw


def test_decode_data_url_rejects_invalid_base64():
    with pytest.raises(ValueError):
        decode_data_url("data:image/png;base64,!!!not-base64!!!")


@pytest.mark.asyncio
async def test_resize_rejects_invalid_bytes():
    with pytest.raises(ValueError):
        await resize_image_for_ai(b"not an image")


@pytest.mark.asyncio
async def test_resize_small_image_keeps_size():
    result = await resize_image_for_ai(_make_image_bytes(100, 80), max_long_side=1024)
    img = _open(result)
    assert img.format == "JPEG"
    assert img.size == (100, 80)


@pytest.mark.asyncio
async def test_resize_large_image_scales_by_long_side():
    result = await resize_image_for_ai(_make_image_bytes(2000, 1000), max_long_side=500)
    assert _open(result).size == (500, 250)


@pytest.mark.asyncio
async def test_resize_narrow_tall_screenshot():
    result = await resize_image_for_ai(_make_image_bytes(300, 2000))
    img = _open(result)
    assert img.size == (round(300 * 1024 / 2000), 1024)


@pytest.mark.asyncio
async def test_transparent_png_becomes_rgb_jpeg():
    result = await resize_image_for_ai(_make_image_bytes(40, 40, fmt="PNG", mode="RGBA"))
    img = _open(result)
    assert img.format == "JPEG"
    assert img.mode == "RGB"
