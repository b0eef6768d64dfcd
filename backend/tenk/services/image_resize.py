"""
Shrink an uploaded activity screenshot before it goes to the coach model:
limit the long side, keep aspect ratio, re-encode as JPEG.
"""
import base64
import binascii
import io
import logging

from PIL import Image
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

MAX_LONG_SIDE = 1024
JPEG_QUALITY = 85


def decode_data_url(data: str) -> bytes:
    """Bytes of a ``data:image/...;base64,`` URL or a bare base64 string. Raises ValueError."""
    payload = data.split(",", 1)[1] if data.startswith("data:") and "," in data else data
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("image_data is not valid base64") from e


def _resize_sync(image_bytes: bytes, max_long_side: int, jpeg_quality: int) -> bytes:
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except Exception as e:
        raise ValueError(f"image_data is not a readable image: {e}") from e

    if img.mode in ("P", "RGBA", "LA"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    w, h = img.size
    long_side = max(w, h)
    if long_side > max_long_side:
        scale = max_long_side / long_side
        img = img.resize((max(1, round(w * scale)), max(1, round(h * scale))), Image.Resampling.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=jpeg_quality)
    return buf.getvalue()


async def resize_image_for_ai(
    image_bytes: bytes,
    max_long_side: int = MAX_LONG_SIDE,
    jpeg_quality: int = JPEG_QUALITY,
) -> bytes:
    """JPEG bytes no larger than ``max_long_side`` on either side. CPU work runs in a threadpool."""
    return await run_in_threadpool(_resize_sync, image_bytes, max_long_side, jpeg_quality)
