"""Utility helpers for image encoding, decoding and placeholder synthesis."""

from __future__ import annotations

import base64
import binascii
import io
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from modules.services.storage_service import BLOB_SCHEME, BlobRegistry

DATA_URL_PREFIX = "data:"
PLACEHOLDER_SIZE = 512
GRADIENT_START: Tuple[int, int, int] = (0x66, 0x7E, 0xEA)
GRADIENT_END: Tuple[int, int, int] = (0x76, 0x4B, 0xA2)


def is_data_url(url: Optional[str]) -> bool:
    """Return True when ``url`` is a self-contained ``data:`` URL."""
    return bool(url) and url.startswith(DATA_URL_PREFIX)


def is_blob_url(url: Optional[str]) -> bool:
    """Return True when ``url`` references an in-memory blob."""
    return bool(url) and url.startswith(BLOB_SCHEME)


def encode_data_url(payload: bytes, mime_type: str = "image/png") -> str:
    """Wrap raw bytes into a base64 ``data:`` URL."""
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def decode_data_url(url: str) -> bytes:
    """Return the bytes embedded in a base64 ``data:`` URL."""
    if not is_data_url(url) or "," not in url:
        raise ValueError("Not a data URL")
    header, _, body = url.partition(",")
    if not header.endswith(";base64"):
        raise ValueError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(body, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Corrupt data URL: {exc}") from exc


def image_bytes(url: str, blobs: Optional[BlobRegistry] = None) -> bytes:
    """Resolve a data or blob URL to raw image bytes."""
    if is_data_url(url):
        return decode_data_url(url)
    if is_blob_url(url):
        payload = blobs.resolve(url) if blobs is not None else None
        if payload is None:
            raise LookupError(f"Blob {url} is no longer available")
        return payload
    raise ValueError(f"Unsupported image reference: {url[:32]}")


def is_decodable_image(payload: bytes) -> bool:
    """Return True when Pillow recognizes ``payload`` as an intact image."""
    if not payload:
        return False
    try:
        with Image.open(io.BytesIO(payload)) as image:
            image.verify()
    except (OSError, SyntaxError, ValueError):
        return False
    return True


def load_image(url: str, blobs: Optional[BlobRegistry] = None) -> Image.Image:
    """Decode a data or blob URL into a PIL image."""
    image = Image.open(io.BytesIO(image_bytes(url, blobs)))
    image.load()
    return image


def _font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    candidates = ("arialbd.ttf", "DejaVuSans-Bold.ttf") if bold else ("arial.ttf", "DejaVuSans.ttf")
    for name in candidates:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _blend(start: Tuple[int, int, int], end: Tuple[int, int, int], ratio: float) -> Tuple[int, int, int]:
    return tuple(round(a + (b - a) * ratio) for a, b in zip(start, end))  # type: ignore[return-value]


def _prompt_caption(prompt: str, limit: int = 30) -> str:
    suffix = "..." if len(prompt) > limit else ""
    return f'Prompt: "{prompt[:limit]}{suffix}"'


def create_placeholder_image(prompt: str, size: int = PLACEHOLDER_SIZE) -> Image.Image:
    """Draw the gradient card shown when the real image cannot be fetched."""
    image = Image.new("RGB", (size, size), GRADIENT_START)
    draw = ImageDraw.Draw(image)

    # Diagonal gradient from the top-left to the bottom-right corner.
    span = 2 * (size - 1)
    for offset in range(span + 1):
        colour = _blend(GRADIENT_START, GRADIENT_END, offset / span)
        draw.line([(offset, 0), (0, offset)], fill=colour)

    scale = size / PLACEHOLDER_SIZE
    title_font = _font(round(24 * scale), bold=True)
    body_font = _font(round(16 * scale))
    lines = [
        ("Image Generated!", title_font, 200),
        ("Check the new tab to view", body_font, 240),
        ("your generated image", body_font, 260),
        (_prompt_caption(prompt), body_font, 320),
    ]
    for text, font, baseline in lines:
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = (size - (right - left)) / 2 - left
        y = baseline * scale - bottom
        draw.text((x, y), text, fill="white", font=font)
    return image


def create_placeholder_data_url(prompt: str) -> str:
    """Return the placeholder card for ``prompt`` as a PNG data URL."""
    buffer = io.BytesIO()
    create_placeholder_image(prompt).save(buffer, format="PNG")
    return encode_data_url(buffer.getvalue(), "image/png")
