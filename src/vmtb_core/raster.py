# src/vmtb_core/raster.py
"""
Raster codec helpers.

Rasters travel through the workflow as data URLs (the same representation
the canvas widget consumes), and are decoded to PIL images only while the
engine works on them.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import io
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import RasterDecodeError


_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
}


def image_to_bytes(img: Image.Image, fmt: str = "PNG") -> bytes:
    """Encode a PIL image. JPEG output drops alpha."""
    if fmt.upper() == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buffered = io.BytesIO()
    img.save(buffered, format=fmt)
    return buffered.getvalue()


def bytes_to_image(data: bytes) -> Image.Image:
    """Decode image bytes into a fully loaded PIL image."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise RasterDecodeError(f"Payload is not a decodable image ({exc.__class__.__name__})") from exc
    return img


def image_to_data_url(img: Image.Image, fmt: str = "PNG") -> str:
    """Convert a PIL image to a base64 data URL."""
    fmt = fmt.upper()
    mime = _FORMAT_MIME.get(fmt)
    if mime is None:
        raise ValueError(f"Unsupported export format: {fmt}")
    encoded = base64.b64encode(image_to_bytes(img, fmt)).decode()
    return f"data:{mime};base64,{encoded}"


def split_data_url(data_url: str) -> Tuple[str, bytes]:
    """Return (mime type, decoded payload) of a base64 data URL."""
    if not data_url.startswith("data:") or ";base64," not in data_url:
        raise RasterDecodeError("Not a base64 data URL")
    header, payload = data_url.split(";base64,", 1)
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise RasterDecodeError("Malformed base64 payload") from exc
    return header[len("data:"):], raw


def bytes_to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"


def data_url_to_bytes(data_url: str) -> bytes:
    return split_data_url(data_url)[1]


def mime_of(data_url: str) -> str:
    return split_data_url(data_url)[0]


def data_url_to_image(data_url: str) -> Image.Image:
    """Convert a data URL string to a PIL image."""
    return bytes_to_image(data_url_to_bytes(data_url))


# ═══════════════════════════════════════════════════════════════════════════════
# AUDIT HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def raster_sha256(img: Image.Image) -> str:
    """SHA-256 of the decoded pixel buffer (independent of file encoding)."""
    h = hashlib.sha256()
    h.update(f"{img.mode}:{img.size[0]}x{img.size[1]}:".encode())
    h.update(img.tobytes())
    return h.hexdigest()


def changed_pixel_count(before: Image.Image, after: Image.Image) -> int:
    """Number of pixels whose value differs between two equally sized rasters."""
    if before.size != after.size:
        raise ValueError(f"Raster size mismatch: {before.size} vs {after.size}")
    a = np.asarray(before.convert("RGBA"))
    b = np.asarray(after.convert("RGBA"))
    return int(np.any(a != b, axis=-1).sum())
