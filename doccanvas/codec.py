"""
Codec helpers shared by the providers and the asset store.

Covers data-URL encoding/decoding, mime-type lookup (by extension,
by provider output format, and by sniffing the bytes with Pillow), and
the force-alpha PNG re-encode required by image-edit endpoints that
reject images without an alpha channel.
"""

from __future__ import annotations

import base64
import binascii
import io
import mimetypes
import os
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from doccanvas.errors import ParseError

# Inline image token as returned in chat-style message content.
DATA_URL_PATTERN = re.compile(r"data:image/[^;]+;base64,[a-zA-Z0-9+/=]+")

DEFAULT_MIME = "image/png"

_MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}

_EXTENSION_MIMES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

_OUTPUT_FORMAT_MIMES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "webp": "image/webp",
}


# ── Data URLs ────────────────────────────────────────────────────────────────


def is_data_url(value: str) -> bool:
    return isinstance(value, str) and value.startswith("data:")


def split_data_url(data_url: str) -> Tuple[str, str]:
    """Split a data URL into ``(mime_type, base64_payload)``.

    The URL is split on its first comma; the mime type is the header up
    to the first semicolon with the ``data:`` prefix removed.

    Raises:
        ParseError: If the value is not a data URL or has no payload.
    """
    if not is_data_url(data_url) or "," not in data_url:
        raise ParseError("invalid data URL format")
    header, payload = data_url.split(",", 1)
    mime_type = header.split(";", 1)[0][len("data:"):]
    return mime_type, payload


def decode_base64(payload: str) -> bytes:
    """Decode a base64 string, raising :class:`ParseError` on bad input."""
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"failed to decode base64 image data: {exc}") from exc


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """Decode a data URL into ``(raw_bytes, mime_type)``."""
    mime_type, payload = split_data_url(data_url)
    return decode_base64(payload), mime_type or DEFAULT_MIME


def encode_data_url(data: bytes, mime_type: str) -> str:
    """Build ``data:{mime};base64,{payload}`` for raw bytes."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def find_data_url(text: str) -> Optional[str]:
    """Return the first inline ``data:image/...;base64,...`` token in text."""
    if not text or "data:image/" not in text:
        return None
    match = DATA_URL_PATTERN.search(text)
    return match.group(0) if match else None


# ── Mime types ───────────────────────────────────────────────────────────────


def extension_for_mime(mime_type: Optional[str]) -> str:
    """File extension (without dot) for an image mime type; ``png`` if unknown."""
    if not mime_type:
        return "png"
    return _MIME_EXTENSIONS.get(mime_type.split(";", 1)[0].strip().lower(), "png")


def mime_for_output_format(output_format: Optional[str]) -> str:
    """Map a provider ``output_format`` value (``png``, ``jpeg``...) to a mime type."""
    if not output_format:
        return DEFAULT_MIME
    return _OUTPUT_FORMAT_MIMES.get(output_format.strip().lower(), DEFAULT_MIME)


def mime_from_path(path: str) -> Optional[str]:
    """Mime type from the file extension, or ``None`` if it is not an image type."""
    ext = os.path.splitext(path)[1].lower()
    if ext in _EXTENSION_MIMES:
        return _EXTENSION_MIMES[ext]
    guessed, _ = mimetypes.guess_type(path)
    if guessed and guessed.startswith("image/"):
        return guessed
    return None


def sniff_mime(data: bytes) -> str:
    """Detect the mime type from the image bytes themselves."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return "application/octet-stream"
    return Image.MIME.get(fmt or "", "application/octet-stream")


# ── Re-encoding ──────────────────────────────────────────────────────────────


def force_alpha_png(data: bytes) -> bytes:
    """Re-encode an image as an RGBA PNG that is guaranteed to carry alpha.

    The image is converted to 4-channel form. If every pixel is fully
    opaque, the first pixel's alpha is set to 254 so encoders never
    collapse the output to a plain RGB PNG (colour type 2), which some
    edit endpoints reject.

    Raises:
        ParseError: If the bytes are not a decodable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as src:
            rgba = src.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ParseError(f"failed to decode image bytes: {exc}") from exc

    width, height = rgba.size
    if width > 0 and height > 0:
        alpha_min, _ = rgba.getchannel("A").getextrema()
        if alpha_min == 255:
            r, g, b, _ = rgba.getpixel((0, 0))
            rgba.putpixel((0, 0), (r, g, b, 254))

    buffer = io.BytesIO()
    rgba.save(buffer, format="PNG")
    return buffer.getvalue()
