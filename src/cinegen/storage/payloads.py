"""Self-contained payloads (data URLs) and mime/extension helpers."""

import base64
import binascii
from typing import Optional, Tuple

DEFAULT_MIME_TYPE = "application/octet-stream"

# Extensions the store adds to filenames without one
MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "video/mp4": ".mp4",
}

# Content types the store serves, by extension
EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
}


def is_data_url(value: Optional[str]) -> bool:
    """Return True if ``value`` is a ``data:`` URL."""
    return bool(value) and value.startswith("data:")


def to_data_url(data: bytes, mime_type: Optional[str] = None) -> str:
    """Encode raw bytes as a base64 data URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"


def parse_data_url(value: str) -> Tuple[str, bytes]:
    """Split a data URL into ``(mime_type, bytes)``.

    Raises:
        ValueError: If the value is not a base64 data URL.
    """
    header, comma, data = value.partition(",")
    params = header[len("data:"):].split(";")
    if not header.startswith("data:") or not comma or "base64" not in params[1:]:
        raise ValueError("Not a base64 data URL")
    return params[0] or DEFAULT_MIME_TYPE, decode_base64(data)


def data_url_mime_type(value: str) -> Optional[str]:
    """Return the declared mime type of a data URL, if any."""
    if not is_data_url(value):
        return None
    header = value.partition(",")[0]
    return header[len("data:"):].split(";")[0] or None


def decode_base64(data: str) -> bytes:
    """Decode base64 text, tolerating whitespace.

    Raises:
        ValueError: If the text is not valid base64.
    """
    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def decode_payload(data: str, mime_type: Optional[str] = None) -> Tuple[bytes, Optional[str]]:
    """Decode a payload in either supported form.

    Args:
        data: A data URL, or bare base64 text.
        mime_type: Explicit mime type. Wins over the one in a data URL.

    Returns:
        Tuple of decoded bytes and the effective mime type. The mime type is
        None for bare base64 without an explicit type.
    """
    if is_data_url(data):
        declared, raw = parse_data_url(data)
        return raw, mime_type or declared
    return decode_base64(data), mime_type


def extension_for(mime_type: Optional[str]) -> str:
    """File extension for a mime type, ``.bin`` when unknown."""
    return MIME_EXTENSIONS.get((mime_type or "").lower(), ".bin")


def mime_type_for(filename: str) -> str:
    """Content type for a filename, based on its extension."""
    dot = filename.rfind(".")
    if dot == -1:
        return DEFAULT_MIME_TYPE
    return EXTENSION_MIME_TYPES.get(filename[dot:].lower(), DEFAULT_MIME_TYPE)
