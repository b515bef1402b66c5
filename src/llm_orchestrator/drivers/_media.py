"""Normalization of non-text content (URLs, data URLs, base64, paths, bytes)."""

from __future__ import annotations

import base64
import binascii
import mimetypes
import os
import re
from typing import TYPE_CHECKING

from llm_orchestrator.errors import MessageValidationError

if TYPE_CHECKING:
    from llm_orchestrator.types import Content

_IMAGE_DATA_URL_RE = re.compile(r"^data:image/[a-z0-9.+-]+;base64,[a-zA-Z0-9+/]+=*$")
_DATA_URL_RE = re.compile(r"^data:([a-z0-9/.+-]+);base64,(.+)$", re.IGNORECASE | re.DOTALL)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")

_EXTENSION_MIME: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".pdf": "application/pdf",
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".txt": "text/plain",
}

DEFAULT_IMAGE_MIME = "image/jpeg"


def is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def is_base64(value: str) -> bool:
    """Strict check: canonical padding and an exact re-encode round trip."""
    if not value or len(value) % 4 != 0 or not _BASE64_RE.match(value):
        return False
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return base64.b64encode(decoded).decode("ascii") == value


def is_readable_file(value: str) -> bool:
    return os.path.isfile(value) and os.access(value, os.R_OK)


def guess_mime(path: str, default: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    if mime:
        return mime
    return _EXTENSION_MIME.get(os.path.splitext(path)[1].lower(), default)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _read(path: str, driver: str) -> bytes:
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as e:
        raise MessageValidationError.for_driver(
            driver, f"Could not read file {path!r}: {e}"
        ) from e


def normalize_image(content: Content, driver: str) -> str:
    """Return an http(s) URL or a ``data:image/...;base64,`` URL."""
    data = content.data
    default_mime = content.meta.get("mime_type") or DEFAULT_IMAGE_MIME

    if isinstance(data, bytes):
        return f"data:{default_mime};base64,{_b64(data)}"
    if is_url(data):
        return data
    if data.startswith("data:"):
        if not _IMAGE_DATA_URL_RE.match(data):
            raise MessageValidationError.for_driver(
                driver, "Invalid image data URL; expected data:image/<type>;base64,<data>"
            )
        return data
    if is_readable_file(data):
        mime = guess_mime(data, DEFAULT_IMAGE_MIME)
        if not mime.startswith("image/"):
            mime = DEFAULT_IMAGE_MIME
        return f"data:{mime};base64,{_b64(_read(data, driver))}"
    if is_base64(data):
        return f"data:{default_mime};base64,{data}"
    raise MessageValidationError.for_driver(
        driver,
        "Invalid image content: expected a URL, data URL, base64 string, "
        "readable file path or bytes",
    )


def normalize_file(content: Content, driver: str) -> str:
    """Return an http(s) URL or raw base64 for a file, document or audio part."""
    data = content.data
    if isinstance(data, bytes):
        return _b64(data)
    if is_url(data):
        return data
    if data.startswith("data:"):
        match = _DATA_URL_RE.match(data)
        if match and is_base64(match.group(2)):
            return match.group(2)
    if is_readable_file(data):
        return _b64(_read(data, driver))
    if is_base64(data):
        return data
    raise MessageValidationError.for_driver(
        driver,
        f"Invalid {content.type.value} content: expected a URL, base64 string, "
        "readable file path or bytes",
    )


def extract_mime_and_base64(
    value: str, default_mime: str, driver: str
) -> tuple[str, str]:
    """Split a data URL into (mime, base64), or pass raw base64 through."""
    match = _DATA_URL_RE.match(value)
    if match:
        return match.group(1).lower(), match.group(2)
    if not is_base64(value):
        raise MessageValidationError.for_driver(
            driver, "Expected a data: URL or base64 content"
        )
    return default_mime, value


def file_mime(content: Content, default: str) -> str:
    """MIME for a file-like part: metadata first, then the file name."""
    mime = content.meta.get("mime_type")
    if mime:
        return str(mime)
    data = content.data
    if isinstance(data, str) and not is_url(data) and is_readable_file(data):
        return guess_mime(data, default)
    return default
