"""Attachment classification, media-type resolution and ingestion."""

from __future__ import annotations

import base64
import binascii
from enum import Enum
import logging
import mimetypes
from pathlib import Path

from .exceptions import AttachmentError
from .models import Attachment

LOGGER = logging.getLogger(__name__)

GENERIC_MEDIA_TYPE = "application/octet-stream"

# Declared types browsers and OSes commonly miss or report as octet-stream.
EXTENSION_MEDIA_TYPES: dict[str, str] = {
    "csv": "text/csv",
    "md": "text/markdown",
    "json": "application/json",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "tsv": "text/tab-separated-values",
    "xml": "text/xml",
    "yml": "text/yaml",
    "yaml": "text/yaml",
}

TEXTUAL_MEDIA_TYPES: frozenset[str] = frozenset(
    {"application/json", "application/xml", "application/x-yaml"}
)

DEFAULT_MAX_FILE_BYTES = 20 * 1024 * 1024


class AttachmentKind(str, Enum):
    """Whether an attachment is inlined as text or passed through as bytes."""

    TEXTUAL = "textual"
    BINARY = "binary"


def classify(media_type: str) -> AttachmentKind:
    """Classify a declared media type as textual or binary."""
    if (
        media_type.startswith("text/")
        or media_type in TEXTUAL_MEDIA_TYPES
        or "csv" in media_type
        or "script" in media_type
    ):
        return AttachmentKind.TEXTUAL
    return AttachmentKind.BINARY


def resolve_media_type(media_type: str | None, name: str) -> str:
    """Replace a missing or generic media type using the file extension."""
    if media_type and media_type != GENERIC_MEDIA_TYPE:
        return media_type
    _, dot, extension = name.rpartition(".")
    if not dot:
        return GENERIC_MEDIA_TYPE
    return EXTENSION_MEDIA_TYPES.get(extension.lower(), GENERIC_MEDIA_TYPE)


def classify_attachment(attachment: Attachment) -> AttachmentKind:
    return classify(resolve_media_type(attachment.media_type, attachment.name))


def is_image(media_type: str) -> bool:
    return media_type.startswith("image/")


def strip_data_url(data: str) -> str:
    """Return the base64 payload of a data URL, or ``data`` unchanged."""
    _, comma, payload = data.partition(",")
    return payload if comma else data


def decode_text(payload: str) -> str:
    """Decode a base64 payload as UTF-8 text, returning ``""`` on failure.

    Whitespace (line wrapping) is ignored and missing ``=`` padding restored;
    any other non-alphabet character is a decode failure.
    """
    cleaned = "".join(payload.split())
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        LOGGER.warning(
            "attachment.decode.failed",
            extra={
                "event": "attachment.decode.failed",
                "error_type": type(exc).__name__,
            },
        )
        return ""


def encode_data_url(raw: bytes, media_type: str) -> str:
    payload = base64.b64encode(raw).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def load_attachment(
    path: str | Path, *, max_bytes: int = DEFAULT_MAX_FILE_BYTES
) -> Attachment:
    """Read a local file into an :class:`Attachment` encoded as a data URL.

    Args:
        path: Path to the file to attach
        max_bytes: Maximum accepted file size in bytes

    Raises:
        AttachmentError: If the path is missing, not a file, too large or
            unreadable.
    """
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise AttachmentError(f"File not found: {path}")
    if not resolved.is_file():
        raise AttachmentError(f"Not a file: {path}")

    size = resolved.stat().st_size
    if size > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        raise AttachmentError(f"File too large (max {max_mb:.1f}MB)")

    try:
        raw = resolved.read_bytes()
    except OSError as exc:
        raise AttachmentError(f"Unable to read {path}: {exc}") from exc

    guessed, _ = mimetypes.guess_type(resolved.name)
    media_type = resolve_media_type(guessed, resolved.name)
    LOGGER.info(
        "attachment.loaded",
        extra={
            "event": "attachment.loaded",
            "name": resolved.name,
            "media_type": media_type,
            "bytes": size,
        },
    )
    return Attachment(
        data=encode_data_url(raw, media_type),
        media_type=media_type,
        name=resolved.name,
    )
