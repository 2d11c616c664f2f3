"""Content checks for media uploads.

Validates declared MIME types against an allow-list, checks magic numbers
so a renamed executable can't pass as an image, and guards Office Open XML
(ZIP-based) uploads against zip bombs.
"""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from typing import Literal

logger = logging.getLogger(__name__)

MediaKind = Literal["image", "video", "audio", "document"]

ALLOWED_MEDIA_TYPES: dict[str, MediaKind] = {
    "image/jpeg": "image",
    "image/png": "image",
    "image/gif": "image",
    "image/webp": "image",
    "video/mp4": "video",
    "video/mpeg": "video",
    "video/quicktime": "video",
    "audio/mpeg": "audio",
    "audio/wav": "audio",
    "audio/ogg": "audio",
    "application/pdf": "document",
    "application/msword": "document",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "document",
    "application/vnd.ms-excel": "document",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "document",
}

_OLE2 = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_ZIP = b"PK\x03\x04"

# Prefix signatures; an entry of (offset, bytes) matches data[offset:].
_SIGNATURES: dict[str, list[tuple[int, bytes]]] = {
    "image/jpeg": [(0, b"\xff\xd8\xff")],
    "image/png": [(0, b"\x89PNG\r\n\x1a\n")],
    "image/gif": [(0, b"GIF87a"), (0, b"GIF89a")],
    "image/webp": [(8, b"WEBP")],
    "video/mp4": [(4, b"ftyp")],
    "video/quicktime": [(4, b"ftyp"), (4, b"moov"), (4, b"wide"), (4, b"mdat")],
    "video/mpeg": [(0, b"\x00\x00\x01\xba"), (0, b"\x00\x00\x01\xb3")],
    "audio/mpeg": [(0, b"ID3"), (0, b"\xff\xfb"), (0, b"\xff\xf3"), (0, b"\xff\xf2")],
    "audio/wav": [(8, b"WAVE")],
    "audio/ogg": [(0, b"OggS")],
    "application/pdf": [(0, b"%PDF-")],
    "application/msword": [(0, _OLE2)],
    "application/vnd.ms-excel": [(0, _OLE2)],
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": [(0, _ZIP)],
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": [(0, _ZIP)],
}

ZIP_BASED_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


def get_media_kind(mime_type: str | None) -> MediaKind | None:
    """Return the media kind for an allowed MIME type, else None."""
    if not mime_type:
        return None
    return ALLOWED_MEDIA_TYPES.get(mime_type.split(";")[0].strip().lower())


def validate_file_signature(data: bytes, mime_type: str) -> bool:
    """Check that ``data`` starts with a magic number valid for ``mime_type``.

    Types without a registered signature are accepted.
    """
    signatures = _SIGNATURES.get(mime_type)
    if not signatures:
        return True

    for offset, magic in signatures:
        if data[offset:offset + len(magic)] == magic:
            return True

    logger.warning(
        "file_signature.invalid",
        extra={"mime_type": mime_type, "actual_prefix": data[:12].hex() if data else "EMPTY"},
    )
    return False


def validate_zip_safety(
    data: bytes,
    max_ratio: float = 100.0,
    max_uncompressed_mb: int = 50,
) -> None:
    """Reject ZIP archives with suspicious compression ratio or size.

    Raises:
        ValueError: If the archive is malformed or looks like a zip bomb.
    """
    try:
        with zipfile.ZipFile(BytesIO(data)) as zf:
            compressed = sum(info.compress_size for info in zf.infolist())
            uncompressed = sum(info.file_size for info in zf.infolist())
    except zipfile.BadZipFile as exc:
        logger.warning("zip_safety.bad_zip", extra={"error": str(exc)})
        raise ValueError("Invalid ZIP file structure") from exc

    if compressed == 0:
        raise ValueError("Invalid ZIP file: compressed size is zero")

    ratio = uncompressed / compressed
    if ratio > max_ratio:
        logger.warning(
            "zip_safety.suspicious_ratio",
            extra={"ratio": ratio, "max_ratio": max_ratio},
        )
        raise ValueError(
            f"Suspicious compression ratio: {ratio:.1f}x. Maximum allowed: {max_ratio}x"
        )

    if uncompressed > max_uncompressed_mb * 1024 * 1024:
        raise ValueError(
            f"Uncompressed size ({uncompressed / (1024 * 1024):.1f}MB) "
            f"exceeds limit ({max_uncompressed_mb}MB)"
        )
