"""Upload handling for media messages: size limit, type allow-list, content checks."""
from __future__ import annotations

import logging

from fastapi import HTTPException, UploadFile

from app.adapters.messaging.base import MediaPayload
from app.core.config import settings
from app.core.errors import UnsupportedMediaAppError, ValidationAppError
from app.utils.file_validators import (
    ZIP_BASED_TYPES,
    get_media_kind,
    validate_file_signature,
    validate_zip_safety,
)

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192


async def read_upload_file_limited(file: UploadFile) -> bytes:
    """Read an uploaded file in chunks enforcing the max size limit.

    Uses ``file.size`` when the multipart parser knows it, and enforces the
    limit again while reading.

    Raises:
        HTTPException: 413 if the file exceeds the configured size limit.
    """
    max_bytes = settings.app.max_upload_size_mb * 1024 * 1024
    too_large = HTTPException(
        status_code=413,
        detail=f"File too large. Maximum size is {settings.app.max_upload_size_mb}MB",
    )

    file_size = getattr(file, "size", None)
    if file_size is not None and file_size > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"file_size": file_size, "max_bytes": max_bytes},
        )
        raise too_large

    size = 0
    chunks: list[bytes] = []
    while chunk := await file.read(_CHUNK_SIZE):
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise too_large
        chunks.append(chunk)

    return b"".join(chunks)


async def load_media_upload(file: UploadFile) -> MediaPayload:
    """Validate an uploaded media file and load it into a MediaPayload.

    Raises:
        UnsupportedMediaAppError: Type not allowed or content doesn't match it.
        ValidationAppError: Empty file or unsafe archive.
        HTTPException: 413 when over the size limit.
    """
    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    if get_media_kind(mime_type) is None:
        raise UnsupportedMediaAppError(
            code="unsupported_media_type",
            message=f"File type {file.content_type or 'unknown'} not allowed",
            details={"mime_type": file.content_type or ""},
        )

    data = await read_upload_file_limited(file)
    if not data:
        raise ValidationAppError(code="empty_file", message="No file uploaded")

    if not validate_file_signature(data, mime_type):
        raise UnsupportedMediaAppError(
            code="media_signature_mismatch",
            message=f"File content does not match declared type {mime_type}",
            details={"mime_type": mime_type},
        )

    if mime_type in ZIP_BASED_TYPES:
        try:
            validate_zip_safety(data)
        except ValueError as exc:
            raise ValidationAppError(code="unsafe_archive", message=str(exc)) from exc

    logger.debug(
        "file_validation.accepted",
        extra={"mime_type": mime_type, "size_bytes": len(data)},
    )
    return MediaPayload(
        data=data,
        mimetype=mime_type,
        filename=file.filename or "file",
    )
