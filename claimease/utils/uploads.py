# claimease/utils/uploads.py
"""Upload storage utilities."""

import os
import re
import secrets
import time
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from claimease.core.config import settings
from claimease.core.constants import (
    IMAGE_MIME_TYPES, DOCUMENT_MIME_TYPES, IMAGE_ONLY_FIELDS,
    UPLOAD_SUBDIRECTORIES, DEFAULT_UPLOAD_SUBDIRECTORY
)
from claimease.core.exceptions import (
    FileTooLargeError, TooManyFilesError, UnsupportedFileTypeError, UploadError
)
from claimease.core.logging import get_logger
from claimease.models.schemas import UploadedFile

logger = get_logger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


def subdirectory_for(field: str) -> str:
    return UPLOAD_SUBDIRECTORIES.get(field, DEFAULT_UPLOAD_SUBDIRECTORY)


def allowed_types_for(field: str) -> List[str]:
    if field in IMAGE_ONLY_FIELDS:
        return IMAGE_MIME_TYPES
    return IMAGE_MIME_TYPES + DOCUMENT_MIME_TYPES


def sanitize_filename(original_name: str) -> str:
    """
    Build a unique, filesystem-safe name.

    ``My Report (1).pdf`` becomes ``My_Report__1__<ms>-<random>.pdf``.
    """
    base, ext = os.path.splitext(os.path.basename(original_name or "file"))
    safe_base = re.sub(r"[^a-zA-Z0-9]", "_", base) or "file"
    unique = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
    return f"{safe_base}_{unique}{ext.lower()}"


async def save_upload(file: UploadFile, field: str, user_id: Optional[str] = None) -> UploadedFile:
    """
    Validate and store one uploaded file.

    The file is streamed to disk in chunks; reading stops at the first chunk
    that takes it past the size limit.

    Args:
        file: FastAPI UploadFile object
        field: form field name, selects the subdirectory and allowed types

    Returns:
        UploadedFile describing the stored file

    Raises:
        UnsupportedFileTypeError: MIME type not allowed for the field
        FileTooLargeError: file exceeds MAX_FILE_SIZE_MB
    """
    content_type = (file.content_type or "").lower()
    if content_type not in allowed_types_for(field):
        raise UnsupportedFileTypeError(file.filename, content_type or "unknown")

    subdir = subdirectory_for(field)
    target_dir = Path(settings.UPLOAD_DIR) / subdir
    target_dir.mkdir(parents=True, exist_ok=True)

    filename = sanitize_filename(file.filename)
    path = target_dir / filename
    size = 0
    try:
        with open(path, "wb") as f:
            while True:
                chunk = await file.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.max_file_size_bytes:
                    raise FileTooLargeError(file.filename, settings.MAX_FILE_SIZE_MB)
                f.write(chunk)
        if size == 0:
            raise UploadError("Uploaded file is empty", filename=file.filename)
    except UploadError:
        path.unlink(missing_ok=True)
        raise

    logger.log_file("upload", filename, size=size, user_id=user_id, field=field)

    return UploadedFile(
        field=field,
        filename=filename,
        original_name=file.filename or filename,
        path=str(path),
        url=f"/uploads/{subdir}/{filename}",
        mime_type=content_type,
        size=size,
    )


async def save_uploads(files: List[UploadFile], field: str, user_id: Optional[str] = None) -> List[UploadedFile]:
    """Store several files; nothing is left on disk if any one of them is rejected."""
    files = [f for f in files or [] if f is not None and f.filename]
    if len(files) > settings.MAX_FILES_PER_UPLOAD:
        raise TooManyFilesError(settings.MAX_FILES_PER_UPLOAD)

    saved: List[UploadedFile] = []
    try:
        for file in files:
            saved.append(await save_upload(file, field, user_id))
    except UploadError:
        delete_stored_files(saved)
        raise
    return saved


def delete_stored_files(files: List[UploadedFile]):
    """Remove stored uploads, e.g. after the owning request failed."""
    for stored in files:
        try:
            if os.path.exists(stored.path):
                os.remove(stored.path)
                logger.log_file("delete", stored.filename, size=stored.size)
        except OSError as e:
            logger.error(f"Failed to delete upload {stored.path}: {e}")
