"""
Upload intake: validate type and size, then store the file on disk.

Stored names are server-generated (file-<ms>-<random><ext>); the original
filename is only kept as metadata.
"""

import asyncio
import logging
import os
import secrets
import time
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile, status
from pydantic import BaseModel

from posty.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".pdf"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "application/pdf"}

ATTACHMENT_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
}


class StoredUpload(BaseModel):
    """A validated upload written to UPLOAD_DIR."""
    path: str
    stored_name: str
    original_name: str

    @property
    def url(self) -> str:
        return f"/uploads/{self.stored_name}"


def mime_type_for(file_name: str) -> str:
    """MIME type from extension; unknown extensions are generic binary."""
    return ATTACHMENT_MIME_TYPES.get(Path(file_name).suffix.lower(), "application/octet-stream")


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def upload_path(stored_name: str) -> Optional[Path]:
    """
    Resolve a stored name inside UPLOAD_DIR.

    Returns None for anything that is not a plain file name (path traversal).
    """
    if not stored_name or os.path.basename(stored_name) != stored_name or stored_name in (".", ".."):
        return None
    return upload_dir() / stored_name


def generate_stored_name(original_name: str) -> str:
    ext = Path(original_name).suffix.lower()
    return f"file-{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"


def validate_upload(file: UploadFile) -> str:
    """
    Check extension and declared content type.

    Returns:
        The original filename

    Raises:
        HTTPException: 400 for a missing file or a disallowed type
    """
    original_name = os.path.basename(file.filename or "")
    if not original_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    ext = Path(original_name).suffix.lower()
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if ext not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only JPEG, PNG, and PDF files are allowed",
        )
    return original_name


def _write_file(path: Path, content: bytes) -> None:
    with open(path, "wb") as f:
        f.write(content)


async def store_upload(file: UploadFile) -> StoredUpload:
    """
    Validate and persist an upload.

    Raises:
        HTTPException: 400 (type), 413 (larger than MAX_UPLOAD_BYTES)
    """
    original_name = validate_upload(file)

    content = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB)",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    stored_name = generate_stored_name(original_name)
    path = upload_dir() / stored_name
    await asyncio.to_thread(_write_file, path, content)

    logger.info(
        f"Stored upload {stored_name}",
        extra={"stored_name": stored_name, "bytes": len(content)},
    )
    return StoredUpload(path=str(path), stored_name=stored_name, original_name=original_name)


def discard_upload(stored_name: str) -> bool:
    """Remove a stored upload; missing files are not an error."""
    path = upload_path(stored_name)
    if path is None:
        return False
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove upload {stored_name}: {e}")
        return False
