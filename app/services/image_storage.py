"""Validate uploaded grain-sample images and store them on local disk."""

import logging
import os
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import UploadFile

    from app.core.config import Settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})
PUBLIC_IMAGE_PATH = "/uploads/images"
FILENAME_PREFIX = "grain-analysis"


class ImageValidationError(Exception):
    """Raised when an uploaded file is missing, too large or not an accepted image type."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class StoredImage:
    """An image written to UPLOAD_DIR."""

    filename: str
    original_name: str
    mimetype: str
    size: int
    url: str


def public_url(filename: str) -> str:
    """URL under which a stored image is served."""
    return f"{PUBLIC_IMAGE_PATH}/{filename}"


def filename_from_url(url: str) -> str | None:
    """Inverse of public_url; None for URLs outside the upload path."""
    prefix = PUBLIC_IMAGE_PATH + "/"
    if not url or not url.startswith(prefix):
        return None
    return url[len(prefix):] or None


def is_safe_filename(filename: str) -> bool:
    """True if filename has no path components (no traversal out of UPLOAD_DIR)."""
    return bool(filename) and os.path.basename(filename) == filename and filename not in (".", "..")


def validate_image(
    filename: str | None,
    content_type: str | None,
    size: int,
    settings: "Settings",
) -> str:
    """
    Check MIME type, extension and size of an upload. Returns the lower-cased extension.
    Raises ImageValidationError with a specific code otherwise.
    """
    if not filename:
        raise ImageValidationError("No file was uploaded", code="NO_FILE_UPLOADED")
    mimetype = (content_type or "").split(";")[0].strip().lower()
    allowed = settings.allowed_file_types
    if mimetype not in allowed:
        raise ImageValidationError(
            f"File type not allowed. Accepted types: {', '.join(allowed)}"
        )
    extension = Path(filename).suffix.lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise ImageValidationError(
            f"File extension not allowed. Accepted extensions: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}"
        )
    if size == 0:
        raise ImageValidationError("Uploaded file is empty", code="NO_FILE_UPLOADED")
    check_size(size, settings)
    return extension


def check_size(size: int, settings: "Settings") -> None:
    if size > settings.MAX_FILE_SIZE:
        raise ImageValidationError(
            f"File too large. Maximum allowed size: {settings.MAX_FILE_SIZE // (1024 * 1024)}MB",
            code="FILE_TOO_LARGE",
        )


async def read_upload(upload: "UploadFile", settings: "Settings") -> bytes:
    """
    Read an upload without holding more than MAX_FILE_SIZE + 1 bytes.

    Uses the size reported by the multipart parser when present, then reads at
    most one byte past the limit so oversized bodies are rejected early.
    """
    if upload.size is not None:
        check_size(upload.size, settings)
    content = await upload.read(settings.MAX_FILE_SIZE + 1)
    check_size(len(content), settings)
    return content


def _unique_filename(extension: str) -> str:
    millis = int(time.time() * 1000)
    return f"{FILENAME_PREFIX}-{millis}-{random.randrange(10**9)}{extension}"


def store_image(
    content: bytes,
    filename: str | None,
    content_type: str | None,
    settings: "Settings",
) -> StoredImage:
    """Validate and write an upload to UPLOAD_DIR under a generated unique name."""
    extension = validate_image(filename, content_type, len(content), settings)
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    stored_name = _unique_filename(extension)
    (upload_dir / stored_name).write_bytes(content)
    logger.info(
        "Stored uploaded image",
        extra={"stored_filename": stored_name, "size_bytes": len(content)},
    )
    return StoredImage(
        filename=stored_name,
        original_name=filename or "",
        mimetype=(content_type or "").split(";")[0].strip().lower(),
        size=len(content),
        url=public_url(stored_name),
    )


def delete_image(filename: str, settings: "Settings") -> bool:
    """Remove a stored image. Returns False if it does not exist."""
    if not is_safe_filename(filename):
        return False
    path = Path(settings.UPLOAD_DIR) / filename
    if not path.is_file():
        return False
    path.unlink()
    logger.info("Deleted stored image", extra={"stored_filename": filename})
    return True
