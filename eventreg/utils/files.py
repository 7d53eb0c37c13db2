import logging
import random
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from fastapi import UploadFile

from eventreg.config import settings
from eventreg.exceptions import BadRequest

logger = logging.getLogger("eventreg.files")

UPLOADS_URL_PREFIX = "/uploads/"
ALLOWED_EXT = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def make_filename(field: str, suffix: str) -> str:
    # <field>-<epoch ms>-<random>.<ext>
    return f"{field}-{int(time.time() * 1000)}-{random.randint(0, 999_999_999)}{suffix}"


def save_upload(file: UploadFile, field: str) -> str:
    """Write an uploaded image into the upload dir and return its public reference."""
    if file is None or not file.filename:
        raise BadRequest("No file provided.")

    suffix = Path(file.filename).suffix.lower()
    if suffix not in ALLOWED_EXT:
        raise BadRequest(f"Invalid file type. Only {', '.join(sorted(e[1:].upper() for e in ALLOWED_EXT))} are allowed")

    content = file.file.read()
    max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if len(content) > max_size:
        raise BadRequest(f"File too large (max {settings.MAX_UPLOAD_SIZE_MB}MB)")

    filename = make_filename(field, suffix)
    (upload_dir() / filename).write_bytes(content)
    logger.debug("Saved upload %s (%d bytes)", filename, len(content))
    return f"{UPLOADS_URL_PREFIX}{filename}"


def local_path_for(reference: str) -> Optional[Path]:
    """Map a public reference back to a file in the upload dir, or None if it points elsewhere."""
    path = urlparse(reference).path
    if not path.startswith(UPLOADS_URL_PREFIX):
        return None
    name = Path(path).name
    if not name:
        return None
    return upload_dir() / name


def delete_upload(reference: str) -> bool:
    """
    Delete the file behind a reference.

    Returns False when there is nothing local to delete. OS errors propagate so
    callers decide whether a failed delete matters.
    """
    path = local_path_for(reference)
    if path is None:
        logger.debug("Not a local upload, nothing to delete: %s", reference)
        return False
    if not path.exists():
        logger.warning("Attempted to delete non-existent file: %s", path)
        return False
    path.unlink()
    logger.debug("Deleted file %s", path)
    return True


def discard_upload(reference: str) -> None:
    """Best-effort delete for cleanup paths; a failure is logged, never raised."""
    try:
        delete_upload(reference)
    except OSError as e:
        logger.warning("Failed to cleanup file %s: %s", reference, e)
