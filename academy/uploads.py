"""
Image uploads for avatars and course covers
Files land on local disk under UPLOAD_DIR with randomized names
"""

import logging
import os
import re
import secrets
import time
from typing import Optional

from fastapi import UploadFile

from academy import config
from academy.errors import ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

ALLOWED_TYPES = re.compile(r"jpeg|jpg|png|gif|webp")
DANGEROUS_CHARS = re.compile(r"[&/#,+()$~%'\":*?<>{}]")

UPLOAD_SUBDIRS = {
    "avatar": "avatars",
    "cover_image": "course-covers",
}


def check_file_type(filename: str, content_type: Optional[str]):
    """Extension and MIME allow-list plus unsafe character screen"""
    if DANGEROUS_CHARS.search(filename):
        raise ValidationError("File name contains invalid characters")

    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    if not ALLOWED_TYPES.fullmatch(extension) or not ALLOWED_TYPES.search(content_type or ""):
        raise ValidationError("Only image files (JPEG, JPG, PNG, GIF, WEBP) can be uploaded")


async def read_limited(file: UploadFile, limit: int) -> bytes:
    """Read the body in chunks, stopping as soon as it exceeds limit"""
    chunks = []
    size = 0
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            max_mb = limit // (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {max_mb}MB")
        chunks.append(chunk)
    return b"".join(chunks)


async def save_upload(file: UploadFile, kind: str) -> str:
    """
    Validate and store an uploaded image

    Returns:
        str: Stored path (UPLOAD_DIR/<subdir>/<kind>-<random>-<millis><ext>)
    """
    filename = file.filename or ""
    check_file_type(filename, file.content_type)

    content = await read_limited(file, config.MAX_UPLOAD_BYTES)
    if not content:
        raise ValidationError("Uploaded file is empty")

    directory = os.path.join(config.UPLOAD_DIR, UPLOAD_SUBDIRS.get(kind, "misc"))
    os.makedirs(directory, exist_ok=True)

    extension = os.path.splitext(filename)[1].lower()
    stored_name = f"{kind}-{secrets.token_hex(8)}-{int(time.time() * 1000)}{extension}"
    path = os.path.join(directory, stored_name)

    with open(path, "wb") as f:
        f.write(content)

    return path


def discard_upload(path: Optional[str]) -> bool:
    """
    Remove a previously stored upload
    Failures are logged, never raised: the owning record is already updated
    """
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        logger.warning("Upload already gone: %s", path)
    except OSError as e:
        logger.warning("Could not delete upload %s: %s", path, e)
    return False
