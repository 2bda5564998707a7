import logging
import os
import random
import re
import time

from fastapi import UploadFile

from supportdesk import config
from supportdesk.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_TYPES = re.compile(r"jpeg|jpg|png|pdf|doc|docx|txt|msword|wordprocessingml|text/plain")
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".pdf", ".doc", ".docx", ".txt"}
CHUNK_SIZE = 1024 * 1024
TOO_LARGE = "File too large, limit is {limit} bytes"


def _unique_name(field: str, original: str) -> str:
    ext = os.path.splitext(original or "")[1].lower()
    return f"{field}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


async def save_attachment(upload: UploadFile | None, field: str = "attachment") -> str | None:
    """Store an uploaded file under UPLOAD_DIR and return its relative path."""
    if upload is None or not upload.filename:
        return None

    ext = os.path.splitext(upload.filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS or not ALLOWED_TYPES.search(upload.content_type or ""):
        raise ValidationError("Only images, PDFs, and documents are allowed")

    if upload.size is not None and upload.size > config.MAX_FILE_SIZE:
        raise ValidationError(TOO_LARGE.format(limit=config.MAX_FILE_SIZE))

    chunks, total = [], 0
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > config.MAX_FILE_SIZE:
            raise ValidationError(TOO_LARGE.format(limit=config.MAX_FILE_SIZE))
        chunks.append(chunk)
    content = b"".join(chunks)

    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    name = _unique_name(field, upload.filename)
    path = os.path.join(config.UPLOAD_DIR, name)
    with open(path, "wb") as f:
        f.write(content)

    logger.info("Stored attachment %s (%d bytes)", path, len(content))
    return f"{config.UPLOAD_DIR.rstrip('/')}/{name}"
