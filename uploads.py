import os
import uuid

from fastapi import HTTPException, UploadFile
import structlog

import config

logger = structlog.get_logger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}


def save_image(upload: UploadFile, prefix: str) -> str:
    """Validate an uploaded image and store it; returns its public path."""
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if ext not in config.ALLOWED_IMAGE_EXTENSIONS or upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Please upload images only (jpeg, jpg, png, gif).")

    data = upload.file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File too large, maximum size is 5MB")

    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    filename = f"{prefix}-{uuid.uuid4().hex}{ext}"
    with open(os.path.join(config.UPLOAD_DIR, filename), "wb") as fh:
        fh.write(data)
    logger.info("image_saved", filename=filename, size=len(data))
    return f"/uploads/{filename}"


def discard_image(path: str) -> None:
    """Remove a file previously returned by save_image, if it still exists."""
    filename = os.path.basename(path)
    try:
        os.remove(os.path.join(config.UPLOAD_DIR, filename))
    except FileNotFoundError:
        return
    logger.info("image_discarded", filename=filename)
