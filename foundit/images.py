"""
Image checks and object paths for item photos and avatars.
"""

from __future__ import annotations

import io
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from foundit.errors import ValidationFailed
from foundit.storage import StorageClient

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    filename: str
    content_type: Optional[str]
    data: bytes


def validate_image(upload: ImageUpload, *, max_bytes: int) -> None:
    """Reject anything that is not a decodable image under ``max_bytes``."""
    if not upload.content_type or not upload.content_type.startswith("image/"):
        raise ValidationFailed("Please choose an image file.")
    if len(upload.data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationFailed(f"Image must be under {limit_mb}MB.")
    try:
        with Image.open(io.BytesIO(upload.data)) as img:
            img.verify()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        logger.info("Rejected undecodable upload %s: %s", upload.filename, exc)
        raise ValidationFailed("Please choose an image file.") from exc


def file_extension(filename: str, default: str) -> str:
    name = (filename or "").rsplit("/", 1)[-1]
    if "." not in name:
        return default
    ext = name.rsplit(".", 1)[-1].strip().lower()
    return ext or default


def item_image_path(prefix: str, user_id: str, filename: str) -> str:
    ext = file_extension(filename, "jpg")
    return f"{prefix}/{user_id}/{uuid.uuid4()}.{ext}"


def avatar_path(prefix: str, user_id: str, filename: str) -> str:
    ext = file_extension(filename, "png")
    return f"{prefix}/{user_id}/{int(time.time() * 1000)}.{ext}"


def store_image(
    storage: StorageClient, path: str, upload: ImageUpload
) -> str:
    url = storage.upload_bytes(path, upload.data, upload.content_type or "image/jpeg")
    logger.info("Stored image %s (%d bytes)", path, len(upload.data))
    return url
