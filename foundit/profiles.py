"""
Profile reads and user-editable profile fields.
"""

from __future__ import annotations

import logging

from foundit.auth import Viewer
from foundit.config import Settings
from foundit.db import DbClient, ProfileRecord
from foundit.errors import NotFound, StorageError, ValidationFailed
from foundit.images import ImageUpload, avatar_path, store_image, validate_image
from foundit.storage import StorageClient

logger = logging.getLogger(__name__)


def get_profile(db: DbClient, viewer: Viewer) -> ProfileRecord:
    profile = db.get_profile(viewer.user_id)
    if not profile:
        raise NotFound("Profile not found")
    return profile


def update_username(db: DbClient, viewer: Viewer, username: str) -> ProfileRecord:
    username = (username or "").strip()
    if not username:
        raise ValidationFailed("Please enter a username.")
    return db.update_profile(viewer.user_id, username=username)


def upload_avatar(
    db: DbClient,
    storage: StorageClient,
    settings: Settings,
    viewer: Viewer,
    image: ImageUpload,
) -> ProfileRecord:
    get_profile(db, viewer)
    validate_image(image, max_bytes=settings.max_image_bytes)
    path = avatar_path(settings.avatars_prefix, viewer.user_id, image.filename)
    try:
        url = store_image(storage, path, image)
    except StorageError as exc:
        raise StorageError(f"Upload failed: {exc.message}") from exc
    profile = db.update_profile(viewer.user_id, avatar_url=url)
    logger.info("User %s updated avatar", viewer.user_id)
    return profile
