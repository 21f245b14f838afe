"""
Item operations: posting, editing, browsing and the founder's item views.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from foundit.auth import Viewer
from foundit.config import Settings
from foundit.db import STATUS_CLAIMED, STATUS_FOUND, DbClient, ItemRecord, Question
from foundit.errors import (
    ItemAlreadyClaimed,
    NotAuthenticated,
    NotAuthorized,
    NotFound,
    StorageError,
    ValidationFailed,
)
from foundit.images import ImageUpload, item_image_path, store_image, validate_image
from foundit.storage import StorageClient

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 2
MAX_QUESTIONS = 3
OPTIONS_PER_QUESTION = 3


@dataclass
class ItemDetail:
    item: ItemRecord
    has_applied: bool = False
    is_winner: bool = False
    message: Optional[str] = None


def require_viewer(viewer: Optional[Viewer]) -> Viewer:
    if viewer is None:
        raise NotAuthenticated("Not authenticated")
    return viewer


def require_owned_item(db: DbClient, viewer: Viewer, item_id: str) -> ItemRecord:
    """Load an item the viewer posted; founders only."""
    if not viewer.is_founder:
        raise NotAuthorized("Only founders can manage items.")
    item = db.get_item(item_id)
    if not item:
        raise NotFound("Item not found")
    if item.founder_id != viewer.user_id:
        logger.warning("User %s tried to manage item %s", viewer.user_id, item_id)
        raise NotAuthorized("Only the founder who posted this item can manage it.")
    return item


def parse_questions(raw: Any) -> list[Question]:
    """Accept a JSON string or an already-decoded list of question objects."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ValidationFailed("Questions must be a JSON list.") from exc
    if not isinstance(raw, list) or not all(isinstance(q, dict) for q in raw):
        raise ValidationFailed("Questions must be a JSON list.")
    return [Question.from_dict(q) for q in raw]


def validate_questions(questions: list[Question], *, editing: bool = False) -> None:
    if len(questions) < MIN_QUESTIONS:
        raise ValidationFailed(
            "Please keep at least 2 questions."
            if editing
            else "Please add at least 2 questions."
        )
    if len(questions) > MAX_QUESTIONS:
        raise ValidationFailed("You can add at most 3 questions.")
    for i, q in enumerate(questions, start=1):
        if not isinstance(q.question, str) or not q.question.strip():
            raise ValidationFailed(f"Question {i} is empty.")
        if not isinstance(q.options, list) or len(q.options) != OPTIONS_PER_QUESTION:
            raise ValidationFailed(f"Question {i} must have exactly 3 options.")
        for j, option in enumerate(q.options):
            if not isinstance(option, str) or not option.strip():
                raise ValidationFailed(
                    f"Option {chr(65 + j)} in Question {i} is empty."
                )
        if isinstance(q.correct_index, bool) or q.correct_index not in (0, 1, 2):
            raise ValidationFailed(
                f"Please select the correct option for Question {i}."
            )


def _clean_fields(
    title: Optional[str], category: Optional[str], description: Optional[str]
) -> tuple[str, str, Optional[str]]:
    title = (title or "").strip()
    category = (category or "").strip()
    if not title or not category:
        raise ValidationFailed("Title and category are required.")
    description = (description or "").strip() or None
    return title, category, description


def _upload_item_image(
    storage: StorageClient, settings: Settings, viewer: Viewer, image: ImageUpload
) -> str:
    path = item_image_path(settings.item_images_prefix, viewer.user_id, image.filename)
    try:
        return store_image(storage, path, image)
    except StorageError as exc:
        raise StorageError(f"Image upload failed: {exc.message}") from exc


def post_item(
    db: DbClient,
    storage: StorageClient,
    settings: Settings,
    viewer: Viewer,
    *,
    title: Optional[str],
    category: Optional[str],
    description: Optional[str],
    questions: list[Question],
    image: Optional[ImageUpload],
) -> ItemRecord:
    if not viewer.is_founder:
        raise NotAuthorized("Only founders can post items.")
    if image is None:
        raise ValidationFailed("Please select an image.")
    title, category, description = _clean_fields(title, category, description)
    validate_questions(questions)
    validate_image(image, max_bytes=settings.max_image_bytes)

    image_url = _upload_item_image(storage, settings, viewer, image)
    item = db.create_item(
        viewer.user_id,
        title=title,
        category=category,
        description=description,
        image_url=image_url,
        questions=questions,
    )
    logger.info("Founder %s posted item %s", viewer.user_id, item.id)
    return item


def edit_item(
    db: DbClient,
    storage: StorageClient,
    settings: Settings,
    viewer: Viewer,
    item_id: str,
    *,
    title: Optional[str],
    category: Optional[str],
    description: Optional[str],
    questions: list[Question],
    image: Optional[ImageUpload] = None,
) -> ItemRecord:
    item = require_owned_item(db, viewer, item_id)
    title, category, description = _clean_fields(title, category, description)
    validate_questions(questions, editing=True)
    if image is not None:
        validate_image(image, max_bytes=settings.max_image_bytes)

    old_image_url = item.image_url
    image_url = old_image_url
    if image is not None:
        image_url = _upload_item_image(storage, settings, viewer, image)

    updated = db.update_item(
        item_id,
        title=title,
        category=category,
        description=description,
        image_url=image_url,
        questions=questions,
    )

    if image is not None and old_image_url:
        old_path = storage.path_from_public_url(old_image_url)
        if old_path:
            try:
                storage.delete(old_path)
            except StorageError:
                # the item already points at the new image
                logger.warning("Could not remove replaced image %s", old_path)
    logger.info("Founder %s edited item %s", viewer.user_id, item_id)
    return updated


def browse_items(db: DbClient, viewer: Optional[Viewer]) -> list[ItemRecord]:
    """Items still waiting for their owner, newest first."""
    require_viewer(viewer)
    return db.list_items(status=STATUS_FOUND)


def get_item_detail(
    db: DbClient, item_id: str, viewer: Optional[Viewer] = None
) -> ItemDetail:
    item = db.get_item(item_id)
    if not item:
        raise NotFound("Item not found")
    detail = ItemDetail(item=item)
    if viewer is not None:
        claim = db.get_claim_for_seeker(item_id, viewer.user_id)
        detail.has_applied = claim is not None
        detail.is_winner = bool(claim and claim.is_winner)

    if item.status == STATUS_CLAIMED:
        if detail.is_winner:
            detail.message = (
                "You were selected! Please contact the founder to collect the item."
            )
        elif detail.has_applied:
            detail.message = (
                "This item has been claimed by another applicant. Thanks for applying."
            )
        else:
            detail.message = "This item has been claimed."
    elif detail.has_applied:
        detail.message = "You have already applied"
    return detail


def get_apply_view(db: DbClient, viewer: Viewer, item_id: str) -> ItemRecord:
    """The item a seeker is about to answer; founders may not apply."""
    if not viewer.is_seeker:
        raise NotAuthorized("Only seekers can apply for items.")
    item = db.get_item(item_id)
    if not item:
        raise NotFound("Item not found")
    if item.status != STATUS_FOUND:
        raise ItemAlreadyClaimed()
    return item


def list_founder_items(db: DbClient, viewer: Viewer) -> list[ItemRecord]:
    if not viewer.is_founder:
        raise NotAuthorized("Only founders can view this dashboard.")
    return db.list_items(founder_id=viewer.user_id)
