"""
Claim lifecycle: the seeker's submission gate, the founder's applicant list,
and winner selection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from foundit.auth import Viewer
from foundit.db import (
    STATUS_CLAIMED,
    STATUS_FOUND,
    ClaimRecord,
    DbClient,
    ItemRecord,
    ProfileRecord,
)
from foundit.errors import (
    ItemAlreadyClaimed,
    NotAuthorized,
    NotFound,
    ValidationFailed,
    WinnerSelectionIncomplete,
)
from foundit.items import require_owned_item
from foundit.scoring import MIN_CORRECT_CHOICES, Score, filter_applicants

logger = logging.getLogger(__name__)

CLAIM_WINNER = "winner"
CLAIM_NOT_SELECTED = "not_selected"
CLAIM_PENDING = "pending"


@dataclass
class Applicant:
    claim: ClaimRecord
    score: Score
    profile: Optional[ProfileRecord] = None


@dataclass
class SeekerClaim:
    claim: ClaimRecord
    item: Optional[ItemRecord]
    status: str


def submit_claim(
    db: DbClient,
    viewer: Viewer,
    item_id: str,
    answers: Sequence[Optional[int]],
) -> ClaimRecord:
    """
    Record a seeker's answers for an unclaimed item.

    Every check runs before the insert. A repeated submission is rejected by
    the store's one-claim-per-seeker constraint and surfaces as
    ``AlreadyApplied``.
    """
    if not viewer.is_seeker:
        raise NotAuthorized("Only seekers can apply for items.")
    item = db.get_item(item_id)
    if not item:
        raise NotFound("Item not found")
    if item.status != STATUS_FOUND:
        raise ItemAlreadyClaimed()

    expected = len(item.questions or [])
    answers = list(answers)
    if expected == 0 or len(answers) != expected:
        raise ValidationFailed("Please answer all questions.")
    for answer in answers:
        if answer is None or isinstance(answer, bool) or answer not in (0, 1, 2):
            raise ValidationFailed("Please answer all questions.")

    claim = db.create_claim(item_id, viewer.user_id, answers)
    logger.info("Seeker %s applied for item %s", viewer.user_id, item_id)
    return claim


def list_applicants(
    db: DbClient, viewer: Viewer, item_id: str, min_correct: int = 0
) -> tuple[ItemRecord, list[Applicant]]:
    """Scored applicants for one of the founder's items, newest first."""
    if min_correct not in MIN_CORRECT_CHOICES:
        raise ValidationFailed("Minimum correct answers must be 0, 1, 2 or 3.")
    item = require_owned_item(db, viewer, item_id)
    scored = filter_applicants(db.list_claims(item_id=item_id), item.questions, min_correct)
    applicants = [
        Applicant(claim=claim, score=score, profile=db.get_profile(claim.seeker_id))
        for claim, score in scored
    ]
    return item, applicants


def _select_stepwise(db: DbClient, item_id: str, claim_id: str) -> None:
    # Step 1 has written nothing if it fails; later steps leave the item
    # found with its previous winner flags cleared.
    db.clear_winners(item_id)
    try:
        db.set_winner(claim_id)
    except Exception as exc:
        raise WinnerSelectionIncomplete(item_id, claim_id, 2, exc) from exc
    try:
        db.mark_item_claimed(item_id, claim_id)
    except Exception as exc:
        raise WinnerSelectionIncomplete(item_id, claim_id, 3, exc) from exc


def select_winner(
    db: DbClient,
    viewer: Viewer,
    item_id: str,
    claim_id: str,
    *,
    atomic: bool = True,
) -> ItemRecord:
    """
    Make ``claim_id`` the only winning claim of ``item_id`` and mark the item
    claimed.

    Refused without any write when the item is already claimed. With
    ``atomic`` the store applies the change as one conditional transaction,
    so only one of two racing selections can win; otherwise the three writes
    run one after another and a failure after the first one raises
    ``WinnerSelectionIncomplete``.
    """
    item = require_owned_item(db, viewer, item_id)
    if item.status == STATUS_CLAIMED:
        raise ItemAlreadyClaimed()
    claim = db.get_claim(claim_id)
    if not claim or claim.item_id != item_id:
        raise NotFound("Claim not found")

    if atomic:
        item = db.select_winner(item_id, claim_id)
    else:
        _select_stepwise(db, item_id, claim_id)
        item = db.get_item(item_id)
    logger.info(
        "Founder %s selected claim %s as winner of item %s",
        viewer.user_id,
        claim_id,
        item_id,
    )
    return item


def claim_status(claim: ClaimRecord, item: Optional[ItemRecord]) -> str:
    if claim.is_winner:
        return CLAIM_WINNER
    if item is not None and item.status == STATUS_CLAIMED:
        return CLAIM_NOT_SELECTED
    return CLAIM_PENDING


def list_seeker_claims(db: DbClient, viewer: Viewer) -> list[SeekerClaim]:
    if not viewer.is_seeker:
        raise NotAuthorized("Only seekers have claims.")
    results = []
    for claim in db.list_claims(seeker_id=viewer.user_id):
        item = db.get_item(claim.item_id)
        results.append(
            SeekerClaim(claim=claim, item=item, status=claim_status(claim, item))
        )
    return results
