"""
Repair winner flags that disagree with their item's ``winning_claim_id``.

An item's ``winning_claim_id`` is authoritative. Claimed items get exactly that
claim flagged; found items get every flag cleared so the founder can choose
again. Items that cannot be repaired from stored data are only reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from foundit.db import STATUS_CLAIMED, DbClient

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    checked: int = 0
    repaired: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)


def reconcile_winners(db: DbClient, *, dry_run: bool = False) -> ReconcileReport:
    report = ReconcileReport()
    for item in db.list_items():
        report.checked += 1
        claims = db.list_claims(item_id=item.id)
        winners = {c.id for c in claims if c.is_winner}

        if item.status == STATUS_CLAIMED:
            claim_ids = {c.id for c in claims}
            if not item.winning_claim_id or item.winning_claim_id not in claim_ids:
                logger.warning(
                    "Item %s is claimed but references no claim of its own (%s)",
                    item.id,
                    item.winning_claim_id,
                )
                report.unresolved.append(item.id)
                continue
            if winners == {item.winning_claim_id}:
                continue
            logger.info(
                "Item %s: winner flags %s, expected %s",
                item.id,
                sorted(winners),
                item.winning_claim_id,
            )
            if not dry_run:
                db.clear_winners(item.id)
                db.set_winner(item.winning_claim_id)
            report.repaired.append(item.id)
            continue

        if item.winning_claim_id:
            logger.warning(
                "Item %s is %s but has winning claim %s",
                item.id,
                item.status,
                item.winning_claim_id,
            )
            report.unresolved.append(item.id)
            continue
        if winners:
            logger.info("Item %s is unclaimed; clearing flags %s", item.id, sorted(winners))
            if not dry_run:
                db.clear_winners(item.id)
            report.repaired.append(item.id)
    return report
