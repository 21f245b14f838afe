"""
Reconcile claim winner flags with each item's winning_claim_id.

Run after a stepwise winner selection failed part way, or against data written
before winner selection became a single transaction.
"""

from __future__ import annotations

import argparse
import logging
import sys

from foundit.dependencies import get_db_client
from foundit.reconcile import reconcile_winners


logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Reconcile winner flags")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report inconsistent items without writing",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    db = get_db_client()
    report = reconcile_winners(db, dry_run=args.dry_run)

    logger.info(
        "Checked %d items, %s %d, %d need a founder",
        report.checked,
        "would repair" if args.dry_run else "repaired",
        len(report.repaired),
        len(report.unresolved),
    )
    return 1 if report.unresolved else 0


if __name__ == "__main__":
    sys.exit(main())
