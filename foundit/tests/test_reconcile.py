import unittest

from foundit.db import InMemoryDbClient, Question
from foundit.reconcile import reconcile_winners


class ReconcileWinnersTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        founder = self.db.create_account("f@example.com", "x", username="F", role="founder")
        self.seekers = [
            self.db.create_account(f"s{i}@example.com", "x", username=f"S{i}", role="seeker")
            for i in range(2)
        ]
        self.item = self.db.create_item(
            founder.id,
            title="Phone",
            category="Electronics",
            description=None,
            image_url=None,
            questions=[Question("Case?", ["a", "b", "c"], 0), Question("OS?", ["a", "b", "c"], 1)],
        )
        self.claims = [
            self.db.create_claim(self.item.id, s.id, [0, 1]) for s in self.seekers
        ]

    def _winners(self):
        return [c.id for c in self.db.list_claims(item_id=self.item.id) if c.is_winner]

    def test_consistent_data_is_untouched(self):
        self.db.select_winner(self.item.id, self.claims[0].id)
        report = reconcile_winners(self.db)
        self.assertEqual(report.checked, 1)
        self.assertEqual(report.repaired, [])
        self.assertEqual(report.unresolved, [])

    def test_claimed_item_flags_follow_winning_claim_id(self):
        # step 2 failed in an older deployment after step 3 ran elsewhere
        self.db.mark_item_claimed(self.item.id, self.claims[1].id)
        self.db.set_winner(self.claims[0].id)
        report = reconcile_winners(self.db)
        self.assertEqual(report.repaired, [self.item.id])
        self.assertEqual(self._winners(), [self.claims[1].id])

    def test_found_item_loses_stray_flags(self):
        self.db.set_winner(self.claims[0].id)
        report = reconcile_winners(self.db, dry_run=True)
        self.assertEqual(report.repaired, [self.item.id])
        self.assertEqual(self._winners(), [self.claims[0].id])

        reconcile_winners(self.db)
        self.assertEqual(self._winners(), [])

    def test_claimed_without_claim_is_reported(self):
        self.db.mark_item_claimed(self.item.id, "deleted-claim")
        report = reconcile_winners(self.db)
        self.assertEqual(report.unresolved, [self.item.id])
        self.assertEqual(self._winners(), [])


if __name__ == "__main__":
    unittest.main()
