import unittest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from foundit.db import PostgresDbClient, Question
from foundit.errors import (
    AlreadyApplied,
    EmailTaken,
    ItemAlreadyClaimed,
    NotFound,
    StoreError,
)


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")
        self.founder = self.db.create_account(
            "finder@example.com", "hash", username="Finder", role="founder"
        )
        self.seeker = self.db.create_account(
            "seeker@example.com", "hash", username="Seeker", role="seeker"
        )
        self.item = self.db.create_item(
            self.founder.id,
            title="Umbrella",
            category="Accessories",
            description="Blue, left on the bus",
            image_url="https://example.test/storage/item-images/u.png",
            questions=[
                Question(question="Color?", options=["Red", "Blue", "Green"], correct_index=1),
                Question(question="Handle?", options=["Wood", "Metal", "Plastic"], correct_index=0),
            ],
        )

    def test_accounts(self):
        credential = self.db.get_credential("FINDER@example.com ")
        self.assertEqual(credential.user_id, self.founder.id)
        self.assertEqual(credential.password_hash, "hash")
        self.assertIsNone(self.db.get_credential("nobody@example.com"))
        with self.assertRaises(EmailTaken):
            self.db.create_account("finder@example.com", "h", username="x", role="seeker")

    def test_update_profile(self):
        self.db.update_profile(self.seeker.id, username="Sam")
        profile = self.db.update_profile(self.seeker.id, avatar_url="https://a/b.png")
        self.assertEqual(profile.username, "Sam")
        self.assertEqual(profile.avatar_url, "https://a/b.png")
        with self.assertRaises(NotFound):
            self.db.update_profile("missing", username="x")

    def test_revoked_sessions(self):
        self.assertFalse(self.db.is_session_revoked("jti-1"))
        self.db.revoke_session("jti-1", 123.0)
        self.db.revoke_session("jti-1", 123.0)
        self.assertTrue(self.db.is_session_revoked("jti-1"))

    def test_item_roundtrip_and_listing(self):
        fetched = self.db.get_item(self.item.id)
        self.assertEqual(fetched.questions[0].options, ["Red", "Blue", "Green"])
        self.assertEqual(fetched.questions[1].correct_index, 0)
        self.assertEqual(fetched.status, "found")

        self.assertEqual(
            [i.id for i in self.db.list_items(founder_id=self.founder.id)], [self.item.id]
        )
        self.assertEqual(self.db.list_items(founder_id=self.seeker.id), [])
        self.assertEqual(self.db.list_items(status="claimed"), [])

        updated = self.db.update_item(
            self.item.id,
            title="Umbrella (blue)",
            category="Accessories",
            description=None,
            image_url=None,
            questions=fetched.questions[:1],
        )
        self.assertEqual(updated.title, "Umbrella (blue)")
        self.assertEqual(len(self.db.get_item(self.item.id).questions), 1)

    def test_duplicate_claim_is_already_applied(self):
        claim = self.db.create_claim(self.item.id, self.seeker.id, [1, 0])
        with self.assertRaises(AlreadyApplied):
            self.db.create_claim(self.item.id, self.seeker.id, [0, 0])
        claims = self.db.list_claims(item_id=self.item.id)
        self.assertEqual([c.id for c in claims], [claim.id])
        self.assertEqual(claims[0].answers, [1, 0])
        self.assertEqual(
            self.db.get_claim_for_seeker(self.item.id, self.seeker.id).id, claim.id
        )

    def test_select_winner_is_conditional(self):
        other = self.db.create_account("o@example.com", "h", username="O", role="seeker")
        first = self.db.create_claim(self.item.id, self.seeker.id, [1, 0])
        second = self.db.create_claim(self.item.id, other.id, [0, 0])
        self.db.set_winner(first.id)

        item = self.db.select_winner(self.item.id, second.id)
        self.assertEqual(item.status, "claimed")
        self.assertEqual(item.winning_claim_id, second.id)
        winners = [c.id for c in self.db.list_claims(item_id=self.item.id) if c.is_winner]
        self.assertEqual(winners, [second.id])

        with self.assertRaises(ItemAlreadyClaimed):
            self.db.select_winner(self.item.id, first.id)
        self.assertEqual(self.db.get_item(self.item.id).winning_claim_id, second.id)
        self.assertFalse(self.db.get_claim(first.id).is_winner)

    def test_select_winner_unknown_claim(self):
        with self.assertRaises(NotFound):
            self.db.select_winner(self.item.id, "missing")
        self.assertEqual(self.db.get_item(self.item.id).status, "found")

    def test_stepwise_primitives(self):
        claim = self.db.create_claim(self.item.id, self.seeker.id, [1, 0])
        self.db.set_winner(claim.id)
        self.assertEqual(self.db.clear_winners(self.item.id), 1)
        self.assertFalse(self.db.get_claim(claim.id).is_winner)
        self.db.mark_item_claimed(self.item.id, claim.id)
        item = self.db.get_item(self.item.id)
        self.assertEqual((item.status, item.winning_claim_id), ("claimed", claim.id))

    def test_store_failure_is_reported_verbatim(self):
        failure = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with patch.object(self.db, "Session", side_effect=failure):
            with self.assertRaises(StoreError) as ctx:
                self.db.get_item(self.item.id)
        self.assertEqual(ctx.exception.message, "connection refused")


if __name__ == "__main__":
    unittest.main()
