import time
import unittest

from jose import jwt

from foundit.auth import IdentityProvider, hash_password, verify_password
from foundit.db import InMemoryDbClient
from foundit.errors import EmailTaken, NotAuthenticated, ValidationFailed

SECRET = "test-secret"


class PasswordHashTests(unittest.TestCase):
    def test_verify(self):
        encoded = hash_password("hunter22")
        self.assertTrue(verify_password("hunter22", encoded))
        self.assertFalse(verify_password("hunter23", encoded))
        self.assertFalse(verify_password("hunter22", "garbage"))

    def test_salted(self):
        self.assertNotEqual(hash_password("same"), hash_password("same"))

    def test_malformed_stored_hash(self):
        self.assertFalse(verify_password("hunter22", "pbkdf2:sha256:many$salt$abc"))
        self.assertFalse(verify_password("hunter22", "rot13$salt$abc"))


class IdentityProviderTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.identity = IdentityProvider(self.db, secret_key=SECRET)

    def _sign_up(self, **overrides):
        fields = dict(
            display_name="Dana",
            email="Dana@Example.com",
            password="secret1",
            confirm_password="secret1",
            agree=True,
            role="founder",
        )
        fields.update(overrides)
        return self.identity.sign_up(**fields)

    def test_sign_up_seeds_profile(self):
        profile = self._sign_up()
        stored = self.db.get_profile(profile.id)
        self.assertEqual(stored.username, "Dana")
        self.assertEqual(stored.role, "founder")
        self.assertEqual(stored.email, "dana@example.com")
        self.assertIsNone(stored.avatar_url)

    def test_sign_up_validation(self):
        cases = [
            ({"display_name": " "}, "Please enter your name."),
            ({"email": ""}, "Please enter your email."),
            (
                {"password": "short", "confirm_password": "short"},
                "Password must be at least 6 characters.",
            ),
            ({"confirm_password": "other1"}, "Passwords do not match."),
            ({"agree": False}, "Please accept the terms."),
            ({"role": "admin"}, "Please choose founder or seeker."),
        ]
        for overrides, message in cases:
            with self.assertRaises(ValidationFailed) as ctx:
                self._sign_up(**overrides)
            self.assertEqual(ctx.exception.message, message)
        self.assertEqual(self.db.profiles, {})

    def test_duplicate_email(self):
        self._sign_up()
        with self.assertRaises(EmailTaken):
            self._sign_up(email="dana@example.com")

    def test_sign_in_and_session(self):
        profile = self._sign_up(role="seeker")
        issued = self.identity.sign_in("dana@example.com", "secret1")
        self.assertGreater(issued.expires_at, time.time())
        viewer = self.identity.get_viewer(issued.access_token)
        self.assertEqual(viewer.user_id, profile.id)
        self.assertTrue(viewer.is_seeker)
        self.assertFalse(viewer.is_founder)

    def test_wrong_password(self):
        self._sign_up()
        with self.assertRaises(NotAuthenticated) as ctx:
            self.identity.sign_in("dana@example.com", "wrong-password")
        self.assertEqual(ctx.exception.message, "Invalid login credentials")
        with self.assertRaises(NotAuthenticated):
            self.identity.sign_in("nobody@example.com", "secret1")
        with self.assertRaises(ValidationFailed):
            self.identity.sign_in("", "")

    def test_sign_out_revokes_token(self):
        self._sign_up()
        issued = self.identity.sign_in("dana@example.com", "secret1")
        self.identity.sign_out(issued.access_token)
        with self.assertRaises(NotAuthenticated):
            self.identity.get_viewer(issued.access_token)

    def test_rejects_foreign_and_expired_tokens(self):
        profile = self._sign_up()
        forged = jwt.encode(
            {"sub": profile.id, "jti": "x", "role": "founder"},
            "other-secret",
            algorithm="HS256",
        )
        with self.assertRaises(NotAuthenticated):
            self.identity.get_viewer(forged)

        expired = jwt.encode(
            {"sub": profile.id, "jti": "y", "exp": int(time.time()) - 60},
            SECRET,
            algorithm="HS256",
        )
        with self.assertRaises(NotAuthenticated):
            self.identity.get_viewer(expired)
        with self.assertRaises(NotAuthenticated):
            self.identity.get_viewer("not-a-token")


if __name__ == "__main__":
    unittest.main()
