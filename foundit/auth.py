"""
Identity: credential sign-up/sign-in, bearer sessions and the viewer context
handed to every operation.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from foundit.db import ROLE_FOUNDER, ROLE_SEEKER, DbClient, ProfileRecord
from foundit.errors import NotAuthenticated, ValidationFailed

logger = logging.getLogger(__name__)

ROLES = (ROLE_FOUNDER, ROLE_SEEKER)


@dataclass(frozen=True)
class Viewer:
    """The signed-in user an operation runs on behalf of."""

    user_id: str
    email: str
    role: str

    @property
    def is_founder(self) -> bool:
        return self.role == ROLE_FOUNDER

    @property
    def is_seeker(self) -> bool:
        return self.role == ROLE_SEEKER


@dataclass
class IssuedSession:
    access_token: str
    expires_at: float
    viewer: Viewer


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, encoded: str) -> bool:
    try:
        return check_password_hash(encoded, password)
    except ValueError:
        # unknown method or malformed parameters in the stored hash
        return False


class IdentityProvider:
    """Credential accounts backed by the relational store, JWT sessions."""

    def __init__(
        self,
        db: DbClient,
        *,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60 * 24 * 7,
        min_password_length: int = 6,
    ):
        self.db = db
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.min_password_length = min_password_length

    def sign_up(
        self,
        *,
        display_name: str,
        email: str,
        password: str,
        confirm_password: str,
        agree: bool,
        role: str = ROLE_SEEKER,
    ) -> ProfileRecord:
        """
        Create the credential and, as its side effect, the profile seeded with
        the display name and role.
        """
        if not display_name.strip():
            raise ValidationFailed("Please enter your name.")
        if not email.strip():
            raise ValidationFailed("Please enter your email.")
        if len(password) < self.min_password_length:
            raise ValidationFailed(
                f"Password must be at least {self.min_password_length} characters."
            )
        if password != confirm_password:
            raise ValidationFailed("Passwords do not match.")
        if not agree:
            raise ValidationFailed("Please accept the terms.")
        if role not in ROLES:
            raise ValidationFailed("Please choose founder or seeker.")

        profile = self.db.create_account(
            email.strip(),
            hash_password(password),
            username=display_name.strip(),
            role=role,
        )
        logger.info("Signed up %s as %s", profile.id, profile.role)
        return profile

    def sign_in(self, email: str, password: str) -> IssuedSession:
        if not email or not password:
            raise ValidationFailed("Please enter email and password.")
        credential = self.db.get_credential(email)
        if not credential or not verify_password(password, credential.password_hash):
            logger.info("Failed sign-in for %s", email)
            raise NotAuthenticated("Invalid login credentials")
        profile = self.db.get_profile(credential.user_id)
        if not profile:
            raise NotAuthenticated("Invalid login credentials")

        viewer = Viewer(user_id=profile.id, email=profile.email, role=profile.role)
        now = int(time.time())
        expires_at = now + self.expire_minutes * 60
        payload = {
            "sub": viewer.user_id,
            "email": viewer.email,
            "role": viewer.role,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return IssuedSession(access_token=token, expires_at=expires_at, viewer=viewer)

    def _decode(self, token: str) -> dict:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise NotAuthenticated("Not authenticated") from exc
        if not payload.get("sub") or not payload.get("jti"):
            raise NotAuthenticated("Not authenticated")
        return payload

    def get_viewer(self, token: str) -> Viewer:
        payload = self._decode(token)
        if self.db.is_session_revoked(payload["jti"]):
            raise NotAuthenticated("Session has been signed out")
        return Viewer(
            user_id=payload["sub"],
            email=payload.get("email") or "",
            role=payload.get("role") or "",
        )

    def sign_out(self, token: str) -> None:
        payload = self._decode(token)
        self.db.revoke_session(payload["jti"], float(payload.get("exp") or 0))
        logger.info("Signed out %s", payload["sub"])
