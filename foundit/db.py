"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from foundit.errors import (
    AlreadyApplied,
    EmailTaken,
    FoundItError,
    ItemAlreadyClaimed,
    NotFound,
    StoreError,
)

logger = logging.getLogger(__name__)

STATUS_FOUND = "found"
STATUS_CLAIMED = "claimed"

ROLE_FOUNDER = "founder"
ROLE_SEEKER = "seeker"


class DbClient(Protocol):
    """Interface for database access."""

    def create_account(
        self, email: str, password_hash: str, *, username: str, role: str
    ) -> "ProfileRecord":
        ...

    def get_credential(self, email: str) -> Optional["CredentialRecord"]:
        ...

    def get_profile(self, user_id: str) -> Optional["ProfileRecord"]:
        ...

    def update_profile(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> "ProfileRecord":
        ...

    def revoke_session(self, session_id: str, expires_at: float) -> None:
        ...

    def is_session_revoked(self, session_id: str) -> bool:
        ...

    def create_item(
        self,
        founder_id: str,
        *,
        title: str,
        category: Optional[str],
        description: Optional[str],
        image_url: Optional[str],
        questions: list["Question"],
    ) -> "ItemRecord":
        ...

    def get_item(self, item_id: str) -> Optional["ItemRecord"]:
        ...

    def list_items(
        self, *, status: Optional[str] = None, founder_id: Optional[str] = None
    ) -> list["ItemRecord"]:
        ...

    def update_item(
        self,
        item_id: str,
        *,
        title: str,
        category: Optional[str],
        description: Optional[str],
        image_url: Optional[str],
        questions: list["Question"],
    ) -> "ItemRecord":
        ...

    def create_claim(
        self, item_id: str, seeker_id: str, answers: list[Optional[int]]
    ) -> "ClaimRecord":
        ...

    def get_claim(self, claim_id: str) -> Optional["ClaimRecord"]:
        ...

    def get_claim_for_seeker(
        self, item_id: str, seeker_id: str
    ) -> Optional["ClaimRecord"]:
        ...

    def list_claims(
        self, *, item_id: Optional[str] = None, seeker_id: Optional[str] = None
    ) -> list["ClaimRecord"]:
        ...

    def clear_winners(self, item_id: str) -> int:
        ...

    def set_winner(self, claim_id: str) -> None:
        ...

    def mark_item_claimed(self, item_id: str, claim_id: str) -> None:
        ...

    def select_winner(self, item_id: str, claim_id: str) -> "ItemRecord":
        ...


@dataclass
class Question:
    question: str
    options: list[str]
    correct_index: int

    def as_dict(self) -> dict:
        return {
            "question": self.question,
            "options": list(self.options),
            "correctIndex": self.correct_index,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            question=data.get("question", ""),
            options=data.get("options", []),
            correct_index=data.get("correctIndex", data.get("correct_index", -1)),
        )


@dataclass
class CredentialRecord:
    user_id: str
    email: str
    password_hash: str


@dataclass
class ProfileRecord:
    id: str
    email: str
    role: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "username": self.username,
            "avatar_url": self.avatar_url,
        }


@dataclass
class ItemRecord:
    id: str
    founder_id: str
    title: str
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    questions: Optional[list[Question]] = None
    status: str = STATUS_FOUND
    winning_claim_id: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class ClaimRecord:
    id: str
    item_id: str
    seeker_id: str
    answers: list[Optional[int]]
    is_winner: bool = False
    created_at: float = field(default_factory=lambda: time.time())


def _questions_to_json(questions: Optional[list[Question]]) -> Optional[list[dict]]:
    if questions is None:
        return None
    return [q.as_dict() for q in questions]


def _questions_from_json(data: Optional[list]) -> Optional[list[Question]]:
    if data is None:
        return None
    return [Question.from_dict(q) for q in data]


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.credentials: Dict[str, CredentialRecord] = {}
        self.profiles: Dict[str, ProfileRecord] = {}
        self.items: Dict[str, ItemRecord] = {}
        self.claims: Dict[str, ClaimRecord] = {}
        self.revoked: Dict[str, float] = {}
        # insertion order breaks created_at ties when listing newest first
        self._order: Dict[str, int] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.credentials.clear()
            self.profiles.clear()
            self.items.clear()
            self.claims.clear()
            self.revoked.clear()
            self._order.clear()

    def _remember(self, key: str) -> None:
        self._order[key] = len(self._order)

    def _newest_first(self, records: list) -> list:
        return sorted(
            records,
            key=lambda r: (r.created_at, self._order.get(r.id, 0)),
            reverse=True,
        )

    def create_account(
        self, email: str, password_hash: str, *, username: str, role: str
    ) -> ProfileRecord:
        key = email.strip().lower()
        with self._lock:
            if key in self.credentials:
                raise EmailTaken()
            user_id = uuid.uuid4().hex
            self.credentials[key] = CredentialRecord(
                user_id=user_id, email=key, password_hash=password_hash
            )
            profile = ProfileRecord(
                id=user_id, email=key, role=role, username=username
            )
            self.profiles[user_id] = profile
            return profile

    def get_credential(self, email: str) -> Optional[CredentialRecord]:
        return self.credentials.get(email.strip().lower())

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        return self.profiles.get(user_id)

    def update_profile(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> ProfileRecord:
        with self._lock:
            profile = self.profiles.get(user_id)
            if not profile:
                raise NotFound("Profile not found")
            if username is not None:
                profile.username = username
            if avatar_url is not None:
                profile.avatar_url = avatar_url
            return profile

    def revoke_session(self, session_id: str, expires_at: float) -> None:
        with self._lock:
            self.revoked[session_id] = expires_at

    def is_session_revoked(self, session_id: str) -> bool:
        return session_id in self.revoked

    def create_item(
        self,
        founder_id: str,
        *,
        title: str,
        category: Optional[str],
        description: Optional[str],
        image_url: Optional[str],
        questions: list[Question],
    ) -> ItemRecord:
        record = ItemRecord(
            id=uuid.uuid4().hex,
            founder_id=founder_id,
            title=title,
            category=category,
            description=description,
            image_url=image_url,
            questions=list(questions),
        )
        with self._lock:
            self.items[record.id] = record
            self._remember(record.id)
        return record

    def get_item(self, item_id: str) -> Optional[ItemRecord]:
        return self.items.get(item_id)

    def list_items(
        self, *, status: Optional[str] = None, founder_id: Optional[str] = None
    ) -> list[ItemRecord]:
        items = [
            item
            for item in self.items.values()
            if (status is None or item.status == status)
            and (founder_id is None or item.founder_id == founder_id)
        ]
        return self._newest_first(items)

    def update_item(
        self,
        item_id: str,
        *,
        title: str,
        category: Optional[str],
        description: Optional[str],
        image_url: Optional[str],
        questions: list[Question],
    ) -> ItemRecord:
        with self._lock:
            item = self.items.get(item_id)
            if not item:
                raise NotFound("Item not found")
            item.title = title
            item.category = category
            item.description = description
            item.image_url = image_url
            item.questions = list(questions)
            return item

    def create_claim(
        self, item_id: str, seeker_id: str, answers: list[Optional[int]]
    ) -> ClaimRecord:
        with self._lock:
            for claim in self.claims.values():
                if claim.item_id == item_id and claim.seeker_id == seeker_id:
                    raise AlreadyApplied()
            record = ClaimRecord(
                id=uuid.uuid4().hex,
                item_id=item_id,
                seeker_id=seeker_id,
                answers=list(answers),
            )
            self.claims[record.id] = record
            self._remember(record.id)
            return record

    def get_claim(self, claim_id: str) -> Optional[ClaimRecord]:
        return self.claims.get(claim_id)

    def get_claim_for_seeker(
        self, item_id: str, seeker_id: str
    ) -> Optional[ClaimRecord]:
        for claim in self.claims.values():
            if claim.item_id == item_id and claim.seeker_id == seeker_id:
                return claim
        return None

    def list_claims(
        self, *, item_id: Optional[str] = None, seeker_id: Optional[str] = None
    ) -> list[ClaimRecord]:
        claims = [
            claim
            for claim in self.claims.values()
            if (item_id is None or claim.item_id == item_id)
            and (seeker_id is None or claim.seeker_id == seeker_id)
        ]
        return self._newest_first(claims)

    def clear_winners(self, item_id: str) -> int:
        cleared = 0
        with self._lock:
            for claim in self.claims.values():
                if claim.item_id == item_id:
                    claim.is_winner = False
                    cleared += 1
        return cleared

    def set_winner(self, claim_id: str) -> None:
        with self._lock:
            claim = self.claims.get(claim_id)
            if claim:
                claim.is_winner = True

    def mark_item_claimed(self, item_id: str, claim_id: str) -> None:
        with self._lock:
            item = self.items.get(item_id)
            if item:
                item.status = STATUS_CLAIMED
                item.winning_claim_id = claim_id

    def select_winner(self, item_id: str, claim_id: str) -> ItemRecord:
        with self._lock:
            item = self.items.get(item_id)
            if not item:
                raise NotFound("Item not found")
            claim = self.claims.get(claim_id)
            if not claim or claim.item_id != item_id:
                raise NotFound("Claim not found")
            if item.status != STATUS_FOUND:
                raise ItemAlreadyClaimed()
            for other in self.claims.values():
                if other.item_id == item_id:
                    other.is_winner = other.id == claim_id
            item.status = STATUS_CLAIMED
            item.winning_claim_id = claim_id
            return item


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except FoundItError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Store operation failed")
            orig = getattr(exc, "orig", None)
            raise StoreError(str(orig or exc)) from exc

    def _to_profile(self, row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            id=row.id,
            email=row.email,
            role=row.role,
            username=row.username,
            avatar_url=row.avatar_url,
            created_at=row.created_at,
        )

    def _to_item(self, row: "ItemRow") -> ItemRecord:
        return ItemRecord(
            id=row.id,
            founder_id=row.founder_id,
            title=row.title,
            category=row.category,
            description=row.description,
            image_url=row.image_url,
            questions=_questions_from_json(row.questions),
            status=row.status,
            winning_claim_id=row.winning_claim_id,
            created_at=row.created_at,
        )

    def _to_claim(self, row: "ClaimRow") -> ClaimRecord:
        return ClaimRecord(
            id=row.id,
            item_id=row.item_id,
            seeker_id=row.seeker_id,
            answers=list(row.answers or []),
            is_winner=bool(row.is_winner),
            created_at=row.created_at,
        )

    def create_account(
        self, email: str, password_hash: str, *, username: str, role: str
    ) -> ProfileRecord:
        key = email.strip().lower()
        now = time.time()
        user_id = uuid.uuid4().hex
        with self._session() as session:
            existing = session.execute(
                select(CredentialRow).where(CredentialRow.email == key)
            ).scalar_one_or_none()
            if existing:
                raise EmailTaken()
            profile = ProfileRow(
                id=user_id,
                email=key,
                role=role,
                username=username,
                created_at=now,
            )
            session.add(profile)
            session.flush()
            session.add(
                CredentialRow(user_id=user_id, email=key, password_hash=password_hash)
            )
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise EmailTaken() from exc
            return self._to_profile(profile)

    def get_credential(self, email: str) -> Optional[CredentialRecord]:
        key = email.strip().lower()
        with self._session() as session:
            row = session.execute(
                select(CredentialRow).where(CredentialRow.email == key)
            ).scalar_one_or_none()
            if not row:
                return None
            return CredentialRecord(
                user_id=row.user_id, email=row.email, password_hash=row.password_hash
            )

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self._session() as session:
            row = session.get(ProfileRow, user_id)
            return self._to_profile(row) if row else None

    def update_profile(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> ProfileRecord:
        with self._session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                raise NotFound("Profile not found")
            if username is not None:
                row.username = username
            if avatar_url is not None:
                row.avatar_url = avatar_url
            session.commit()
            return self._to_profile(row)

    def revoke_session(self, session_id: str, expires_at: float) -> None:
        with self._session() as session:
            if session.get(RevokedSessionRow, session_id) is None:
                session.add(
                    RevokedSessionRow(session_id=session_id, expires_at=expires_at)
                )
                session.commit()

    def is_session_revoked(self, session_id: str) -> bool:
        with self._session() as session:
            return session.get(RevokedSessionRow, session_id) is not None

    def create_item(
        self,
        founder_id: str,
        *,
        title: str,
        category: Optional[str],
        description: Optional[str],
        image_url: Optional[str],
        questions: list[Question],
    ) -> ItemRecord:
        with self._session() as session:
            row = ItemRow(
                id=uuid.uuid4().hex,
                founder_id=founder_id,
                title=title,
                category=category,
                description=description,
                image_url=image_url,
                questions=_questions_to_json(questions),
                status=STATUS_FOUND,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_item(row)

    def get_item(self, item_id: str) -> Optional[ItemRecord]:
        with self._session() as session:
            row = session.get(ItemRow, item_id)
            return self._to_item(row) if row else None

    def list_items(
        self, *, status: Optional[str] = None, founder_id: Optional[str] = None
    ) -> list[ItemRecord]:
        with self._session() as session:
            stmt = select(ItemRow)
            if status is not None:
                stmt = stmt.where(ItemRow.status == status)
            if founder_id is not None:
                stmt = stmt.where(ItemRow.founder_id == founder_id)
            stmt = stmt.order_by(ItemRow.created_at.desc())
            return [self._to_item(row) for row in session.execute(stmt).scalars()]

    def update_item(
        self,
        item_id: str,
        *,
        title: str,
        category: Optional[str],
        description: Optional[str],
        image_url: Optional[str],
        questions: list[Question],
    ) -> ItemRecord:
        with self._session() as session:
            row = session.get(ItemRow, item_id)
            if not row:
                raise NotFound("Item not found")
            row.title = title
            row.category = category
            row.description = description
            row.image_url = image_url
            row.questions = _questions_to_json(questions)
            session.commit()
            return self._to_item(row)

    def create_claim(
        self, item_id: str, seeker_id: str, answers: list[Optional[int]]
    ) -> ClaimRecord:
        with self._session() as session:
            row = ClaimRow(
                id=uuid.uuid4().hex,
                item_id=item_id,
                seeker_id=seeker_id,
                answers=list(answers),
                is_winner=False,
                created_at=time.time(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                existing = session.execute(
                    select(ClaimRow).where(
                        ClaimRow.item_id == item_id, ClaimRow.seeker_id == seeker_id
                    )
                ).scalar_one_or_none()
                if existing is not None:
                    raise AlreadyApplied() from exc
                raise
            return self._to_claim(row)

    def get_claim(self, claim_id: str) -> Optional[ClaimRecord]:
        with self._session() as session:
            row = session.get(ClaimRow, claim_id)
            return self._to_claim(row) if row else None

    def get_claim_for_seeker(
        self, item_id: str, seeker_id: str
    ) -> Optional[ClaimRecord]:
        with self._session() as session:
            row = session.execute(
                select(ClaimRow).where(
                    ClaimRow.item_id == item_id, ClaimRow.seeker_id == seeker_id
                )
            ).scalar_one_or_none()
            return self._to_claim(row) if row else None

    def list_claims(
        self, *, item_id: Optional[str] = None, seeker_id: Optional[str] = None
    ) -> list[ClaimRecord]:
        with self._session() as session:
            stmt = select(ClaimRow)
            if item_id is not None:
                stmt = stmt.where(ClaimRow.item_id == item_id)
            if seeker_id is not None:
                stmt = stmt.where(ClaimRow.seeker_id == seeker_id)
            stmt = stmt.order_by(ClaimRow.created_at.desc())
            return [self._to_claim(row) for row in session.execute(stmt).scalars()]

    def clear_winners(self, item_id: str) -> int:
        with self._session() as session:
            result = session.execute(
                update(ClaimRow)
                .where(ClaimRow.item_id == item_id)
                .values(is_winner=False)
            )
            session.commit()
            return result.rowcount or 0

    def set_winner(self, claim_id: str) -> None:
        with self._session() as session:
            session.execute(
                update(ClaimRow).where(ClaimRow.id == claim_id).values(is_winner=True)
            )
            session.commit()

    def mark_item_claimed(self, item_id: str, claim_id: str) -> None:
        with self._session() as session:
            session.execute(
                update(ItemRow)
                .where(ItemRow.id == item_id)
                .values(status=STATUS_CLAIMED, winning_claim_id=claim_id)
            )
            session.commit()

    def select_winner(self, item_id: str, claim_id: str) -> ItemRecord:
        """
        Mark ``claim_id`` as the only winner and the item as claimed, iff the
        item is still ``found``. All writes commit together or not at all.
        """
        with self._session() as session:
            claim = session.get(ClaimRow, claim_id)
            if not claim or claim.item_id != item_id:
                raise NotFound("Claim not found")
            # The conditional update comes first so it takes the item row lock
            # before the claim rows are touched.
            result = session.execute(
                update(ItemRow)
                .where(ItemRow.id == item_id, ItemRow.status == STATUS_FOUND)
                .values(status=STATUS_CLAIMED, winning_claim_id=claim_id)
            )
            if not result.rowcount:
                session.rollback()
                if session.get(ItemRow, item_id) is None:
                    raise NotFound("Item not found")
                raise ItemAlreadyClaimed()
            session.execute(
                update(ClaimRow)
                .where(ClaimRow.item_id == item_id)
                .values(is_winner=False)
            )
            session.execute(
                update(ClaimRow).where(ClaimRow.id == claim_id).values(is_winner=True)
            )
            session.commit()
            item = session.get(ItemRow, item_id)
            session.refresh(item)
            return self._to_item(item)


Base = declarative_base()


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False)
    username = Column(String, nullable=True)
    role = Column(String, nullable=False)
    avatar_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class CredentialRow(Base):
    __tablename__ = "credentials"

    user_id = Column(String, ForeignKey("profiles.id"), primary_key=True)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)


class RevokedSessionRow(Base):
    __tablename__ = "revoked_sessions"

    session_id = Column(String, primary_key=True)
    expires_at = Column(Float, nullable=False)


class ItemRow(Base):
    __tablename__ = "items"

    id = Column(String, primary_key=True)
    founder_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    questions = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default=STATUS_FOUND, index=True)
    winning_claim_id = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class ClaimRow(Base):
    __tablename__ = "claims"
    __table_args__ = (
        UniqueConstraint("item_id", "seeker_id", name="claims_item_id_seeker_id_key"),
    )

    id = Column(String, primary_key=True)
    item_id = Column(String, ForeignKey("items.id"), nullable=False, index=True)
    seeker_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    answers = Column(JSON, nullable=False)
    is_winner = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)
