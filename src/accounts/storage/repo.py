"""Repository layer for data access.

Services talk to ``UserStore`` and ``ReferralStore``. The SQL
implementations here open one session per call; ``accounts.storage.memory``
provides drop-in in-memory versions.
"""

import re
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from accounts.errors import ConflictError, StoreError, ValidationError
from accounts.logging_config import get_logger
from accounts.storage.db import Database
from accounts.storage.models import Referral, ReferralStatus, User

logger = get_logger(__name__)

# Column reference as drivers print it: users.email (SQLite), ix_users_email
# (index or constraint name), (email) (PostgreSQL detail). MySQL quotes the
# value before "for key", so only the text after it is searched.
_UNIQUE_USER_COLUMN = re.compile(r"(?:\busers\.|\bix_users_|\()(referral_code|username|email)\b")


def _duplicate_field(error: IntegrityError) -> str | None:
    """Name the unique user column an IntegrityError is about, if known."""
    diag = getattr(error.orig, "diag", None)
    message = str(error.orig)
    _, for_key, key_part = message.partition("for key")
    for text in (getattr(diag, "constraint_name", None), key_part if for_key else message):
        if not text:
            continue
        # Leftmost match, ahead of any clashing value quoted later
        match = _UNIQUE_USER_COLUMN.search(text)
        if match:
            return match.group(1)
    return None


class DuplicateUserError(ConflictError):
    """A unique user column collided on insert."""

    def __init__(self, field: str | None):
        super().__init__(f"Duplicate value for {field or 'unique field'}")
        self.field = field


class UserStore(Protocol):
    """Lookup and persistence of user accounts."""

    def get_by_id(self, user_id: int) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_username(self, username: str) -> User | None: ...

    def get_by_referral_code(self, code: str) -> User | None: ...

    def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        referral_code: str,
        referred_by: int | None = None,
    ) -> User: ...

    def set_reset_token(self, user_id: int, token: str, expires_at: datetime) -> None: ...


class ReferralStore(Protocol):
    """Persistence and aggregation of referral records."""

    def create(
        self,
        *,
        referrer_id: int,
        referred_user_id: int,
        status: ReferralStatus,
        date_referred: datetime,
    ) -> Referral: ...

    def list_for_referrer(self, referrer_id: int) -> list[Referral]: ...

    def count_for_referrer(self, referrer_id: int, status: ReferralStatus | None = None) -> int: ...


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Turn unexpected SQLAlchemy failures into StoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("store_operation_failed", operation=operation, error=str(e))
        raise StoreError(f"{operation} failed") from e


class SqlUserStore:
    """SQLAlchemy-backed UserStore."""

    def __init__(self, db: Database):
        self.db = db

    def _get_by(self, column, value) -> User | None:
        with _store_errors("user_lookup"), self.db.session() as session:
            return session.scalars(select(User).where(column == value)).first()

    def get_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        with _store_errors("user_lookup"), self.db.session() as session:
            return session.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        """Get user by email (exact match)."""
        return self._get_by(User.email, email)

    def get_by_username(self, username: str) -> User | None:
        """Get user by username (exact match)."""
        return self._get_by(User.username, username)

    def get_by_referral_code(self, code: str) -> User | None:
        """Get the user owning a referral code."""
        return self._get_by(User.referral_code, code)

    def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        referral_code: str,
        referred_by: int | None = None,
    ) -> User:
        """Insert a new user.

        Raises:
            DuplicateUserError: If a unique column is already taken
            StoreError: On any other database failure
        """
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            referral_code=referral_code,
            referred_by=referred_by,
        )
        try:
            with self.db.session() as session:
                session.add(user)
                session.flush()
                session.refresh(user)
        except IntegrityError as e:
            field = _duplicate_field(e)
            logger.info("user_insert_conflict", field=field)
            raise DuplicateUserError(field) from e
        except SQLAlchemyError as e:
            logger.error("store_operation_failed", operation="user_create", error=str(e))
            raise StoreError("user_create failed") from e

        logger.info("user_created", user_id=user.id)
        return user

    def set_reset_token(self, user_id: int, token: str, expires_at: datetime) -> None:
        """Store a password reset token on the user."""
        with _store_errors("set_reset_token"), self.db.session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise StoreError(f"User {user_id} vanished before reset token was stored")
            user.reset_token = token
            user.reset_token_expires_at = expires_at


class SqlReferralStore:
    """SQLAlchemy-backed ReferralStore."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        *,
        referrer_id: int,
        referred_user_id: int,
        status: ReferralStatus,
        date_referred: datetime,
    ) -> Referral:
        """Record that ``referrer_id`` brought in ``referred_user_id``."""
        if referrer_id == referred_user_id:
            raise ValidationError("A user cannot refer themselves")

        referral = Referral(
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
            status=status,
            date_referred=date_referred,
        )
        with _store_errors("referral_create"), self.db.session() as session:
            session.add(referral)
            session.flush()
            session.refresh(referral)

        logger.info(
            "referral_created",
            referral_id=referral.id,
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
        )
        return referral

    def list_for_referrer(self, referrer_id: int) -> list[Referral]:
        """All referrals made by a user, with the referred user loaded."""
        with _store_errors("referral_list"), self.db.session() as session:
            stmt = (
                select(Referral)
                .options(joinedload(Referral.referred_user))
                .where(Referral.referrer_id == referrer_id)
                .order_by(Referral.date_referred, Referral.id)
            )
            return list(session.scalars(stmt))

    def count_for_referrer(self, referrer_id: int, status: ReferralStatus | None = None) -> int:
        """Count referrals made by a user, optionally by status."""
        with _store_errors("referral_count"), self.db.session() as session:
            stmt = select(func.count(Referral.id)).where(Referral.referrer_id == referrer_id)
            if status is not None:
                stmt = stmt.where(Referral.status == status)
            return session.scalar(stmt) or 0
