"""In-memory stores with the same contract as the SQL repositories.

Useful for tests and local experiments; nothing is persisted.
"""

import itertools
import threading
from datetime import datetime

from accounts.errors import ValidationError
from accounts.storage.models import Referral, ReferralStatus, User, utcnow
from accounts.storage.repo import DuplicateUserError


class InMemoryUserStore:
    """Dict-backed UserStore."""

    def __init__(self):
        self._users: dict[int, User] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _find(self, field: str, value) -> User | None:
        return next((u for u in self._users.values() if getattr(u, field) == value), None)

    def get_by_id(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def get_by_email(self, email: str) -> User | None:
        return self._find("email", email)

    def get_by_username(self, username: str) -> User | None:
        return self._find("username", username)

    def get_by_referral_code(self, code: str) -> User | None:
        return self._find("referral_code", code)

    def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        referral_code: str,
        referred_by: int | None = None,
    ) -> User:
        with self._lock:
            for field, value in (
                ("referral_code", referral_code),
                ("username", username),
                ("email", email),
            ):
                if self._find(field, value) is not None:
                    raise DuplicateUserError(field)

            user = User(
                id=next(self._ids),
                username=username,
                email=email,
                password_hash=password_hash,
                referral_code=referral_code,
                referred_by=referred_by,
                created_at=utcnow(),
            )
            self._users[user.id] = user
            return user

    def set_reset_token(self, user_id: int, token: str, expires_at: datetime) -> None:
        user = self._users[user_id]
        user.reset_token = token
        user.reset_token_expires_at = expires_at

    def delete(self, user_id: int) -> None:
        """Remove a user, mirroring the database's ON DELETE rules."""
        self._users.pop(user_id, None)
        for user in self._users.values():
            if user.referred_by == user_id:
                user.referred_by = None


class InMemoryReferralStore:
    """List-backed ReferralStore that resolves users through a UserStore."""

    def __init__(self, users: InMemoryUserStore):
        self.users = users
        self._referrals: list[Referral] = []
        self._ids = itertools.count(1)

    def _live(self) -> list[Referral]:
        # Referrals vanish with either user (ON DELETE CASCADE)
        return [
            r for r in self._referrals
            if self.users.get_by_id(r.referrer_id) and self.users.get_by_id(r.referred_user_id)
        ]

    def create(
        self,
        *,
        referrer_id: int,
        referred_user_id: int,
        status: ReferralStatus,
        date_referred: datetime,
    ) -> Referral:
        if referrer_id == referred_user_id:
            raise ValidationError("A user cannot refer themselves")

        referral = Referral(
            id=next(self._ids),
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
            status=status,
            date_referred=date_referred,
            created_at=utcnow(),
        )
        self._referrals.append(referral)
        return referral

    def list_for_referrer(self, referrer_id: int) -> list[Referral]:
        referrals = sorted(
            (r for r in self._live() if r.referrer_id == referrer_id),
            key=lambda r: (r.date_referred, r.id),
        )
        for referral in referrals:
            referral.referred_user = self.users.get_by_id(referral.referred_user_id)
        return referrals

    def count_for_referrer(self, referrer_id: int, status: ReferralStatus | None = None) -> int:
        return sum(
            1 for r in self._live()
            if r.referrer_id == referrer_id and (status is None or r.status == status)
        )
