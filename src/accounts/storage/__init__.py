"""Persistence for user accounts and referrals."""

from accounts.storage.db import Database
from accounts.storage.memory import InMemoryReferralStore, InMemoryUserStore
from accounts.storage.models import Base, Referral, ReferralStatus, User
from accounts.storage.repo import (
    DuplicateUserError,
    ReferralStore,
    SqlReferralStore,
    SqlUserStore,
    UserStore,
)

__all__ = [
    "Base",
    "Database",
    "DuplicateUserError",
    "InMemoryReferralStore",
    "InMemoryUserStore",
    "Referral",
    "ReferralStatus",
    "ReferralStore",
    "SqlReferralStore",
    "SqlUserStore",
    "User",
    "UserStore",
]
