"""Database models for user accounts and referrals."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ReferralStatus(str, Enum):
    """Lifecycle of a referral."""
    PENDING = "pending"
    SUCCESSFUL = "successful"


class User(Base):
    """Registered user account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Referrals
    referral_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    referred_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Password reset
    reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    referrals_made: Mapped[list["Referral"]] = relationship(
        "Referral",
        foreign_keys="Referral.referrer_id",
        back_populates="referrer",
        passive_deletes=True,
    )
    referrals_received: Mapped[list["Referral"]] = relationship(
        "Referral",
        foreign_keys="Referral.referred_user_id",
        back_populates="referred_user",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class Referral(Base):
    """One user crediting another at signup."""

    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint("referrer_id <> referred_user_id", name="ck_referrals_not_self"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    referred_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    date_referred: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    status: Mapped[ReferralStatus] = mapped_column(
        SQLEnum(ReferralStatus, values_callable=lambda e: [m.value for m in e], name="referral_status"),
        default=ReferralStatus.PENDING,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    referrer: Mapped[User] = relationship(
        "User", foreign_keys=[referrer_id], back_populates="referrals_made"
    )
    referred_user: Mapped[User] = relationship(
        "User", foreign_keys=[referred_user_id], back_populates="referrals_received"
    )

    def __repr__(self):
        return f"<Referral(referrer={self.referrer_id}, referred={self.referred_user_id}, status={self.status})>"
