"""Database models for accounts, refresh tokens and referral redemptions."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class UserAccount(Base):
    """A player account.

    The score column is only ever changed through RewardLedger, which
    applies relative increments.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Auth
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Rewards
    score: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    referral_code: Mapped[str | None] = mapped_column(
        String(32), unique=True, nullable=True, index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    # Relationships
    refresh_tokens: Mapped[list["RefreshTokenRecord"]] = relationship(
        "RefreshTokenRecord", back_populates="user", cascade="all, delete-orphan"
    )
    redemptions: Mapped[list["ReferralRedemption"]] = relationship(
        "ReferralRedemption", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<UserAccount(id={self.id}, email={self.email}, score={self.score})>"


class RefreshTokenRecord(Base):
    """Server-side record of an issued refresh token.

    Only the bcrypt hash is stored; the plaintext goes to the client once.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    user: Mapped["UserAccount"] = relationship("UserAccount", back_populates="refresh_tokens")

    def __repr__(self) -> str:
        return f"<RefreshTokenRecord(id={self.id}, user={self.user_id}, revoked={self.revoked_at is not None})>"


class ReferralRedemption(Base):
    """One redemption of a referral code by a user.

    The unique constraint makes each (user, code) pair redeemable once.
    """

    __tablename__ = "referral_redemptions"
    __table_args__ = (
        UniqueConstraint("user_id", "referral_code", name="uq_redemption_user_code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    referral_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    referrer_points: Mapped[int] = mapped_column(Integer, nullable=False)
    redeemer_points: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    user: Mapped["UserAccount"] = relationship("UserAccount", back_populates="redemptions")

    def __repr__(self) -> str:
        return f"<ReferralRedemption(user={self.user_id}, code={self.referral_code})>"
