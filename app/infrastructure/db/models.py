"""
SQLAlchemy ORM models of the hosted store (auth + subscriptions)
"""
import uuid
from datetime import date as date_type, datetime
from decimal import Decimal

from sqlalchemy import String, Text, TIMESTAMP, Date, Boolean, Numeric, Index, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.db.session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Auth user. Ids are opaque uuids, the same value is stamped on every
    subscription the user owns.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    email_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    confirmation_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class AuthSessionModel(Base):
    """
    Issued access token. Revoked on sign-out, ignored once expired.
    """
    __tablename__ = "auth_sessions"

    access_token: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(), nullable=False)  # naive UTC
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class SubscriptionModel(Base):
    """
    Recurring subscription, always scoped by user_id
    """
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cycle: Mapped[str] = mapped_column(String(16), nullable=False, default="monthly")
    renewal_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_subscriptions_price_non_negative"),
        Index("ix_subscriptions_user_renewal", "user_id", "renewal_date"),
    )
