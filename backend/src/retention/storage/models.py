"""Database models for the credit ledger and retention records."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TransactionType(str, Enum):
    """Kinds of balance-affecting events."""
    PURCHASE = "purchase"
    WELCOME_BONUS = "welcome_bonus"
    CLAIM_DEBIT = "claim_debit"
    CLAIM_REFUND = "claim_refund"
    ADJUSTMENT = "adjustment"  # Manual reconciliation by an operator


class BusinessStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class FeedbackKind(str, Enum):
    CANCELLATION_REASON = "cancellation_reason"
    FEEDBACK = "feedback"


class CreditAccount(Base):
    """Per-company credit balance.

    Only ever mutated through relative UPDATEs in LedgerStore, never by
    assigning balance directly.
    """

    __tablename__ = "credit_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),
    )

    company_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<CreditAccount(company={self.company_id}, balance={self.balance})>"


class Business(Base):
    """Company account record, created when the app is installed."""

    __tablename__ = "businesses"

    company_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    membership_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=BusinessStatus.ACTIVE.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Business(company={self.company_id}, status={self.status})>"


class CreditTransaction(Base):
    """Append-only record of a balance-affecting event.

    A row with a given (company_id, external_event_id, type) is the
    idempotency witness for that external event.
    """

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    external_event_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # Positive = credit, negative = debit

    # Purchase details
    amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pack_size: Mapped[str | None] = mapped_column(String(16), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction(id={self.id}, company={self.company_id}, "
            f"type={self.type}, amount={self.amount})>"
        )


class MembershipEvent(Base):
    """Witness for a processed membership lifecycle webhook."""

    __tablename__ = "membership_events"
    __table_args__ = (
        UniqueConstraint(
            "company_id", "membership_id", "event_type",
            name="uq_membership_events_scope",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    membership_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<MembershipEvent(membership={self.membership_id}, type={self.event_type})>"


class OfferSave(Base):
    """Audit record of a successfully claimed retention offer."""

    __tablename__ = "offer_saves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    membership_id: Mapped[str] = mapped_column(String(64), nullable=False)
    experience_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    discount_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    saved_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    cost: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<OfferSave(company={self.company_id}, membership={self.membership_id})>"


class CompanyConfig(Base):
    """Retention offer configuration chosen by the business."""

    __tablename__ = "company_configs"

    company_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    discount_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class FeedbackEntry(Base):
    """Cancellation reason or free-form feedback left by a customer."""

    __tablename__ = "feedback_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    logged_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
