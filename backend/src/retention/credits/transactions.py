"""Append-only credit transaction log and membership event witnesses."""

from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from retention.errors import DependencyError
from retention.logging_config import get_logger
from retention.storage.db import Database
from retention.storage.models import CreditTransaction, MembershipEvent, TransactionType

logger = get_logger(__name__)


class TransactionLog:
    """Records of balance-affecting events, never updated or deleted."""

    def __init__(self, database: Database):
        self.database = database

    def append(
        self,
        company_id: str,
        type: TransactionType,
        amount: int,
        external_event_id: str | None = None,
        amount_cents: int | None = None,
        pack_size: str | None = None,
        description: str | None = None,
    ) -> CreditTransaction:
        """Append a transaction record.

        Args:
            company_id: Company ID
            type: Transaction type
            amount: Signed credit amount (negative for debits)
            external_event_id: Payment or membership ID the event came from
            amount_cents: Payment amount for purchases
            pack_size: Purchased pack size, if known
            description: Optional description

        Returns:
            The stored record

        Raises:
            DependencyError: If storage is unavailable
        """
        try:
            with self.database.session() as session:
                transaction = CreditTransaction(
                    company_id=company_id,
                    type=type.value,
                    amount=amount,
                    external_event_id=external_event_id,
                    amount_cents=amount_cents,
                    pack_size=pack_size,
                    description=description,
                )
                session.add(transaction)
                session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "transaction_append_failed",
                company_id=company_id,
                type=type.value,
                external_event_id=external_event_id,
                error=str(e),
            )
            raise DependencyError("Transaction log unavailable") from e

        logger.info(
            "transaction_recorded",
            company_id=company_id,
            type=type.value,
            amount=amount,
            external_event_id=external_event_id,
        )
        return transaction

    def exists(self, company_id: str, external_event_id: str, type: TransactionType) -> bool:
        """Check for a record matching (company_id, external_event_id, type).

        Raises:
            DependencyError: If storage is unavailable
        """
        try:
            with self.database.session() as session:
                existing = (
                    session.query(CreditTransaction.id)
                    .filter(
                        CreditTransaction.company_id == company_id,
                        CreditTransaction.external_event_id == external_event_id,
                        CreditTransaction.type == type.value,
                    )
                    .first()
                )
                return existing is not None
        except SQLAlchemyError as e:
            raise DependencyError("Transaction log unavailable") from e

    def history(self, company_id: str, limit: int = 50, offset: int = 0) -> list[CreditTransaction]:
        """Get the company's transactions, newest first."""
        try:
            with self.database.session() as session:
                return (
                    session.query(CreditTransaction)
                    .filter(CreditTransaction.company_id == company_id)
                    .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
                    .offset(offset)
                    .limit(limit)
                    .all()
                )
        except SQLAlchemyError as e:
            raise DependencyError("Transaction log unavailable") from e

    def count(self, company_id: str, type: TransactionType | None = None) -> int:
        try:
            with self.database.session() as session:
                query = session.query(func.count(CreditTransaction.id)).filter(
                    CreditTransaction.company_id == company_id
                )
                if type is not None:
                    query = query.filter(CreditTransaction.type == type.value)
                return query.scalar() or 0
        except SQLAlchemyError as e:
            raise DependencyError("Transaction log unavailable") from e


class MembershipEventLog:
    """Witnesses for processed membership lifecycle events."""

    def __init__(self, database: Database):
        self.database = database

    def record(
        self,
        company_id: str,
        event_type: str,
        membership_id: str,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """Record that a membership event was applied.

        Returns:
            True if recorded, False if a witness already existed

        Raises:
            DependencyError: If storage is unavailable
        """
        try:
            with self.database.session() as session:
                session.add(
                    MembershipEvent(
                        company_id=company_id,
                        membership_id=membership_id,
                        event_type=event_type,
                        payload=payload,
                    )
                )
                session.flush()
        except IntegrityError:
            logger.warning(
                "membership_event_already_recorded",
                company_id=company_id,
                membership_id=membership_id,
                event_type=event_type,
            )
            return False
        except SQLAlchemyError as e:
            logger.error(
                "membership_event_record_failed",
                company_id=company_id,
                membership_id=membership_id,
                event_type=event_type,
                error=str(e),
            )
            raise DependencyError("Membership event log unavailable") from e

        return True

    def exists(self, company_id: str, event_type: str, membership_id: str) -> bool:
        """Raises DependencyError if storage is unavailable."""
        try:
            with self.database.session() as session:
                existing = (
                    session.query(MembershipEvent.id)
                    .filter(
                        MembershipEvent.company_id == company_id,
                        MembershipEvent.membership_id == membership_id,
                        MembershipEvent.event_type == event_type,
                    )
                    .first()
                )
                return existing is not None
        except SQLAlchemyError as e:
            raise DependencyError("Membership event log unavailable") from e
