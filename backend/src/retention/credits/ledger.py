"""Per-company credit balance with atomic increment and decrement."""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from retention.errors import DependencyError
from retention.logging_config import get_logger
from retention.storage.db import Database
from retention.storage.models import CreditAccount, utcnow

logger = get_logger(__name__)


class LedgerStore:
    """Credit balances, one row per company.

    Operations:
    - debit: take one credit iff the balance is positive
    - credit: add credits, opening the account if needed
    - get_balance: read for display only

    Balance is never read to decide whether a debit may proceed; the
    conditional UPDATE is the compare-and-swap.
    """

    def __init__(self, database: Database):
        self.database = database

    def debit(self, company_id: str) -> bool:
        """Atomically take one credit from the company.

        Args:
            company_id: Company ID

        Returns:
            True if a credit was taken, False if the balance was zero or
            the account does not exist

        Raises:
            DependencyError: If storage is unavailable
        """
        try:
            with self.database.session() as session:
                updated = (
                    session.query(CreditAccount)
                    .filter(
                        CreditAccount.company_id == company_id,
                        CreditAccount.balance > 0,
                    )
                    .update(
                        {
                            CreditAccount.balance: CreditAccount.balance - 1,
                            CreditAccount.last_updated: utcnow(),
                        },
                        synchronize_session=False,
                    )
                )
        except SQLAlchemyError as e:
            logger.error("credit_debit_failed", company_id=company_id, error=str(e))
            raise DependencyError("Credit ledger unavailable") from e

        if updated:
            logger.info("credit_debited", company_id=company_id)
            return True

        logger.info("credit_debit_rejected", company_id=company_id, reason="no_credits")
        return False

    def credit(self, company_id: str, amount: int) -> None:
        """Atomically add credits to the company.

        Args:
            company_id: Company ID
            amount: Credits to add (positive)

        Raises:
            ValueError: If amount is not positive
            DependencyError: If storage is unavailable
        """
        if amount <= 0:
            raise ValueError("Amount must be positive")

        try:
            try:
                with self.database.session() as session:
                    if not self._increment(session, company_id, amount):
                        session.add(
                            CreditAccount(
                                company_id=company_id,
                                balance=amount,
                                last_updated=utcnow(),
                            )
                        )
                        session.flush()
            except IntegrityError:
                # Lost the race to open the account; it exists now.
                with self.database.session() as session:
                    self._increment(session, company_id, amount)
        except SQLAlchemyError as e:
            logger.error("credit_grant_failed", company_id=company_id, amount=amount, error=str(e))
            raise DependencyError("Credit ledger unavailable") from e

        logger.info("credits_added", company_id=company_id, amount=amount)

    def get_balance(self, company_id: str) -> int:
        """Get the company's current balance (0 if no account).

        Raises:
            DependencyError: If storage is unavailable
        """
        try:
            with self.database.session() as session:
                account = session.get(CreditAccount, company_id)
                return account.balance if account else 0
        except SQLAlchemyError as e:
            raise DependencyError("Credit ledger unavailable") from e

    @staticmethod
    def _increment(session: Session, company_id: str, amount: int) -> int:
        return (
            session.query(CreditAccount)
            .filter(CreditAccount.company_id == company_id)
            .update(
                {
                    CreditAccount.balance: CreditAccount.balance + amount,
                    CreditAccount.last_updated: utcnow(),
                },
                synchronize_session=False,
            )
        )
