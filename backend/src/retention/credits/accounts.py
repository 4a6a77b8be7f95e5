"""Company account records created and retired by membership webhooks."""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from retention.errors import DependencyError
from retention.logging_config import get_logger
from retention.storage.db import Database
from retention.storage.models import Business, BusinessStatus, utcnow

logger = get_logger(__name__)


class BusinessAccounts:
    """Install state of each company."""

    def __init__(self, database: Database):
        self.database = database

    def open(self, company_id: str, membership_id: str | None) -> bool:
        """Create the account if it does not exist.

        Returns:
            True if this call created it
        """
        try:
            with self.database.session() as session:
                session.add(
                    Business(
                        company_id=company_id,
                        membership_id=membership_id,
                        status=BusinessStatus.ACTIVE.value,
                    )
                )
                session.flush()
        except IntegrityError:
            return False
        except SQLAlchemyError as e:
            raise DependencyError("Account store unavailable") from e

        logger.info("business_account_created", company_id=company_id, membership_id=membership_id)
        return True

    def discard(self, company_id: str) -> None:
        """Remove an account whose onboarding could not complete."""
        try:
            with self.database.session() as session:
                session.query(Business).filter(Business.company_id == company_id).delete()
        except SQLAlchemyError as e:
            logger.error("business_account_discard_failed", company_id=company_id, error=str(e))
            raise DependencyError("Account store unavailable") from e

    def set_status(self, company_id: str, status: BusinessStatus) -> bool:
        """Set the account status.

        Returns:
            False if the account does not exist
        """
        values = {Business.status: status.value}
        if status == BusinessStatus.INACTIVE:
            values[Business.deactivated_at] = utcnow()
        else:
            values[Business.deactivated_at] = None

        try:
            with self.database.session() as session:
                updated = (
                    session.query(Business)
                    .filter(Business.company_id == company_id)
                    .update(values, synchronize_session=False)
                )
        except SQLAlchemyError as e:
            raise DependencyError("Account store unavailable") from e
        return bool(updated)

    def get(self, company_id: str) -> Business | None:
        try:
            with self.database.session() as session:
                return session.get(Business, company_id)
        except SQLAlchemyError as e:
            raise DependencyError("Account store unavailable") from e
