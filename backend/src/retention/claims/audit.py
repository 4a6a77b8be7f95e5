"""Audit trail of claimed retention offers ("saves")."""

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from retention.errors import DependencyError
from retention.logging_config import get_logger
from retention.storage.db import Database
from retention.storage.models import OfferSave

logger = get_logger(__name__)


class OfferAuditLog:
    """Stores one OfferSave per successful claim."""

    def __init__(self, database: Database):
        self.database = database

    def record_save(
        self,
        company_id: str,
        membership_id: str,
        discount_percent: int,
        saved_by_user_id: str,
        experience_id: str | None = None,
        cancellation_reason: str | None = None,
    ) -> bool:
        """Record a save. Never raises on storage failure.

        Returns:
            True if the record was stored
        """
        try:
            with self.database.session() as session:
                session.add(
                    OfferSave(
                        company_id=company_id,
                        membership_id=membership_id,
                        experience_id=experience_id,
                        discount_percent=discount_percent,
                        cancellation_reason=cancellation_reason,
                        saved_by_user_id=saved_by_user_id,
                        cost=1,
                    )
                )
        except SQLAlchemyError as e:
            logger.warning(
                "offer_save_record_failed",
                company_id=company_id,
                membership_id=membership_id,
                error=str(e),
            )
            return False
        return True

    def recent_saves(self, company_id: str, limit: int = 10) -> list[OfferSave]:
        try:
            with self.database.session() as session:
                return (
                    session.query(OfferSave)
                    .filter(OfferSave.company_id == company_id)
                    .order_by(OfferSave.claimed_at.desc(), OfferSave.id.desc())
                    .limit(limit)
                    .all()
                )
        except SQLAlchemyError as e:
            raise DependencyError("Audit log unavailable") from e

    def count_saves(self, company_id: str) -> int:
        try:
            with self.database.session() as session:
                return (
                    session.query(func.count(OfferSave.id))
                    .filter(OfferSave.company_id == company_id)
                    .scalar()
                    or 0
                )
        except SQLAlchemyError as e:
            raise DependencyError("Audit log unavailable") from e
