"""Per-company retention offer settings and customer feedback."""

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from retention.errors import DependencyError, ValidationError
from retention.logging_config import get_logger
from retention.settings import settings
from retention.storage.db import Database
from retention.storage.models import CompanyConfig, FeedbackEntry, FeedbackKind, utcnow

logger = get_logger(__name__)


class OfferConfigStore:
    """Discount percent offered by each company."""

    def __init__(self, database: Database, default_discount_percent: int | None = None):
        self.database = database
        self.default_discount_percent = (
            default_discount_percent
            if default_discount_percent is not None
            else settings.default_discount_percent
        )

    def get_discount_percent(self, company_id: str) -> int:
        """Configured discount, or the default when the company has none."""
        try:
            with self.database.session() as session:
                config = session.get(CompanyConfig, company_id)
                return config.discount_percent if config else self.default_discount_percent
        except SQLAlchemyError as e:
            raise DependencyError("Config store unavailable") from e

    def set_discount_percent(self, company_id: str, discount_percent: int, updated_by: str) -> None:
        try:
            with self.database.session() as session:
                config = session.get(CompanyConfig, company_id)
                if config is None:
                    session.add(
                        CompanyConfig(
                            company_id=company_id,
                            discount_percent=discount_percent,
                            updated_by=updated_by,
                        )
                    )
                else:
                    config.discount_percent = discount_percent
                    config.updated_by = updated_by
                    config.updated_at = utcnow()
        except SQLAlchemyError as e:
            raise DependencyError("Config store unavailable") from e

        logger.info(
            "offer_config_updated",
            company_id=company_id,
            discount_percent=discount_percent,
            updated_by=updated_by,
        )


class FeedbackLog:
    """Cancellation reasons and feedback left on the cancellation page."""

    def __init__(self, database: Database):
        self.database = database

    def log(self, company_id: str, kind: str, payload: dict[str, Any], logged_by: str) -> FeedbackEntry:
        """Store a feedback entry.

        Raises:
            ValidationError: If kind is not an accepted feedback kind
            DependencyError: If storage is unavailable
        """
        try:
            feedback_kind = FeedbackKind(kind)
        except ValueError:
            raise ValidationError(f"Invalid feedback kind: {kind}")

        try:
            with self.database.session() as session:
                entry = FeedbackEntry(
                    company_id=company_id,
                    kind=feedback_kind.value,
                    payload=payload,
                    logged_by_user_id=logged_by,
                )
                session.add(entry)
                session.flush()
        except SQLAlchemyError as e:
            raise DependencyError("Feedback log unavailable") from e

        logger.info("feedback_logged", company_id=company_id, kind=feedback_kind.value)
        return entry
