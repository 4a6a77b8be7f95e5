"""Decide whether an inbound external event has already been applied.

The guard only looks. Recording the witness is the handler's job, done
after the effect lands, so a crash between the two leaves an applied but
unrecorded event that a redelivery would apply again.
"""

from dataclasses import dataclass

from retention.credits.transactions import MembershipEventLog, TransactionLog
from retention.errors import DependencyError
from retention.logging_config import get_logger
from retention.storage.models import TransactionType

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentScope:
    """Scope key for payment.succeeded."""
    company_id: str
    payment_id: str


@dataclass(frozen=True)
class MembershipScope:
    """Scope key for membership lifecycle events."""
    company_id: str
    event_type: str
    membership_id: str


ScopeKey = PaymentScope | MembershipScope


class IdempotencyGuard:
    """Looks up idempotency witnesses in the transaction and event logs."""

    def __init__(self, transactions: TransactionLog, membership_events: MembershipEventLog):
        self.transactions = transactions
        self.membership_events = membership_events

    def already_processed(self, scope: ScopeKey) -> bool:
        """Check whether the event identified by scope was already applied.

        Fails open: a storage error during the lookup reports "not
        processed" so an outage cannot block legitimate payments, at the
        cost of a possible duplicate grant.

        Args:
            scope: Payment or membership scope key

        Returns:
            True if a witness exists
        """
        try:
            if isinstance(scope, PaymentScope):
                return self.transactions.exists(
                    scope.company_id, scope.payment_id, TransactionType.PURCHASE
                )
            return self.membership_events.exists(
                scope.company_id, scope.event_type, scope.membership_id
            )
        except DependencyError as e:
            logger.warning(
                "idempotency_check_failed",
                scope=repr(scope),
                error=str(e),
                assumed_processed=False,
            )
            return False
