"""Credit ledger, transaction log and idempotency guard."""

from retention.credits.accounts import BusinessAccounts
from retention.credits.idempotency import IdempotencyGuard, MembershipScope, PaymentScope
from retention.credits.ledger import LedgerStore
from retention.credits.pricing import credits_for_payment
from retention.credits.transactions import MembershipEventLog, TransactionLog

__all__ = [
    "BusinessAccounts",
    "IdempotencyGuard",
    "LedgerStore",
    "MembershipEventLog",
    "MembershipScope",
    "PaymentScope",
    "TransactionLog",
    "credits_for_payment",
]
