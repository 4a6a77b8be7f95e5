"""Apply verified webhook events to the ledger.

Each handler checks the idempotency guard first and writes its witness
last, after the effect has landed.
"""

from collections.abc import Mapping

from retention.credits.accounts import BusinessAccounts
from retention.credits.idempotency import IdempotencyGuard, MembershipScope, PaymentScope
from retention.credits.ledger import LedgerStore
from retention.credits.pricing import credits_for_payment
from retention.credits.transactions import MembershipEventLog, TransactionLog
from retention.logging_config import get_logger
from retention.settings import settings
from retention.storage.models import BusinessStatus, TransactionType
from retention.webhooks.events import (
    MembershipMetadataUpdated,
    MembershipWentInvalid,
    MembershipWentValid,
    PaymentSucceeded,
    UnknownEvent,
    WebhookEvent,
)

logger = get_logger(__name__)

WENT_VALID = "went_valid"
WENT_INVALID = "went_invalid"


class WebhookProcessor:
    """Routes typed webhook events to their handlers."""

    def __init__(
        self,
        ledger: LedgerStore,
        transactions: TransactionLog,
        membership_events: MembershipEventLog,
        accounts: BusinessAccounts,
        guard: IdempotencyGuard,
        welcome_credits: int | None = None,
        credit_tiers: Mapping[int, int] | None = None,
        cents_per_credit: int | None = None,
    ):
        self.ledger = ledger
        self.transactions = transactions
        self.membership_events = membership_events
        self.accounts = accounts
        self.guard = guard
        self.welcome_credits = settings.welcome_credits if welcome_credits is None else welcome_credits
        self.credit_tiers = credit_tiers
        self.cents_per_credit = cents_per_credit

    def dispatch(self, event: WebhookEvent) -> None:
        """Apply an event. Exceptions propagate so the sender retries."""
        if isinstance(event, PaymentSucceeded):
            self.handle_payment_succeeded(event)
        elif isinstance(event, MembershipWentValid):
            self.handle_membership_went_valid(event)
        elif isinstance(event, MembershipWentInvalid):
            self.handle_membership_went_invalid(event)
        elif isinstance(event, MembershipMetadataUpdated):
            logger.info("membership_metadata_updated", membership_id=event.membership_id)
        elif isinstance(event, UnknownEvent):
            logger.info("webhook_unhandled", action=event.action)

    def handle_payment_succeeded(self, event: PaymentSucceeded) -> None:
        """Grant purchased credits once per payment ID."""
        if not event.company_id:
            logger.error("payment_webhook_missing_company", payment_id=event.payment_id)
            return
        if not event.payment_id:
            logger.error("payment_webhook_missing_id", company_id=event.company_id)
            return
        if event.amount_cents is None or event.amount_cents <= 0:
            logger.error(
                "payment_webhook_invalid_amount",
                payment_id=event.payment_id,
                amount=event.amount_cents,
            )
            return

        # Fails open: if the lookup itself errors we grant anyway and
        # accept a possible duplicate rather than drop a paid purchase.
        if self.guard.already_processed(PaymentScope(event.company_id, event.payment_id)):
            logger.info(
                "payment_webhook_duplicate",
                company_id=event.company_id,
                payment_id=event.payment_id,
            )
            return

        credits = credits_for_payment(event.amount_cents, self.credit_tiers, self.cents_per_credit)
        if credits <= 0:
            logger.warning(
                "payment_too_low_for_credits",
                company_id=event.company_id,
                payment_id=event.payment_id,
                amount_cents=event.amount_cents,
            )
            return

        self.ledger.credit(event.company_id, credits)
        # This record is the witness for redeliveries of the same payment.
        self.transactions.append(
            company_id=event.company_id,
            type=TransactionType.PURCHASE,
            amount=credits,
            external_event_id=event.payment_id,
            amount_cents=event.amount_cents,
            pack_size=event.pack_size,
            description=f"Payment {event.payment_id}",
        )
        logger.info(
            "payment_credits_granted",
            company_id=event.company_id,
            payment_id=event.payment_id,
            amount_cents=event.amount_cents,
            credits=credits,
        )

    def handle_membership_went_valid(self, event: MembershipWentValid) -> None:
        """App installed: open the account and grant the welcome bonus once."""
        if not event.company_id or not event.membership_id:
            logger.warning(
                "membership_webhook_missing_ids",
                action=event.action,
                company_id=event.company_id,
                membership_id=event.membership_id,
            )
            return

        # Fails open, see handle_payment_succeeded.
        scope = MembershipScope(event.company_id, WENT_VALID, event.membership_id)
        if self.guard.already_processed(scope):
            logger.info("membership_webhook_duplicate", action=event.action, membership_id=event.membership_id)
            return

        if self.accounts.open(event.company_id, event.membership_id):
            self._grant_welcome_bonus(event.company_id, event.membership_id)
        else:
            self.accounts.set_status(event.company_id, BusinessStatus.ACTIVE)
            logger.info("business_account_exists", company_id=event.company_id)

        self.membership_events.record(event.company_id, WENT_VALID, event.membership_id, payload=event.raw)

    def handle_membership_went_invalid(self, event: MembershipWentInvalid) -> None:
        """App uninstalled or expired: mark the account inactive."""
        if not event.company_id or not event.membership_id:
            logger.warning(
                "membership_webhook_missing_ids",
                action=event.action,
                company_id=event.company_id,
                membership_id=event.membership_id,
            )
            return

        scope = MembershipScope(event.company_id, WENT_INVALID, event.membership_id)
        if self.guard.already_processed(scope):
            logger.info("membership_webhook_duplicate", action=event.action, membership_id=event.membership_id)
            return

        if self.accounts.set_status(event.company_id, BusinessStatus.INACTIVE):
            logger.info("business_account_deactivated", company_id=event.company_id)
        else:
            logger.info("business_account_missing", company_id=event.company_id)

        self.membership_events.record(event.company_id, WENT_INVALID, event.membership_id, payload=event.raw)

    def _grant_welcome_bonus(self, company_id: str, membership_id: str) -> None:
        try:
            self.ledger.credit(company_id, self.welcome_credits)
        except Exception:
            # Retry must see a fresh install, not an existing account without a bonus.
            self.accounts.discard(company_id)
            raise

        self.transactions.append(
            company_id=company_id,
            type=TransactionType.WELCOME_BONUS,
            amount=self.welcome_credits,
            external_event_id=membership_id,
            description="Welcome bonus credits",
        )
        logger.info("welcome_bonus_granted", company_id=company_id, credits=self.welcome_credits)
