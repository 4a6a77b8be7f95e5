"""Claim a retention offer: reserve a credit, mark the membership, refund on failure.

States of one attempt:

    Idle -> Validating -> CreditReserved -> EffectApplied
                |                |
                v                v
          RejectedEarly     EffectFailed -> Refunded

Duplicate claims on one membership are stopped by the claimed flag in the
membership's Whop metadata, not by the ledger. The ledger only stops
claims once credits run out.

A claim records the discount on the membership; the business applies it
to the member's billing.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from retention.claims.audit import OfferAuditLog
from retention.credits.ledger import LedgerStore
from retention.credits.transactions import TransactionLog
from retention.errors import (
    ConflictError,
    DependencyError,
    InsufficientCreditsError,
    PermissionDeniedError,
    RefundFailedError,
    ValidationError,
)
from retention.logging_config import get_logger
from retention.storage.models import TransactionType
from retention.whop.client import OFFER_CLAIMED_KEY, MembershipStore

logger = get_logger(__name__)


class ClaimState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CREDIT_RESERVED = "credit_reserved"
    EFFECT_APPLIED = "effect_applied"
    EFFECT_FAILED = "effect_failed"
    REFUNDED = "refunded"
    REJECTED_EARLY = "rejected_early"


_TRANSITIONS: dict[ClaimState, set[ClaimState]] = {
    ClaimState.IDLE: {ClaimState.VALIDATING, ClaimState.REJECTED_EARLY},
    ClaimState.VALIDATING: {ClaimState.CREDIT_RESERVED, ClaimState.REJECTED_EARLY},
    ClaimState.CREDIT_RESERVED: {ClaimState.EFFECT_APPLIED, ClaimState.EFFECT_FAILED},
    ClaimState.EFFECT_FAILED: {ClaimState.REFUNDED},
    ClaimState.EFFECT_APPLIED: set(),
    ClaimState.REFUNDED: set(),
    ClaimState.REJECTED_EARLY: set(),
}


class ClaimRequest(BaseModel):
    """Claim request as sent by the cancellation page.

    Fields are optional here so missing or malformed values surface as
    ValidationError from the workflow rather than as a schema error.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    membership_id: str | None = None
    company_id: str | None = None
    discount_percent: Any = None
    experience_id: str | None = None
    cancellation_reason: str | None = Field(default=None, max_length=2000)


@dataclass(frozen=True)
class ValidatedClaim:
    membership_id: str
    company_id: str
    discount_percent: int
    experience_id: str | None = None
    cancellation_reason: str | None = None


@dataclass
class ClaimAttempt:
    """Tracks the state of a single claim attempt."""

    state: ClaimState = ClaimState.IDLE
    history: list[ClaimState] = field(default_factory=lambda: [ClaimState.IDLE])

    def advance(self, new_state: ClaimState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal claim transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    @property
    def credit_reserved(self) -> bool:
        return ClaimState.CREDIT_RESERVED in self.history


@dataclass
class ClaimResult:
    company_id: str
    membership_id: str
    discount_percent: int
    state: ClaimState

    @property
    def success(self) -> bool:
        return self.state == ClaimState.EFFECT_APPLIED

    @property
    def message(self) -> str:
        return f"{self.discount_percent}% discount recorded successfully."


def parse_discount_percent(value: Any) -> int:
    """Parse a discount percent in the inclusive range 1-100.

    Raises:
        ValidationError: If the value is not an integer in range
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Invalid discount percent (1-100)")
    try:
        discount = int(str(value).strip())
    except ValueError:
        raise ValidationError("Invalid discount percent (1-100)")
    if discount < 1 or discount > 100:
        raise ValidationError("Invalid discount percent (1-100)")
    return discount


def validate_claim(request: ClaimRequest) -> ValidatedClaim:
    """Check required fields and the discount range.

    Raises:
        ValidationError: If anything is missing or malformed
    """
    membership_id = (request.membership_id or "").strip()
    company_id = (request.company_id or "").strip()
    raw_discount = request.discount_percent

    if not membership_id or not company_id or raw_discount is None or raw_discount == "":
        raise ValidationError("Missing required fields")

    return ValidatedClaim(
        membership_id=membership_id,
        company_id=company_id,
        discount_percent=parse_discount_percent(raw_discount),
        experience_id=request.experience_id or None,
        cancellation_reason=request.cancellation_reason or None,
    )


def claim_metadata(claim: ValidatedClaim, claimed_at: datetime) -> dict[str, str]:
    """Metadata written onto the membership when the offer is claimed."""
    return {
        OFFER_CLAIMED_KEY: "true",
        "retention_discount_percent": str(claim.discount_percent),
        "retention_date": claimed_at.isoformat(),
        "retention_experience_id": claim.experience_id or "",
        "retention_cancellation_reason": claim.cancellation_reason or "",
    }


class ClaimWorkflow:
    """Orchestrates debit -> metadata write -> compensating refund."""

    def __init__(
        self,
        ledger: LedgerStore,
        transactions: TransactionLog,
        memberships: MembershipStore,
        audit: OfferAuditLog,
    ):
        self.ledger = ledger
        self.transactions = transactions
        self.memberships = memberships
        self.audit = audit

    async def claim(self, request: ClaimRequest, actor_id: str) -> ClaimResult:
        """Claim the retention offer for a membership.

        Args:
            request: Raw claim request
            actor_id: Authenticated Whop user ID

        Returns:
            Result in the EffectApplied state

        Raises:
            ValidationError: Malformed input, no credit touched
            NotFoundError: Unknown membership, no credit touched
            PermissionDeniedError: Actor does not own the membership, or the
                membership belongs to another company
            ConflictError: Offer already claimed for the membership
            InsufficientCreditsError: Company has no credits left
            DependencyError: Storage or Whop failure; any reserved credit was refunded
            RefundFailedError: Whop failed and the refund failed too
        """
        attempt = ClaimAttempt()
        attempt.advance(ClaimState.VALIDATING)
        try:
            claim = validate_claim(request)
            log = logger.bind(
                company_id=claim.company_id,
                membership_id=claim.membership_id,
                actor_id=actor_id,
            )

            membership = await self.memberships.get_membership(claim.membership_id)
            if membership.owner_id != actor_id:
                log.warning("claim_ownership_mismatch", owner_id=membership.owner_id)
                raise PermissionDeniedError("Forbidden")

            if membership.company_id and membership.company_id != claim.company_id:
                log.warning("claim_company_mismatch", membership_company_id=membership.company_id)
                raise PermissionDeniedError("Membership does not belong to this company")

            if membership.offer_claimed:
                log.info("claim_rejected_duplicate")
                raise ConflictError("Offer already claimed for this membership")

            if not self.ledger.debit(claim.company_id):
                log.info("claim_rejected_no_credits")
                raise InsufficientCreditsError(claim.company_id)
        except Exception:
            attempt.advance(ClaimState.REJECTED_EARLY)
            raise

        attempt.advance(ClaimState.CREDIT_RESERVED)
        self._record(claim, TransactionType.CLAIM_DEBIT, -1)

        claimed_at = datetime.now(timezone.utc)
        try:
            await self.memberships.update_membership_metadata(
                claim.membership_id,
                {**membership.metadata, **claim_metadata(claim, claimed_at)},
            )
        except Exception as e:
            attempt.advance(ClaimState.EFFECT_FAILED)
            log.error("claim_effect_failed", error=str(e))
            self._refund(claim, attempt)
            raise DependencyError("Failed to apply discount. Credit refunded.") from e

        attempt.advance(ClaimState.EFFECT_APPLIED)
        self.audit.record_save(
            company_id=claim.company_id,
            membership_id=claim.membership_id,
            discount_percent=claim.discount_percent,
            saved_by_user_id=actor_id,
            experience_id=claim.experience_id,
            cancellation_reason=claim.cancellation_reason,
        )
        log.info("retention_offer_claimed", discount_percent=claim.discount_percent)

        return ClaimResult(
            company_id=claim.company_id,
            membership_id=claim.membership_id,
            discount_percent=claim.discount_percent,
            state=attempt.state,
        )

    def _refund(self, claim: ValidatedClaim, attempt: ClaimAttempt) -> None:
        try:
            self.ledger.credit(claim.company_id, 1)
        except Exception as refund_error:
            logger.critical(
                "claim_refund_failed",
                company_id=claim.company_id,
                membership_id=claim.membership_id,
                error=str(refund_error),
                reconciliation_required=True,
            )
            raise RefundFailedError(claim.company_id, claim.membership_id) from refund_error

        attempt.advance(ClaimState.REFUNDED)
        logger.info("claim_credit_refunded", company_id=claim.company_id, membership_id=claim.membership_id)
        self._record(claim, TransactionType.CLAIM_REFUND, 1)

    def _record(self, claim: ValidatedClaim, type: TransactionType, amount: int) -> None:
        # The balance change already happened; a missing log row is tolerated.
        try:
            self.transactions.append(
                company_id=claim.company_id,
                type=type,
                amount=amount,
                external_event_id=claim.membership_id,
            )
        except DependencyError as e:
            logger.warning(
                "claim_transaction_not_recorded",
                company_id=claim.company_id,
                membership_id=claim.membership_id,
                type=type.value,
                error=str(e),
            )
