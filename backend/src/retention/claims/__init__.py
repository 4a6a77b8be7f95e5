"""Retention offer claims."""

from retention.claims.audit import OfferAuditLog
from retention.claims.workflow import (
    ClaimAttempt,
    ClaimRequest,
    ClaimResult,
    ClaimState,
    ClaimWorkflow,
    validate_claim,
)

__all__ = [
    "ClaimAttempt",
    "ClaimRequest",
    "ClaimResult",
    "ClaimState",
    "ClaimWorkflow",
    "OfferAuditLog",
    "validate_claim",
]
