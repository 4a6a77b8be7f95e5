"""FastAPI dependencies: actor verification, access checks and services."""

from fastapi import Depends, Request

from retention.claims.audit import OfferAuditLog
from retention.claims.workflow import ClaimWorkflow
from retention.credits.accounts import BusinessAccounts
from retention.credits.idempotency import IdempotencyGuard
from retention.credits.ledger import LedgerStore
from retention.credits.transactions import MembershipEventLog, TransactionLog
from retention.errors import PermissionDeniedError
from retention.logging_config import get_logger
from retention.settings import settings
from retention.storage.db import Database, get_database
from retention.webhooks.handlers import WebhookProcessor
from retention.whop.auth import USER_TOKEN_HEADER, WhopTokenVerifier, build_token_verifier
from retention.whop.client import AccessCheck, AccessChecker, MembershipStore, get_whop_client

logger = get_logger(__name__)


def get_token_verifier() -> WhopTokenVerifier:
    return build_token_verifier(settings)


def get_membership_store() -> MembershipStore:
    return get_whop_client()


def get_access_checker() -> AccessChecker:
    return get_whop_client()


def get_current_actor(
    request: Request,
    verifier: WhopTokenVerifier = Depends(get_token_verifier),
) -> str:
    """Verify the Whop user token and return the actor's user ID.

    Raises:
        AuthError: 401 if the token is missing or invalid
    """
    actor_id = verifier.verify(request.headers.get(USER_TOKEN_HEADER))
    request.state.actor_id = actor_id
    return actor_id


async def require_company_access(
    company_id: str,
    actor_id: str = Depends(get_current_actor),
    access: AccessChecker = Depends(get_access_checker),
) -> AccessCheck:
    """Require any access to the company.

    Raises:
        PermissionDeniedError: 403 if the actor has no access
    """
    check = await access.check_access(company_id, actor_id)
    if not check.has_access:
        logger.warning("company_access_denied", company_id=company_id, actor_id=actor_id)
        raise PermissionDeniedError("Forbidden: No access to this company")
    return check


async def require_company_admin(
    company_id: str,
    actor_id: str = Depends(get_current_actor),
    access: AccessChecker = Depends(get_access_checker),
) -> AccessCheck:
    """Require admin access to the company.

    Raises:
        PermissionDeniedError: 403 if the actor is not an admin
    """
    check = await access.check_access(company_id, actor_id)
    if not check.is_admin:
        logger.warning("company_admin_required", company_id=company_id, actor_id=actor_id)
        raise PermissionDeniedError("Forbidden: Admin access required")
    return check


def get_ledger(database: Database = Depends(get_database)) -> LedgerStore:
    return LedgerStore(database)


def get_transaction_log(database: Database = Depends(get_database)) -> TransactionLog:
    return TransactionLog(database)


def get_audit_log(database: Database = Depends(get_database)) -> OfferAuditLog:
    return OfferAuditLog(database)


def get_claim_workflow(
    ledger: LedgerStore = Depends(get_ledger),
    transactions: TransactionLog = Depends(get_transaction_log),
    audit: OfferAuditLog = Depends(get_audit_log),
    memberships: MembershipStore = Depends(get_membership_store),
) -> ClaimWorkflow:
    return ClaimWorkflow(
        ledger=ledger,
        transactions=transactions,
        memberships=memberships,
        audit=audit,
    )


def get_webhook_processor(database: Database = Depends(get_database)) -> WebhookProcessor:
    transactions = TransactionLog(database)
    membership_events = MembershipEventLog(database)
    return WebhookProcessor(
        ledger=LedgerStore(database),
        transactions=transactions,
        membership_events=membership_events,
        accounts=BusinessAccounts(database),
        guard=IdempotencyGuard(transactions, membership_events),
    )
