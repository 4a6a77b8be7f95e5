"""Company dashboard endpoints: balance, stats, offer config and feedback."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from retention.api.deps import (
    get_audit_log,
    get_current_actor,
    get_ledger,
    get_transaction_log,
    require_company_access,
    require_company_admin,
)
from retention.claims.audit import OfferAuditLog
from retention.claims.config import FeedbackLog, OfferConfigStore
from retention.claims.workflow import parse_discount_percent
from retention.credits.ledger import LedgerStore
from retention.credits.transactions import TransactionLog
from retention.storage.db import Database, get_database
from retention.whop.client import AccessCheck

router = APIRouter(prefix="/companies", tags=["companies"])


class ConfigUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    discount_percent: Any = None


class FeedbackCreate(BaseModel):
    kind: str
    data: dict[str, Any] = Field(default_factory=dict)


def _serialize_save(save) -> dict[str, Any]:
    return {
        "id": save.id,
        "membershipId": save.membership_id,
        "experienceId": save.experience_id,
        "discountPercent": save.discount_percent,
        "cancellationReason": save.cancellation_reason,
        "savedByUserId": save.saved_by_user_id,
        "cost": save.cost,
        "claimedAt": save.claimed_at.isoformat(),
    }


@router.get("/{company_id}/balance")
async def get_balance(
    company_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    _: AccessCheck = Depends(require_company_admin),
    ledger: LedgerStore = Depends(get_ledger),
    transactions: TransactionLog = Depends(get_transaction_log),
):
    """Current credit balance and recent transactions (admin only)."""
    history = transactions.history(company_id, limit=limit)
    return {
        "companyId": company_id,
        "balance": ledger.get_balance(company_id),
        "transactions": [
            {
                "id": t.id,
                "type": t.type,
                "amount": t.amount,
                "externalEventId": t.external_event_id,
                "createdAt": t.created_at.isoformat(),
            }
            for t in history
        ],
    }


@router.get("/{company_id}/stats")
async def get_stats(
    company_id: str,
    _: AccessCheck = Depends(require_company_admin),
    ledger: LedgerStore = Depends(get_ledger),
    audit: OfferAuditLog = Depends(get_audit_log),
):
    """Credits left, total saves and the ten latest saves (admin only)."""
    return {
        "credits": ledger.get_balance(company_id),
        "saves": audit.count_saves(company_id),
        "logs": [_serialize_save(s) for s in audit.recent_saves(company_id, limit=10)],
    }


@router.get("/{company_id}/config")
async def get_config(
    company_id: str,
    _: AccessCheck = Depends(require_company_access),
    database: Database = Depends(get_database),
):
    """Offer configuration shown on the cancellation page."""
    discount = OfferConfigStore(database).get_discount_percent(company_id)
    return {"discountPercent": str(discount)}


@router.put("/{company_id}/config")
async def update_config(
    company_id: str,
    body: ConfigUpdate,
    actor_id: str = Depends(get_current_actor),
    _: AccessCheck = Depends(require_company_admin),
    database: Database = Depends(get_database),
):
    """Save the offer configuration (admin only)."""
    discount = parse_discount_percent(body.discount_percent)
    OfferConfigStore(database).set_discount_percent(company_id, discount, updated_by=actor_id)
    return {"success": True}


@router.post("/{company_id}/feedback")
async def log_feedback(
    company_id: str,
    body: FeedbackCreate,
    actor_id: str = Depends(get_current_actor),
    _: AccessCheck = Depends(require_company_access),
    database: Database = Depends(get_database),
):
    """Record a cancellation reason or feedback entry."""
    FeedbackLog(database).log(company_id, body.kind, body.data, logged_by=actor_id)
    return {"success": True}
