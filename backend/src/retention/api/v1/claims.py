"""Claim endpoint used by the cancellation page."""

from fastapi import APIRouter, Depends, Request

from retention.api.deps import get_claim_workflow, get_current_actor
from retention.api.rate_limit import limiter
from retention.claims.workflow import ClaimRequest, ClaimWorkflow
from retention.settings import settings

router = APIRouter(prefix="/claims", tags=["claims"])


@router.post("")
@limiter.limit(settings.claim_rate_limit)
async def claim_offer(
    request: Request,
    body: ClaimRequest,
    actor_id: str = Depends(get_current_actor),
    workflow: ClaimWorkflow = Depends(get_claim_workflow),
):
    """Claim the retention offer for the caller's membership.

    Costs the company one credit. Errors come back as
    {"error": ..., "code": ...}; 402 means the company is out of credits.
    """
    result = await workflow.claim(body, actor_id)
    return {
        "success": result.success,
        "message": result.message,
        "discountPercent": result.discount_percent,
    }
