"""Credit pack checkout links."""

from urllib.parse import urlencode

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from retention.errors import ValidationError
from retention.logging_config import get_logger
from retention.settings import settings

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pack_size: str | int | None = None
    company_id: str | None = None


def build_checkout_url(pack_size: str, company_id: str) -> str:
    """Hosted Whop checkout URL for a credit pack.

    The metadata travels back on the payment.succeeded webhook.

    Raises:
        ValidationError: If the pack size has no configured plan
    """
    plan_id = settings.whop_credit_plans.get(pack_size)
    if not plan_id:
        raise ValidationError("Invalid pack size")

    query = urlencode(
        {"metadata[company_id]": company_id, "metadata[pack_size]": pack_size}
    )
    return f"{settings.whop_checkout_base_url}/{plan_id}?{query}"


@router.post("")
async def create_checkout(body: CheckoutRequest):
    """Return the checkout URL for a credit pack."""
    if body.pack_size in (None, "") or not body.company_id:
        raise ValidationError("packSize and companyId required")

    url = build_checkout_url(str(body.pack_size), body.company_id)
    logger.info("checkout_link_created", company_id=body.company_id, pack_size=str(body.pack_size))
    return {"url": url}
