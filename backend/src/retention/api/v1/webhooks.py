"""Webhook endpoint for Whop events."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status

from retention.api.deps import get_webhook_processor
from retention.errors import SignatureError
from retention.logging_config import get_logger
from retention.settings import settings
from retention.webhooks.events import UnknownEvent, parse_event
from retention.webhooks.handlers import WebhookProcessor
from retention.webhooks.signature import SIGNATURE_HEADER, verify_signature

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/whop")
async def whop_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """Handle Whop webhook events.

    Verifies the signature over the raw body before parsing. Handler
    failures return 500 so Whop redelivers; redeliveries are absorbed by
    the idempotency checks.
    """
    secret = settings.whop_webhook_secret
    if not secret:
        logger.error("whop_webhook_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfigured",
        )

    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    try:
        verify_signature(payload, signature, secret)
    except SignatureError:
        logger.warning("whop_webhook_invalid_signature")
        raise

    try:
        event = parse_event(json.loads(payload))
    except ValueError as e:
        logger.error("whop_webhook_invalid_json", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    logger.info("whop_webhook_received", action=event.action)

    try:
        processor.dispatch(event)
    except Exception as e:
        logger.error("whop_webhook_handler_failed", action=event.action, error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing webhook",
        )

    return {"received": True, "handled": not isinstance(event, UnknownEvent)}
