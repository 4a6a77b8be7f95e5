"""Inbound Whop webhooks."""

from retention.webhooks.events import WebhookEvent, parse_event
from retention.webhooks.handlers import WebhookProcessor
from retention.webhooks.signature import SIGNATURE_HEADER, compute_signature, verify_signature

__all__ = [
    "SIGNATURE_HEADER",
    "WebhookEvent",
    "WebhookProcessor",
    "compute_signature",
    "parse_event",
    "verify_signature",
]
