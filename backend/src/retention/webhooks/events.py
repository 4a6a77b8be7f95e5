"""Typed webhook events.

Raw Whop payloads are parsed into one of a closed set of variants here;
handlers never see the untyped JSON.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict

from retention.errors import ValidationError

PAYMENT_SUCCEEDED = "payment.succeeded"
MEMBERSHIP_WENT_VALID = "membership.went_valid"
MEMBERSHIP_WENT_INVALID = "membership.went_invalid"
MEMBERSHIP_METADATA_UPDATED = "membership.metadata_updated"


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class PaymentSucceeded(_Event):
    action: Literal["payment.succeeded"] = PAYMENT_SUCCEEDED
    payment_id: str | None = None
    company_id: str | None = None
    amount_cents: int | None = None
    pack_size: str | None = None


class MembershipWentValid(_Event):
    action: Literal["membership.went_valid"] = MEMBERSHIP_WENT_VALID
    membership_id: str | None = None
    company_id: str | None = None
    raw: dict[str, Any] = {}


class MembershipWentInvalid(_Event):
    action: Literal["membership.went_invalid"] = MEMBERSHIP_WENT_INVALID
    membership_id: str | None = None
    company_id: str | None = None
    raw: dict[str, Any] = {}


class MembershipMetadataUpdated(_Event):
    action: Literal["membership.metadata_updated"] = MEMBERSHIP_METADATA_UPDATED
    membership_id: str | None = None


class UnknownEvent(_Event):
    action: str | None = None


WebhookEvent = Union[
    PaymentSucceeded,
    MembershipWentValid,
    MembershipWentInvalid,
    MembershipMetadataUpdated,
    UnknownEvent,
]


def _str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    value = str(value).strip()
    return value or None


def _ref_id(value: Any) -> str | None:
    """IDs arrive either as a plain string or as {"id": ...}."""
    if isinstance(value, dict):
        return _str(value.get("id"))
    return _str(value)


def _cents(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def parse_event(payload: Any) -> WebhookEvent:
    """Parse a decoded webhook body.

    Args:
        payload: JSON-decoded request body

    Returns:
        Typed event; unrecognised actions become UnknownEvent

    Raises:
        ValidationError: If the body is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    action = _str(payload.get("action"))
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    if action == PAYMENT_SUCCEEDED:
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        return PaymentSucceeded(
            payment_id=_str(data.get("id")),
            company_id=_ref_id(data.get("company_id") or data.get("company")),
            amount_cents=_cents(data.get("final_amount")),
            pack_size=_str(metadata.get("pack_size")),
        )

    if action in (MEMBERSHIP_WENT_VALID, MEMBERSHIP_WENT_INVALID):
        cls = MembershipWentValid if action == MEMBERSHIP_WENT_VALID else MembershipWentInvalid
        return cls(
            membership_id=_str(data.get("id")),
            company_id=_ref_id(data.get("company") or data.get("company_id")),
            raw=data,
        )

    if action == MEMBERSHIP_METADATA_UPDATED:
        return MembershipMetadataUpdated(membership_id=_str(data.get("id")))

    return UnknownEvent(action=action)
