"""HMAC-SHA256 webhook signatures."""

import hashlib
import hmac

from retention.errors import SignatureError

SIGNATURE_HEADER = "x-whop-signature"


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw payload under the shared secret."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str | None, secret: str) -> None:
    """Verify a webhook signature in constant time.

    Args:
        payload: Raw request body, exactly as received
        signature: Hex signature from the request header
        secret: Shared webhook secret

    Raises:
        SignatureError: If the signature is missing or does not match
    """
    if not signature:
        raise SignatureError("Missing signature")

    expected = compute_signature(payload, secret).encode("ascii")
    provided = signature.strip().encode("utf-8")

    # compare_digest is constant time for equal lengths and returns False otherwise
    if not hmac.compare_digest(provided, expected):
        raise SignatureError("Invalid signature")
