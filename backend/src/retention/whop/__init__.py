"""Whop platform integration."""

from retention.whop.auth import USER_TOKEN_HEADER, WhopTokenVerifier, build_token_verifier
from retention.whop.client import (
    AccessCheck,
    AccessChecker,
    Membership,
    MembershipStore,
    WhopAPIError,
    WhopClient,
    close_whop_client,
    get_whop_client,
    init_whop_client,
)

__all__ = [
    "USER_TOKEN_HEADER",
    "AccessCheck",
    "AccessChecker",
    "Membership",
    "MembershipStore",
    "WhopAPIError",
    "WhopClient",
    "WhopTokenVerifier",
    "build_token_verifier",
    "close_whop_client",
    "get_whop_client",
    "init_whop_client",
]
