"""Whop API client: membership records and access checks."""

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from retention.errors import DependencyError, NotFoundError, WhopNotConfiguredError
from retention.logging_config import get_logger
from retention.settings import Settings

logger = get_logger(__name__)

OFFER_CLAIMED_KEY = "retention_offer_claimed"


class WhopAPIError(DependencyError):
    """Whop API request failed."""

    code = "whop_api_error"


@dataclass
class Membership:
    """The slice of a Whop membership the claim flow needs."""
    id: str
    owner_id: str | None
    company_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def offer_claimed(self) -> bool:
        return str(self.metadata.get(OFFER_CLAIMED_KEY, "")).lower() == "true"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Membership":
        user = data.get("user") or {}
        company = data.get("company") or {}
        return cls(
            id=data["id"],
            owner_id=user.get("id") if isinstance(user, dict) else user,
            company_id=company.get("id") if isinstance(company, dict) else company,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class AccessCheck:
    has_access: bool
    access_level: str = "no_access"

    @property
    def is_admin(self) -> bool:
        return self.access_level == "admin"


class MembershipStore(Protocol):
    """Source of truth for membership ownership and claim state."""

    async def get_membership(self, membership_id: str) -> Membership: ...

    async def update_membership_metadata(
        self, membership_id: str, metadata: dict[str, Any]
    ) -> None: ...


class AccessChecker(Protocol):
    async def check_access(self, resource_id: str, user_id: str) -> AccessCheck: ...


_transient = retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, max=2),
    reraise=True,
)


class WhopClient:
    """Async client for the Whop REST API.

    Reads are retried on transport errors; the metadata write is not,
    its caller compensates instead.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_membership(self, membership_id: str) -> Membership:
        """Retrieve a membership.

        Raises:
            NotFoundError: If Whop does not know the membership
            WhopAPIError: On any other failure
        """
        response = await self._request("GET", f"/memberships/{membership_id}")
        if response.status_code == 404:
            raise NotFoundError(f"Membership {membership_id} not found")
        self._raise_for_status(response, "get_membership")
        return Membership.from_api(response.json())

    async def update_membership_metadata(
        self, membership_id: str, metadata: dict[str, Any]
    ) -> None:
        """Replace the membership's metadata.

        Raises:
            NotFoundError: If Whop does not know the membership
            WhopAPIError: On any other failure
        """
        try:
            response = await self._http.patch(
                f"/memberships/{membership_id}", json={"metadata": metadata}
            )
        except httpx.HTTPError as e:
            logger.error("whop_request_failed", op="update_membership_metadata", error=str(e))
            raise WhopAPIError("Whop API unavailable") from e

        if response.status_code == 404:
            raise NotFoundError(f"Membership {membership_id} not found")
        self._raise_for_status(response, "update_membership_metadata")

    async def check_access(self, resource_id: str, user_id: str) -> AccessCheck:
        """Check a user's access to a company or experience."""
        response = await self._request("GET", f"/users/{user_id}/access/{resource_id}")
        self._raise_for_status(response, "check_access")
        data = response.json()
        return AccessCheck(
            has_access=bool(data.get("has_access")),
            access_level=data.get("access_level") or "no_access",
        )

    async def _request(self, method: str, url: str) -> httpx.Response:
        try:
            return await self._send(method, url)
        except httpx.HTTPError as e:
            logger.error("whop_request_failed", method=method, url=url, error=str(e))
            raise WhopAPIError("Whop API unavailable") from e

    @_transient
    async def _send(self, method: str, url: str) -> httpx.Response:
        return await self._http.request(method, url)

    @staticmethod
    def _raise_for_status(response: httpx.Response, op: str) -> None:
        if response.is_success:
            return
        logger.error(
            "whop_request_rejected",
            op=op,
            status=response.status_code,
            body=response.text[:500],
        )
        raise WhopAPIError(f"Whop API returned {response.status_code}")


# Process-wide handle; None until init_whop_client() runs.
_client: WhopClient | None = None


def init_whop_client(config: Settings, transport: httpx.AsyncBaseTransport | None = None) -> WhopClient | None:
    """Create the process-wide Whop client from configuration.

    Leaves the client unconfigured when no API key is set.
    """
    global _client
    if not config.whop_api_key:
        logger.warning("whop_not_configured")
        _client = None
        return None

    _client = WhopClient(
        api_key=config.whop_api_key,
        base_url=config.whop_api_base_url,
        timeout=config.whop_request_timeout_seconds,
        transport=transport,
    )
    logger.info("whop_client_initialized", base_url=config.whop_api_base_url)
    return _client


def get_whop_client() -> WhopClient:
    """Raises WhopNotConfiguredError if init_whop_client() did not configure a client."""
    if _client is None:
        raise WhopNotConfiguredError("Whop API not configured")
    return _client


async def close_whop_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
    _client = None
