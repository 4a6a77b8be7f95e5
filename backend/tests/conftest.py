"""Shared fixtures: a throwaway SQLite database and in-process Whop fakes."""

import copy
from typing import Any

import pytest
from fastapi.testclient import TestClient

from retention.api import deps
from retention.api.main import create_app
from retention.claims.audit import OfferAuditLog
from retention.claims.workflow import ClaimWorkflow
from retention.credits.accounts import BusinessAccounts
from retention.credits.idempotency import IdempotencyGuard
from retention.credits.ledger import LedgerStore
from retention.credits.transactions import MembershipEventLog, TransactionLog
from retention.errors import AuthError, NotFoundError
from retention.settings import settings
from retention.storage.db import close_db, init_db
from retention.webhooks.handlers import WebhookProcessor
from retention.whop.client import AccessCheck, Membership, WhopAPIError

COMPANY_ID = "biz_test123"
OWNER_ID = "user_owner"
ADMIN_ID = "user_admin"
WEBHOOK_SECRET = "whsec_test_secret"


class FakeMemberships:
    """In-memory stand-in for the Whop membership API."""

    def __init__(self):
        self.memberships: dict[str, Membership] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_updates = False

    def add(self, membership_id: str, owner_id: str, metadata: dict[str, Any] | None = None) -> None:
        self.memberships[membership_id] = Membership(
            id=membership_id,
            owner_id=owner_id,
            company_id=COMPANY_ID,
            metadata=dict(metadata or {}),
        )

    async def get_membership(self, membership_id: str) -> Membership:
        if membership_id not in self.memberships:
            raise NotFoundError(f"Membership {membership_id} not found")
        return copy.deepcopy(self.memberships[membership_id])

    async def update_membership_metadata(self, membership_id: str, metadata: dict[str, Any]) -> None:
        if self.fail_updates:
            raise WhopAPIError("Whop API returned 502")
        self.updates.append((membership_id, metadata))
        self.memberships[membership_id].metadata = dict(metadata)


class FakeAccess:
    def __init__(self):
        self.levels: dict[tuple[str, str], str] = {}

    def grant(self, resource_id: str, user_id: str, level: str = "customer") -> None:
        self.levels[(resource_id, user_id)] = level

    async def check_access(self, resource_id: str, user_id: str) -> AccessCheck:
        level = self.levels.get((resource_id, user_id))
        if level is None:
            return AccessCheck(has_access=False)
        return AccessCheck(has_access=True, access_level=level)


class FakeTokenVerifier:
    """Treats the raw token as the user ID."""

    def verify(self, token: str | None) -> str:
        if not token:
            raise AuthError("Missing user token")
        return token


@pytest.fixture
def database(tmp_path):
    db = init_db(f"sqlite:///{tmp_path / 'retention.db'}")
    yield db
    close_db()


@pytest.fixture
def ledger(database):
    return LedgerStore(database)


@pytest.fixture
def transactions(database):
    return TransactionLog(database)


@pytest.fixture
def membership_events(database):
    return MembershipEventLog(database)


@pytest.fixture
def accounts(database):
    return BusinessAccounts(database)


@pytest.fixture
def audit(database):
    return OfferAuditLog(database)


@pytest.fixture
def guard(transactions, membership_events):
    return IdempotencyGuard(transactions, membership_events)


@pytest.fixture
def processor(ledger, transactions, membership_events, accounts, guard):
    return WebhookProcessor(
        ledger=ledger,
        transactions=transactions,
        membership_events=membership_events,
        accounts=accounts,
        guard=guard,
        welcome_credits=10,
        credit_tiers={5000: 10, 20000: 50, 70000: 200},
        cents_per_credit=500,
    )


@pytest.fixture
def memberships():
    return FakeMemberships()


@pytest.fixture
def access():
    return FakeAccess()


@pytest.fixture
def workflow(ledger, transactions, memberships, audit):
    return ClaimWorkflow(
        ledger=ledger,
        transactions=transactions,
        memberships=memberships,
        audit=audit,
    )


@pytest.fixture
def client(database, memberships, access, monkeypatch):
    monkeypatch.setattr(settings, "whop_webhook_secret", WEBHOOK_SECRET)

    app = create_app(use_lifespan=False)
    app.dependency_overrides[deps.get_token_verifier] = FakeTokenVerifier
    app.dependency_overrides[deps.get_membership_store] = lambda: memberships
    app.dependency_overrides[deps.get_access_checker] = lambda: access

    with TestClient(app) as test_client:
        yield test_client
