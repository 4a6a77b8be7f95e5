"""Tests for the claim workflow: debit, metadata write, compensating refund."""

import pytest
from structlog.testing import capture_logs

from retention.claims.workflow import (
    ClaimAttempt,
    ClaimRequest,
    ClaimState,
    ClaimWorkflow,
    parse_discount_percent,
)
from retention.errors import (
    ConflictError,
    DependencyError,
    InsufficientCreditsError,
    NotFoundError,
    PermissionDeniedError,
    RefundFailedError,
    ValidationError,
)
from retention.storage.models import TransactionType
from retention.whop.client import OFFER_CLAIMED_KEY

from conftest import COMPANY_ID, OWNER_ID


def make_request(**overrides) -> ClaimRequest:
    fields = {
        "membershipId": "mem_1",
        "companyId": COMPANY_ID,
        "discountPercent": 25,
        "experienceId": "exp_1",
        "cancellationReason": "Too expensive",
    }
    fields.update(overrides)
    return ClaimRequest.model_validate(fields)


class RefundFailingLedger:
    """Debits succeed, every refund fails."""

    def __init__(self, ledger):
        self.ledger = ledger

    def debit(self, company_id):
        return self.ledger.debit(company_id)

    def credit(self, company_id, amount):
        raise DependencyError("Ledger unavailable")


class TestClaim:
    @pytest.mark.asyncio
    async def test_successful_claim_spends_one_credit(self, workflow, ledger, transactions, memberships, audit):
        ledger.credit(COMPANY_ID, 1)
        memberships.add("mem_1", OWNER_ID, metadata={"plan": "pro"})

        result = await workflow.claim(make_request(), OWNER_ID)

        assert result.success
        assert result.state == ClaimState.EFFECT_APPLIED
        assert result.message == "25% discount recorded successfully."
        assert ledger.get_balance(COMPANY_ID) == 0

        debits = transactions.history(COMPANY_ID)
        assert [(t.type, t.amount, t.external_event_id) for t in debits] == [
            (TransactionType.CLAIM_DEBIT.value, -1, "mem_1")
        ]

        metadata = memberships.memberships["mem_1"].metadata
        assert metadata[OFFER_CLAIMED_KEY] == "true"
        assert metadata["retention_discount_percent"] == "25"
        assert metadata["retention_experience_id"] == "exp_1"
        assert metadata["retention_cancellation_reason"] == "Too expensive"
        assert metadata["retention_date"]
        # Existing metadata is kept
        assert metadata["plan"] == "pro"

        assert audit.count_saves(COMPANY_ID) == 1
        save = audit.recent_saves(COMPANY_ID)[0]
        assert save.discount_percent == 25
        assert save.saved_by_user_id == OWNER_ID

    @pytest.mark.asyncio
    async def test_discount_percent_as_string(self, workflow, ledger, memberships):
        ledger.credit(COMPANY_ID, 1)
        memberships.add("mem_1", OWNER_ID)

        result = await workflow.claim(make_request(discountPercent="40"), OWNER_ID)

        assert result.discount_percent == 40

    @pytest.mark.asyncio
    async def test_second_claim_on_same_membership_conflicts(self, workflow, ledger, memberships):
        ledger.credit(COMPANY_ID, 5)
        memberships.add("mem_1", OWNER_ID)

        await workflow.claim(make_request(), OWNER_ID)
        with pytest.raises(ConflictError):
            await workflow.claim(make_request(), OWNER_ID)

        assert ledger.get_balance(COMPANY_ID) == 4

    @pytest.mark.asyncio
    async def test_no_credits(self, workflow, memberships, transactions):
        memberships.add("mem_1", OWNER_ID)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await workflow.claim(make_request(), OWNER_ID)

        assert exc_info.value.status_code == 402
        assert memberships.updates == []
        assert transactions.count(COMPANY_ID) == 0

    @pytest.mark.asyncio
    async def test_actor_must_own_membership(self, workflow, ledger, memberships):
        ledger.credit(COMPANY_ID, 1)
        memberships.add("mem_1", "user_someone_else")

        with pytest.raises(PermissionDeniedError):
            await workflow.claim(make_request(), OWNER_ID)

        assert ledger.get_balance(COMPANY_ID) == 1
        assert memberships.updates == []

    @pytest.mark.asyncio
    async def test_claim_cannot_spend_another_companys_credits(self, workflow, ledger, memberships, audit):
        ledger.credit(COMPANY_ID, 5)
        ledger.credit("biz_other", 5)
        memberships.add("mem_1", OWNER_ID)

        with pytest.raises(PermissionDeniedError):
            await workflow.claim(make_request(companyId="biz_other"), OWNER_ID)

        assert ledger.get_balance("biz_other") == 5
        assert ledger.get_balance(COMPANY_ID) == 5
        assert memberships.updates == []
        assert audit.count_saves("biz_other") == 0

    @pytest.mark.asyncio
    async def test_unknown_membership(self, workflow, ledger):
        ledger.credit(COMPANY_ID, 1)

        with pytest.raises(NotFoundError):
            await workflow.claim(make_request(membershipId="mem_missing"), OWNER_ID)

        assert ledger.get_balance(COMPANY_ID) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"membershipId": None},
            {"companyId": ""},
            {"discountPercent": None},
            {"discountPercent": ""},
        ],
    )
    async def test_missing_fields(self, workflow, ledger, overrides):
        ledger.credit(COMPANY_ID, 1)

        with pytest.raises(ValidationError, match="Missing required fields"):
            await workflow.claim(make_request(**overrides), OWNER_ID)

        assert ledger.get_balance(COMPANY_ID) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("discount", [0, 101, -5, "abc", "12.5", True, False, 12.5])
    async def test_discount_out_of_range(self, workflow, ledger, memberships, discount):
        ledger.credit(COMPANY_ID, 1)
        memberships.add("mem_1", OWNER_ID)

        with pytest.raises(ValidationError, match="Invalid discount percent"):
            await workflow.claim(make_request(discountPercent=discount), OWNER_ID)

        assert ledger.get_balance(COMPANY_ID) == 1


class TestCompensation:
    @pytest.mark.asyncio
    async def test_failed_metadata_write_refunds_credit(self, workflow, ledger, transactions, memberships, audit):
        ledger.credit(COMPANY_ID, 5)
        memberships.add("mem_1", OWNER_ID)
        memberships.fail_updates = True

        with pytest.raises(DependencyError, match="Credit refunded"):
            await workflow.claim(make_request(), OWNER_ID)

        assert ledger.get_balance(COMPANY_ID) == 5
        assert transactions.count(COMPANY_ID, TransactionType.CLAIM_DEBIT) == 1
        assert transactions.count(COMPANY_ID, TransactionType.CLAIM_REFUND) == 1
        assert audit.count_saves(COMPANY_ID) == 0
        assert not memberships.memberships["mem_1"].offer_claimed

    @pytest.mark.asyncio
    async def test_claim_can_be_retried_after_refund(self, workflow, ledger, memberships):
        ledger.credit(COMPANY_ID, 1)
        memberships.add("mem_1", OWNER_ID)
        memberships.fail_updates = True

        with pytest.raises(DependencyError):
            await workflow.claim(make_request(), OWNER_ID)

        memberships.fail_updates = False
        result = await workflow.claim(make_request(), OWNER_ID)

        assert result.success
        assert ledger.get_balance(COMPANY_ID) == 0

    @pytest.mark.asyncio
    async def test_failed_refund_is_critical(self, ledger, transactions, memberships, audit):
        ledger.credit(COMPANY_ID, 2)
        memberships.add("mem_1", OWNER_ID)
        memberships.fail_updates = True
        workflow = ClaimWorkflow(
            ledger=RefundFailingLedger(ledger),
            transactions=transactions,
            memberships=memberships,
            audit=audit,
        )

        with capture_logs() as logs:
            with pytest.raises(RefundFailedError) as exc_info:
                await workflow.claim(make_request(), OWNER_ID)

        assert exc_info.value.status_code == 500
        assert ledger.get_balance(COMPANY_ID) == 1
        critical = [entry for entry in logs if entry["event"] == "claim_refund_failed"]
        assert len(critical) == 1
        assert critical[0]["log_level"] == "critical"
        assert critical[0]["reconciliation_required"] is True
        assert critical[0]["membership_id"] == "mem_1"


class TestClaimAttempt:
    def test_happy_path_transitions(self):
        attempt = ClaimAttempt()
        attempt.advance(ClaimState.VALIDATING)
        attempt.advance(ClaimState.CREDIT_RESERVED)
        attempt.advance(ClaimState.EFFECT_APPLIED)

        assert attempt.credit_reserved
        assert attempt.history[-1] == ClaimState.EFFECT_APPLIED

    def test_refund_requires_failed_effect(self):
        attempt = ClaimAttempt()
        attempt.advance(ClaimState.VALIDATING)
        attempt.advance(ClaimState.CREDIT_RESERVED)

        with pytest.raises(RuntimeError):
            attempt.advance(ClaimState.REFUNDED)

    def test_terminal_states_are_final(self):
        attempt = ClaimAttempt()
        attempt.advance(ClaimState.REJECTED_EARLY)

        with pytest.raises(RuntimeError):
            attempt.advance(ClaimState.VALIDATING)
        assert not attempt.credit_reserved


@pytest.mark.parametrize("value,expected", [(1, 1), (100, 100), ("30", 30), (" 50 ", 50)])
def test_parse_discount_percent(value, expected):
    assert parse_discount_percent(value) == expected


@pytest.mark.parametrize("value", [None, True, 0, 101, "ten"])
def test_parse_discount_percent_rejects(value):
    with pytest.raises(ValidationError):
        parse_discount_percent(value)
