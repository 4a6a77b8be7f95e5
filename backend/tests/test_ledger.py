"""Tests for the ledger store and transaction log."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from retention.credits.ledger import LedgerStore
from retention.errors import DependencyError
from retention.storage.db import Database
from retention.storage.models import TransactionType


class TestDebit:
    def test_debit_takes_one_credit(self, ledger):
        ledger.credit("biz_a", 2)

        assert ledger.debit("biz_a") is True
        assert ledger.get_balance("biz_a") == 1

    def test_debit_fails_at_zero_balance(self, ledger):
        ledger.credit("biz_a", 1)
        assert ledger.debit("biz_a") is True

        assert ledger.debit("biz_a") is False
        assert ledger.get_balance("biz_a") == 0

    def test_debit_unknown_company_fails(self, ledger):
        assert ledger.debit("biz_missing") is False
        assert ledger.get_balance("biz_missing") == 0

    def test_concurrent_debits_only_spend_available_balance(self, ledger):
        ledger.credit("biz_a", 3)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: ledger.debit("biz_a"), range(8)))

        assert results.count(True) == 3
        assert results.count(False) == 5
        assert ledger.get_balance("biz_a") == 0

    def test_concurrent_debits_against_single_credit(self, ledger):
        ledger.credit("biz_a", 1)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: ledger.debit("biz_a"), range(4)))

        assert results.count(True) == 1
        assert ledger.get_balance("biz_a") == 0

    def test_debit_storage_failure_raises_dependency_error(self, tmp_path):
        # Schema never created, so every statement fails
        ledger = LedgerStore(Database(f"sqlite:///{tmp_path / 'empty.db'}"))

        with pytest.raises(DependencyError):
            ledger.debit("biz_a")


class TestCredit:
    def test_credit_opens_account(self, ledger):
        ledger.credit("biz_new", 10)
        assert ledger.get_balance("biz_new") == 10

    def test_credit_accumulates(self, ledger):
        ledger.credit("biz_a", 10)
        ledger.credit("biz_a", 5)
        assert ledger.get_balance("biz_a") == 15

    @pytest.mark.parametrize("amount", [0, -1])
    def test_credit_rejects_non_positive_amount(self, ledger, amount):
        with pytest.raises(ValueError):
            ledger.credit("biz_a", amount)

    def test_concurrent_credits_on_new_account_all_land(self, ledger):
        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(lambda _: ledger.credit("biz_fresh", 2), range(6)))

        assert ledger.get_balance("biz_fresh") == 12


class TestTransactionLog:
    def test_append_and_lookup(self, transactions):
        transactions.append("biz_a", TransactionType.PURCHASE, 10, external_event_id="pay_1", amount_cents=5000)

        assert transactions.exists("biz_a", "pay_1", TransactionType.PURCHASE)
        assert not transactions.exists("biz_a", "pay_1", TransactionType.CLAIM_DEBIT)
        assert not transactions.exists("biz_b", "pay_1", TransactionType.PURCHASE)

    def test_history_is_newest_first(self, transactions):
        transactions.append("biz_a", TransactionType.WELCOME_BONUS, 10, external_event_id="mem_1")
        transactions.append("biz_a", TransactionType.CLAIM_DEBIT, -1, external_event_id="mem_2")

        history = transactions.history("biz_a")

        assert [t.type for t in history] == ["claim_debit", "welcome_bonus"]
        assert history[0].amount == -1

    def test_count_by_type(self, transactions):
        transactions.append("biz_a", TransactionType.CLAIM_DEBIT, -1, external_event_id="mem_1")
        transactions.append("biz_a", TransactionType.CLAIM_REFUND, 1, external_event_id="mem_1")

        assert transactions.count("biz_a") == 2
        assert transactions.count("biz_a", TransactionType.CLAIM_DEBIT) == 1


class TestMembershipEventLog:
    def test_record_is_witness(self, membership_events):
        assert membership_events.record("biz_a", "went_valid", "mem_1", payload={"id": "mem_1"})

        assert membership_events.exists("biz_a", "went_valid", "mem_1")
        assert not membership_events.exists("biz_a", "went_invalid", "mem_1")

    def test_second_record_reports_duplicate(self, membership_events):
        membership_events.record("biz_a", "went_valid", "mem_1")

        assert membership_events.record("biz_a", "went_valid", "mem_1") is False
