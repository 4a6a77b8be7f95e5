import pytest
from typer.testing import CliRunner

from retention import cli
from retention.credits.ledger import LedgerStore
from retention.credits.transactions import TransactionLog
from retention.storage.db import close_db
from retention.storage.models import TransactionType

runner = CliRunner()


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    # Keep the process-wide structlog configuration untouched
    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    yield url
    close_db()


def invoke(database_url, *args):
    return runner.invoke(cli.app, ["--database-url", database_url, *args])


def test_init_db_then_balance(database_url):
    assert invoke(database_url, "init-db").exit_code == 0

    result = invoke(database_url, "balance", "biz_1")

    assert result.exit_code == 0
    assert "0 credits" in result.output


def test_adjust_records_transaction(database_url):
    invoke(database_url, "init-db")

    result = invoke(database_url, "adjust", "biz_1", "3", "--reason", "refund reconciliation")

    assert result.exit_code == 0
    assert "balance now 3" in result.output

    database = cli.get_database()
    assert LedgerStore(database).get_balance("biz_1") == 3
    history = TransactionLog(database).history("biz_1")
    assert history[0].type == TransactionType.ADJUSTMENT.value
    assert history[0].description == "refund reconciliation"


def test_adjust_rejects_non_positive_amount(database_url):
    invoke(database_url, "init-db")

    result = invoke(database_url, "adjust", "biz_1", "0", "--reason", "oops")

    assert result.exit_code == 1


def test_history(database_url):
    invoke(database_url, "init-db")
    invoke(database_url, "adjust", "biz_1", "5", "--reason", "goodwill")

    result = invoke(database_url, "history", "biz_1")

    assert result.exit_code == 0
    assert "adjustment" in result.output


def test_history_empty(database_url):
    invoke(database_url, "init-db")

    result = invoke(database_url, "history", "biz_1")

    assert "No transactions found" in result.output
