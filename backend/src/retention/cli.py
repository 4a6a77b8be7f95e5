"""Operator command-line interface for the credit ledger."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from retention.credits.ledger import LedgerStore
from retention.credits.transactions import TransactionLog
from retention.errors import DependencyError
from retention.logging_config import configure_logging, get_logger
from retention.settings import settings
from retention.storage.db import get_database, init_db
from retention.storage.models import TransactionType

logger = get_logger(__name__)

app = typer.Typer(
    name="retention",
    help="Retention credits - ledger inspection and manual reconciliation",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


@app.callback()
def main(
    database_url: Annotated[
        str | None, typer.Option("--database-url", help="Override DATABASE_URL")
    ] = None,
) -> None:
    """Configure logging and connect to the database."""
    configure_logging()
    init_db(database_url or settings.database_url, create_tables=False)


@app.command("init-db")
def init_database() -> None:
    """Create all tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    get_database().create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("balance")
def show_balance(
    company_id: Annotated[str, typer.Argument(help="Whop company ID")],
) -> None:
    """Show a company's credit balance."""
    balance = LedgerStore(get_database()).get_balance(company_id)
    console.print(f"[bold]{company_id}[/bold]: {balance} credits")


@app.command("history")
def show_history(
    company_id: Annotated[str, typer.Argument(help="Whop company ID")],
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of records")] = 20,
) -> None:
    """List a company's recent credit transactions."""
    transactions = TransactionLog(get_database()).history(company_id, limit=limit)

    if not transactions:
        console.print("[yellow]No transactions found[/yellow]")
        return

    table = Table(title=f"Transactions for {company_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Amount", justify="right")
    table.add_column("External Event")
    table.add_column("Created At")

    for t in transactions:
        table.add_row(
            str(t.id),
            t.type,
            f"{t.amount:+d}",
            t.external_event_id or "-",
            t.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@app.command("adjust")
def adjust_balance(
    company_id: Annotated[str, typer.Argument(help="Whop company ID")],
    amount: Annotated[int, typer.Argument(help="Credits to add")],
    reason: Annotated[str, typer.Option("--reason", "-r", help="Why the adjustment is needed")],
) -> None:
    """Add credits by hand, e.g. after a claim whose refund failed."""
    if amount <= 0:
        console.print("[bold red]✗[/bold red] Amount must be positive")
        raise typer.Exit(1)

    database = get_database()
    try:
        LedgerStore(database).credit(company_id, amount)
        TransactionLog(database).append(
            company_id=company_id,
            type=TransactionType.ADJUSTMENT,
            amount=amount,
            description=reason,
        )
    except DependencyError as e:
        console.print(f"[bold red]✗[/bold red] Adjustment failed: {e}")
        raise typer.Exit(1)

    logger.info("manual_adjustment", company_id=company_id, amount=amount, reason=reason)
    balance = LedgerStore(database).get_balance(company_id)
    console.print(f"[bold green]✓[/bold green] Added {amount} credits, balance now {balance}")


if __name__ == "__main__":
    app()
