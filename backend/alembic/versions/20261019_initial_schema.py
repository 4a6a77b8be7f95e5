"""Initial database schema

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates the credit ledger, transaction log, membership event witnesses,
company accounts, offer saves, offer config and feedback tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all initial tables."""

    # Credit balances
    op.create_table(
        "credit_accounts",
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),
        sa.PrimaryKeyConstraint("company_id"),
    )

    # Company accounts
    op.create_table(
        "businesses",
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("membership_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("company_id"),
    )

    # Credit transaction log
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("external_event_id", sa.String(128), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=True),
        sa.Column("pack_size", sa.String(16), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_transactions_company_id", "credit_transactions", ["company_id"])
    op.create_index("ix_credit_transactions_external_event_id", "credit_transactions", ["external_event_id"])

    # Membership event witnesses
    op.create_table(
        "membership_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("membership_id", sa.String(64), nullable=False),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "company_id", "membership_id", "event_type", name="uq_membership_events_scope"
        ),
    )
    op.create_index("ix_membership_events_company_id", "membership_events", ["company_id"])

    # Claimed offers
    op.create_table(
        "offer_saves",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("membership_id", sa.String(64), nullable=False),
        sa.Column("experience_id", sa.String(64), nullable=True),
        sa.Column("discount_percent", sa.Integer(), nullable=False),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("saved_by_user_id", sa.String(64), nullable=False),
        sa.Column("cost", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("claimed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_offer_saves_company_id", "offer_saves", ["company_id"])

    # Offer configuration
    op.create_table(
        "company_configs",
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("discount_percent", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("company_id"),
    )

    # Customer feedback
    op.create_table(
        "feedback_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("logged_by_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_feedback_entries_company_id", "feedback_entries", ["company_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("feedback_entries")
    op.drop_table("company_configs")
    op.drop_table("offer_saves")
    op.drop_table("membership_events")
    op.drop_table("credit_transactions")
    op.drop_table("businesses")
    op.drop_table("credit_accounts")
