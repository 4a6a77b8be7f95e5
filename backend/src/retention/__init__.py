"""Retention offer credits: ledger, claims and Whop webhooks."""

__version__ = "1.0.0"
