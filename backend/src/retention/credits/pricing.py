"""Map a payment amount to the number of credits it buys."""

from collections.abc import Mapping

from retention.settings import settings


def credits_for_payment(
    amount_cents: int,
    tiers: Mapping[int, int] | None = None,
    cents_per_credit: int | None = None,
) -> int:
    """Resolve credits for a payment.

    Exact tier amounts use the tier table (5000 -> 10, 20000 -> 50,
    70000 -> 200 by default). Anything else is floor(amount / 500).

    Args:
        amount_cents: Final payment amount in cents
        tiers: Tier table, defaults to settings.credit_tiers
        cents_per_credit: Fallback ratio, defaults to settings.cents_per_credit

    Returns:
        Credits to grant (never negative)
    """
    tiers = settings.credit_tiers if tiers is None else tiers
    cents_per_credit = cents_per_credit or settings.cents_per_credit

    if amount_cents in tiers:
        return tiers[amount_cents]

    return max(amount_cents // cents_per_credit, 0)
