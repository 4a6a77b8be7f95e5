import pytest

from retention.credits.pricing import credits_for_payment

TIERS = {5000: 10, 20000: 50, 70000: 200}


@pytest.mark.parametrize(
    "amount_cents,expected",
    [
        (5000, 10),
        (20000, 50),
        (70000, 200),
        (1500, 3),
        (2999, 5),
        (499, 0),
        (0, 0),
    ],
)
def test_credits_for_payment(amount_cents, expected):
    assert credits_for_payment(amount_cents, TIERS, 500) == expected


def test_tier_beats_ratio():
    # 70000 / 500 would be 140
    assert credits_for_payment(70000, TIERS, 500) == 200


def test_defaults_come_from_settings():
    assert credits_for_payment(5000) == 10
    assert credits_for_payment(1000) == 2
