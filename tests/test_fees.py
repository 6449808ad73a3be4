"""Test fee tier lookup."""

from decimal import Decimal

import pytest

from fifo_pnl.domain.errors import UnknownTier
from fifo_pnl.domain.fees import FEE_SCHEDULE, fee_schedule, resolve


def test_resolve_taker_and_maker():
    assert resolve("starter") == Decimal("0.0040")
    assert resolve("starter", "maker") == Decimal("0.0025")
    assert resolve("pro", "taker") == Decimal("0.0024")


def test_tier_lookup_is_case_insensitive():
    assert fee_schedule("Intermediate") is FEE_SCHEDULE["intermediate"]


def test_request_delay_per_tier():
    assert [fee_schedule(t).request_delay for t in ("starter", "intermediate", "pro")] == [7, 4, 2]


@pytest.mark.parametrize("tier", ["gold", "", None])
def test_unknown_tier(tier):
    with pytest.raises(UnknownTier):
        fee_schedule(tier)


def test_unknown_side():
    with pytest.raises(UnknownTier):
        resolve("starter", "mid")
