"""
Liquidity sizing tests: deposits to liquidity units and back.
"""

import pytest

from clamm.core.defi.liquidity_math import amounts_from_liquidity, liquidity_from_amounts
from clamm.core.exceptions import InvalidInputError, MathOverflowError

LOW = 999_000      # tick -10
HIGH = 1_001_000   # tick 10
PRICE = 1_000_000


class TestLiquidityFromAmounts:

    def test_in_range_takes_scarcer_side(self):
        # Lx = 2_002_000 * 1e6 / 2000, Ly = 2_000_000 * 1e6 / 2000
        liquidity = liquidity_from_amounts(2_000_000, 2_000_000, PRICE, LOW, HIGH)
        assert liquidity == 1_000_000_000

    def test_below_range_uses_token_x(self):
        liquidity = liquidity_from_amounts(2_000_000, 0, 900_000, LOW, HIGH)
        assert liquidity == 1_001_000_000

    def test_above_range_uses_token_y(self):
        liquidity = liquidity_from_amounts(0, 2_000_000, 1_100_000, LOW, HIGH)
        assert liquidity == 1_000_000_000

    def test_in_range_single_sided_is_zero(self):
        assert liquidity_from_amounts(2_000_000, 0, PRICE, LOW, HIGH) == 0

    def test_empty_range_rejected(self):
        with pytest.raises(InvalidInputError):
            liquidity_from_amounts(1, 1, PRICE, HIGH, HIGH)
        with pytest.raises(InvalidInputError):
            liquidity_from_amounts(1, 1, PRICE, HIGH, LOW)

    def test_zero_lower_price_rejected(self):
        with pytest.raises(InvalidInputError):
            liquidity_from_amounts(1, 1, PRICE, 0, HIGH)

    def test_overflow_propagates(self):
        with pytest.raises(MathOverflowError):
            liquidity_from_amounts(2**127, 2**127, PRICE, LOW, HIGH)


class TestAmountsFromLiquidity:

    def test_in_range_returns_both(self):
        amount_x, amount_y = amounts_from_liquidity(1_000_000_000, PRICE, LOW, HIGH)
        assert amount_x == 1_998_001
        assert amount_y == 2_000_000

    def test_below_range_returns_token_x_only(self):
        assert amounts_from_liquidity(1_001_000_000, 900_000, LOW, HIGH) == (2_000_000, 0)

    def test_above_range_returns_token_y_only(self):
        assert amounts_from_liquidity(1_000_000_000, 1_100_000, LOW, HIGH) == (0, 2_000_000)

    def test_range_precondition(self):
        with pytest.raises(InvalidInputError):
            amounts_from_liquidity(1_000, PRICE, 0, HIGH)

    def test_round_trip_never_exceeds_deposit(self):
        liquidity = liquidity_from_amounts(3_000_000, 2_000_000, PRICE, LOW, HIGH)
        amount_x, amount_y = amounts_from_liquidity(liquidity, PRICE, LOW, HIGH)
        assert amount_x <= 3_000_000
        assert amount_y <= 2_000_000
        # Y was the binding side
        assert 2_000_000 - amount_y <= 2
