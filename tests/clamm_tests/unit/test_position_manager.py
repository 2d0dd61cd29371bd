"""
Position Manager - deposit sizing, fee accrual and withdrawal tests.
"""

import copy

import pytest

from clamm.core.defi.fixed_point import MAX_UINT128
from clamm.core.exceptions import (
    ErrorCode,
    InsufficientLiquidityError,
    InvalidAmountError,
    InvalidInputError,
    InvalidPositionError,
    MathOverflowError,
    NotAuthorizedError,
    PoolNotFoundError,
    PositionNotFoundError,
)

OWNER = "0xowner000000000000000000000000000000000001"
LP = "0xliquidity00000000000000000000000000000002"
LP2 = "0xliquidity00000000000000000000000000000004"
TRADER = "0xtrader0000000000000000000000000000000003"


class TestCreatePosition:

    def test_deposit_credits_pool(self, amm, funded_pool):
        pool_id, position_id = funded_pool

        pool = amm.state.pools[pool_id]
        position = amm.state.positions[position_id]

        assert position_id == 1
        assert position.owner == LP
        assert position.liquidity == 1_000_000_000
        assert (position.lower_tick, position.upper_tick) == (-10, 10)
        assert position.created_at == 100
        assert pool.reserve_x == 2_000_000
        assert pool.reserve_y == 2_000_000
        assert pool.total_shares == 1_000_000_000

    def test_ticks_track_position(self, amm, funded_pool):
        pool_id, _ = funded_pool

        lower = amm.registry.get_tick(pool_id, -10)
        upper = amm.registry.get_tick(pool_id, 10)
        assert lower.liquidity_net == 1_000_000_000
        assert upper.liquidity_net == -1_000_000_000
        assert amm.registry.is_tick_initialized(pool_id, -10)

    def test_exact_minimum_liquidity_accepted(self, amm, pool_id):
        # Ly = 2000 * 1e6 / 2000 == MIN_LIQUIDITY
        position_id = amm.create_position(LP, pool_id, 2_000_000, 2_000, -10, 10)
        assert amm.state.positions[position_id].liquidity == 1_000_000

    def test_below_minimum_liquidity_rejected(self, amm, pool_id):
        with pytest.raises(InsufficientLiquidityError) as exc_info:
            amm.create_position(LP, pool_id, 2_000_000, 1_999, -10, 10)
        assert exc_info.value.code == ErrorCode.INSUFFICIENT_LIQUIDITY
        assert exc_info.value.details["liquidity"] == 999_500

    def test_single_sided_in_range_rejected(self, amm, pool_id):
        with pytest.raises(InsufficientLiquidityError):
            amm.create_position(LP, pool_id, 2_000_000, 0, -10, 10)

    def test_range_above_price_uses_token_x(self, amm, pool_id):
        position_id = amm.create_position(LP, pool_id, 2_000_000, 0, 20, 40)

        pool = amm.state.pools[pool_id]
        assert amm.state.positions[position_id].liquidity > 0
        assert pool.reserve_y == 0

    @pytest.mark.parametrize(
        "amount_x, amount_y",
        [(0, 0), (-1, 2_000_000), (2_000_000, -1)],
    )
    def test_invalid_amounts(self, amm, pool_id, amount_x, amount_y):
        with pytest.raises(InvalidAmountError):
            amm.create_position(LP, pool_id, amount_x, amount_y, -10, 10)

    @pytest.mark.parametrize(
        "lower_tick, upper_tick",
        [(10, 10), (10, -10), (-15, 10), (-10, 5)],
    )
    def test_invalid_ranges(self, amm, pool_id, lower_tick, upper_tick):
        with pytest.raises(InvalidPositionError) as exc_info:
            amm.create_position(LP, pool_id, 2_000_000, 2_000_000, lower_tick, upper_tick)
        assert exc_info.value.code == ErrorCode.INVALID_POSITION

    def test_tick_outside_supported_range(self, amm, pool_id):
        with pytest.raises(InvalidInputError):
            amm.create_position(LP, pool_id, 2_000_000, 2_000_000, -10, 260)

    def test_unknown_pool(self, amm):
        with pytest.raises(PoolNotFoundError):
            amm.create_position(LP, 42, 2_000_000, 2_000_000, -10, 10)

    def test_shutdown_checked_first(self, amm, pool_id):
        """Shutdown wins over every other validation failure."""
        amm.toggle_emergency_shutdown(OWNER)

        with pytest.raises(NotAuthorizedError):
            amm.create_position(LP, pool_id, 0, 0, 10, -10)

    def test_failures_leave_state_untouched(self, amm, pool_id):
        before = copy.deepcopy(amm.state)

        for args in [
            (pool_id, 2_000_000, 1_999, -10, 10),
            (pool_id, 2_000_000, 2_000_000, -15, 10),
            (pool_id, 0, 0, -10, 10),
            (pool_id + 1, 2_000_000, 2_000_000, -10, 10),
        ]:
            with pytest.raises(Exception):
                amm.create_position(LP, *args)

        assert amm.state == before

    def test_reserve_overflow_rejected(self, amm, funded_pool):
        pool_id, _ = funded_pool
        amm.state.pools[pool_id].reserve_y = MAX_UINT128 - 1_000
        before = copy.deepcopy(amm.state)

        with pytest.raises(MathOverflowError):
            amm.create_position(LP2, pool_id, 2_000_000, 2_000_000, -10, 10)

        assert amm.state == before

    def test_principal_recorded(self, amm, funded_pool):
        pool_id, position_id = funded_pool
        amm.create_position(LP2, pool_id, 1_000_000, 0, 10, 20)

        position = amm.state.positions[position_id]
        pool = amm.state.pools[pool_id]
        assert (position.principal_x, position.principal_y) == (2_000_000, 2_000_000)
        assert (pool.principal_x, pool.principal_y) == (3_000_000, 2_000_000)


class TestCollectFees:

    def test_collect_after_swap(self, amm, funded_pool):
        pool_id, position_id = funded_pool
        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)
        reserve_x = amm.state.pools[pool_id].reserve_x

        # 50 fee, floored through the Q128 accumulator
        assert amm.collect_fees(LP, position_id) == (49, 0)
        assert amm.state.pools[pool_id].reserve_x == reserve_x - 49

        position = amm.state.positions[position_id]
        assert position.tokens_owed_x == 0
        assert amm.collect_fees(LP, position_id) == (0, 0)

    def test_collect_without_swaps(self, amm, funded_pool):
        _, position_id = funded_pool
        assert amm.collect_fees(LP, position_id) == (0, 0)

    def test_fees_split_by_liquidity(self, amm, funded_pool):
        pool_id, first = funded_pool
        second = amm.create_position(LP2, pool_id, 2_000_000, 2_000_000, -10, 10)

        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)

        fees_first = amm.collect_fees(LP, first)
        fees_second = amm.collect_fees(LP2, second)
        assert fees_first == fees_second
        assert fees_first[0] + fees_second[0] <= 50

    def test_late_position_earns_nothing_retroactively(self, amm, funded_pool):
        pool_id, _ = funded_pool
        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)

        late = amm.create_position(LP2, pool_id, 2_000_000, 0, -10, 10)

        assert amm.collect_fees(LP2, late) == (0, 0)

    def test_not_owner(self, amm, funded_pool):
        _, position_id = funded_pool
        with pytest.raises(NotAuthorizedError) as exc_info:
            amm.collect_fees(TRADER, position_id)
        assert str(exc_info.value) == "Not position owner"

    def test_unknown_position(self, amm, funded_pool):
        with pytest.raises(PositionNotFoundError) as exc_info:
            amm.collect_fees(LP, 99)
        assert exc_info.value.code == ErrorCode.INVALID_POSITION


class TestWithdraw:

    def test_full_withdrawal(self, amm, funded_pool):
        pool_id, position_id = funded_pool

        assert amm.withdraw_position(LP, position_id) == (2_000_000, 2_000_000)

        pool = amm.state.pools[pool_id]
        assert (pool.reserve_x, pool.reserve_y) == (0, 0)
        assert (pool.principal_x, pool.principal_y) == (0, 0)
        assert pool.total_shares == 0
        assert amm.state.positions[position_id].liquidity == 0
        assert amm.registry.get_tick(pool_id, -10) is None
        assert not amm.registry.is_tick_initialized(pool_id, 10)

    def test_partial_withdrawal(self, amm, funded_pool):
        pool_id, position_id = funded_pool

        assert amm.withdraw_position(LP, position_id, 500_000_000) == (1_000_000, 1_000_000)

        position = amm.state.positions[position_id]
        assert position.liquidity == 500_000_000
        assert (position.principal_x, position.principal_y) == (1_000_000, 1_000_000)
        assert amm.state.pools[pool_id].total_shares == 500_000_000
        assert amm.registry.get_tick(pool_id, -10).liquidity_gross == 500_000_000

    def test_remainder_below_minimum(self, amm, funded_pool):
        _, position_id = funded_pool
        with pytest.raises(InsufficientLiquidityError):
            amm.withdraw_position(LP, position_id, 1_000_000_000 - 1)

    def test_more_than_held(self, amm, funded_pool):
        _, position_id = funded_pool
        with pytest.raises(InsufficientLiquidityError):
            amm.withdraw_position(LP, position_id, 1_000_000_001)

    def test_nothing_left(self, amm, funded_pool):
        _, position_id = funded_pool
        amm.withdraw_position(LP, position_id)

        with pytest.raises(InvalidAmountError):
            amm.withdraw_position(LP, position_id)

    def test_not_owner(self, amm, funded_pool):
        _, position_id = funded_pool
        with pytest.raises(NotAuthorizedError):
            amm.withdraw_position(TRADER, position_id)

    def test_withdraw_keeps_fee_claims(self, amm, funded_pool):
        """Owed fees stay in the pool and remain collectable after a full exit."""
        pool_id, position_id = funded_pool
        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)

        # Sole depositor: everything but the owed fee comes back
        amount_x, amount_y = amm.withdraw_position(LP, position_id)
        assert (amount_x, amount_y) == (2_099_951, 1_904_808)

        assert amm.collect_fees(LP, position_id) == (49, 0)
        pool = amm.state.pools[pool_id]
        assert (pool.reserve_x, pool.reserve_y) == (0, 0)

    def test_withdraw_keeps_protocol_fees(self, amm, funded_pool):
        pool_id, position_id = funded_pool
        amm.toggle_protocol_fee(OWNER)
        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)

        amount_x, _ = amm.withdraw_position(LP, position_id)
        amm.collect_fees(LP, position_id)

        pool = amm.state.pools[pool_id]
        assert amount_x == 2_100_000 - 8 - 41
        assert pool.reserve_x == pool.protocol_fees_x == 8

    def test_single_sided_depositor_cannot_take_other_asset(self, amm, clock, funded_pool):
        """An out-of-range X deposit never redeems the Y another LP put in."""
        pool_id, first = funded_pool
        second = amm.create_position(LP2, pool_id, 1_000_000, 0, 10, 20)
        clock.advance()

        amm.swap(TRADER, pool_id, "USDC", 3_000, 0)
        pool = amm.state.pools[pool_id]
        reserves_before = (pool.reserve_x, pool.reserve_y)

        second_x, second_y = amm.withdraw_position(LP2, second)
        assert second_y == 0
        assert 0 < second_x <= 1_000_000

        first_x, first_y = amm.withdraw_position(LP, first)
        assert first_y >= 2_000_000
        assert second_x + first_x <= reserves_before[0]
        assert first_y <= reserves_before[1]
        assert pool.reserve_x >= 0 and pool.reserve_y >= 0

        # Only the owed fees are left behind
        amm.collect_fees(LP, first)
        amm.collect_fees(LP2, second)
        assert (pool.reserve_x, pool.reserve_y) == (0, 0)

    def test_withdrawal_burns_only_what_it_pays_for(self, amm, funded_pool):
        """Two equal deposits split the pool evenly, whatever the exit order."""
        pool_id, first = funded_pool
        second = amm.create_position(LP2, pool_id, 2_000_000, 2_000_000, -10, 10)
        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)

        second_out = amm.withdraw_position(LP2, second)
        first_out = amm.withdraw_position(LP, first)

        assert abs(first_out[0] - second_out[0]) <= 1
        assert abs(first_out[1] - second_out[1]) <= 1

    def test_redeemable_preview_matches_withdrawal(self, amm, funded_pool):
        pool_id, position_id = funded_pool
        amm.swap(TRADER, pool_id, "XAI", 100_000, 0)
        position = amm.state.positions[position_id]
        pool = amm.state.pools[pool_id]

        preview = amm.positions.redeemable(position, pool)

        assert amm.withdraw_position(LP, position_id) == preview
        assert amm.positions.redeemable(position, pool) == (0, 0)

    def test_allowed_during_shutdown(self, amm, funded_pool):
        _, position_id = funded_pool
        amm.toggle_emergency_shutdown(OWNER)

        assert amm.withdraw_position(LP, position_id) == (2_000_000, 2_000_000)
