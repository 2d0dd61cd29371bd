"""
Swap execution against a pool's aggregate reserves.

Trades price on a single constant-product curve over the pool's total
reserves; tick boundaries are not crossed. Fees are charged on input:

    fee        = amount_in * fee_rate // PRECISION
    after_fee  = amount_in - fee
    amount_out = after_fee * reserve_out // (reserve_in + after_fee)

The full amount_in (fee included) stays in the pool. The fee is booked to
the pool's fee growth for liquidity providers, minus the protocol's share
while the protocol fee is enabled.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from ..clock import Clock
from ..config import AMMConfig
from ..exceptions import (
    InsufficientLiquidityError,
    InvalidAmountError,
    InvalidPoolError,
    NotAuthorizedError,
    SlippageExceededError,
)
from ..state import AMMState, Pool
from .fee_model import FeeModel
from .fixed_point import PRECISION, Q128, check_bounds, checked_add, mul_div
from .pool_registry import PoolRegistry
from .price_oracle import PriceOracle

logger = logging.getLogger(__name__)


@dataclass
class SwapQuote:
    """Result of pricing a swap without executing it."""
    amount_out: int
    fee_rate: int
    fee_amount: int
    zero_for_one: bool


@dataclass
class SwapEngine:
    state: AMMState
    registry: PoolRegistry
    fee_model: FeeModel
    oracle: PriceOracle
    config: AMMConfig
    clock: Clock

    def quote(self, pool_id: int, token_in: str, amount_in: int) -> SwapQuote:
        """
        Price a swap without executing it.

        Raises:
            InvalidAmountError: If amount_in is not positive
            PoolNotFoundError: If the pool does not exist
            InvalidPoolError: If token_in is not one of the pool's assets
            MathOverflowError: If the trade leaves the u128 range
        """
        if amount_in <= 0:
            raise InvalidAmountError(
                "Amount must be positive",
                details={"amount_in": amount_in},
            )

        pool = self.registry.get(pool_id)
        if not pool.has_token(token_in):
            raise InvalidPoolError(
                f"Token {token_in} is not traded by pool {pool_id}",
                details={"pool_id": pool_id, "token_in": token_in},
            )

        check_bounds(amount_in)

        zero_for_one = token_in == pool.token_x
        fee_rate = self.fee_model.dynamic_fee(pool, self.oracle.peek(pool))
        check_bounds(amount_in * fee_rate)
        fee_amount = amount_in * fee_rate // PRECISION
        amount_in_after_fee = amount_in - fee_amount

        if zero_for_one:
            reserve_in, reserve_out = pool.reserve_x, pool.reserve_y
        else:
            reserve_in, reserve_out = pool.reserve_y, pool.reserve_x

        denominator = checked_add(reserve_in, amount_in_after_fee)
        check_bounds(amount_in_after_fee * reserve_out)
        amount_out = (
            amount_in_after_fee * reserve_out // denominator if denominator else 0
        )

        return SwapQuote(
            amount_out=amount_out,
            fee_rate=fee_rate,
            fee_amount=fee_amount,
            zero_for_one=zero_for_one,
        )

    def swap(
        self,
        caller: str,
        pool_id: int,
        token_in: str,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        """Execute an exact-input swap and return amount_out."""
        return self.execute(caller, pool_id, token_in, amount_in, min_amount_out).amount_out

    def execute(
        self,
        caller: str,
        pool_id: int,
        token_in: str,
        amount_in: int,
        min_amount_out: int,
    ) -> SwapQuote:
        """
        Execute an exact-input swap.

        Args:
            caller: Swap initiator
            pool_id: Pool to trade against
            token_in: Asset being sold
            amount_in: Exact input amount, fee included
            min_amount_out: Minimum acceptable output

        Returns:
            The executed quote (amount_out, fee rate and fee amount)
        """
        if self.state.emergency_shutdown:
            raise NotAuthorizedError("Emergency shutdown is active")
        if min_amount_out < 0:
            raise InvalidAmountError(
                "min_amount_out must be non-negative",
                details={"min_amount_out": min_amount_out},
            )

        quote = self.quote(pool_id, token_in, amount_in)
        if quote.amount_out < min_amount_out:
            raise SlippageExceededError(
                f"Output {quote.amount_out} below minimum {min_amount_out}",
                amount_out=quote.amount_out,
                min_amount_out=min_amount_out,
                details={"pool_id": pool_id},
            )
        if quote.amount_out == 0:
            raise InsufficientLiquidityError(
                f"Pool {pool_id} cannot fill a swap of {amount_in}",
                details={"pool_id": pool_id, "amount_in": amount_in},
            )

        pool = self.registry.get(pool_id)
        old_reserve_x, old_reserve_y = pool.reserve_x, pool.reserve_y
        if quote.zero_for_one:
            reserve_x = checked_add(old_reserve_x, amount_in)
            reserve_y = old_reserve_y - quote.amount_out
        else:
            reserve_x = old_reserve_x - quote.amount_out
            reserve_y = checked_add(old_reserve_y, amount_in)

        # All checks passed; mutate state
        pool.reserve_x = reserve_x
        pool.reserve_y = reserve_y

        pool.sqrt_price = self._next_sqrt_price(pool, old_reserve_x, old_reserve_y)
        pool.fee_rate = quote.fee_rate
        pool.last_updated = self.clock.now()
        self._book_fee(pool, quote.fee_amount, quote.zero_for_one)

        self.oracle.update(pool)

        logger.info(
            "Swap executed",
            extra={
                "event": "clamm.swap.executed",
                "pool_id": pool_id,
                "caller": caller[:10],
                "direction": "x->y" if quote.zero_for_one else "y->x",
                "amount_in": amount_in,
                "amount_out": quote.amount_out,
                "fee_rate": quote.fee_rate,
            }
        )

        return quote

    # ==================== Internal Math ====================

    @staticmethod
    def _next_sqrt_price(pool: Pool, old_reserve_x: int, old_reserve_y: int) -> int:
        """
        Move the sqrt price along with the reserve ratio.

        price' = price * (y' / x') / (y / x); unchanged when any reserve is
        empty since the ratio is then undefined.
        """
        if not (old_reserve_x and old_reserve_y and pool.reserve_x and pool.reserve_y):
            return pool.sqrt_price

        numerator = pool.sqrt_price * pool.sqrt_price * pool.reserve_y * old_reserve_x
        denominator = pool.reserve_x * old_reserve_y
        return max(1, math.isqrt(numerator // denominator))

    def _book_fee(self, pool: Pool, fee_amount: int, zero_for_one: bool) -> None:
        if fee_amount == 0:
            return

        protocol_fee = 0
        if self.state.protocol_fee_enabled:
            protocol_fee = fee_amount // self.config.protocol_fee_divisor
        lp_fee = fee_amount - protocol_fee

        if pool.total_shares == 0:
            # Nobody to pay; the fee stays in the reserves
            lp_fee = 0
        growth = mul_div(lp_fee, Q128, pool.total_shares) if lp_fee else 0

        if zero_for_one:
            pool.protocol_fees_x += protocol_fee
            pool.fee_growth_global_x += growth
        else:
            pool.protocol_fees_y += protocol_fee
            pool.fee_growth_global_y += growth
