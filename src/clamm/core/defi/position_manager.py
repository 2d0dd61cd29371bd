"""
Liquidity positions: creation, fee collection and withdrawal.

Positions reference their pool by id. Creating a position credits the pool's
reserves, shares and principal with the deposit. Withdrawing retires the
matching fraction of the position's principal and pays out the same fraction
of the pool's free reserves for each asset. A position therefore only ever
redeems reserves of an asset it helped fund, whatever its liquidity units are
worth at the current price.

Swap fees are shared pro-rata to liquidity through the pool's Q128 fee growth
accumulators; a position's owed fees are settled against its checkpoints.

Payouts are always rounded DOWN so their sum never exceeds the reserves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clock import Clock
from ..config import AMMConfig
from ..exceptions import (
    InsufficientLiquidityError,
    InvalidAmountError,
    InvalidPositionError,
    NotAuthorizedError,
    PositionNotFoundError,
)
from ..state import AMMState, Pool, Position
from .fixed_point import Q128, checked_add, mul_div, tick_to_sqrt_price
from .liquidity_math import liquidity_from_amounts
from .pool_registry import PoolRegistry

logger = logging.getLogger(__name__)


@dataclass
class PositionManager:
    state: AMMState
    registry: PoolRegistry
    config: AMMConfig
    clock: Clock

    def create_position(
        self,
        caller: str,
        pool_id: int,
        amount_x: int,
        amount_y: int,
        lower_tick: int,
        upper_tick: int,
    ) -> int:
        """
        Deposit into a new range position.

        Args:
            caller: Position owner
            pool_id: Pool to deposit into
            amount_x: Token X deposit
            amount_y: Token Y deposit
            lower_tick: Lower tick of range
            upper_tick: Upper tick of range

        Returns:
            New position id
        """
        if self.state.emergency_shutdown:
            raise NotAuthorizedError("Emergency shutdown is active")
        if amount_x < 0 or amount_y < 0 or (amount_x == 0 and amount_y == 0):
            raise InvalidAmountError(
                "Deposit amounts must be non-negative and not both zero",
                details={"amount_x": amount_x, "amount_y": amount_y},
            )

        pool = self.registry.get(pool_id)
        self._validate_ticks(pool, lower_tick, upper_tick)

        sqrt_price_low = tick_to_sqrt_price(lower_tick)
        sqrt_price_high = tick_to_sqrt_price(upper_tick)
        liquidity = liquidity_from_amounts(
            amount_x, amount_y, pool.sqrt_price, sqrt_price_low, sqrt_price_high
        )
        if liquidity < self.config.min_liquidity:
            raise InsufficientLiquidityError(
                f"Liquidity {liquidity} below minimum {self.config.min_liquidity}",
                details={"liquidity": liquidity, "minimum": self.config.min_liquidity},
            )

        reserve_x = checked_add(pool.reserve_x, amount_x)
        reserve_y = checked_add(pool.reserve_y, amount_y)
        principal_x = checked_add(pool.principal_x, amount_x)
        principal_y = checked_add(pool.principal_y, amount_y)
        total_shares = checked_add(pool.total_shares, liquidity)

        # All checks passed; mutate state
        position_id = self.state.allocate_position_id()
        self.state.positions[position_id] = Position(
            id=position_id,
            owner=caller,
            pool_id=pool_id,
            lower_tick=lower_tick,
            upper_tick=upper_tick,
            liquidity=liquidity,
            principal_x=amount_x,
            principal_y=amount_y,
            fee_growth_inside_x=pool.fee_growth_global_x,
            fee_growth_inside_y=pool.fee_growth_global_y,
            created_at=self.clock.now(),
        )

        pool.reserve_x = reserve_x
        pool.reserve_y = reserve_y
        pool.principal_x = principal_x
        pool.principal_y = principal_y
        pool.total_shares = total_shares

        self.registry.update_tick(pool_id, lower_tick, liquidity, True)
        self.registry.update_tick(pool_id, upper_tick, liquidity, False)

        logger.info(
            "Position created",
            extra={
                "event": "clamm.position.created",
                "pool_id": pool_id,
                "position_id": position_id,
                "range": f"[{lower_tick}, {upper_tick}]",
                "liquidity": liquidity,
            }
        )

        return position_id

    def collect_fees(self, caller: str, position_id: int) -> tuple[int, int]:
        """
        Collect accumulated fees from a position.

        Returns:
            (amount_x, amount_y) to pay out to the owner
        """
        position = self._get_owned(caller, position_id)
        pool = self.registry.get(position.pool_id)

        self._accrue_fees(position, pool)
        amount_x = min(position.tokens_owed_x, pool.reserve_x)
        amount_y = min(position.tokens_owed_y, pool.reserve_y)

        position.tokens_owed_x = 0
        position.tokens_owed_y = 0
        pool.reserve_x -= amount_x
        pool.reserve_y -= amount_y

        logger.info(
            "Fees collected",
            extra={
                "event": "clamm.position.fees_collected",
                "position_id": position_id,
                "amount_x": amount_x,
                "amount_y": amount_y,
            }
        )

        return amount_x, amount_y

    def withdraw(
        self,
        caller: str,
        position_id: int,
        liquidity: int | None = None,
    ) -> tuple[int, int]:
        """
        Remove liquidity from a position.

        Args:
            caller: Must be position owner
            position_id: Position to withdraw from
            liquidity: Amount to remove (default: all)

        Returns:
            (amount_x, amount_y) released to the owner
        """
        position = self._get_owned(caller, position_id)
        pool = self.registry.get(position.pool_id)

        burn_amount = position.liquidity if liquidity is None else liquidity
        if burn_amount <= 0:
            raise InvalidAmountError(
                "Withdrawal liquidity must be positive",
                details={"liquidity": burn_amount},
            )
        if burn_amount > position.liquidity:
            raise InsufficientLiquidityError(
                f"Position {position_id} holds only {position.liquidity}",
                details={"requested": burn_amount, "available": position.liquidity},
            )
        remaining = position.liquidity - burn_amount
        if 0 < remaining < self.config.min_liquidity:
            raise InsufficientLiquidityError(
                f"Remaining liquidity {remaining} below minimum {self.config.min_liquidity}",
                details={"remaining": remaining, "minimum": self.config.min_liquidity},
            )

        # Fees accrue on the liquidity held before the burn
        self._accrue_fees(position, pool)

        retired_x, retired_y = self._retired_principal(position, burn_amount)
        amount_x, amount_y = self._redeem(pool, retired_x, retired_y)

        position.liquidity = remaining
        position.principal_x -= retired_x
        position.principal_y -= retired_y
        pool.total_shares -= burn_amount
        pool.principal_x -= retired_x
        pool.principal_y -= retired_y
        pool.reserve_x -= amount_x
        pool.reserve_y -= amount_y

        self.registry.update_tick(pool.id, position.lower_tick, -burn_amount, True)
        self.registry.update_tick(pool.id, position.upper_tick, -burn_amount, False)

        logger.info(
            "Position withdrawn",
            extra={
                "event": "clamm.position.withdrawn",
                "pool_id": pool.id,
                "position_id": position_id,
                "liquidity": burn_amount,
                "amount_x": amount_x,
                "amount_y": amount_y,
            }
        )

        return amount_x, amount_y

    # ==================== View Functions ====================

    def get(self, position_id: int) -> Position:
        position = self.state.positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(
                f"Position {position_id} not found",
                details={"position_id": position_id},
            )
        return position

    def pending_fees(self, position: Position, pool: Pool) -> tuple[int, int]:
        """Preview owed fees without modifying state."""
        return (
            position.tokens_owed_x + self._earned(
                position.liquidity, pool.fee_growth_global_x, position.fee_growth_inside_x
            ),
            position.tokens_owed_y + self._earned(
                position.liquidity, pool.fee_growth_global_y, position.fee_growth_inside_y
            ),
        )

    def redeemable(self, position: Position, pool: Pool) -> tuple[int, int]:
        """Preview what withdrawing the whole position would pay out."""
        if position.liquidity == 0:
            return 0, 0
        return self._redeem(pool, *self._retired_principal(position, position.liquidity))

    # ==================== Helpers ====================

    def _get_owned(self, caller: str, position_id: int) -> Position:
        position = self.get(position_id)
        if position.owner != caller:
            logger.warning(
                "Position access denied",
                extra={
                    "event": "clamm.position.not_owner",
                    "position_id": position_id,
                    "caller": caller[:10],
                }
            )
            raise NotAuthorizedError("Not position owner")
        return position

    def _validate_ticks(self, pool: Pool, lower_tick: int, upper_tick: int) -> None:
        if lower_tick >= upper_tick:
            raise InvalidPositionError(
                "lower_tick must be less than upper_tick",
                details={"lower_tick": lower_tick, "upper_tick": upper_tick},
            )
        spacing = pool.tick_spacing
        if lower_tick % spacing != 0 or upper_tick % spacing != 0:
            raise InvalidPositionError(
                f"Ticks must be multiples of {spacing}",
                details={"lower_tick": lower_tick, "upper_tick": upper_tick},
            )

    def _accrue_fees(self, position: Position, pool: Pool) -> None:
        position.tokens_owed_x += self._earned(
            position.liquidity, pool.fee_growth_global_x, position.fee_growth_inside_x
        )
        position.tokens_owed_y += self._earned(
            position.liquidity, pool.fee_growth_global_y, position.fee_growth_inside_y
        )
        position.fee_growth_inside_x = pool.fee_growth_global_x
        position.fee_growth_inside_y = pool.fee_growth_global_y

    @staticmethod
    def _earned(liquidity: int, growth_global: int, growth_checkpoint: int) -> int:
        return mul_div(growth_global - growth_checkpoint, liquidity, Q128, round_up=False)

    def _fee_claims(self, pool: Pool) -> tuple[int, int]:
        """Protocol fees plus every position's owed fees, per asset."""
        claims_x, claims_y = pool.protocol_fees_x, pool.protocol_fees_y
        for position in self.state.positions.values():
            if position.pool_id != pool.id:
                continue
            owed_x, owed_y = self.pending_fees(position, pool)
            claims_x += owed_x
            claims_y += owed_y
        return claims_x, claims_y

    @staticmethod
    def _retired_principal(position: Position, liquidity: int) -> tuple[int, int]:
        if liquidity == position.liquidity:
            return position.principal_x, position.principal_y
        return (
            position.principal_x * liquidity // position.liquidity,
            position.principal_y * liquidity // position.liquidity,
        )

    def _redeem(self, pool: Pool, retired_x: int, retired_y: int) -> tuple[int, int]:
        """
        Convert retired principal into a share of the pool's free reserves.

        Each asset's free reserves (net of fee claims) belong to the positions
        that deposited that asset, pro-rata to their principal. An asset no
        position deposited (it only arrived through swaps) is shared by the
        other asset's principal instead. Retiring the whole of the pool's
        principal releases the whole of its free reserves.
        """
        claims_x, claims_y = self._fee_claims(pool)
        free_x = max(0, pool.reserve_x - claims_x)
        free_y = max(0, pool.reserve_y - claims_y)

        if pool.principal_x:
            amount_x = mul_div(retired_x, free_x, pool.principal_x)
        elif pool.principal_y:
            amount_x = mul_div(retired_y, free_x, pool.principal_y)
        else:
            amount_x = 0

        if pool.principal_y:
            amount_y = mul_div(retired_y, free_y, pool.principal_y)
        elif pool.principal_x:
            amount_y = mul_div(retired_x, free_y, pool.principal_x)
        else:
            amount_y = 0

        return amount_x, amount_y
