"""
Pool records, tick records and the tick bitmap.

Pools are created once and never deleted; ids come from a monotonic counter
and are never reused. Tick records track the liquidity referencing each
position boundary so tick-level views stay consistent with positions, even
though swaps price against the pool's aggregate reserves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clock import Clock
from ..config import AMMConfig
from ..exceptions import InvalidAmountError, PoolExistsError, PoolNotFoundError
from ..state import AMMState, Pool, TickInfo
from .fixed_point import PRECISION

logger = logging.getLogger(__name__)


@dataclass
class PoolRegistry:
    state: AMMState
    config: AMMConfig
    clock: Clock

    def create_pool(
        self,
        token_x: str,
        token_y: str,
        initial_sqrt_price: int,
        tick_spacing: int,
    ) -> int:
        """
        Create a new pool.

        Args:
            token_x: First asset identifier
            token_y: Second asset identifier, distinct from token_x
            initial_sqrt_price: Starting sqrt price, at least PRECISION
            tick_spacing: Granularity of usable tick boundaries

        Returns:
            New pool id
        """
        if not token_x or not token_y:
            raise InvalidAmountError("Token identifiers are required")
        if token_x == token_y:
            raise InvalidAmountError(
                "Pool tokens must be distinct",
                details={"token": token_x},
            )
        if initial_sqrt_price < PRECISION:
            raise InvalidAmountError(
                f"Initial sqrt price must be at least {PRECISION}",
                details={"initial_sqrt_price": initial_sqrt_price},
            )
        if tick_spacing <= 0:
            raise InvalidAmountError(
                "Tick spacing must be positive",
                details={"tick_spacing": tick_spacing},
            )

        pool_id = self.state.next_pool_id
        if pool_id in self.state.pools:
            raise PoolExistsError(f"Pool {pool_id} already exists")
        self.state.allocate_pool_id()

        now = self.clock.now()
        self.state.pools[pool_id] = Pool(
            id=pool_id,
            token_x=token_x,
            token_y=token_y,
            sqrt_price=initial_sqrt_price,
            tick_spacing=tick_spacing,
            fee_rate=self.config.min_fee,
            last_updated=now,
            created_at=now,
        )

        logger.info(
            "Pool created",
            extra={
                "event": "clamm.pool.created",
                "pool_id": pool_id,
                "pair": f"{token_x}:{token_y}",
                "sqrt_price": initial_sqrt_price,
                "tick_spacing": tick_spacing,
            }
        )

        return pool_id

    def get(self, pool_id: int) -> Pool:
        pool = self.state.pools.get(pool_id)
        if pool is None:
            raise PoolNotFoundError(
                f"Pool {pool_id} not found",
                details={"pool_id": pool_id},
            )
        return pool

    # ==================== Tick Management ====================

    def get_tick(self, pool_id: int, tick: int) -> TickInfo | None:
        return self.state.ticks.get((pool_id, tick))

    def update_tick(
        self,
        pool_id: int,
        tick: int,
        liquidity_delta: int,
        is_lower: bool,
    ) -> TickInfo:
        """
        Apply a liquidity change to a position boundary.

        A positive delta adds liquidity, a negative one removes it. The lower
        boundary adds to liquidity_net, the upper boundary subtracts.
        """
        key = (pool_id, tick)
        info = self.state.ticks.get(key)
        if info is None:
            info = TickInfo()
            self.state.ticks[key] = info

        was_initialized = info.initialized
        info.liquidity_gross += liquidity_delta
        if is_lower:
            info.liquidity_net += liquidity_delta
        else:
            info.liquidity_net -= liquidity_delta

        info.initialized = info.liquidity_gross > 0
        if info.initialized != was_initialized:
            self._flip_tick(pool_id, tick)

        if not info.initialized:
            del self.state.ticks[key]

        return info

    def is_tick_initialized(self, pool_id: int, tick: int) -> bool:
        """Check the bitmap bit for a tick."""
        word_pos = tick >> 8
        bit_pos = tick & 0xFF
        word = self.state.tick_bitmap.get((pool_id, word_pos), 0)
        return bool(word & (1 << bit_pos))

    def _flip_tick(self, pool_id: int, tick: int) -> None:
        """Flip tick in bitmap."""
        word_pos = tick >> 8
        bit_pos = tick & 0xFF
        key = (pool_id, word_pos)

        word = self.state.tick_bitmap.get(key, 0) ^ (1 << bit_pos)
        if word:
            self.state.tick_bitmap[key] = word
        else:
            self.state.tick_bitmap.pop(key, None)
