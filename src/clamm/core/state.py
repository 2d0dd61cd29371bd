"""
Persistent state layout of the AMM engine.

Four keyed tables (pools, positions, ticks, oracle samples), the tick bitmap,
two monotonic id counters and two global flags. The host is expected to
persist an ``AMMState`` atomically after each operation; the engine itself
only keeps it in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Pool:
    """
    Two-asset pool with aggregate reserves.

    Reserves are kept in each asset's smallest denomination; sqrt_price and
    fee_rate are PRECISION-scaled.
    """

    id: int
    token_x: str
    token_y: str
    sqrt_price: int
    tick_spacing: int
    fee_rate: int
    last_updated: int
    reserve_x: int = 0
    reserve_y: int = 0
    total_shares: int = 0

    # Deposits not yet withdrawn, summed over the pool's positions
    principal_x: int = 0
    principal_y: int = 0

    # Fee accounting (Q128 per unit of liquidity)
    fee_growth_global_x: int = 0
    fee_growth_global_y: int = 0
    protocol_fees_x: int = 0
    protocol_fees_y: int = 0

    created_at: int = 0

    def has_token(self, token: str) -> bool:
        return token in (self.token_x, self.token_y)


@dataclass
class Position:
    """
    Liquidity position within a tick range of one pool.

    The pool is referenced by id only; pools are never deleted.
    """

    id: int
    owner: str
    pool_id: int
    lower_tick: int
    upper_tick: int
    liquidity: int

    # Deposited amounts not yet withdrawn
    principal_x: int = 0
    principal_y: int = 0

    tokens_owed_x: int = 0
    tokens_owed_y: int = 0

    # Fee growth checkpoints
    fee_growth_inside_x: int = 0
    fee_growth_inside_y: int = 0

    created_at: int = 0


@dataclass
class TickInfo:
    """Information stored for each initialized tick."""
    liquidity_gross: int = 0  # Total liquidity referencing this tick
    liquidity_net: int = 0    # Net liquidity change when crossing tick upward
    fee_growth_outside_x: int = 0
    fee_growth_outside_y: int = 0
    seconds_outside: int = 0
    initialized: bool = False


@dataclass
class OracleSample:
    """EMA price tracker for one pool."""
    price_cumulative: int = 0
    price_average: int = 0
    timestamp: int = 0


@dataclass
class AMMState:
    """All engine state, keyed the way the host store persists it."""

    pools: dict[int, Pool] = field(default_factory=dict)
    positions: dict[int, Position] = field(default_factory=dict)
    ticks: dict[tuple[int, int], TickInfo] = field(default_factory=dict)
    tick_bitmap: dict[tuple[int, int], int] = field(default_factory=dict)
    oracle_samples: dict[int, OracleSample] = field(default_factory=dict)

    next_pool_id: int = 1
    next_position_id: int = 1

    emergency_shutdown: bool = False
    protocol_fee_enabled: bool = False

    def allocate_pool_id(self) -> int:
        pool_id = self.next_pool_id
        self.next_pool_id += 1
        return pool_id

    def allocate_position_id(self) -> int:
        position_id = self.next_position_id
        self.next_position_id += 1
        return position_id
