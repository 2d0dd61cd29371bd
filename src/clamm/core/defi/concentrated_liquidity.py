"""
Concentrated Liquidity AMM with a volatility-driven fee.

External interface of the engine. Wires the components over one shared
state store and serializes every operation:
- Pools with aggregate reserves and PRECISION-scaled sqrt prices
- Range positions sized from deposits, with fee accrual and withdrawal
- Exact-input swaps on a constant-product curve with a dynamic fee
- Per-pool EMA oracle
- Owner-gated emergency shutdown and protocol fee

Every public operation runs to completion under a single re-entrant lock, so
no caller can observe a partially-updated pool, position or oracle sample.
Failures are raised as ``clamm.core.exceptions.AMMError`` subclasses and
leave state untouched.
"""

from __future__ import annotations

import logging
import threading

from prometheus_client import CollectorRegistry

from ..api.dex_metrics import DEXMetrics
from ..clock import Clock, SystemClock
from ..config import AMMConfig
from ..exceptions import AMMError, NotFoundError, get_error_context
from ..logging_config import setup_logging
from ..state import AMMState
from .access_control import ProtocolAccessControl
from .fee_model import FeeModel
from .pool_registry import PoolRegistry
from .position_manager import PositionManager
from .price_oracle import PriceOracle
from .swap_engine import SwapEngine

logger = logging.getLogger(__name__)


class ConcentratedLiquidityAMM:
    """
    Engine façade.

    Example usage:
        amm = ConcentratedLiquidityAMM(owner="0xowner", clock=ManualClock())
        pool_id = amm.create_pool("XAI", "USDC", 1_000_000, 10)
        position_id = amm.create_position("0xlp", pool_id, 2_000_000, 2_000_000, -10, 10)
        amount_out = amm.swap("0xtrader", pool_id, "XAI", 100_000, 0)
    """

    def __init__(
        self,
        owner: str,
        clock: Clock | None = None,
        config: AMMConfig | None = None,
        metrics: DEXMetrics | None = None,
        state: AMMState | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.config = config or AMMConfig()
        self.metrics = metrics or DEXMetrics(registry=CollectorRegistry())
        self.state = state or AMMState()

        self.registry = PoolRegistry(self.state, self.config, self.clock)
        self.oracle = PriceOracle(self.state, self.clock)
        self.fee_model = FeeModel(self.config, self.clock)
        self.positions = PositionManager(self.state, self.registry, self.config, self.clock)
        self.swaps = SwapEngine(
            self.state, self.registry, self.fee_model, self.oracle, self.config, self.clock
        )
        self.access = ProtocolAccessControl(self.state, self.registry, self.clock, owner)

        self._lock = threading.RLock()
        self.metrics.circuit_breaker_active.set(int(self.state.emergency_shutdown))

    @classmethod
    def from_env(
        cls,
        owner: str,
        clock: Clock | None = None,
        log_file: str | None = None,
        stream=None,
    ) -> "ConcentratedLiquidityAMM":
        """
        Build an engine from CLAMM_* environment variables.

        The configured log level and environment are applied to the
        package's JSON logger before the engine is created.
        """
        config = AMMConfig.from_env()
        setup_logging(
            name="clamm",
            log_file=log_file,
            level=config.log_level,
            environment=config.environment,
            stream=stream,
        )
        amm = cls(owner=owner, clock=clock, config=config)
        logger.info(
            "AMM engine started",
            extra={
                "event": "clamm.engine.started",
                "log_level": config.log_level,
            }
        )
        return amm

    # ==================== Pool Management ====================

    def create_pool(
        self,
        token_x: str,
        token_y: str,
        initial_sqrt_price: int,
        tick_spacing: int,
    ) -> int:
        with self._lock:
            pool_id = self.registry.create_pool(
                token_x, token_y, initial_sqrt_price, tick_spacing
            )
            self.metrics.pool_creations.inc()
            self.metrics.pools_total.set(len(self.state.pools))
            self.metrics.track_pool(self.state.pools[pool_id])
            return pool_id

    # ==================== Position Management ====================

    def create_position(
        self,
        caller: str,
        pool_id: int,
        amount_x: int,
        amount_y: int,
        lower_tick: int,
        upper_tick: int,
    ) -> int:
        with self._lock:
            position_id = self.positions.create_position(
                caller, pool_id, amount_x, amount_y, lower_tick, upper_tick
            )
            pool = self.state.pools[pool_id]
            self.metrics.track_liquidity_change(pool, amount_x, amount_y, 'add')
            self._track_position_count(pool_id)
            return position_id

    def collect_fees(self, caller: str, position_id: int) -> tuple[int, int]:
        with self._lock:
            amounts = self.positions.collect_fees(caller, position_id)
            position = self.state.positions[position_id]
            self.metrics.track_pool(self.state.pools[position.pool_id])
            return amounts

    def withdraw_position(
        self,
        caller: str,
        position_id: int,
        liquidity: int | None = None,
    ) -> tuple[int, int]:
        with self._lock:
            amount_x, amount_y = self.positions.withdraw(caller, position_id, liquidity)
            position = self.state.positions[position_id]
            pool = self.state.pools[position.pool_id]
            self.metrics.track_liquidity_change(pool, amount_x, amount_y, 'remove')
            self._track_position_count(pool.id)
            return amount_x, amount_y

    # ==================== Swapping ====================

    def swap(
        self,
        caller: str,
        pool_id: int,
        token_in: str,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        with self._lock:
            try:
                result = self.swaps.execute(
                    caller, pool_id, token_in, amount_in, min_amount_out
                )
            except AMMError as exc:
                pool = self.state.pools.get(pool_id)
                if pool is not None:
                    self.metrics.track_swap(
                        pool, token_in, amount_in, 0, status=type(exc).__name__
                    )
                logger.info(
                    "Swap rejected",
                    extra={"event": "clamm.swap.rejected", **get_error_context(exc)},
                )
                raise

            pool = self.state.pools[pool_id]
            self.metrics.track_swap(pool, token_in, amount_in, result.fee_amount)
            self.metrics.track_oracle(pool_id, self.state.oracle_samples[pool_id].price_average)
            return result.amount_out

    def quote(self, pool_id: int, token_in: str, amount_in: int) -> tuple[int, int]:
        """Return (amount_out, fee_rate) for a prospective swap."""
        with self._lock:
            quote = self.swaps.quote(pool_id, token_in, amount_in)
            return quote.amount_out, quote.fee_rate

    # ==================== Owner Controls ====================

    def toggle_emergency_shutdown(self, caller: str) -> bool:
        with self._lock:
            enabled = self.access.toggle_emergency_shutdown(caller)
            self.metrics.circuit_breaker_active.set(int(enabled))
            return enabled

    def toggle_protocol_fee(self, caller: str) -> bool:
        with self._lock:
            return self.access.toggle_protocol_fee(caller)

    def collect_protocol_fees(self, caller: str, pool_id: int) -> tuple[int, int]:
        with self._lock:
            amounts = self.access.collect_protocol_fees(caller, pool_id)
            self.metrics.track_pool(self.state.pools[pool_id])
            return amounts

    # ==================== View Functions ====================

    def get_pool_info(self, pool_id: int) -> dict:
        """Get pool details."""
        with self._lock:
            pool = self.state.pools.get(pool_id)
            if pool is None:
                raise NotFoundError(
                    f"Pool {pool_id} not found", details={"pool_id": pool_id}
                )

            return {
                "id": pool.id,
                "token_x": pool.token_x,
                "token_y": pool.token_y,
                "reserve_x": pool.reserve_x,
                "reserve_y": pool.reserve_y,
                "fee_rate": pool.fee_rate,
                "total_shares": pool.total_shares,
                "sqrt_price": pool.sqrt_price,
                "tick_spacing": pool.tick_spacing,
                "last_updated": pool.last_updated,
                "protocol_fees_x": pool.protocol_fees_x,
                "protocol_fees_y": pool.protocol_fees_y,
                "positions_count": sum(
                    1 for p in self.state.positions.values()
                    if p.pool_id == pool_id and p.liquidity > 0
                ),
            }

    def get_position_info(self, position_id: int) -> dict:
        """Get position details, including what a full withdrawal would pay out."""
        with self._lock:
            position = self.state.positions.get(position_id)
            if position is None:
                raise NotFoundError(
                    f"Position {position_id} not found",
                    details={"position_id": position_id},
                )

            pool = self.state.pools[position.pool_id]
            amount_x, amount_y = self.positions.redeemable(position, pool)
            fees_x, fees_y = self.positions.pending_fees(position, pool)

            return {
                "id": position.id,
                "owner": position.owner,
                "pool_id": position.pool_id,
                "lower_tick": position.lower_tick,
                "upper_tick": position.upper_tick,
                "liquidity": position.liquidity,
                "principal_x": position.principal_x,
                "principal_y": position.principal_y,
                "amount_x": amount_x,
                "amount_y": amount_y,
                "tokens_owed_x": fees_x,
                "tokens_owed_y": fees_y,
                "fee_growth_inside_x": position.fee_growth_inside_x,
                "fee_growth_inside_y": position.fee_growth_inside_y,
            }

    def get_oracle_price(self, pool_id: int) -> dict:
        """Get the pool's oracle sample. Pools have none until their first swap."""
        with self._lock:
            average = self.oracle.current_average(pool_id)
            sample = self.oracle.get_sample(pool_id)

            return {
                "pool_id": pool_id,
                "price_average": average,
                "price_cumulative": sample.price_cumulative,
                "timestamp": sample.timestamp,
            }

    def get_tick_info(self, pool_id: int, tick: int) -> dict:
        with self._lock:
            info = self.registry.get_tick(pool_id, tick)
            if info is None:
                raise NotFoundError(
                    f"Tick {tick} of pool {pool_id} is not initialized",
                    details={"pool_id": pool_id, "tick": tick},
                )

            return {
                "liquidity_gross": info.liquidity_gross,
                "liquidity_net": info.liquidity_net,
                "fee_growth_outside_x": info.fee_growth_outside_x,
                "fee_growth_outside_y": info.fee_growth_outside_y,
                "seconds_outside": info.seconds_outside,
                "initialized": self.registry.is_tick_initialized(pool_id, tick),
            }

    def is_shutdown(self) -> bool:
        return self.state.emergency_shutdown

    def is_owner(self, caller: str) -> bool:
        return self.access.is_owner(caller)

    # ==================== Helpers ====================

    def _track_position_count(self, pool_id: int) -> None:
        active = sum(
            1 for p in self.state.positions.values()
            if p.pool_id == pool_id and p.liquidity > 0
        )
        self.metrics.concentrated_liquidity_positions.labels(pool=str(pool_id)).set(active)
