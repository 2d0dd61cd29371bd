"""
Per-pool EMA price oracle.

Each pool owns one OracleSample, created lazily on the pool's first swap:
- price_cumulative accumulates price * elapsed clock units
- price_average is a fixed-weight exponential moving average
  (95% previous average, 5% current price), independent of elapsed time
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clock import Clock
from ..exceptions import OracleNotFoundError
from ..state import AMMState, OracleSample, Pool

logger = logging.getLogger(__name__)

EMA_PREVIOUS_WEIGHT = 95
EMA_CURRENT_WEIGHT = 5
EMA_DENOMINATOR = 100


@dataclass
class PriceOracle:
    """EMA tracker keyed by pool id."""

    state: AMMState
    clock: Clock

    def peek(self, pool: Pool) -> OracleSample:
        """
        Return the pool's sample, or an unsaved seed sample if none exists.

        The seed carries the pool's current price and the current clock
        reading, exactly what ``update`` would create.
        """
        sample = self.state.oracle_samples.get(pool.id)
        if sample is not None:
            return sample
        return OracleSample(
            price_cumulative=0,
            price_average=pool.sqrt_price,
            timestamp=self.clock.now(),
        )

    def update(self, pool: Pool) -> OracleSample:
        """Fold the pool's current price into its sample."""
        now = self.clock.now()
        sample = self.state.oracle_samples.get(pool.id)
        if sample is None:
            sample = OracleSample(
                price_cumulative=0,
                price_average=pool.sqrt_price,
                timestamp=now,
            )
            self.state.oracle_samples[pool.id] = sample

        elapsed = max(0, now - sample.timestamp)
        price = pool.sqrt_price

        sample.price_cumulative += price * elapsed
        sample.price_average = (
            sample.price_average * EMA_PREVIOUS_WEIGHT + price * EMA_CURRENT_WEIGHT
        ) // EMA_DENOMINATOR
        sample.timestamp = now

        logger.debug(
            "Oracle updated",
            extra={
                "event": "clamm.oracle.update",
                "pool_id": pool.id,
                "price": price,
                "average": sample.price_average,
                "elapsed": elapsed,
            }
        )

        return sample

    def current_average(self, pool_id: int) -> int:
        sample = self.state.oracle_samples.get(pool_id)
        if sample is None:
            raise OracleNotFoundError(
                f"No oracle sample for pool {pool_id}",
                details={"pool_id": pool_id},
            )
        return sample.price_average

    def get_sample(self, pool_id: int) -> OracleSample | None:
        return self.state.oracle_samples.get(pool_id)
