"""
Volatility-driven swap fee.

The fee starts from the pool's stored fee rate and grows with the relative
distance between the oracle's EMA and the pool's current sqrt price, per
clock unit since the last oracle update. The result is clamped to the
configured [min_fee, max_fee] band.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clock import Clock
from ..config import AMMConfig
from ..exceptions import InvalidPoolError
from ..state import OracleSample, Pool
from .fixed_point import PRECISION

logger = logging.getLogger(__name__)


@dataclass
class FeeModel:
    config: AMMConfig
    clock: Clock

    def dynamic_fee(self, pool: Pool, sample: OracleSample | None) -> int:
        """
        Compute the fee rate for a swap against ``pool``.

        Args:
            pool: Pool being traded
            sample: The pool's oracle sample

        Returns:
            Fee rate as a fraction of PRECISION, within [min_fee, max_fee]

        Raises:
            InvalidPoolError: If the pool has no oracle sample
        """
        if sample is None:
            raise InvalidPoolError(
                f"Pool {pool.id} has no oracle sample",
                details={"pool_id": pool.id},
            )

        elapsed = self.clock.now() - sample.timestamp
        if elapsed <= 0 or sample.price_average == 0:
            # Same clock reading as the last update: no volatility signal
            return self.config.clamp_fee(pool.fee_rate)

        price_diff = abs(sample.price_average - pool.sqrt_price)
        volatility = price_diff * PRECISION // (sample.price_average * elapsed)
        fee = self.config.clamp_fee(
            pool.fee_rate + volatility * self.config.volatility_multiplier
        )

        logger.debug(
            "Dynamic fee computed",
            extra={
                "event": "clamm.fee.dynamic",
                "pool_id": pool.id,
                "volatility": volatility,
                "elapsed": elapsed,
                "fee_rate": fee,
            }
        )

        return fee
