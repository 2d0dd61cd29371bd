"""
clamm protocol configuration.

Protocol parameters default to the values the engine was designed around and
can be overridden per deployment through CLAMM_* environment variables.
Math constants (PRECISION, BASE_RATE, MAX_TICK) are not configurable; they
live in ``clamm.core.defi.fixed_point``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# Fee rates are fractions of PRECISION (1_000_000), so 500 == 0.05%.
DEFAULT_MIN_FEE = 500
DEFAULT_MAX_FEE = 10_000
DEFAULT_MIN_LIQUIDITY = 1_000_000
DEFAULT_VOLATILITY_MULTIPLIER = 10
DEFAULT_PROTOCOL_FEE_DIVISOR = 6


def _get_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}"
        ) from exc


@dataclass(frozen=True)
class AMMConfig:
    """Tunable protocol parameters."""

    min_fee: int = DEFAULT_MIN_FEE
    max_fee: int = DEFAULT_MAX_FEE
    min_liquidity: int = DEFAULT_MIN_LIQUIDITY
    volatility_multiplier: int = DEFAULT_VOLATILITY_MULTIPLIER
    # 1/N of every swap fee goes to the protocol while the protocol fee is on
    protocol_fee_divisor: int = DEFAULT_PROTOCOL_FEE_DIVISOR
    log_level: str = "INFO"
    environment: str = "production"

    def __post_init__(self) -> None:
        if self.min_fee < 0:
            raise ConfigurationError("min_fee must be non-negative")
        if self.max_fee < self.min_fee:
            raise ConfigurationError(
                f"max_fee ({self.max_fee}) must be >= min_fee ({self.min_fee})"
            )
        if self.max_fee > 1_000_000:
            raise ConfigurationError("max_fee cannot exceed 100% (1_000_000)")
        if self.min_liquidity <= 0:
            raise ConfigurationError("min_liquidity must be positive")
        if self.volatility_multiplier < 0:
            raise ConfigurationError("volatility_multiplier must be non-negative")
        if self.protocol_fee_divisor <= 0:
            raise ConfigurationError("protocol_fee_divisor must be positive")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls) -> "AMMConfig":
        """Build a configuration from CLAMM_* environment variables."""
        config = cls(
            min_fee=_get_int("CLAMM_MIN_FEE", DEFAULT_MIN_FEE),
            max_fee=_get_int("CLAMM_MAX_FEE", DEFAULT_MAX_FEE),
            min_liquidity=_get_int("CLAMM_MIN_LIQUIDITY", DEFAULT_MIN_LIQUIDITY),
            volatility_multiplier=_get_int(
                "CLAMM_VOLATILITY_MULTIPLIER", DEFAULT_VOLATILITY_MULTIPLIER
            ),
            protocol_fee_divisor=_get_int(
                "CLAMM_PROTOCOL_FEE_DIVISOR", DEFAULT_PROTOCOL_FEE_DIVISOR
            ),
            log_level=os.getenv("CLAMM_LOG_LEVEL", "INFO").strip() or "INFO",
            environment=os.getenv("CLAMM_ENVIRONMENT", "production").strip() or "production",
        )
        logger.debug(
            "AMM configuration loaded",
            extra={
                "event": "config.loaded",
                "min_fee": config.min_fee,
                "max_fee": config.max_fee,
                "min_liquidity": config.min_liquidity,
            }
        )
        return config

    def clamp_fee(self, fee: int) -> int:
        """Clamp a fee rate into [min_fee, max_fee]."""
        return max(self.min_fee, min(self.max_fee, fee))
