"""clamm - concentrated-liquidity AMM engine with a dynamic fee."""

__version__ = "0.1.0"
