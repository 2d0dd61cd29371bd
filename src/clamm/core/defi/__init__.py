"""
clamm DeFi components.

This package provides the pool/position accounting and pricing engine:
- Fixed-point math: PRECISION-scaled mul/div/sqrt and tick conversion
- Liquidity math: deposits to liquidity units and back
- Price oracle: per-pool EMA
- Fee model: volatility-driven fee rate
- Pool registry, position manager and swap engine
- Concentrated Liquidity AMM: the serialized external interface
"""

from .access_control import ProtocolAccessControl
from .concentrated_liquidity import ConcentratedLiquidityAMM
from .fee_model import FeeModel
from .pool_registry import PoolRegistry
from .position_manager import PositionManager
from .price_oracle import PriceOracle
from .swap_engine import SwapEngine, SwapQuote

__all__ = [
    # Engine
    "ConcentratedLiquidityAMM",
    # Components
    "PoolRegistry",
    "PositionManager",
    "SwapEngine",
    "SwapQuote",
    "PriceOracle",
    "FeeModel",
    "ProtocolAccessControl",
]
