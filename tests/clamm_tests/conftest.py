import sys
from pathlib import Path

import pytest

# Ensure the src directory is on the Python path before collection runs, so the
# suite also works from a plain checkout without an editable install.
project_root = Path(__file__).resolve().parents[2]
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from clamm.core.clock import ManualClock  # noqa: E402
from clamm.core.config import AMMConfig  # noqa: E402
from clamm.core.defi.concentrated_liquidity import ConcentratedLiquidityAMM  # noqa: E402

OWNER = "0xowner000000000000000000000000000000000001"
LP = "0xliquidity00000000000000000000000000000002"
TRADER = "0xtrader0000000000000000000000000000000003"


@pytest.fixture
def clock():
    """Ledger clock starting at block 100."""
    return ManualClock(height=100)


@pytest.fixture
def config():
    return AMMConfig()


@pytest.fixture
def amm(clock, config):
    """Create a clean AMM engine owned by OWNER."""
    return ConcentratedLiquidityAMM(owner=OWNER, clock=clock, config=config)


@pytest.fixture
def pool_id(amm):
    """Pool at price 1.0 with tick spacing 10."""
    return amm.create_pool("XAI", "USDC", 1_000_000, 10)


@pytest.fixture
def funded_pool(amm, pool_id):
    """Pool with one 2_000_000 / 2_000_000 position over [-10, 10]."""
    position_id = amm.create_position(LP, pool_id, 2_000_000, 2_000_000, -10, 10)
    return pool_id, position_id
