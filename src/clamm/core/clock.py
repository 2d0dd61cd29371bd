"""
Clock sources for the AMM engine.

The engine never reads wall time directly. Hosts inject whatever clock their
ledger exposes (block height, slot, unix seconds) through the ``Clock``
protocol; readings must be non-decreasing integers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Interface that clock sources must implement."""

    def now(self) -> int:
        """Return the current clock reading."""
        ...


@dataclass
class ManualClock:
    """
    Host-driven clock, typically fed with the ledger's block height.

    Example usage:
        clock = ManualClock(height=100)
        clock.advance()      # 101
        clock.set(150)
    """

    height: int = 0

    def now(self) -> int:
        return self.height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("Clock cannot move backwards")
        self.height += blocks
        return self.height

    def set(self, height: int) -> int:
        if height < self.height:
            raise ValueError(
                f"Clock cannot move backwards ({height} < {self.height})"
            )
        self.height = height
        return self.height


class SystemClock:
    """Unix-seconds clock for hosts without a ledger clock."""

    def now(self) -> int:
        return int(time.time())
