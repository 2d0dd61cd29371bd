"""
Owner-gated protocol controls.

The system owner is fixed when the engine is constructed. Only the owner can
flip the emergency shutdown (which halts position creation and swaps) or the
protocol fee switch, and withdraw accrued protocol fees. Denied attempts are
logged; successful actions are also kept in an audit trail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from ..clock import Clock
from ..exceptions import NotAuthorizedError
from ..state import AMMState
from .pool_registry import PoolRegistry

logger = logging.getLogger(__name__)

AUDIT_LOG_LIMIT = 1000


@dataclass
class ProtocolAccessControl:
    """Owner checks, global flags and audit trail."""

    state: AMMState
    registry: PoolRegistry
    clock: Clock
    owner: str

    audit_log: list[Dict] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.owner:
            raise NotAuthorizedError("An owner identity is required")

    # ==================== Emergency Actions ====================

    def toggle_emergency_shutdown(self, caller: str) -> bool:
        """Flip the emergency shutdown flag. Returns the new state."""
        self._require_owner(caller, "toggle_emergency_shutdown")

        self.state.emergency_shutdown = not self.state.emergency_shutdown
        self._log_action(
            caller, "toggle_emergency_shutdown",
            {"enabled": self.state.emergency_shutdown},
        )

        if self.state.emergency_shutdown:
            logger.warning(
                "Emergency shutdown activated",
                extra={"event": "clamm.control.shutdown_on", "owner": caller[:10]}
            )
        else:
            logger.info(
                "Emergency shutdown lifted",
                extra={"event": "clamm.control.shutdown_off", "owner": caller[:10]}
            )

        return self.state.emergency_shutdown

    def toggle_protocol_fee(self, caller: str) -> bool:
        """Flip the protocol fee switch. Returns the new state."""
        self._require_owner(caller, "toggle_protocol_fee")

        self.state.protocol_fee_enabled = not self.state.protocol_fee_enabled
        self._log_action(
            caller, "toggle_protocol_fee",
            {"enabled": self.state.protocol_fee_enabled},
        )

        logger.info(
            "Protocol fee toggled",
            extra={
                "event": "clamm.control.protocol_fee",
                "enabled": self.state.protocol_fee_enabled,
            }
        )

        return self.state.protocol_fee_enabled

    def collect_protocol_fees(self, caller: str, pool_id: int) -> tuple[int, int]:
        """
        Withdraw the protocol's accrued share of swap fees for a pool.

        Returns:
            (amount_x, amount_y) to transfer to the owner
        """
        self._require_owner(caller, "collect_protocol_fees")
        pool = self.registry.get(pool_id)

        amount_x = min(pool.protocol_fees_x, pool.reserve_x)
        amount_y = min(pool.protocol_fees_y, pool.reserve_y)
        pool.protocol_fees_x = 0
        pool.protocol_fees_y = 0
        pool.reserve_x -= amount_x
        pool.reserve_y -= amount_y

        self._log_action(
            caller, "collect_protocol_fees",
            {"pool_id": pool_id, "amount_x": amount_x, "amount_y": amount_y},
        )
        return amount_x, amount_y

    # ==================== Audit ====================

    def _log_action(self, actor: str, action: str, details: Dict) -> None:
        """Log an action to audit trail."""
        self.audit_log.append({
            "timestamp": self.clock.now(),
            "actor": actor,
            "action": action,
            "details": details,
        })

        # Keep last AUDIT_LOG_LIMIT entries
        if len(self.audit_log) > AUDIT_LOG_LIMIT:
            self.audit_log = self.audit_log[-AUDIT_LOG_LIMIT:]

    def get_audit_log(self, limit: int = 100) -> list[Dict]:
        """Get recent audit log entries."""
        return self.audit_log[-limit:]

    # ==================== Helpers ====================

    def is_owner(self, caller: str) -> bool:
        return caller == self.owner

    def _require_owner(self, caller: str, action: str) -> None:
        if not self.is_owner(caller):
            logger.warning(
                "Access denied: caller is not owner",
                extra={
                    "event": "clamm.control.access_denied",
                    "action": action,
                    "caller": caller[:10],
                }
            )
            raise NotAuthorizedError("Caller is not owner")
