"""
AMM-specific exception hierarchy for clamm.

Every failure path of the pool/position engine raises one of these typed
exceptions. Each class carries exactly one stable error code so callers (and
hosts that translate failures into ledger error values) can branch on the
code rather than on message text.

Categories:
- Authorization: wrong caller, emergency shutdown active
- Validation: malformed ranges, unknown pools/positions, slippage
- Arithmetic: fixed-point bound exceeded, zero divisor, invalid math input
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    """Stable error codes exposed to external callers."""
    NOT_AUTHORIZED = 100
    INVALID_AMOUNT = 101
    POOL_EXISTS = 102
    INVALID_POOL = 103
    INVALID_POSITION = 104
    INSUFFICIENT_LIQUIDITY = 105
    SLIPPAGE_EXCEEDED = 106
    NOT_FOUND = 107
    OVERFLOW = 200
    DIVIDE_BY_ZERO = 201
    INVALID_INPUT = 202


class AMMError(Exception):
    """Base exception for all AMM engine errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        code: Stable error code for this failure class
    """

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== Authorization Errors ====================


class AuthorizationError(AMMError):
    """Raised when the caller may not perform an operation."""
    pass


class NotAuthorizedError(AuthorizationError):
    """Raised on owner mismatch or while emergency shutdown is active."""
    code = ErrorCode.NOT_AUTHORIZED


# ==================== Validation Errors ====================


class ValidationError(AMMError):
    """Raised when an operation's inputs fail validation.

    Validation always happens before any state is touched, so a
    ValidationError guarantees the operation had no side effects.
    """
    pass


class InvalidAmountError(ValidationError):
    """Raised for malformed amounts, prices, spacings or token pairs."""
    code = ErrorCode.INVALID_AMOUNT


class PoolExistsError(ValidationError):
    """Raised when a pool id is already allocated."""
    code = ErrorCode.POOL_EXISTS


class InvalidPoolError(ValidationError):
    """Raised when a pool is unknown or cannot serve the request."""
    code = ErrorCode.INVALID_POOL


class PoolNotFoundError(InvalidPoolError):
    """Raised when no pool exists for an id."""
    pass


class InvalidPositionError(ValidationError):
    """Raised for malformed tick ranges or unknown positions."""
    code = ErrorCode.INVALID_POSITION


class PositionNotFoundError(InvalidPositionError):
    """Raised when no position exists for an id."""
    pass


class InsufficientLiquidityError(ValidationError):
    """Raised when liquidity is below the minimum or not available."""
    code = ErrorCode.INSUFFICIENT_LIQUIDITY


class SlippageExceededError(ValidationError):
    """Raised when a swap would return less than the caller's minimum."""
    code = ErrorCode.SLIPPAGE_EXCEEDED

    def __init__(
        self,
        message: str,
        amount_out: int = 0,
        min_amount_out: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out


class NotFoundError(ValidationError):
    """Raised when a requested record does not exist."""
    code = ErrorCode.NOT_FOUND


class OracleNotFoundError(NotFoundError):
    """Raised when a pool has no oracle sample yet."""
    pass


# ==================== Arithmetic Errors ====================


class ArithmeticFailure(AMMError):
    """Raised when the fixed-point math library rejects an operation."""
    pass


class MathOverflowError(ArithmeticFailure, OverflowError):
    """Raised when an operand or product exceeds the 128-bit bound."""
    code = ErrorCode.OVERFLOW


class DivideByZeroError(ArithmeticFailure, ZeroDivisionError):
    """Raised on fixed-point division by zero."""
    code = ErrorCode.DIVIDE_BY_ZERO


class InvalidInputError(ArithmeticFailure, ValueError):
    """Raised for math inputs outside the supported domain."""
    code = ErrorCode.INVALID_INPUT


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, code and details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, AMMError):
        context["error_code"] = int(exc.code)
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, SlippageExceededError):
        context["amount_out"] = exc.amount_out
        context["min_amount_out"] = exc.min_amount_out

    return context
