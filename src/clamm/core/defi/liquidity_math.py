"""
Liquidity sizing for range positions.

Converts deposited amounts and a sqrt-price range into a liquidity unit and
back. Below the range only token X is active, above it only token Y, and
inside the range the scarcer side bounds the liquidity.
"""

from __future__ import annotations

from ..exceptions import InvalidInputError
from .fixed_point import div, mul


def _validate_range(sqrt_price_low: int, sqrt_price_high: int) -> None:
    if sqrt_price_low <= 0 or sqrt_price_low >= sqrt_price_high:
        raise InvalidInputError(
            "Sqrt price range must satisfy 0 < low < high",
            details={"low": sqrt_price_low, "high": sqrt_price_high},
        )


def liquidity_from_amounts(
    amount_x: int,
    amount_y: int,
    sqrt_price_current: int,
    sqrt_price_low: int,
    sqrt_price_high: int,
) -> int:
    """
    Size a position from deposited amounts.

    Args:
        amount_x: Deposit of token X
        amount_y: Deposit of token Y
        sqrt_price_current: Pool sqrt price
        sqrt_price_low: Sqrt price at the lower tick
        sqrt_price_high: Sqrt price at the upper tick

    Returns:
        Liquidity units for the deposit

    Raises:
        InvalidInputError: If the range is empty or non-positive
        MathOverflowError: If an intermediate exceeds the u128 bound
    """
    _validate_range(sqrt_price_low, sqrt_price_high)
    width = sqrt_price_high - sqrt_price_low

    liquidity_x = div(mul(amount_x, sqrt_price_high), width)
    liquidity_y = div(amount_y, width)

    if sqrt_price_current < sqrt_price_low:
        return liquidity_x
    if sqrt_price_current > sqrt_price_high:
        return liquidity_y
    return min(liquidity_x, liquidity_y)


def amounts_from_liquidity(
    liquidity: int,
    sqrt_price_current: int,
    sqrt_price_low: int,
    sqrt_price_high: int,
) -> tuple[int, int]:
    """Inverse of liquidity_from_amounts. Returns (amount_x, amount_y), rounded down."""
    _validate_range(sqrt_price_low, sqrt_price_high)
    width = sqrt_price_high - sqrt_price_low

    scaled = mul(liquidity, width)
    amount_x = div(scaled, sqrt_price_high)
    amount_y = scaled

    if sqrt_price_current < sqrt_price_low:
        return amount_x, 0
    if sqrt_price_current > sqrt_price_high:
        return 0, amount_y
    return amount_x, amount_y
