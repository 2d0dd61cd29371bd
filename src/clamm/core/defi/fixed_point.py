"""
Deterministic fixed-point arithmetic for the AMM engine.

All amounts are unsigned integers scaled by PRECISION (6 decimal digits).
Every operation is bounded to the 128-bit unsigned range so results match a
ledger implementation that runs on u128 words.

Price representation:
- tick_to_sqrt_price(tick) = BASE_RATE ** tick, computed with fixed-point
  square-and-multiply, so each tick step scales the price by 1.0001
- Ticks are limited to [-MAX_TICK, MAX_TICK]
"""

from __future__ import annotations

from ..exceptions import DivideByZeroError, InvalidInputError, MathOverflowError

# Constants
PRECISION = 1_000_000
MAX_UINT128 = 2**128 - 1

# 1.0001 scaled by PRECISION
BASE_RATE = 1_000_100
MAX_TICK = 255
MIN_TICK = -MAX_TICK

# Q128 accumulator scale for per-liquidity fee growth
Q128 = 2**128


def check_bounds(*operands: int) -> None:
    for value in operands:
        if value < 0 or value > MAX_UINT128:
            raise MathOverflowError(
                "Operand outside u128 range",
                details={"operand": value},
            )


def checked_add(a: int, b: int) -> int:
    """Add two unsigned amounts, failing if the sum leaves the u128 range."""
    check_bounds(a, b)
    total = a + b
    if total > MAX_UINT128:
        raise MathOverflowError(
            "Addition overflow",
            details={"a": a, "b": b},
        )
    return total


def mul(a: int, b: int) -> int:
    """Fixed-point multiply: (a * b) / PRECISION, rounded down."""
    check_bounds(a, b)
    product = a * b
    if product > MAX_UINT128:
        raise MathOverflowError(
            "Multiplication overflow",
            details={"a": a, "b": b},
        )
    return product // PRECISION


def div(a: int, b: int) -> int:
    """Fixed-point divide: (a * PRECISION) / b, rounded down."""
    if b == 0:
        raise DivideByZeroError("Division by zero", details={"a": a})
    check_bounds(a, b)
    scaled = a * PRECISION
    if scaled > MAX_UINT128:
        raise MathOverflowError(
            "Division overflow",
            details={"a": a, "b": b},
        )
    return scaled // b


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Used for Q128 fee-growth accounting where the intermediate product is
    allowed to exceed the u128 word.
    """
    if denominator == 0:
        raise DivideByZeroError("Division by zero")
    if a < 0 or b < 0 or denominator < 0:
        raise InvalidInputError("mul_div operands must be non-negative")

    result = a * b
    if round_up:
        return (result + denominator - 1) // denominator
    return result // denominator


def sqrt(x: int) -> int:
    """
    Approximate integer square root with a single Newton refinement.

    The seed is x // 2 + 1 and exactly one refinement step is applied, which
    keeps the cost constant at the expense of accuracy for large inputs.
    """
    check_bounds(x)
    if x == 0:
        return 0
    z = x // 2 + 1
    return (x // z + z) // 2


def _pow_base_rate(exponent: int) -> int:
    result = PRECISION
    base = BASE_RATE
    while exponent:
        if exponent & 1:
            result = mul(result, base)
        exponent >>= 1
        if exponent:
            base = mul(base, base)
    return result


def tick_to_sqrt_price(tick: int) -> int:
    """
    Convert a tick to its PRECISION-scaled sqrt price.

    Positive ticks give BASE_RATE ** tick; negative ticks give the fixed-point
    reciprocal of BASE_RATE ** |tick|. Tick 0 maps to PRECISION.
    """
    abs_tick = abs(tick)
    if abs_tick > MAX_TICK:
        raise InvalidInputError(
            f"Tick {tick} outside [{MIN_TICK}, {MAX_TICK}]",
            details={"tick": tick},
        )

    ratio = _pow_base_rate(abs_tick)
    if tick < 0:
        return div(PRECISION, ratio)
    return ratio


def sqrt_price_to_tick(sqrt_price: int) -> int:
    """
    Convert a sqrt price to the largest tick whose price does not exceed it.

    Prices beyond the supported tick range clamp to MIN_TICK / MAX_TICK.
    """
    if sqrt_price == 0:
        raise InvalidInputError("Sqrt price must be positive")
    check_bounds(sqrt_price)

    low, high = MIN_TICK, MAX_TICK
    while low < high:
        mid = (low + high + 1) // 2
        if tick_to_sqrt_price(mid) <= sqrt_price:
            low = mid
        else:
            high = mid - 1

    return low
