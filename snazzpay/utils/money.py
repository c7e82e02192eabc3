"""
Currency arithmetic.

All amounts are handled as Decimal in the base unit (rupees) and rounded to
the minor unit (paise) with ROUND_HALF_UP before they reach the gateway.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Tuple

from snazzpay.exceptions import InvalidAmount, FeeExceedsTotal

MINOR_UNIT = Decimal("0.01")
MINOR_UNITS_PER_BASE = 100


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Parse a user/store supplied amount and round it to the minor unit.

    Accepts Decimal, int, float or numeric strings ("1000.00"). Rejects
    booleans, NaN/Infinity, non-numeric text, zero and negatives.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"{field} is required and must be a positive number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"{field} must be a number, got {value!r}")

    if not amount.is_finite():
        raise InvalidAmount(f"{field} must be a finite number, got {value!r}")

    amount = round_minor(amount)
    if amount <= 0:
        raise InvalidAmount(f"{field} must be greater than zero, got {value!r}")
    return amount


def round_minor(amount: Decimal) -> Decimal:
    """Round to the nearest paisa, half-up."""
    return amount.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """1000.00 -> 100000"""
    return int(round_minor(amount) * MINOR_UNITS_PER_BASE)


def from_minor_units(minor: int) -> Decimal:
    return round_minor(Decimal(minor) / MINOR_UNITS_PER_BASE)


def split_fee(total: Any, fee: Any) -> Tuple[int, int]:
    """
    Split a cancellation into (fee_minor, refund_minor).

    The fee must be strictly below the total once both are in paise, so the
    two parts always sum back to the total exactly.
    """
    total_amount = parse_amount(total, "totalAmount")
    fee_amount = parse_amount(fee, "feeAmount")

    total_minor = to_minor_units(total_amount)
    fee_minor = to_minor_units(fee_amount)
    if fee_minor >= total_minor:
        raise FeeExceedsTotal(
            "Cancellation fee cannot be greater than or equal to the total order amount."
        )
    return fee_minor, total_minor - fee_minor


def format_inr(amount: Decimal) -> str:
    """Format amount as rupees, e.g. ₹1,000.00"""
    return f"₹{round_minor(amount):,.2f}"
