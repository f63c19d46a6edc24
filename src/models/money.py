"""Decimal money arithmetic shared by payable and receivable accounts.

Every amount flowing through the account core is a ``Decimal``. Floats are
converted through ``str()`` so that ``0.1`` stays ``Decimal("0.1")`` instead
of its binary approximation.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

from src.exceptions import ValidationError

Amount = Union[Decimal, int, float, str]

ZERO = Decimal("0.00")


def to_decimal(value: Amount, field: str = "amount") -> Decimal:
    """
    Convert a user or storage supplied value into a Decimal.

    Args:
        value: Decimal, int, float or numeric string
        field: Field name used in the error message

    Returns:
        Decimal value

    Raises:
        ValidationError: If the value is missing or not numeric
    """
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got {value!r}", field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be numeric, got {value!r}", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number, got {value!r}", field=field)
    return result


def amount_due(original: Decimal, interest: Decimal, penalty: Decimal, discount: Decimal) -> Decimal:
    """Total owed before settlements: original + interest + penalty - discount."""
    return original + interest + penalty - discount


def remaining_balance(original: Decimal, interest: Decimal, penalty: Decimal,
                      discount: Decimal, settled: Decimal) -> Decimal:
    """Amount still open: original + interest + penalty - discount - settled."""
    return amount_due(original, interest, penalty, discount) - settled


def simple_interest(principal: Decimal, days: int, daily_rate: Decimal) -> Decimal:
    """
    Linear (non-compounding) interest on the principal, kept at full precision.

    Args:
        principal: Amount the rate applies to
        days: Number of days accrued; non-positive values accrue nothing
        daily_rate: Rate per day as a fraction (0.000011 == 0.0011%)
    """
    if days <= 0:
        return ZERO
    return principal * Decimal(days) * daily_rate
