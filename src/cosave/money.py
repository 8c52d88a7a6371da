"""Utilities for working with monetary values in CoSave."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from .exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert ``value`` to a :class:`~decimal.Decimal` with two decimal places.

    Booleans, NaN, infinities, unparsable strings and fractions of a cent
    raise :class:`~cosave.exceptions.ValidationError`. Trailing zeros such as
    ``"1.500"`` are accepted.
    """

    if value is None:
        raise ValidationError("Amount is required.")
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid amount: {value!r}") from exc
    else:
        raise ValidationError(f"Unsupported amount type: {type(value).__name__}")

    if not result.is_finite():
        raise ValidationError("Amount must be a finite number.")
    cents = result.quantize(CENT, rounding=ROUND_HALF_UP)
    if cents != result:
        raise ValidationError("Amount cannot have more than two decimal places.")
    return cents


def require_positive(amount: Decimal, *, allow_zero: bool = False) -> Decimal:
    """Ensure ``amount`` is positive (or non-negative when ``allow_zero`` is true)."""

    if allow_zero:
        if amount < ZERO:
            raise ValidationError("Amount must be zero or greater.")
    else:
        if amount <= ZERO:
            raise ValidationError("Amount must be greater than zero.")
    return amount


def to_cents(amount: Decimal) -> int:
    """Return ``amount`` as an integer number of cents for storage."""

    return int((to_decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def format_amount(amount: Decimal) -> str:
    """Render ``amount`` the way it is shown to savers (``350000`` or ``12.50``)."""

    value = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if value == value.to_integral_value():
        return f"{value:.0f}"
    return f"{value:.2f}"
