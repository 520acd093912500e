"""
Money Module

USD amounts as integer minor units (cents). Parsing goes through Decimal so
"0.01" is exactly one cent; floats are rejected outright. NEVER uses float
for monetary values.
"""

import re
from decimal import Decimal, InvalidOperation
from dataclasses import dataclass
from typing import Union

from .errors import ValidationFailed


MINOR_UNITS_PER_MAJOR = 100
CURRENCY_CODE = "USD"
_CENT = Decimal("0.01")
_AMOUNT_TEXT = re.compile(r"^[+-]?[0-9]+(\.[0-9]+)?$")


def to_minor_units(value: Union[str, Decimal, int]) -> int:
    """
    Convert a major-unit amount ("10.50", Decimal("10.5"), 10) to cents.

    Raises:
        ValidationFailed: for floats, booleans, non-finite or malformed values,
            or more than two fractional digits
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationFailed("Amount must be given as a decimal string, not a floating-point number")

    if isinstance(value, int):
        return value * MINOR_UNITS_PER_MAJOR

    if isinstance(value, str):
        text = value.strip()
        if not _AMOUNT_TEXT.match(text):
            raise ValidationFailed(f"Invalid amount: {text!r}")
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValidationFailed(f"Invalid amount: {text!r}")

    if not isinstance(value, Decimal):
        raise ValidationFailed("Amount must be a decimal string")

    if not value.is_finite():
        raise ValidationFailed("Amount must be a finite number")

    try:
        exact = value == value.quantize(_CENT)
    except InvalidOperation:
        raise ValidationFailed("Amount is out of range")
    if not exact:
        raise ValidationFailed("Amount cannot have more than 2 decimal places")

    return int(value * MINOR_UNITS_PER_MAJOR)


def format_minor_units(minor_units: int) -> str:
    """Render cents as a plain decimal string: 1050 -> "10.50" """
    return str(Money(minor_units).to_decimal())


@dataclass(frozen=True)
class Money:
    """
    Immutable money value in minor units.
    """
    minor_units: int

    def __post_init__(self):
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise TypeError("Money must be built from integer minor units")

    @classmethod
    def from_decimal(cls, value: Union[str, Decimal, int]) -> 'Money':
        return cls(to_minor_units(value))

    def to_decimal(self) -> Decimal:
        return (Decimal(self.minor_units) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)

    def __add__(self, other: 'Money') -> 'Money':
        return Money(self.minor_units + other.minor_units)

    def __sub__(self, other: 'Money') -> 'Money':
        return Money(self.minor_units - other.minor_units)

    def __mul__(self, times: int) -> 'Money':
        return Money(self.minor_units * times)

    def __lt__(self, other: 'Money') -> bool:
        return self.minor_units < other.minor_units

    def __le__(self, other: 'Money') -> bool:
        return self.minor_units <= other.minor_units

    def __gt__(self, other: 'Money') -> bool:
        return self.minor_units > other.minor_units

    def __ge__(self, other: 'Money') -> bool:
        return self.minor_units >= other.minor_units

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.minor_units == 0

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.minor_units > 0

    def to_string(self) -> str:
        """Format for display"""
        return f"{CURRENCY_CODE} {self.to_decimal():,.2f}"
