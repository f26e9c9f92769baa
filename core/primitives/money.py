"""
Rewards Money Primitive - Amounts in Integer Minor Units
=========================================================
Engine: Core Primitives

The Money Primitive is the monetary building block used by:
Promotion Engine, Wallet Engine, Loyalty Engine, Retail Engine.

RULES (NON-NEGOTIABLE):
- All amounts use integer minor units (sen/cents). NO floats.
- Currency is explicit on every monetary value
- Percentages are Decimal and rounded ROUND_HALF_UP to the minor unit
- Cross-currency arithmetic is a programmer error

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

MINOR_UNITS = 100

NumberLike = Union[int, str, Decimal]


def to_decimal(value: NumberLike, field_name: str = "value") -> Decimal:
    """Coerce int/str/Decimal into Decimal. Floats are refused."""
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be a number, got bool.")
    if isinstance(value, float):
        raise TypeError(
            f"{field_name} must be int, str or Decimal, got float. "
            f"Pass Decimal(str(x)) for fractional values."
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{field_name} '{value}' is not a number.") from None
    else:
        raise TypeError(f"{field_name} must be a number, got {type(value).__name__}.")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value}.")
    return result


def round_minor(value: Decimal) -> int:
    """Round a Decimal count of minor units half-up to an int."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ══════════════════════════════════════════════════════════════
# MONEY VALUE OBJECT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Money:
    """
    Monetary value in integer minor units.

    Rules:
    - amount is in minor units (e.g. 1050 = RM10.50)
    - currency is ISO 4217 (e.g. "MYR", "SGD")
    - No floats ever. Integer arithmetic only.
    """
    amount: int
    currency: str

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(
                f"Money amount must be int (minor units), "
                f"got {type(self.amount).__name__}. "
                f"Use sen/cents, not decimals."
            )
        if not self.currency or not isinstance(self.currency, str):
            raise ValueError("currency must be a non-empty ISO 4217 string.")
        if len(self.currency) != 3:
            raise ValueError(
                f"currency must be 3-letter ISO 4217 code, "
                f"got '{self.currency}'."
            )

    def __add__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount >= other.amount

    def negate(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def clamp_non_negative(self) -> Money:
        if self.amount < 0:
            return Money.zero(self.currency)
        return self

    def multiply(self, quantity: int) -> Money:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise TypeError("quantity must be int.")
        return Money(amount=self.amount * quantity, currency=self.currency)

    def percent(self, percent: NumberLike) -> Money:
        """`self × percent / 100`, rounded half-up to the minor unit."""
        pct = to_decimal(percent, "percent")
        raw = Decimal(self.amount) * pct / Decimal(100)
        return Money(amount=round_minor(raw), currency=self.currency)

    def to_decimal(self) -> Decimal:
        """Major units as a two-decimal Decimal (e.g. Decimal('10.50'))."""
        return (Decimal(self.amount) / MINOR_UNITS).quantize(Decimal("0.01"))

    def _assert_same_currency(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot operate with {type(other).__name__}.")
        if self.currency != other.currency:
            raise ValueError(
                f"Currency mismatch: {self.currency} vs {other.currency}. "
                f"Cross-currency operations require explicit conversion."
            )

    def to_dict(self) -> dict:
        return {"amount": self.amount, "currency": self.currency}

    @classmethod
    def from_dict(cls, data: dict) -> Money:
        return cls(amount=data["amount"], currency=data["currency"])

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(amount=0, currency=currency)

    @classmethod
    def of(cls, major: NumberLike, currency: str) -> Money:
        """Build from major units: Money.of("12.50", "MYR") == 1250 sen."""
        value = to_decimal(major, "amount") * MINOR_UNITS
        return cls(amount=round_minor(value), currency=currency)

    def __str__(self) -> str:
        return f"{self.currency} {self.to_decimal()}"


def money_min(first: Money, *others: Money) -> Money:
    result = first
    for other in others:
        if other < result:
            result = other
    return result


def money_max(first: Money, *others: Money) -> Money:
    result = first
    for other in others:
        if other > result:
            result = other
    return result


def money_sum(values, currency: str) -> Money:
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total


def percent_of(money: Money, percent: NumberLike) -> Money:
    return money.percent(percent)
