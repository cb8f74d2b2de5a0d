"""
Exact monetary amounts.

A :class:`Money` value is an integer number of minor units plus the number of
decimal places those units represent. Price lists quote hourly rates with up
to ten decimal places, so amounts are never held as floats: sums across
instances and volumes stay exact to the smallest unit present in any input.

    >>> Money.from_decimal_string("0.10").multiply(720).format()
    '$72.00'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

from detect.exceptions import ParseError

CURRENCY_SYMBOL = "$"

# Display precision never drops below cents
_MIN_DISPLAY_DIGITS = 2

_DIGITS = re.compile(r"[0-9]+")


@total_ordering
@dataclass(frozen=True, eq=False)
class Money:
    """Immutable USD amount of ``amount / 10**precision`` dollars."""

    amount: int
    precision: int = 2

    def __post_init__(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError(f"Money amount must be an int, got {type(self.amount).__name__}")
        if not isinstance(self.precision, int) or self.precision < 0:
            raise ValueError(f"Money precision must be a non-negative int, got {self.precision!r}")

    # ── Constructors ───────────────────────────────────────────────────────

    @classmethod
    def from_decimal_string(cls, raw: str) -> Money:
        """
        Parse ``"<integer>.<fraction>"`` exactly.

        The precision of the result is the number of fraction digits, so
        ``"0.0116000000"`` keeps all ten places.
        """
        if not isinstance(raw, str) or "." not in raw:
            raise ParseError(str(raw), "expected '<integer>.<fraction>'")

        whole, fraction = raw.split(".", 1)
        if not _DIGITS.fullmatch(whole) or not _DIGITS.fullmatch(fraction):
            raise ParseError(raw, "both parts must be non-negative integer literals")

        precision = len(fraction)
        return cls(int(whole) * 10**precision + int(fraction), precision)

    @classmethod
    def from_scalar(cls, amount: int, precision: int) -> Money:
        return cls(amount, precision)

    @classmethod
    def zero(cls, precision: int = 2) -> Money:
        return cls(0, precision)

    # ── Arithmetic ─────────────────────────────────────────────────────────

    def _scaled_to(self, precision: int) -> int:
        return self.amount * 10 ** (precision - self.precision)

    def add(self, other: Money) -> Money:
        """Return ``self + other`` at the higher of the two precisions."""
        if not isinstance(other, Money):
            raise TypeError(f"Cannot add {type(other).__name__} to Money")
        precision = max(self.precision, other.precision)
        return Money(self._scaled_to(precision) + other._scaled_to(precision), precision)

    def multiply(self, factor: int) -> Money:
        """Scale by a count of hours or size units. Fractional factors are rejected."""
        if not isinstance(factor, int) or isinstance(factor, bool):
            raise TypeError(f"Money can only be multiplied by an int, got {type(factor).__name__}")
        if factor < 0:
            raise ValueError(f"Money factor must be non-negative, got {factor}")
        return Money(self.amount * factor, self.precision)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __mul__(self, factor: int) -> Money:
        if not isinstance(factor, int):
            return NotImplemented
        return self.multiply(factor)

    __rmul__ = __mul__

    # ── Comparison ─────────────────────────────────────────────────────────

    def _common(self, other: Money) -> tuple[int, int]:
        precision = max(self.precision, other.precision)
        return self._scaled_to(precision), other._scaled_to(precision)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        left, right = self._common(other)
        return left == right

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        left, right = self._common(other)
        return left < right

    def __hash__(self) -> int:
        amount, precision = self.amount, self.precision
        while precision > 0 and amount % 10 == 0:
            amount //= 10
            precision -= 1
        return hash((amount, precision))

    def is_zero(self) -> bool:
        return self.amount == 0

    # ── Conversion ─────────────────────────────────────────────────────────

    def to_decimal_units(self) -> float:
        """Float dollars. Only for ratios and percentages, never for further sums."""
        return self.amount / 10**self.precision

    def rounded(self, digits: int) -> Money:
        """Round half away from zero to ``digits`` decimal places."""
        if digits >= self.precision:
            return Money(self._scaled_to(digits), digits)

        divisor = 10 ** (self.precision - digits)
        quotient, remainder = divmod(abs(self.amount), divisor)
        if remainder * 2 >= divisor:
            quotient += 1
        return Money(quotient if self.amount >= 0 else -quotient, digits)

    def format(self, digits: int | None = None) -> str:
        """Render as ``$1,234.56``; ``digits`` defaults to the full precision."""
        if digits is None:
            digits = self.precision
        value = self.rounded(max(digits, _MIN_DISPLAY_DIGITS))

        sign = "-" if value.amount < 0 else ""
        whole, fraction = divmod(abs(value.amount), 10**value.precision)
        return f"{sign}{CURRENCY_SYMBOL}{whole:,}.{fraction:0{value.precision}d}"

    def __str__(self) -> str:
        return self.format()
