"""
Common Value Objects

Value objects used by both the booking and payment contexts:
- Money: a monetary amount with currency, kept exact until display
- DateRange: check-in / optional check-out selection
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from shared.domain.base import ValueObject

SUPPORTED_CURRENCIES = ('COP', 'USD', 'EUR')

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Amounts are whole currency units as used by the market (no minor
    units), held as Decimal so that intermediate results such as a
    half-weighted child share are never truncated. Rounding happens
    only in `rounded()`, at the display boundary.
    """
    amount: Decimal
    currency: str = 'COP'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'COP') -> 'Money':
        return cls(Decimal('0'), currency)

    def _check_currency(self, other: 'Money'):
        if not isinstance(other, Money):
            raise TypeError("Can only combine Money with Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot combine {self.currency} with {other.currency}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        if not isinstance(factor, (int, Decimal)):
            raise TypeError("Multiply Money by int or Decimal only")
        return Money(self.amount * factor, self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def rounded(self) -> Decimal:
        """Whole-unit amount for display and for the gateway."""
        return self.amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP)

    def __str__(self):
        return f"{self.rounded():,} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    `check_out` is None for single-day services. When present it may
    equal `check_in`; such a stay still occupies one day.
    """
    check_in: date
    check_out: date | None = None

    def __post_init__(self):
        if self.check_out is not None and self.check_out < self.check_in:
            raise ValueError(
                f"Check-out ({self.check_out}) cannot be before check-in ({self.check_in})"
            )

    @property
    def span_days(self) -> int:
        """Whole days between check-in and check-out, rounded up."""
        if self.check_out is None:
            return 0
        seconds = (self.check_out - self.check_in).total_seconds()
        return math.ceil(seconds / ONE_DAY.total_seconds())

    @property
    def occupied_until(self) -> date:
        """Exclusive end of the occupied period (at least one day)."""
        if self.check_out is None or self.check_out <= self.check_in:
            return self.check_in + ONE_DAY
        return self.check_out

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Adjacent ranges do not overlap:
            - 10..12 overlaps 11..13 -> True
            - 10..12 overlaps 12..14 -> False
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")
        return self.check_in < other.occupied_until and other.check_in < self.occupied_until

    def __str__(self):
        if self.check_out is None:
            return self.check_in.isoformat()
        return f"{self.check_in.isoformat()} - {self.check_out.isoformat()}"
