# src/envcast/types.py
"""Value types that configuration fields can declare.

Most rich field types come straight from the standard library or a
third-party package (``timedelta``, ``Decimal``, ``UUID``, ``NameEmail``,
cryptography key classes). The types here fill the gaps where Python has no
direct equivalent of a common configuration value:

- LogLevel: a logging severity that prints by name
- BigInt: an integer with no bit-width limit, parsed in base 10 only
- Quantity: a Kubernetes-style resource amount ("250m", "1.5Gi", "10G")
- IPAddress: union of both IP address families
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from functools import total_ordering
from ipaddress import IPv4Address, IPv6Address
from typing import Final

from envcast.errors import ParseError

IPAddress = IPv4Address | IPv6Address


class LogLevel(int):
    """Logging severity compatible with the stdlib ``logging`` numbers.

    Arbitrary integers are allowed; the well-known levels print by name.
    """

    DEBUG: LogLevel
    INFO: LogLevel
    WARNING: LogLevel
    ERROR: LogLevel

    @property
    def name(self) -> str:
        return logging.getLevelName(int(self))

    def __repr__(self) -> str:
        return f"LogLevel({self.name})"


LogLevel.DEBUG = LogLevel(logging.DEBUG)
LogLevel.INFO = LogLevel(logging.INFO)
LogLevel.WARNING = LogLevel(logging.WARNING)
LogLevel.ERROR = LogLevel(logging.ERROR)


class BigInt(int):
    """Arbitrary-precision integer field type.

    Plain ``int`` fields are range-checked as 64-bit values; annotate with
    ``BigInt`` to accept integers of any magnitude.
    """

    def __repr__(self) -> str:
        return f"BigInt({int(self)})"


# Multipliers for quantity suffixes
_BINARY_SUFFIXES: Final[dict[str, Decimal]] = {
    "Ki": Decimal(2**10),
    "Mi": Decimal(2**20),
    "Gi": Decimal(2**30),
    "Ti": Decimal(2**40),
    "Pi": Decimal(2**50),
    "Ei": Decimal(2**60),
}
_DECIMAL_SUFFIXES: Final[dict[str, Decimal]] = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}
_QUANTITY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?P<number>[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+))"
    r"(?P<suffix>[eE][+-]?[0-9]+|Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE])?"
)


@total_ordering
@dataclass(frozen=True, eq=False)
class Quantity:
    """A resource amount with an SI or binary suffix.

    Equality and ordering compare the numeric amount, so ``Quantity("1Gi")``
    equals ``Quantity("1024Mi")``. ``str()`` returns the literal the value
    was parsed from.
    """

    amount: Decimal
    text: str

    @classmethod
    def from_text(cls, text: str) -> Quantity:
        """Parse a quantity literal such as ``"250m"`` or ``"1.5Gi"``."""
        match = _QUANTITY_PATTERN.fullmatch(text)
        if match is None:
            raise ParseError(f'invalid quantity "{text}"')
        try:
            amount = Decimal(match.group("number")) * _multiplier(match.group("suffix") or "")
        except ArithmeticError as e:
            # decimal.Overflow for exponents beyond the context limits
            raise ParseError(f'quantity out of range "{text}"') from e
        return cls(amount=amount, text=text)

    @property
    def suffix(self) -> str:
        match = _QUANTITY_PATTERN.fullmatch(self.text)
        if match is None:
            return ""
        return match.group("suffix") or ""

    def value(self) -> int:
        """Amount rounded up to a whole unit (bytes, cores)."""
        return math.ceil(self.amount)

    def milli_value(self) -> int:
        """Amount in thousandths, rounded up."""
        return math.ceil(self.amount * 1000)

    def is_zero(self) -> bool:
        return self.amount == 0

    def __add__(self, other: object) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        total = self.amount + other.amount
        return Quantity(amount=total, text=_format(total, self.suffix))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.amount == other.amount

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.amount < other.amount

    def __hash__(self) -> int:
        return hash(self.amount)

    def __str__(self) -> str:
        return self.text


def _multiplier(suffix: str) -> Decimal:
    if suffix in _BINARY_SUFFIXES:
        return _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return _DECIMAL_SUFFIXES[suffix]
    # Exponent form: e3, E-2
    return Decimal(10) ** int(suffix[1:])


def _format(amount: Decimal, suffix: str) -> str:
    scaled = amount / _multiplier(suffix)
    text = format(scaled.normalize(), "f")
    return f"{text}{suffix}"
