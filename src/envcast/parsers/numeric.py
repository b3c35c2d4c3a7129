# src/envcast/parsers/numeric.py
"""Parsers for big integers, exact decimals and resource quantities."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final

from envcast.errors import ParseError
from envcast.types import BigInt, Quantity

if TYPE_CHECKING:
    from envcast.registry import ParserRegistry

_BASE10_INTEGER: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")
_DECIMAL_LITERAL: Final[re.Pattern[str]] = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def parse_big_int(raw: str) -> BigInt:
    """Parse a base-10 integer of any magnitude. Prefixes like 0x are rejected."""
    if not _BASE10_INTEGER.fullmatch(raw):
        raise ParseError(f'invalid big integer "{raw}": must be base-10 integer')
    try:
        return BigInt(int(raw, 10))
    except ValueError as e:
        # Exceeds the interpreter's int string conversion limit
        raise ParseError(f'invalid big integer "{raw}": {e}') from e


def parse_decimal(raw: str) -> Decimal:
    """Parse an exact decimal. NaN and infinities are rejected."""
    if not _DECIMAL_LITERAL.fullmatch(raw):
        raise ParseError(f'invalid decimal "{raw}"')
    try:
        return Decimal(raw)
    except InvalidOperation as e:
        raise ParseError(f'invalid decimal "{raw}"') from e


def parse_quantity(raw: str) -> Quantity:
    return Quantity.from_text(raw)


def register(registry: ParserRegistry) -> None:
    registry.register(BigInt, parse_big_int)
    registry.register(Decimal, parse_decimal)
    registry.register(Quantity, parse_quantity)
