# src/envcast/scalars.py
"""Scalar parsing for primitive field types.

This is the last resort of the type dispatcher: when neither an explicit
parser nor a parser factory claims a type, the raw string is converted here
according to the primitive kind of the annotation.

Integer and float fields carry a bit width. Plain ``int`` and ``float`` are
64 bits wide; narrower widths are declared with the ``Int8``/``Int16``/
``Int32``/``Float32`` aliases, which are ``Annotated`` types carrying a
``BitWidth`` marker.

The duration grammar also lives here because 64-bit integer fields accept
duration literals ending in ``s`` ("30s", "250ms") and store the nanosecond
count.
"""

from __future__ import annotations

import math
import re
import struct
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Final, get_args, get_origin

from envcast.errors import ParseError, UnsupportedTypeError


@dataclass(frozen=True, slots=True)
class BitWidth:
    """Annotation marker declaring the storage width of a numeric field."""

    bits: int


Int8 = Annotated[int, BitWidth(8)]
Int16 = Annotated[int, BitWidth(16)]
Int32 = Annotated[int, BitWidth(32)]
Int64 = Annotated[int, BitWidth(64)]
Float32 = Annotated[float, BitWidth(32)]
Float64 = Annotated[float, BitWidth(64)]

DEFAULT_BITS: Final[int] = 64

_TRUE_LITERALS: Final[frozenset[str]] = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_LITERALS: Final[frozenset[str]] = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_INTEGER_PATTERN: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

# Nanoseconds per duration unit
_DURATION_UNITS: Final[dict[str, int]] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5 micro sign
    "μs": 1_000,  # U+03BC greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART: Final[re.Pattern[str]] = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)")
_MAX_DURATION_NS: Final[int] = 2**63 - 1


def parse_bool(raw: str) -> bool:
    """Parse the conventional boolean literal forms."""
    if raw in _TRUE_LITERALS:
        return True
    if raw in _FALSE_LITERALS:
        return False
    raise ParseError(f'invalid boolean "{raw}"')


def parse_int(raw: str, bits: int = DEFAULT_BITS) -> int:
    """Parse a base-10 signed integer that must fit in ``bits`` bits.

    A 64-bit target also accepts duration literals ending in ``s`` and
    returns their length in nanoseconds.
    """
    if bits == DEFAULT_BITS and raw.endswith("s"):
        return parse_duration_ns(raw)
    if not _INTEGER_PATTERN.fullmatch(raw):
        raise ParseError(f'invalid integer "{raw}"')
    value = int(raw, 10)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        raise ParseError(f'integer "{raw}" out of range for {bits}-bit signed integer')
    return value


def parse_float(raw: str, bits: int = DEFAULT_BITS) -> float:
    """Parse a decimal or exponential float literal at the given width."""
    if not _FLOAT_PATTERN.fullmatch(raw):
        raise ParseError(f'invalid float "{raw}"')
    value = float(raw)
    if bits == 32 and math.isfinite(value):
        try:
            (value,) = struct.unpack("f", struct.pack("f", value))
        except OverflowError as e:
            raise ParseError(f'float "{raw}" out of range for 32-bit float') from e
    elif math.isinf(value) and raw.lstrip("+-").lower() not in ("inf", "infinity"):
        raise ParseError(f'float "{raw}" out of range for {bits}-bit float')
    return value


def parse_duration_ns(raw: str) -> int:
    """Parse a duration string such as ``"1h30m"`` or ``"-1.5s"`` into nanoseconds."""
    text = raw
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return 0
    if not text:
        raise ParseError(f'invalid duration "{raw}"')

    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None or match.group(1) in ("", "."):
            raise ParseError(f'invalid duration "{raw}"')
        try:
            total += Decimal(match.group(1)) * _DURATION_UNITS[match.group(2)]
        except InvalidOperation as e:
            raise ParseError(f'invalid duration "{raw}"') from e
        pos = match.end()

    nanos = int(total)
    if nanos > _MAX_DURATION_NS:
        raise ParseError(f'invalid duration "{raw}"')
    return sign * nanos


def split_annotated(target: Any) -> tuple[Any, tuple[Any, ...]]:
    """Strip ``Annotated`` from a type, returning the base type and its extras."""
    if get_origin(target) is Annotated:
        base, *extras = get_args(target)
        return base, tuple(extras)
    return target, ()


def bit_width(target: Any) -> int:
    """Return the declared bit width of a numeric annotation (64 when undeclared)."""
    _, extras = split_annotated(target)
    for extra in extras:
        if isinstance(extra, BitWidth):
            return extra.bits
    return DEFAULT_BITS


def parse_scalar(raw: str, target: Any) -> Any:
    """Convert ``raw`` according to the primitive kind of ``target``.

    Raises:
        ParseError: If the literal is malformed or out of range
        UnsupportedTypeError: If ``target`` is not a scalar kind
    """
    base, _ = split_annotated(target)
    # bool is a subclass of int, so it must be checked first
    if base is str:
        return raw
    if base is bool:
        return parse_bool(raw)
    if base is int:
        return parse_int(raw, bit_width(target))
    if base is float:
        return parse_float(raw, bit_width(target))
    raise UnsupportedTypeError(f"unsupported scalar kind {type_name(target)}")


def type_name(target: Any) -> str:
    """Human-readable name for a type annotation."""
    base, extras = split_annotated(target)
    if base in (int, float) and any(isinstance(extra, BitWidth) for extra in extras):
        return f"{base.__qualname__}{bit_width(target)}"
    if isinstance(base, type) and get_origin(base) is None:
        if base.__module__ == "builtins":
            return base.__qualname__
        return f"{base.__module__}.{base.__qualname__}"
    return repr(base).replace("typing.", "")
