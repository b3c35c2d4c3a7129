# src/envcast/parsers/temporal.py
"""Parsers for time spans and timestamps."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final

from envcast.errors import ParseError
from envcast.scalars import parse_duration_ns

if TYPE_CHECKING:
    from envcast.registry import ParserRegistry

_NANOS_PER_SECOND: Final[int] = 1_000_000_000
_UNIX_SECONDS: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")


def parse_timedelta(raw: str) -> timedelta:
    """Parse a duration literal ("1h30m", "250ms", "-2s") into a timedelta.

    Sub-microsecond precision is truncated.
    """
    nanos = parse_duration_ns(raw)
    seconds, remainder = divmod(nanos, _NANOS_PER_SECOND)
    return timedelta(seconds=seconds, microseconds=remainder // 1000)


def parse_datetime(raw: str) -> datetime:
    """Parse an RFC 3339 timestamp, falling back to Unix seconds.

    Timestamps must carry a UTC offset. Unix seconds produce an aware
    datetime in UTC.
    """
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        parsed = None
    if parsed is not None and parsed.tzinfo is not None:
        return parsed

    if _UNIX_SECONDS.fullmatch(raw):
        try:
            return datetime.fromtimestamp(int(raw), tz=UTC)
        except (OverflowError, OSError, ValueError) as e:
            raise ParseError(f'invalid time "{raw}": Unix seconds out of range') from e

    raise ParseError(f'invalid time "{raw}": must be RFC3339 format or Unix seconds')


def register(registry: ParserRegistry) -> None:
    registry.register(timedelta, parse_timedelta)
    registry.register(datetime, parse_datetime)
