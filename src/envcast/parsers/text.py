# src/envcast/parsers/text.py
"""Parsers for log levels, UUIDs and compiled expressions."""

from __future__ import annotations

import re
import uuid
from typing import TYPE_CHECKING, Final

from envcast.errors import ParseError
from envcast.expression import ExpressionSecurityError, ExpressionSyntaxError, Program
from envcast.types import LogLevel

if TYPE_CHECKING:
    from envcast.registry import ParserRegistry

_LEVEL_NAMES: Final[dict[str, LogLevel]] = {
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "warn": LogLevel.WARNING,
    "warning": LogLevel.WARNING,
    "error": LogLevel.ERROR,
}
_LEVEL_NUMBER: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")


def parse_log_level(raw: str) -> LogLevel:
    """Parse a level name (case-insensitive, "warn" accepted) or an integer."""
    level = _LEVEL_NAMES.get(raw.lower())
    if level is not None:
        return level
    if _LEVEL_NUMBER.fullmatch(raw):
        return LogLevel(int(raw))
    raise ParseError(f'invalid log level "{raw}": must be debug|info|warn|error or integer')


def parse_uuid(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError as e:
        raise ParseError(f'invalid UUID "{raw}": {e}') from e


def parse_program(raw: str) -> Program:
    """Compile an expression so that syntax errors surface at load time."""
    try:
        return Program(raw)
    except (ExpressionSyntaxError, ExpressionSecurityError) as e:
        raise ParseError(f'failed to compile expression "{raw}": {e}') from e


def register(registry: ParserRegistry) -> None:
    registry.register(LogLevel, parse_log_level)
    registry.register(uuid.UUID, parse_uuid)
    registry.register(Program, parse_program)
