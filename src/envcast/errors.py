# src/envcast/errors.py
"""Exception types raised while materializing configuration.

Loading is fail-fast: the first irrecoverable problem aborts the whole
``load()`` call with one of these exceptions. Fields processed before the
failure keep whatever value they were given, so callers must not trust a
schema instance after an exception.
"""

from __future__ import annotations


class ConfigError(Exception):
    """Base class for every error raised by envcast."""


class SchemaError(ConfigError, TypeError):
    """Raised when the object passed to ``load()`` cannot be populated.

    This covers non-dataclass inputs and frozen dataclasses, whose fields
    cannot be assigned in place.
    """


class UnsupportedTypeError(ConfigError, TypeError):
    """Raised when a field type has no parser, factory, or scalar kind."""


class ParseError(ConfigError, ValueError):
    """Raised when a raw string cannot be converted to the target type."""


class RequiredKeyMissingError(ConfigError):
    """Raised when a required field resolves to an empty value.

    Attributes:
        key: The source key (environment variable name) that was missing
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f'required key "{key}" missing')


class FieldError(ConfigError):
    """Raised when parsing a single field fails.

    The underlying error is available as ``cause`` and is also chained via
    ``__cause__``.

    Attributes:
        field_name: Attribute name of the failing field
        cause: The parser or dispatch error
    """

    def __init__(self, field_name: str, cause: Exception) -> None:
        self.field_name = field_name
        self.cause = cause
        super().__init__(f"field {field_name}: {cause}")
