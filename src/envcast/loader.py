# src/envcast/loader.py
"""Populate dataclass schemas from the environment.

``load()`` walks a schema depth-first. Nested dataclasses are recursed into
(``T | None`` nested dataclasses are allocated first if they are None);
every other field is a leaf that is resolved from one raw string:

1. Look up the field's key (env tag, else secret tag, else attribute name)
2. If the key is absent: a zero-valued field falls back to its default tag,
   a non-zero field is left untouched
3. An empty result fails a required field, and is otherwise a no-op
   (except that an empty string present in the source empties a list field)
4. List fields are split on commas, parts are trimmed, empty parts are
   dropped, and each part is parsed as the element type
5. Other fields are parsed as their annotated type

Precedence is therefore: source value > pre-existing non-zero value >
default tag. The first error aborts loading; fields visited before the
error keep their new values.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, TypeVar, overload

import structlog

from envcast.errors import FieldError, RequiredKeyMissingError, SchemaError
from envcast.fields import FieldKind, SchemaField, is_zero, iter_schema_fields
from envcast.overlay import DEFAULT_OVERLAY_FILE, apply_overlay
from envcast.registry import ParserRegistry, default_registry

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@overload
def load(schema: type[T], *, environ: Mapping[str, str] | None = ..., registry: ParserRegistry | None = ...) -> T: ...


@overload
def load(schema: T, *, environ: Mapping[str, str] | None = ..., registry: ParserRegistry | None = ...) -> T: ...


def load(schema: Any, *, environ: Mapping[str, str] | None = None, registry: ParserRegistry | None = None) -> Any:
    """Populate a dataclass schema from the environment.

    Args:
        schema: Dataclass type (instantiated with no arguments) or instance
            (populated in place)
        environ: Source mapping (defaults to ``os.environ``)
        registry: Parser registry (defaults to the process-wide registry)

    Returns:
        The populated instance.

    Raises:
        SchemaError: If ``schema`` is not a mutable dataclass
        RequiredKeyMissingError: If a required field resolves to empty
        FieldError: If a field value cannot be parsed or its type is unsupported
    """
    instance = _instantiate(schema)
    source = os.environ if environ is None else environ
    _load_struct(instance, source, registry or default_registry)
    logger.debug("config_loaded", schema=type(instance).__qualname__)
    return instance


def load_with_dotenv(
    schema: Any,
    *paths: str | Path,
    environ: MutableMapping[str, str] | None = None,
    registry: ParserRegistry | None = None,
) -> Any:
    """Overlay dotenv files onto the environment, then ``load()``.

    Existing keys win over file values, and earlier files win over later
    ones. With no paths, ``.env`` in the working directory is used. Missing
    or unreadable files are skipped.
    """
    source = os.environ if environ is None else environ
    apply_overlay(paths or (DEFAULT_OVERLAY_FILE,), source)
    return load(schema, environ=source, registry=registry)


def _instantiate(schema: Any) -> Any:
    if isinstance(schema, type):
        if not dataclasses.is_dataclass(schema):
            raise SchemaError(f"config must be a dataclass or dataclass instance, got {schema.__qualname__}")
        return _construct(schema)
    if not dataclasses.is_dataclass(schema):
        raise SchemaError(f"config must be a dataclass or dataclass instance, got {type(schema).__qualname__}")
    return schema


def _construct(schema_type: type) -> Any:
    try:
        return schema_type()
    except TypeError as e:
        raise SchemaError(f"cannot instantiate {schema_type.__qualname__} without arguments: {e}") from e


def _assign(instance: Any, name: str, value: Any) -> None:
    try:
        setattr(instance, name, value)
    except dataclasses.FrozenInstanceError as e:
        raise SchemaError(f"cannot populate frozen dataclass {type(instance).__qualname__}") from e


def _load_struct(instance: Any, source: Mapping[str, str], registry: ParserRegistry) -> None:
    for field in iter_schema_fields(type(instance), registry):
        current = getattr(instance, field.name)

        if field.kind in (FieldKind.NESTED, FieldKind.NESTED_OPTIONAL):
            if current is None:
                current = _construct(field.target)
                _assign(instance, field.name, current)
            _load_struct(current, source, registry)
            continue

        _load_leaf(instance, field, current, source, registry)


def _load_leaf(
    instance: Any,
    field: SchemaField,
    current: Any,
    source: Mapping[str, str],
    registry: ParserRegistry,
) -> None:
    raw = source.get(field.key)
    from_source = raw is not None
    if raw is None:
        if not is_zero(current):
            # Pre-existing value beats the default tag
            return
        raw = field.default

    if raw == "" and field.is_required:
        raise RequiredKeyMissingError(field.key)

    if field.kind is FieldKind.SEQUENCE:
        if raw == "" and not from_source:
            return
        _assign(instance, field.name, _parse_sequence(raw, field, registry))
        return

    if raw == "":
        return

    try:
        value = registry.parse(raw, field.target)
    except (ValueError, TypeError) as e:
        raise FieldError(field.name, e) from e
    _assign(instance, field.name, value)


def _parse_sequence(raw: str, field: SchemaField, registry: ParserRegistry) -> list[Any]:
    items: list[Any] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            items.append(registry.parse(part, field.target))
        except (ValueError, TypeError) as e:
            raise FieldError(field.name, e) from e
    return items
