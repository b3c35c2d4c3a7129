# src/envcast/settings.py
"""Field metadata for introspection.

``describe_fields()`` flattens a schema into one ``FieldSetting`` per leaf
field, recursing into nested dataclasses (but not into types that have a
parser) and building dotted attribute paths such as ``db.host``. It works
from the class annotations alone, so a schema never has to be populated or
even instantiated to be described.

Typical uses are generating ``.env.example`` files, documenting deployment
variables and checking that every required secret is provisioned:

    missing = [s.env_var for s in required_fields(AppConfig) if s.env_var not in os.environ]
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from envcast.fields import FieldKind, SchemaField, iter_schema_fields
from envcast.registry import ParserRegistry, default_registry
from envcast.scalars import type_name


@dataclass(frozen=True, slots=True)
class FieldSetting:
    """Metadata for one leaf field of a schema.

    Attributes:
        path: Dotted attribute path from the schema root
        field_name: Attribute name of the field
        env_var: Source key (env tag, else secret tag, else attribute name)
        type_name: Readable annotation, e.g. ``int`` or ``list[str]``
        default: Default tag literal ("" when absent)
        required: Whether the required tag is "true" (any case)
        secret: Whether the field has a secret tag
        tags: All string tags declared on the field
    """

    path: str
    field_name: str
    env_var: str
    type_name: str
    default: str
    required: bool
    secret: bool
    tags: Mapping[str, str] = field(default_factory=dict)


def describe_fields(schema: Any, *, registry: ParserRegistry | None = None) -> list[FieldSetting]:
    """Return metadata for every leaf field of a dataclass type or instance.

    Non-dataclass input yields an empty list.
    """
    schema_type = schema if isinstance(schema, type) else type(schema)
    if not hasattr(schema_type, "__dataclass_fields__"):
        return []
    settings: list[FieldSetting] = []
    _collect(schema_type, "", registry or default_registry, settings)
    return settings


def filter_settings(settings: Iterable[FieldSetting], predicate: Callable[[FieldSetting], bool]) -> list[FieldSetting]:
    """Settings for which ``predicate`` returns True, in order."""
    return [setting for setting in settings if predicate(setting)]


def secret_fields(schema: Any, *, registry: ParserRegistry | None = None) -> list[FieldSetting]:
    return filter_settings(describe_fields(schema, registry=registry), lambda s: s.secret)


def required_fields(schema: Any, *, registry: ParserRegistry | None = None) -> list[FieldSetting]:
    return filter_settings(describe_fields(schema, registry=registry), lambda s: s.required)


def _collect(schema_type: type, prefix: str, registry: ParserRegistry, settings: list[FieldSetting]) -> None:
    for schema_field in iter_schema_fields(schema_type, registry):
        path = f"{prefix}.{schema_field.name}" if prefix else schema_field.name
        if schema_field.kind in (FieldKind.NESTED, FieldKind.NESTED_OPTIONAL):
            _collect(schema_field.target, path, registry, settings)
            continue
        settings.append(_describe(schema_field, path))


def _describe(schema_field: SchemaField, path: str) -> FieldSetting:
    if schema_field.kind is FieldKind.SEQUENCE:
        annotation = f"list[{type_name(schema_field.target)}]"
    else:
        annotation = type_name(schema_field.annotation)
    return FieldSetting(
        path=path,
        field_name=schema_field.name,
        env_var=schema_field.key,
        type_name=annotation,
        default=schema_field.default,
        required=schema_field.is_required,
        secret=schema_field.is_secret,
        tags=dict(schema_field.tags),
    )
