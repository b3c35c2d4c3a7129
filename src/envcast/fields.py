# src/envcast/fields.py
"""Schema field declarations and classification.

A schema is a mutable dataclass. Field tags live in the dataclass field
metadata and are normally written with ``setting()``:

    @dataclass
    class DatabaseConfig:
        host: str = setting(env="DB_HOST", default="localhost")
        password: str = setting(secret="DB_PASSWORD", required=True)

    @dataclass
    class AppConfig:
        port: int = setting(env="PORT", default="8080")
        tags: list[str] = setting(env="TAGS", default="web,api")
        db: DatabaseConfig = field(default_factory=DatabaseConfig)
        cache: CacheConfig | None = None

Tags:
    env       Source key to look up
    secret    Source key to look up; the value is masked when rendered
    default   Literal used when the key is absent and the field is zero
    required  Fail when the resolved value is empty ("true", any case)

The walker, the renderer and the metadata collector all classify fields with
``classify()`` so that they agree on what is a leaf and what is recursed into.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Final, get_args, get_origin, get_type_hints

from envcast.errors import SchemaError
from envcast.registry import ParserRegistry, is_nested_schema, unwrap_optional
from envcast.scalars import split_annotated

TAG_ENV: Final[str] = "env"
TAG_SECRET: Final[str] = "secret"
TAG_DEFAULT: Final[str] = "default"
TAG_REQUIRED: Final[str] = "required"
RESERVED_TAGS: Final[tuple[str, ...]] = (TAG_ENV, TAG_SECRET, TAG_DEFAULT, TAG_REQUIRED)

# Values of these types are "zero" when falsy
_FALSY_ZERO_TYPES: Final[tuple[type, ...]] = (
    str,
    bytes,
    int,
    float,
    complex,
    Decimal,
    timedelta,
    list,
    tuple,
    set,
    frozenset,
    dict,
)


class FieldKind(enum.Enum):
    """How a schema field is populated."""

    NESTED = "nested"  # dataclass walked by value
    NESTED_OPTIONAL = "nested_optional"  # dataclass behind T | None, allocated on demand
    SEQUENCE = "sequence"  # list[T], populated from CSV
    LEAF = "leaf"  # parsed from one raw string


@dataclass(frozen=True, slots=True)
class SchemaField:
    """A dataclass field paired with its resolved annotation and tags."""

    name: str
    annotation: Any
    kind: FieldKind
    tags: Mapping[str, str]
    target: Any  # dataclass to recurse into, element type, or leaf type

    @property
    def key(self) -> str:
        """Source key: env tag, else secret tag, else the attribute name."""
        return self.tags.get(TAG_ENV) or self.tags.get(TAG_SECRET) or self.name

    @property
    def is_secret(self) -> bool:
        return bool(self.tags.get(TAG_SECRET))

    @property
    def is_required(self) -> bool:
        return is_truthy_tag(self.tags.get(TAG_REQUIRED, ""))

    @property
    def default(self) -> str:
        return self.tags.get(TAG_DEFAULT, "")


def setting(
    *,
    env: str | None = None,
    secret: str | None = None,
    default: str | None = None,
    required: bool | str = False,
    value: Any = None,
    **extra_tags: str,
) -> Any:
    """Declare a configuration field.

    Args:
        env: Source key for the field
        secret: Source key for a sensitive field (masked when rendered)
        default: Literal used when the key is absent and the field is zero
        required: Fail loading when the field resolves to an empty value
        value: Initial Python value of the field; lists are copied per instance
        **extra_tags: Additional string tags reported by ``describe_fields()``

    Returns:
        A ``dataclasses.field`` carrying the tags as metadata.
    """
    tags: dict[str, str] = {}
    if env:
        tags[TAG_ENV] = env
    if secret:
        tags[TAG_SECRET] = secret
    if default is not None:
        tags[TAG_DEFAULT] = default
    if required:
        tags[TAG_REQUIRED] = "true" if required is True else str(required)
    tags.update(extra_tags)

    if isinstance(value, list | dict | set):
        initial = value
        return dataclasses.field(default_factory=lambda: initial.copy(), metadata=tags)
    return dataclasses.field(default=value, metadata=tags)


def is_truthy_tag(raw: str) -> bool:
    """Case-insensitive ``"true"`` check used for the required tag."""
    return raw.strip().lower() == "true"


def is_zero(value: Any) -> bool:
    """Whether ``value`` is the zero value of its type."""
    if value is None:
        return True
    if isinstance(value, _FALSY_ZERO_TYPES):
        return not value
    return False


def field_tags(field: dataclasses.Field[Any]) -> dict[str, str]:
    """String-valued tags from a dataclass field's metadata."""
    return {name: str(tag) for name, tag in field.metadata.items() if isinstance(tag, str | bool)}


def classify(annotation: Any, registry: ParserRegistry) -> tuple[FieldKind, Any]:
    """Classify an annotation and return the kind with its target type."""
    base, _ = split_annotated(annotation)
    inner, optional = unwrap_optional(base)

    if is_nested_schema(inner, registry):
        return (FieldKind.NESTED_OPTIONAL if optional else FieldKind.NESTED), split_annotated(inner)[0]

    if (inner is list or get_origin(inner) is list) and registry.explicit(annotation) is None:
        args = get_args(inner)
        return FieldKind.SEQUENCE, args[0] if args else str

    return FieldKind.LEAF, annotation


def resolve_hints(schema_type: type) -> dict[str, Any]:
    """Resolve string annotations (``from __future__ import annotations``) for a dataclass."""
    try:
        return get_type_hints(schema_type, include_extras=True)
    except NameError as e:
        raise SchemaError(f"cannot resolve annotations of {schema_type.__qualname__}: {e}") from e


def iter_schema_fields(schema_type: type, registry: ParserRegistry) -> Iterator[SchemaField]:
    """Yield the init-able fields of a dataclass schema in declaration order."""
    hints = resolve_hints(schema_type)
    for field in dataclasses.fields(schema_type):
        if field.name.startswith("_") or not field.init:
            continue
        annotation = hints.get(field.name, Any)
        kind, target = classify(annotation, registry)
        yield SchemaField(
            name=field.name,
            annotation=annotation,
            kind=kind,
            tags=field_tags(field),
            target=target,
        )
