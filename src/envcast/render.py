# src/envcast/render.py
"""Secret-redacting snapshot of a populated schema.

``pretty_string()`` is meant for start-up logs and debug endpoints. It walks
the schema with the same field classification as ``load()`` and produces
indented JSON keyed by source key, with keys sorted at every level.

Redaction rules:
- Secret ``str`` fields keep their first three characters; the rest become
  ``*``. Strings of three characters or fewer are fully starred.
- Secret ``list[str]`` fields are masked element by element.
- Secret fields of any other type render as ``***``.
- Non-secret URL fields (and URLs inside lists) keep everything except the
  password, which is replaced by ``***``.
- Non-finite floats render as the strings ``"nan"``, ``"inf"`` and ``"-inf"``.

Redaction depends only on the ``secret`` tag, never on where the value came
from. ``pretty_string()`` never raises.
"""

from __future__ import annotations

import dataclasses
import json
import math
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Final
from urllib.parse import SplitResult

from envcast.errors import ConfigError, SchemaError
from envcast.fields import FieldKind, SchemaField, iter_schema_fields
from envcast.parsers.crypto import describe_private_key
from envcast.parsers.network import mask_url_password
from envcast.registry import ParserRegistry, default_registry

MASK_CHAR: Final[str] = "*"
SECRET_MARKER: Final[str] = "***"
_MASK_KEEP: Final[int] = 3


def mask(secret: str) -> str:
    """Keep the first three characters of ``secret`` and star the rest.

    Examples:
        mask("") == ""
        mask("abc") == "***"
        mask("secret123") == "sec******"
    """
    if len(secret) <= _MASK_KEEP:
        return MASK_CHAR * len(secret)
    return secret[:_MASK_KEEP] + MASK_CHAR * (len(secret) - _MASK_KEEP)


def safe_tree(schema: Any, *, registry: ParserRegistry | None = None) -> dict[str, Any]:
    """Build the redacted key/value tree for a dataclass instance.

    Raises:
        SchemaError: If ``schema`` is not a dataclass instance
    """
    if not dataclasses.is_dataclass(schema) or isinstance(schema, type):
        raise SchemaError(f"{type(schema).__qualname__} is not a dataclass")
    return _build_tree(schema, registry or default_registry)


def pretty_string(schema: Any, *, registry: ParserRegistry | None = None) -> str:
    """Indented, sorted, secret-redacted JSON for a dataclass instance.

    Non-dataclass input and serialization failures are reported in the
    returned string instead of being raised.
    """
    if not dataclasses.is_dataclass(schema) or isinstance(schema, type):
        return f"{type(schema).__qualname__} is not a dataclass"
    try:
        tree = _build_tree(schema, registry or default_registry)
        return json.dumps(tree, indent=2, sort_keys=True, ensure_ascii=False, allow_nan=False, default=_json_default)
    except (ConfigError, TypeError, ValueError) as e:
        return f"error pretty-printing config: {e}"


def _build_tree(instance: Any, registry: ParserRegistry) -> dict[str, Any]:
    tree: dict[str, Any] = {}
    for field in iter_schema_fields(type(instance), registry):
        value = getattr(instance, field.name)
        if field.is_secret:
            tree[field.key] = _redact_secret(field, value)
        elif field.kind in (FieldKind.NESTED, FieldKind.NESTED_OPTIONAL):
            tree[field.key] = None if value is None else _build_tree(value, registry)
        else:
            tree[field.key] = _render_plain(value)
    return tree


def _redact_secret(field: SchemaField, value: Any) -> Any:
    if isinstance(value, str):
        return mask(value)
    if field.kind is FieldKind.SEQUENCE and field.target is str and isinstance(value, list):
        return [mask(item) for item in value]
    return SECRET_MARKER


def _render_plain(value: Any) -> Any:
    if isinstance(value, list):
        return [_render_item(item) for item in value]
    return _render_item(value)


def _render_item(value: Any) -> Any:
    if isinstance(value, SplitResult):
        return mask_url_password(value)
    if isinstance(value, float) and not math.isfinite(value):
        # JSON has no NaN or Infinity literals
        return str(value)
    return value


def _json_default(obj: Any) -> Any:
    """Serialize rich leaf values as their canonical text."""
    if isinstance(obj, datetime | date | time):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return str(obj)
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, set | frozenset):
        return sorted(obj, key=str)
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")

    described = describe_private_key(obj)
    if described is not None:
        return described
    return str(obj)
