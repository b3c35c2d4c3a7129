# src/envcast/registry.py
"""Parser registry and type dispatch.

Every leaf field is converted from its raw string by the dispatcher in
``ParserRegistry.parse()``, which consults three tiers in a fixed order:

1. Explicit parsers, keyed by exact type. The annotation is looked up as
   written first (so ``T | None`` may own its own parser) and then with the
   ``None`` member removed.
2. Parser factories, in registration order. A factory inspects a type and
   either returns a parser for it or None.
3. The scalar parser (str, bool, int, float).

The order matters: explicit parsers shadow factories for types that also
satisfy a generic capability, and both shadow the scalar fallback.

Registry lifetime:
    ``default_registry`` is process-wide and is populated at import with the
    text-decoding capability factory and the built-in rich-type catalog.
    Register custom parsers during start-up, before the first ``load()``.
    Registration is not synchronized; registering while another thread is
    loading configuration is a race. Tests and embedders that want isolation
    can build their own ``ParserRegistry`` and pass it to ``load()``.
"""

from __future__ import annotations

import dataclasses
import types
from collections.abc import Callable
from typing import Any, Protocol, Self, Union, get_args, get_origin, runtime_checkable

from envcast.errors import ParseError
from envcast.scalars import parse_scalar, split_annotated

ParserFunc = Callable[[str], Any]
ParserFactory = Callable[[Any], ParserFunc | None]


@runtime_checkable
class TextDecodable(Protocol):
    """Capability protocol for types that construct themselves from text.

    Any class with a ``from_text`` classmethod is parsed by calling it with
    the raw string. Such a class is always a leaf field, even when it is a
    dataclass.
    """

    @classmethod
    def from_text(cls, text: str) -> Self: ...


def unwrap_optional(target: Any) -> tuple[Any, bool]:
    """Split ``T | None`` into ``(T, True)``; other annotations return ``(target, False)``.

    A union with several non-None members keeps them together:
    ``A | B | None`` becomes ``(A | B, True)``.
    """
    if get_origin(target) not in (Union, types.UnionType):
        return target, False
    members = get_args(target)
    remaining = tuple(member for member in members if member is not type(None))
    if len(remaining) == len(members):
        return target, False
    if len(remaining) == 1:
        return remaining[0], True
    return Union[remaining], True  # noqa: UP007


def _registry_key(target: Any) -> Any:
    # A | B and Union[A, B] compare equal but may not hash equal
    if get_origin(target) in (Union, types.UnionType):
        return frozenset(get_args(target))
    return target


def text_decoder_factory(target: Any) -> ParserFunc | None:
    """Parser factory for classes that implement ``from_text``.

    Handles both ``T`` and ``T | None`` annotations.
    """
    base, _ = split_annotated(target)
    inner, _ = unwrap_optional(base)
    if not isinstance(inner, type):
        return None
    decode = getattr(inner, "from_text", None)
    if not callable(decode):
        return None

    def parse(raw: str) -> Any:
        try:
            return decode(raw)
        except ParseError:
            raise
        except Exception as e:
            # Any decoder failure is reported against the field
            raise ParseError(f"failed to decode text: {e}") from e

    return parse


class ParserRegistry:
    """Table of explicit parsers plus an ordered list of parser factories."""

    def __init__(self) -> None:
        self._parsers: dict[Any, ParserFunc] = {}
        self._factories: list[ParserFactory] = []

    def register(self, target: Any, parser: ParserFunc) -> None:
        """Install ``parser`` for exactly ``target``, replacing any previous entry."""
        self._parsers[_registry_key(target)] = parser

    def register_factory(self, factory: ParserFactory) -> None:
        """Append ``factory``; factories run in registration order."""
        self._factories.append(factory)

    def explicit(self, target: Any) -> ParserFunc | None:
        """Return the explicit parser for ``target`` or its non-optional form."""
        base, _ = split_annotated(target)
        try:
            parser = self._parsers.get(_registry_key(base))
        except TypeError:
            # Unhashable annotation
            return None
        if parser is not None:
            return parser
        inner, optional = unwrap_optional(base)
        if optional:
            return self._parsers.get(_registry_key(inner))
        return None

    def lookup(self, target: Any) -> ParserFunc | None:
        """Find a parser for ``target``: explicit entries first, then factories."""
        parser = self.explicit(target)
        if parser is not None:
            return parser
        for factory in self._factories:
            parser = factory(target)
            if parser is not None:
                return parser
        return None

    def is_custom(self, target: Any) -> bool:
        """Whether ``target`` is parsed as a unit rather than walked or scalar-parsed."""
        return self.lookup(target) is not None

    def parse(self, raw: str, target: Any) -> Any:
        """Convert ``raw`` to ``target`` using the first matching tier.

        Raises:
            ParseError: If the selected parser rejects the string
            UnsupportedTypeError: If nothing can handle ``target``
        """
        parser = self.lookup(target)
        if parser is not None:
            return parser(raw)
        base, _ = split_annotated(target)
        inner, _ = unwrap_optional(base)
        if inner is not base:
            return parse_scalar(raw, inner)
        return parse_scalar(raw, target)

    def copy(self) -> ParserRegistry:
        """Independent registry with the same parsers and factories."""
        clone = ParserRegistry()
        clone._parsers = dict(self._parsers)
        clone._factories = list(self._factories)
        return clone


def is_nested_schema(target: Any, registry: ParserRegistry) -> bool:
    """Whether ``target`` is a dataclass to recurse into rather than parse."""
    base, _ = split_annotated(target)
    return isinstance(base, type) and dataclasses.is_dataclass(base) and not registry.is_custom(base)


def create_default_registry() -> ParserRegistry:
    """Registry with the capability factory and the built-in catalog installed."""
    from envcast.parsers import register_builtin_parsers

    registry = ParserRegistry()
    registry.register_factory(text_decoder_factory)
    register_builtin_parsers(registry)
    return registry


default_registry = create_default_registry()


def register_parser(target: Any, parser: ParserFunc) -> None:
    """Register an explicit parser on the process-wide default registry."""
    default_registry.register(target, parser)


def register_parser_factory(factory: ParserFactory) -> None:
    """Register a parser factory on the process-wide default registry."""
    default_registry.register_factory(factory)
