# src/envcast/parsers/__init__.py
"""Built-in parsers for rich configuration types.

Each submodule owns one family of types and exposes ``register(registry)``.
Explicit registration is used even for types that could be handled by the
``from_text`` capability factory, because explicit entries are consulted
first and skip the factory scan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from envcast.parsers import crypto, network, numeric, temporal, text

if TYPE_CHECKING:
    from envcast.registry import ParserRegistry

__all__ = ["register_builtin_parsers"]


def register_builtin_parsers(registry: ParserRegistry) -> None:
    """Install the full built-in catalog on ``registry``."""
    for module in (temporal, network, numeric, crypto, text):
        module.register(registry)
