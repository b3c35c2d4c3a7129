# src/envcast/overlay.py
"""Dotenv overlay: load ``KEY=VALUE`` files into the source mapping.

Overlay files sit between the real environment and the ``default`` tags in
precedence. Keys that already exist in the source are never overwritten, and
when several files are given the first file to define a key wins.

A missing, unreadable or undecodable overlay file is not an error: the file
is skipped and a debug event is logged.

``${VAR}`` references in values are expanded against the source mapping
being extended (not necessarily ``os.environ``), then against keys defined
earlier in the same file.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, MutableMapping
from pathlib import Path
from typing import Final

import structlog
from dotenv import dotenv_values
from dotenv.variables import parse_variables

logger = structlog.get_logger(__name__)

DEFAULT_OVERLAY_FILE: Final[str] = ".env"


def apply_overlay(
    paths: Iterable[str | Path] = (DEFAULT_OVERLAY_FILE,),
    environ: MutableMapping[str, str] | None = None,
) -> int:
    """Copy keys from dotenv files into ``environ`` without overwriting.

    Args:
        paths: Overlay files, highest priority first
        environ: Source mapping to extend (defaults to ``os.environ``)

    Returns:
        Number of keys added to ``environ``.
    """
    target = os.environ if environ is None else environ
    added = 0

    for path in paths:
        overlay_path = Path(path)
        if not overlay_path.is_file():
            logger.debug("overlay_skipped", path=str(overlay_path), reason="not found")
            continue
        try:
            values = _expand(dotenv_values(overlay_path, interpolate=False), target)
        except (OSError, ValueError) as e:
            # UnicodeDecodeError is a ValueError
            logger.debug("overlay_skipped", path=str(overlay_path), reason=str(e))
            continue

        loaded = 0
        for key, value in values.items():
            if value is None or key in target:
                continue
            target[key] = value
            loaded += 1
        added += loaded
        logger.debug("overlay_loaded", path=str(overlay_path), keys=loaded)

    return added


def _expand(values: Mapping[str, str | None], environ: Mapping[str, str]) -> dict[str, str | None]:
    """Resolve ``${VAR}`` and ``${VAR:-default}`` against ``environ``, then earlier file entries."""
    resolved: dict[str, str | None] = {}
    for key, value in values.items():
        if value is None:
            resolved[key] = None
            continue
        scope: dict[str, str | None] = {**resolved, **environ}
        resolved[key] = "".join(atom.resolve(scope) for atom in parse_variables(value))
    return resolved
