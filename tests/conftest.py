# tests/conftest.py
"""Shared test fixtures.

Environment isolation:
    Tests pass an explicit ``environ`` dict to ``load()`` wherever possible.
    Tests that must touch ``os.environ`` (overlay and CLI tests) use the
    ``clean_environ`` fixture, which removes every variable the test schemas
    read and lets monkeypatch restore them afterwards.

Parser registry:
    ``registry`` is a copy of the process-wide default registry, so tests can
    register parsers without leaking them into other tests.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import logging
import os
from collections.abc import Iterator

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings
from structlog.stdlib import ProcessorFormatter

from envcast.registry import ParserRegistry, default_registry

# Variables read by schemas in tests/fixtures/schemas.py
SCHEMA_ENV_VARS: tuple[str, ...] = (
    "APP_NAME",
    "PORT",
    "DEBUG",
    "TAGS",
    "API_KEY",
    "DB_HOST",
    "DB_PORT",
    "DB_PASSWORD",
    "DATABASE_URL",
    "CACHE_TTL",
    "CACHE_ENABLED",
)


@pytest.fixture
def registry() -> ParserRegistry:
    """Isolated copy of the default parser registry."""
    return default_registry.copy()


@pytest.fixture
def clean_environ(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    """Remove the schema variables from os.environ for the duration of a test.

    Each variable is set before it is deleted so that monkeypatch also removes
    values added later by overlay files.
    """
    for name in SCHEMA_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    yield monkeypatch


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo configure_logging() calls between tests."""
    root = logging.getLogger()
    level = root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
