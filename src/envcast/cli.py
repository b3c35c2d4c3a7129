# src/envcast/cli.py
"""envcast Command Line Interface.

Inspect configuration schemas from the shell:

    envcast describe myapp.config:AppConfig --secret
    envcast --env-file deploy/.env render myapp.config:AppConfig
"""

from __future__ import annotations

import dataclasses
import importlib
import json
from pathlib import Path
from typing import Any

import typer

from envcast import __version__
from envcast.errors import ConfigError
from envcast.loader import load
from envcast.overlay import DEFAULT_OVERLAY_FILE, apply_overlay
from envcast.render import pretty_string
from envcast.settings import FieldSetting, describe_fields, filter_settings

__all__ = ["app"]

app = typer.Typer(
    name="envcast",
    help="envcast: typed configuration from environment variables.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"envcast version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> int:
    """Overlay a .env file onto the process environment.

    Args:
        env_file: Explicit path to .env file. If None, ``.env`` in the
                 current directory is used when present.

    Returns:
        Number of variables added to the environment.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return apply_overlay([env_file])

    return apply_overlay([DEFAULT_OVERLAY_FILE])


def _import_schema(target: str) -> type[Any]:
    """Resolve ``module.path:ClassName`` to a dataclass type.

    Raises:
        typer.BadParameter: If the target is malformed, missing, or not a dataclass.
    """
    module_name, sep, qualname = target.partition(":")
    if not sep or not module_name or not qualname:
        raise typer.BadParameter(f"expected MODULE:CLASS, got '{target}'")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import module '{module_name}': {e}") from e

    for attr in qualname.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise typer.BadParameter(f"'{qualname}' not found in module '{module_name}'") from e

    if not isinstance(obj, type) or not dataclasses.is_dataclass(obj):
        raise typer.BadParameter(f"'{target}' is not a dataclass")
    return obj


def _flags(setting: FieldSetting) -> str:
    flags = []
    if setting.required:
        flags.append("required")
    if setting.secret:
        flags.append("secret")
    return ",".join(flags)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (default: .env in the current directory).",
        exists=False,  # Existence is checked in _load_dotenv for a clearer message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """envcast: typed configuration from environment variables."""
    from envcast.logging import configure_logging

    log_level = "DEBUG" if verbose else "WARNING"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def describe(
    target: str = typer.Argument(..., help="Schema to describe, as MODULE:CLASS."),
    secret: bool = typer.Option(
        False,
        "--secret",
        "-s",
        help="Only show secret fields.",
    ),
    required: bool = typer.Option(
        False,
        "--required",
        "-r",
        help="Only show required fields.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """List the environment variables a schema reads.

    Examples:

        # Table of every field
        envcast describe myapp.config:AppConfig

        # Secrets that must be provisioned, as JSON
        envcast describe myapp.config:AppConfig --secret --required --json
    """
    schema = _import_schema(target)
    settings = describe_fields(schema)
    if secret:
        settings = filter_settings(settings, lambda s: s.secret)
    if required:
        settings = filter_settings(settings, lambda s: s.required)

    if json_output:
        typer.echo(json.dumps([dataclasses.asdict(s) for s in settings], indent=2))
        return

    if not settings:
        typer.echo("(no matching fields)")
        return

    typer.echo(f"{'PATH':30} {'ENV VAR':30} {'TYPE':24} {'DEFAULT':16} FLAGS")
    for s in settings:
        typer.echo(f"{s.path:30} {s.env_var:30} {s.type_name:24} {s.default:16} {_flags(s)}".rstrip())


@app.command()
def render(
    target: str = typer.Argument(..., help="Schema to load and render, as MODULE:CLASS."),
) -> None:
    """Load a schema from the environment and print it with secrets masked.

    Exits with status 1 when loading fails (missing required key or a value
    that cannot be parsed).
    """
    schema = _import_schema(target)
    try:
        config = load(schema)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    typer.echo(pretty_string(config))
