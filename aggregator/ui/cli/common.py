"""Shared helpers for the CLI command groups."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from aggregator.core.config.loader import ConfigError, config_root, find_config_file, load_settings
from aggregator.core.models.settings import Settings


def load_context(ctx: click.Context) -> tuple[Settings, Path]:
    """Load settings and the project root for a command.

    Exits with status 1 on a configuration error.
    """
    config_path: Path | None = ctx.obj.get("config_path")
    if config_path is None:
        config_path = find_config_file()

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    return settings, config_root(config_path)


def echo_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))
