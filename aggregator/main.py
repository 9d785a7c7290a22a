"""
Claude Marketplace Aggregator — CLI entrypoint.

Usage:
    python -m aggregator.main --help
    python -m aggregator.main web
    python -m aggregator.main config check
    python -m aggregator.main data scan
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from aggregator import __version__
from aggregator.core.observability.logging_config import resolve_level, setup_logging_from_env
from aggregator.ui.cli.common import load_context


@click.group()
@click.version_option(version=__version__, prog_name="aggregator")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to aggregator.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Claude Marketplace Aggregator — catalog of Claude Code plugins."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate aggregator.yml and show the resolved settings."""
    from aggregator.core.config.loader import ConfigError, config_root, find_config_file, load_settings

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "errors": [str(e)]}, indent=2))
        else:
            click.secho("❌ Configuration errors:", fg="red", bold=True)
            click.echo(f"   • {e}")
        sys.exit(1)

    root = config_root(config_path)
    if as_json:
        click.echo(json.dumps({
            "valid": True,
            "configFile": str(config_path) if config_path else None,
            "settings": settings.model_dump(mode="json"),
        }, indent=2))
        return

    click.secho("✅ Configuration is valid", fg="green", bold=True)
    click.echo(f"   File:      {config_path or '(defaults)'}")
    click.echo(f"   Name:      {settings.name}")
    click.echo(f"   Data dir:  {settings.data_path(root)}")
    click.echo(f"   Build dir: {settings.build_path(root)}")
    click.echo(f"   Query:     {settings.github.search_query} (max {settings.github.max_results})")
    if settings.github.offline:
        click.secho("   GitHub:    offline", fg="yellow")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Run the health checks (data files, GitHub API, build, memory)."""
    from aggregator.core.observability.health import check_health
    from aggregator.core.services.github_client import GitHubClient

    settings, root = load_context(ctx)
    github = None if settings.github.offline else GitHubClient.from_settings(settings.github)
    report = check_health(settings.data_path(root), settings.build_path(root), github)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.healthy else 1)

    icon, color = ("💚", "green") if report.healthy else ("🔴", "red")
    click.echo()
    click.secho(f"{icon} Health: {report.status.upper()}", fg=color, bold=True)
    for name, ok in report.checks.items():
        click.echo(f"   {'✓' if ok else '✗'} {name}")
    if ctx.obj.get("verbose") or not report.healthy:
        for key, val in report.details.items():
            click.echo(f"      {key}: {val}")
    click.echo()

    if not report.healthy:
        sys.exit(1)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    """Start the catalog web server."""
    from aggregator.ui.web.server import create_app, run_server

    settings, root = load_context(ctx)
    app = create_app(settings=settings, project_root=root)
    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho(f"⚡ {settings.name}", bold=True)
    click.echo(f"   Site:  http://{host}:{port}")
    click.echo(f"   API:   http://{host}:{port}/api")
    click.echo(f"   Data:  {settings.data_path(root)}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from aggregator/ui/cli/ ───────────

from aggregator.ui.cli.catalog import marketplaces, plugins, stats  # noqa: E402
from aggregator.ui.cli.data import data  # noqa: E402

cli.add_command(plugins)
cli.add_command(marketplaces)
cli.add_command(stats)
cli.add_command(data)


if __name__ == "__main__":
    cli()
