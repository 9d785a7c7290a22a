"""
CLI commands for the data pipeline — scan GitHub, validate plugins.

Usage::

    aggregator data scan                 # needs GITHUB_TOKEN
    aggregator data scan --dry-run
    aggregator data validate --strict
"""

from __future__ import annotations

import os
import sys

import click

from aggregator.ui.cli.common import echo_json, load_context


@click.group()
def data() -> None:
    """Data pipeline — scan marketplaces and validate plugins."""


# ── Scan ────────────────────────────────────────────────────────────


@data.command()
@click.option("--query", default=None, help="Override the GitHub search query.")
@click.option("--max-results", default=None, type=click.IntRange(min=1), help="Override the result cap.")
@click.option("--dry-run", is_flag=True, help="Show what would be scanned without calling GitHub.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def scan(
    ctx: click.Context,
    query: str | None,
    max_results: int | None,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Scan GitHub for marketplaces and regenerate the catalog data files."""
    from aggregator.core.services.github_client import GitHubClient, GitHubError
    from aggregator.core.services.scanner import MarketplaceScanner

    settings, root = load_context(ctx)
    gh = settings.github
    query = query or gh.search_query
    max_results = max_results or gh.max_results
    scan_dir = settings.scan_path(root)
    data_dir = settings.data_path(root)

    if dry_run:
        plan = {
            "dryRun": True,
            "query": query,
            "maxResults": max_results,
            "scanDir": str(scan_dir),
            "dataDir": str(data_dir),
            "tokenConfigured": bool(os.environ.get(gh.token_env)),
        }
        if as_json:
            echo_json(plan)
            return
        click.secho("🔍 Dry run: would scan GitHub for marketplaces", fg="cyan", bold=True)
        click.echo(f"   Query:  {query} (max {max_results})")
        click.echo(f"   Output: {scan_dir}, {data_dir}")
        if not plan["tokenConfigured"]:
            click.secho(f"   ⚠️  {gh.token_env} is not set", fg="yellow")
        return

    if not os.environ.get(gh.token_env):
        click.secho(f"❌ {gh.token_env} environment variable is required", fg="red", err=True)
        sys.exit(1)

    scanner = MarketplaceScanner(GitHubClient.from_settings(gh), query=query, max_results=max_results)
    try:
        result = scanner.scan()
    except GitHubError as e:
        click.secho(f"❌ Scan failed: {e}", fg="red", err=True)
        sys.exit(1)

    written = scanner.save_results(result, scan_dir) + scanner.write_public_data(result, data_dir)

    if as_json:
        echo_json({**result.to_dict(), "files": [str(p) for p in written]})
        return

    click.echo()
    click.secho("🎉 Scan completed", fg="green", bold=True)
    click.echo(f"   Marketplaces:   {len(result.marketplaces)} ({result.with_manifests} with manifests)")
    click.echo(f"   Errors:         {len(result.errors)}")
    click.echo(f"   Duration:       {result.duration_seconds:.1f}s")
    if ctx.obj.get("verbose"):
        for path in written:
            click.echo(f"   → {path}")
        for err in result.errors:
            click.secho(f"   ✗ {err}", fg="yellow")
    click.echo()


# ── Validate ────────────────────────────────────────────────────────


@data.command()
@click.option("--strict", is_flag=True, help="Treat warnings as errors and require plugin ids.")
@click.option("--dry-run", is_flag=True, help="Validate without writing result files.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, strict: bool, dry_run: bool, as_json: bool) -> None:
    """Validate the plugin entries of every scanned marketplace manifest."""
    from aggregator.core.services.catalog import MARKETPLACES_FILE, load_catalog
    from aggregator.core.services.plugin_validator import save_report, validate_marketplaces

    settings, root = load_context(ctx)
    data_dir = settings.data_path(root)
    strict = strict or settings.validation_strict

    snapshot = load_catalog(data_dir)
    if snapshot.source != "real":
        click.secho(
            f"❌ No scanned data in {data_dir / MARKETPLACES_FILE}; run 'aggregator data scan' first",
            fg="red", err=True,
        )
        sys.exit(1)

    report = validate_marketplaces(snapshot.marketplaces, strict=strict)
    if not dry_run:
        save_report(report, settings.validation_path(root))

    summary = report.summary()
    if as_json:
        echo_json(summary)
        return

    click.echo()
    mode = "strict" if strict else "standard"
    click.secho(f"🔍 Plugin validation ({mode})", fg="cyan", bold=True)
    click.echo(f"   Total:   {summary['totalPlugins']}")
    click.secho(f"   Valid:   {summary['validPlugins']}", fg="green")
    color = "red" if summary["invalidPlugins"] else "white"
    click.secho(f"   Invalid: {summary['invalidPlugins']}", fg=color)
    for message, count in summary["commonErrors"].items():
        click.echo(f"     • {message} ({count})")
    if ctx.obj.get("verbose"):
        for check in report.invalid:
            click.echo(f"   ✗ {check.marketplace}/{check.name or '?'}: {', '.join(check.errors)}")
    if dry_run:
        click.secho("   (dry run: no files written)", dim=True)
    click.echo()
