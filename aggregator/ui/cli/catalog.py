"""
CLI commands for browsing the catalog — plugins, marketplaces, stats.

Thin wrappers over ``aggregator.core.services`` reading the same data
directory the web server serves.

Usage::

    aggregator plugins list --category Development --sort stars
    aggregator plugins search git --json
    aggregator marketplaces list --verified
    aggregator stats --section growth --period 90d
"""

from __future__ import annotations

import click

from aggregator.core.services.catalog import CatalogSnapshot, load_catalog
from aggregator.core.services.query import MAX_LIMIT, Page, QueryError
from aggregator.ui.cli.common import echo_json, load_context


def _snapshot(ctx: click.Context) -> CatalogSnapshot:
    settings, root = load_context(ctx)
    snapshot = load_catalog(settings.data_path(root))
    if snapshot.error and not ctx.obj.get("quiet"):
        click.secho(f"⚠️  {snapshot.error}", fg="yellow", err=True)
    return snapshot


def _source_line(snapshot: CatalogSnapshot) -> None:
    click.secho(f"   source: {snapshot.source}", dim=True)


_limit_option = click.option(
    "--limit", "-n", default=20, type=click.IntRange(1, MAX_LIMIT), help="Max results.",
)
_offset_option = click.option("--offset", default=0, type=click.IntRange(min=0), help="Skip N results.")
_json_option = click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")


# ── Plugins ─────────────────────────────────────────────────────────


@click.group()
def plugins() -> None:
    """Browse cataloged plugins."""


@plugins.command("list")
@click.option("--category", default=None, help="Filter by category.")
@click.option("--tag", "tags", multiple=True, help="Filter by tag (repeatable).")
@click.option("--author", default=None, help="Filter by author (substring).")
@click.option("--verified", is_flag=True, help="Only verified plugins.")
@click.option("--featured", is_flag=True, help="Only featured plugins.")
@click.option(
    "--sort", default="name",
    type=click.Choice(["name", "stars", "downloads", "updated", "author", "category"]),
)
@click.option("--order", default="asc", type=click.Choice(["asc", "desc"]))
@_limit_option
@_offset_option
@_json_option
@click.pass_context
def plugins_list(
    ctx: click.Context,
    category: str | None,
    tags: tuple[str, ...],
    author: str | None,
    verified: bool,
    featured: bool,
    sort: str,
    order: str,
    limit: int,
    offset: int,
    as_json: bool,
) -> None:
    """List plugins with filters, sorting and pagination."""
    from aggregator.core.services.listing import PluginQuery, list_plugins
    from aggregator.core.services.query import split_terms

    snapshot = _snapshot(ctx)
    query = PluginQuery(
        category=category,
        tags=split_terms(tags),
        author=author,
        verified=verified,
        featured=featured,
        sort=sort,
        order=order,
        page=Page(limit=limit, offset=offset),
    )
    result = list_plugins(snapshot.plugins, query)

    if as_json:
        echo_json(result)
        return

    pagination = result["pagination"]
    click.echo()
    click.secho(f"🧩 Plugins ({pagination['total']})", fg="cyan", bold=True)
    _source_line(snapshot)
    for p in result["plugins"]:
        badge = " ✓" if p["verified"] else ""
        click.echo(f"   • {p['name']}{badge}  [{p['category']}]  ★ {p['stars']}  by {p['author']}")
    if pagination["hasMore"]:
        click.secho(f"   … more (use --offset {offset + limit})", dim=True)
    click.echo()


@plugins.command("search")
@click.argument("term")
@click.option(
    "--type", "search_type", default="all",
    type=click.Choice(["all", "plugins", "marketplaces"]), help="What to search.",
)
@_limit_option
@_json_option
@click.pass_context
def plugins_search(ctx: click.Context, term: str, search_type: str, limit: int, as_json: bool) -> None:
    """Keyword search over plugins and marketplaces."""
    from aggregator.core.services.search import normalize_query, search

    try:
        query = normalize_query(term, search_type, Page(limit=limit))
    except QueryError as e:
        raise click.BadParameter(str(e), param_hint=e.param) from e

    snapshot = _snapshot(ctx)
    result = search(snapshot.plugins, snapshot.marketplaces, query)

    if as_json:
        echo_json(result)
        return

    results = result["results"]
    click.echo()
    click.secho(f"🔎 '{result['query']}' — {results['total']} results", fg="cyan", bold=True)
    for p in results["plugins"]:
        click.echo(f"   🧩 {p['name']}  ({p['_searchScore']})  {p['description']}")
    for m in results["marketplaces"]:
        click.echo(f"   🏪 {m['name']}  ({m['_searchScore']})  {m['description']}")
    if result["suggestions"]:
        click.secho(f"   Suggestions: {', '.join(result['suggestions'])}", dim=True)
    click.echo()


# ── Marketplaces ────────────────────────────────────────────────────


@click.group()
def marketplaces() -> None:
    """Browse cataloged marketplaces."""


@marketplaces.command("list")
@click.option("--category", default=None, help="Filter by category.")
@click.option("--verified", is_flag=True, help="Only verified marketplaces.")
@click.option("--featured", is_flag=True, help="Only featured marketplaces.")
@click.option("--sort", default="name", type=click.Choice(["name", "stars", "category", "owner"]))
@click.option("--order", default="asc", type=click.Choice(["asc", "desc"]))
@_limit_option
@_offset_option
@_json_option
@click.pass_context
def marketplaces_list(
    ctx: click.Context,
    category: str | None,
    verified: bool,
    featured: bool,
    sort: str,
    order: str,
    limit: int,
    offset: int,
    as_json: bool,
) -> None:
    """List marketplaces with filters, sorting and pagination."""
    from aggregator.core.services.listing import MarketplaceQuery, list_marketplaces

    snapshot = _snapshot(ctx)
    query = MarketplaceQuery(
        category=category,
        verified=verified,
        featured=featured,
        sort=sort,
        order=order,
        page=Page(limit=limit, offset=offset),
    )
    result = list_marketplaces(snapshot.marketplaces, query)

    if as_json:
        echo_json(result)
        return

    click.echo()
    click.secho(f"🏪 Marketplaces ({result['pagination']['total']})", fg="cyan", bold=True)
    _source_line(snapshot)
    for m in result["marketplaces"]:
        click.echo(f"   • {m['name']}  ★ {m['stars']}  {m['owner']}  → {m['url']}")
    click.echo()


# ── Stats ───────────────────────────────────────────────────────────


@click.command()
@click.option(
    "--section", default=None,
    type=click.Choice(["overview", "quality", "growth", "categories"]),
    help="Only one section (default: all).",
)
@click.option("--period", default="30d", type=click.Choice(["7d", "30d", "90d", "1y"]))
@click.option("--aggregation", default="weekly", type=click.Choice(["daily", "weekly", "monthly"]))
@click.option("--predictions", is_flag=True, help="Include projected growth points.")
@_json_option
@click.pass_context
def stats(
    ctx: click.Context,
    section: str | None,
    period: str,
    aggregation: str,
    predictions: bool,
    as_json: bool,
) -> None:
    """Show ecosystem statistics."""
    from aggregator.core.services.ecosystem_stats import StatsParams, compute_stats

    snapshot = _snapshot(ctx)
    params = StatsParams(
        period=period,
        aggregation=aggregation,
        include_predictions=predictions,
        section=section,
    )
    data = compute_stats(snapshot, params)

    if as_json:
        echo_json(data)
        return

    def _part(name: str, key: str) -> dict | None:
        return data if section == name else data.get(key)

    overview = _part("overview", "overview")
    click.echo()
    click.secho("📊 Ecosystem stats", fg="cyan", bold=True)
    _source_line(snapshot)
    if overview:
        click.echo(f"   Plugins:      {overview['totalPlugins']}")
        click.echo(f"   Marketplaces: {overview['totalMarketplaces']}")
        click.echo(f"   Developers:   {overview['totalDevelopers']}")
        click.echo(f"   Downloads:    {overview['totalDownloads']:,}")

    growth = _part("growth", "growthTrends")
    if growth:
        click.secho(f"   Growth ({growth['period']}, {growth['aggregation']}):", bold=True)
        for metric in ("plugins", "marketplaces", "developers", "downloads"):
            points = growth.get(metric) or []
            if points:
                click.echo(f"     {metric:<13} {points[0]['value']} → {points[-1]['value']}")

    categories = _part("categories", "categoryAnalytics")
    if categories:
        click.secho("   Categories:", bold=True)
        for c in categories.get("categories", []):
            click.echo(f"     • {c['name']}: {c['count']}")

    quality = _part("quality", "qualityIndicators")
    if quality and ctx.obj.get("verbose"):
        click.secho("   Quality:", bold=True)
        for key, val in quality.items():
            click.echo(f"     {key}: {val}")
    click.echo()
