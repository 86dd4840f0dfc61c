"""Main CLI entry point for refcache.

Provides command-line access to cached reference content: loading, listing,
forced refresh, clearing and cache diagnostics.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click
import orjson
from rich.console import Console
from rich.table import Table

from refcache.cache.config import CacheConfig
from refcache.exceptions import ConfigError, ContentUnavailable
from refcache.sync import SyncOrchestrator
from refcache.utils import format_cache_age, format_size, now_millis

# Global console for Rich output
console = Console()


def build_config(
    config_path: Optional[str],
    cache_dir: Optional[str],
    remote_url: Optional[str],
    bundled_path: Optional[str],
) -> CacheConfig:
    """Build configuration from a config file or the environment, then CLI flags.

    Raises:
        click.ClickException: If the config file is invalid
    """
    try:
        config = CacheConfig.load(Path(config_path)) if config_path else CacheConfig.from_env()
    except ConfigError as e:
        raise click.ClickException(str(e))

    if cache_dir:
        config.cache_dir = Path(cache_dir).expanduser()
    if remote_url:
        config.remote_base_url = remote_url
    if bundled_path:
        config.bundled_base_path = bundled_path
    return config


def format_epoch(timestamp_ms: Optional[int]) -> str:
    if timestamp_ms is None:
        return "-"
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a JSON config file (default: environment variables)",
)
@click.option("--cache-dir", type=click.Path(file_okay=False), help="Cache directory")
@click.option("--remote-url", help="Base location of the remote authority")
@click.option("--bundled-path", help="Base location of bundled content")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, cache_dir, remote_url, bundled_path, verbose):
    """refcache CLI - Inspect and manage cached reference content."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = build_config(config_path, cache_dir, remote_url, bundled_path)


def _orchestrator(ctx) -> SyncOrchestrator:
    return SyncOrchestrator.from_config(ctx.obj["config"])


@cli.command("load")
@click.argument("resource_id")
@click.option("--json", "as_json", is_flag=True, help="Print the payload as JSON")
@click.pass_context
def load_cmd(ctx, resource_id, as_json):
    """Load a resource through the cache, bundle and remote tiers.

    Background revalidation is allowed to finish before the command exits,
    so a later run sees the refreshed cache.

    Example:
        refcache load perks
        refcache load "rules/1. Introduction.md" --json
    """
    orchestrator = _orchestrator(ctx)
    updates = []

    async def run():
        orchestrator.subscribe(updates.append)
        try:
            return await orchestrator.load(resource_id)
        finally:
            await orchestrator.drain()

    try:
        payload = asyncio.run(run())
    except ContentUnavailable as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="RESOURCE_ID")

    if as_json:
        click.echo(orjson.dumps(payload.to_dict(), option=orjson.OPT_INDENT_2).decode())
        return

    console.print(f"[green]✓[/green] Loaded '{resource_id}'")
    console.print(f"  Version: {payload.version}")
    console.print(f"  Last updated: {format_epoch(payload.last_updated)}")
    for event in updates:
        console.print(
            f"  [yellow]Newer content cached:[/yellow] version {event.payload.version}"
        )


@cli.command("refresh")
@click.argument("resource_id")
@click.pass_context
def refresh_cmd(ctx, resource_id):
    """Fetch a resource from the remote authority and overwrite the cache.

    Example:
        refcache refresh perks
    """
    orchestrator = _orchestrator(ctx)

    async def run():
        try:
            return await orchestrator.force_refresh(resource_id)
        finally:
            await orchestrator.drain()

    try:
        payload = asyncio.run(run())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="RESOURCE_ID")

    if payload is None:
        raise click.ClickException(
            f"Could not refresh '{resource_id}'; cached content left unchanged"
        )
    console.print(f"[green]✓[/green] Refreshed '{resource_id}' (version {payload.version})")


@cli.command("clear")
@click.argument("resource_id", required=False)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def clear_cmd(ctx, resource_id, yes):
    """Clear one cached resource, or everything if no id is given.

    Example:
        refcache clear perks
        refcache clear --yes
    """
    if resource_id is None and not yes:
        click.confirm("Clear all cached content?", abort=True)

    _orchestrator(ctx).clear_cache(resource_id)
    target = f"'{resource_id}'" if resource_id else "all cached content"
    console.print(f"[green]✓[/green] Cleared {target}")


@cli.command("list")
@click.argument("prefix", required=False, default="")
@click.option("--refresh", is_flag=True, help="Ignore the cached listing")
@click.pass_context
def list_cmd(ctx, prefix, refresh):
    """List the resources available remotely under a prefix.

    Example:
        refcache list rules
        refcache list rules --refresh
    """
    orchestrator = _orchestrator(ctx)

    async def run():
        try:
            return await orchestrator.list_resources(prefix, force_refresh=refresh)
        finally:
            await orchestrator.drain()

    try:
        resource_ids = asyncio.run(run())
    except ContentUnavailable as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PREFIX")

    if not resource_ids:
        console.print(f"[yellow]No resources under '{prefix or '/'}'[/yellow]")
        return
    for resource_id in resource_ids:
        console.print(f"  • {resource_id}")


@cli.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show cache statistics.

    Example:
        refcache stats
    """
    orchestrator = _orchestrator(ctx)
    stats = orchestrator.cache_stats()
    now = now_millis()

    table = Table(title="Cache Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Cache directory", str(ctx.obj["config"].cache_dir))
    table.add_row("Entries", str(stats.count))
    table.add_row("Total size", format_size(stats.total_bytes))
    table.add_row(
        "Oldest fetch",
        format_cache_age(stats.oldest_fetched_at, now) if stats.oldest_fetched_at else "-",
    )
    table.add_row(
        "Newest fetch",
        format_cache_age(stats.newest_fetched_at, now) if stats.newest_fetched_at else "-",
    )
    table.add_row(
        "Listing fetched",
        format_cache_age(stats.listing_fetched_at, now)
        if stats.listing_fetched_at
        else "-",
    )
    console.print(table)

    resource_ids = orchestrator.store.resource_ids()
    if resource_ids:
        console.print("\nCached resources:")
        for resource_id in sorted(resource_ids):
            console.print(f"  • {resource_id}")


@cli.command("info")
@click.argument("resource_id")
@click.pass_context
def info_cmd(ctx, resource_id):
    """Show cache details for one resource.

    Example:
        refcache info perks
    """
    info = _orchestrator(ctx).cache_info(resource_id)
    if info is None:
        console.print(f"[yellow]'{resource_id}' is not cached[/yellow]")
        return

    table = Table(title=f"Cache Entry: {resource_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Version", info["version"])
    table.add_row("Content updated", format_epoch(info["last_updated"]))
    table.add_row(
        "Fetched",
        f"{format_epoch(info['fetched_at'])} ({format_cache_age(info['fetched_at'])})",
    )
    table.add_row("Expires", format_epoch(info["expires_at"]))
    table.add_row("Status", "fresh" if info["fresh"] else "stale")
    table.add_row("Size", format_size(info["size_bytes"]))
    table.add_row("Source", info["source_url"] or "-")
    console.print(table)


if __name__ == "__main__":
    cli()
