"""Main CLI entry point for storecache.

Provides command-line inspection, invalidation and synchronization of the
local collection cache.
"""

import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from storecache.cache import CacheConfig, CacheError, CacheManager
from storecache.cache.validation import format_timestamp, parse_timestamp
from storecache.sync import DirectoryRemoteSource, SyncCoordinator
from storecache.utils import Records

# Global console for Rich output
console = Console()


def build_manager(ctx) -> CacheManager:
    """Create a CacheManager from CLI options and STORECACHE_* variables.

    Priority:
    1. Explicit CLI flags
    2. Environment variables
    3. Defaults
    """
    config = CacheConfig.from_env()
    options = ctx.obj

    if options.get("cache_dir"):
        config.cache_dir = Path(options["cache_dir"]).expanduser()
    if options.get("namespace"):
        config.namespace = options["namespace"]
    if options.get("max_age") is not None:
        config.maximum_cache_age = options["max_age"]
    if options.get("check_server_updates"):
        config.check_server_updates = True

    return CacheManager(config)


def format_age(seconds: Optional[int]) -> str:
    """Render a number of seconds as a short human-readable duration."""
    if seconds is None:
        return "-"
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


class ConsoleObserver:
    """Prints sync outcomes as they are delivered."""

    def on_fetched(self, data: Records, collection_name: str) -> None:
        console.print(
            f"[green]✓[/green] {collection_name}: {len(data)} records"
        )

    def on_error(self, error: Exception) -> None:
        console.print(f"[red]✗[/red] {error}")


@click.group()
@click.option(
    "--cache-dir",
    type=click.Path(),
    help="Cache root directory (default: ~/.storecache or STORECACHE_DIR)",
)
@click.option("--namespace", "-n", help="Cache namespace (default: storecache)")
@click.option(
    "--max-age", type=float, help="Maximum cache age in seconds (default: 86400)"
)
@click.option(
    "--check-server-updates",
    is_flag=True,
    help="Treat collections older than the server update marker as stale",
)
@click.pass_context
def cli(ctx, cache_dir, namespace, max_age, check_server_updates):
    """storecache CLI - Inspect and synchronize locally cached collections.

    Use --cache-dir to point at a cache, or set STORECACHE_DIR.
    """
    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["namespace"] = namespace
    ctx.obj["max_age"] = max_age
    ctx.obj["check_server_updates"] = check_server_updates


@cli.command("status")
@click.argument("names", nargs=-1)
@click.pass_context
def status(ctx, names):
    """Show cached collections and whether they are stale.

    Example:
        storecache status
        storecache status race weapon
    """
    manager = build_manager(ctx)
    collections = list(names) or manager.list_cached()

    if not collections:
        console.print("[yellow]No cached collections[/yellow]")
        return

    table = Table(title=f"Cache: {manager.config.blob_dir}")
    table.add_column("Collection", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Written", style="dim")
    table.add_column("Expires in", justify="right")
    table.add_column("State")

    for name in collections:
        info = manager.get_status(name)
        if info is None:
            table.add_row(name, "-", "-", "-", "[yellow]not cached[/yellow]")
            continue
        state = "[red]stale[/red]" if info["stale"] else "[green]fresh[/green]"
        table.add_row(
            info["collection"],
            f"{info['size_bytes']} B",
            info["last_written"] or "-",
            format_age(info["ttl_remaining"]),
            state,
        )

    console.print(table)

    stats = manager.get_stats()
    console.print(
        f"Hits: {stats['cache_hits']}  Misses: {stats['cache_misses']}  "
        f"Hit rate: {stats['cache_hit_rate']:.0%}"
    )


@cli.command("show")
@click.argument("name")
@click.pass_context
def show(ctx, name):
    """Print the cached records of a collection if they are fresh.

    Example:
        storecache show race
    """
    manager = build_manager(ctx)
    records = manager.fetch(name)

    if records is None:
        console.print(f"[yellow]⚠[/yellow] No fresh cache for '{name}'")
        sys.exit(1)

    click.echo(json.dumps(records, indent=2))


@cli.command("clear")
@click.argument("names", nargs=-1)
@click.option("--all", "clear_everything", is_flag=True, help="Clear every collection")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def clear(ctx, names, clear_everything, yes):
    """Invalidate cached collections.

    Example:
        storecache clear race weapon
        storecache clear --all -y
    """
    if not names and not clear_everything:
        raise click.UsageError("Give collection names or --all")

    manager = build_manager(ctx)

    try:
        if clear_everything:
            if not yes and not click.confirm("Clear the entire cache?"):
                console.print("[yellow]Cancelled[/yellow]")
                return
            manager.clear_all()
            console.print("[green]✓[/green] Cleared all cached collections")
            return

        for name in names:
            manager.remove_file(name)
            console.print(f"[green]✓[/green] Cleared '{name}'")
    except CacheError as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("sync")
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--source",
    "-s",
    type=click.Path(exists=True, file_okay=False),
    required=True,
    help="Directory holding <collection>.json exports",
)
@click.pass_context
def sync(ctx, names, source):
    """Load collections from cache, fetching stale ones from a source directory.

    Example:
        storecache sync --source ./export race weapon trait
    """
    manager = build_manager(ctx)
    coordinator = SyncCoordinator(
        manager, DirectoryRemoteSource(source), ConsoleObserver()
    )

    results = asyncio.run(coordinator.start(names))

    from_cache = sum(1 for r in results if r.origin == "cache")
    from_remote = sum(1 for r in results if r.origin == "remote")
    failed = [r for r in results if not r.ok]

    console.print(
        f"\n[cyan]{from_cache}[/cyan] from cache, "
        f"[cyan]{from_remote}[/cyan] fetched, [cyan]{len(failed)}[/cyan] failed"
    )
    if failed:
        sys.exit(1)


@cli.command("marker")
@click.argument("timestamp", required=False)
@click.option("--clear", "clear_marker", is_flag=True, help="Unset the marker")
@click.pass_context
def marker(ctx, timestamp, clear_marker):
    """Show or set the server update marker.

    Example:
        storecache marker
        storecache marker 2024-01-15T10:30:00+00:00
        storecache marker now
        storecache marker --clear
    """
    manager = build_manager(ctx)

    if clear_marker:
        manager.set_latest_database_update(None)
        console.print("[green]✓[/green] Update marker cleared")
        return

    if timestamp:
        if timestamp == "now":
            parsed: Optional[datetime] = manager.clock()
        else:
            parsed = parse_timestamp(timestamp)
        if parsed is None:
            raise click.BadParameter(
                f"Not an ISO 8601 timestamp: {timestamp}", param_hint="TIMESTAMP"
            )
        manager.set_latest_database_update(parsed)
        console.print(f"[green]✓[/green] Update marker set to {format_timestamp(parsed)}")
        return

    current = manager.get_latest_database_update()
    if current.is_set:
        console.print(f"Update marker: {format_timestamp(current.timestamp)}")
    else:
        console.print("Update marker: [dim]unset[/dim]")


if __name__ == "__main__":
    cli()
