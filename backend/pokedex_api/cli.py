#!/usr/bin/env python3
"""
Cache maintenance CLI for the Pokedex API.

    pokedex-cache clear-cache [--pattern list_]
    pokedex-cache warm-cache --pages 5 --limit 20
    pokedex-cache cache-stats
"""

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from .clients import open_components
from .config import get_settings

console = Console()
logger = logging.getLogger(__name__)


@click.group()
@click.option('--log-level', default=None, help='Override LOG_LEVEL for this run')
@click.pass_context
def cli(ctx, log_level):
    """Pokedex cache maintenance"""
    settings = get_settings()
    if log_level:
        settings.log_level = log_level.upper()
    logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings


def _shared_settings(ctx):
    """Settings for a maintenance command; only a Redis cache outlives this process."""
    settings = ctx.obj['settings']
    if settings.cache_backend == "memory":
        console.print(
            "[red]❌ CACHE_BACKEND is 'memory': that cache lives inside the API server process "
            "and cannot be reached from here. Set CACHE_BACKEND=redis, or use the server's "
            "/admin/cache endpoints.[/red]"
        )
        sys.exit(1)
    return settings


@cli.command('clear-cache')
@click.option('--pattern', '-p', default=None, help='Only clear keys containing this substring')
@click.pass_context
def clear_cache(ctx, pattern):
    """Clear cached PokeAPI payloads"""
    settings = _shared_settings(ctx)

    async def run() -> bool:
        async with open_components(settings) as components:
            return await components.pokeapi.clear_cache(pattern)

    console.print("Clearing Pokemon cache...")
    if asyncio.run(run()):
        if pattern:
            console.print(f"[green]✅ Successfully cleared Pokemon cache matching pattern: {pattern}[/green]")
        else:
            console.print("[green]✅ Successfully cleared all Pokemon cache data[/green]")
        return
    console.print("[red]❌ Failed to clear Pokemon cache[/red]")
    sys.exit(1)


@cli.command('warm-cache')
@click.option('--pages', default=5, show_default=True, type=click.IntRange(min=1), help='Number of pages to warm')
@click.option('--limit', default=20, show_default=True, type=click.IntRange(1, 100), help='Items per page')
@click.pass_context
def warm_cache(ctx, pages, limit):
    """Pre-load the first pages of the Pokemon list into the cache"""
    settings = _shared_settings(ctx)
    console.print(Panel.fit(f"Warming Pokemon cache for {pages} pages with {limit} items per page", style="bold blue"))

    with Progress(TextColumn("[progress.description]{task.description}"), BarColumn(),
                  TextColumn("{task.completed}/{task.total}"), console=console) as progress:
        task = progress.add_task("Warming", total=pages)

        async def run():
            async with open_components(settings) as components:
                return await components.service.warm_cache(
                    pages=pages,
                    limit=limit,
                    on_page=lambda page: progress.advance(task),
                )

        loaded, failures = asyncio.run(run())

    for page, error in failures:
        console.print(f"[red]Failed to warm cache for page {page}: {error}[/red]")

    if not failures:
        console.print(f"[green]✅ Successfully warmed cache for {loaded} Pokemon![/green]")
        return
    console.print(f"[yellow]⚠️  Completed with {len(failures)} errors. Successfully cached {loaded} Pokemon.[/yellow]")
    sys.exit(1)


@cli.command('cache-stats')
@click.pass_context
def cache_stats(ctx):
    """Show cache size, TTL and backend"""
    settings = _shared_settings(ctx)

    async def run():
        async with open_components(settings) as components:
            return await components.pokeapi.cache_stats()

    stats = asyncio.run(run())

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_row("Cached items", str(stats.total_cached_items))
    table.add_row("TTL (seconds)", str(stats.cache_ttl))
    table.add_row("Backend", stats.cache_backend)
    console.print(table)

    if stats.error:
        console.print(f"[red]Error reading cache: {stats.error}[/red]")
        sys.exit(1)


if __name__ == '__main__':
    cli()
