"""
Typer commands for scanning the bucket, warming the offline cache and
inspecting what it holds.
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from media_cache import __version__
from media_cache.catalog import CatalogScanner, S3ObjectStore
from media_cache.core.resolver import AssetResolver
from media_cache.core.tasks import TaskRunner
from media_cache.media import AssetFetcher
from media_cache.models.catalog import LATEST_RELEASE_ID, UPCOMING_RELEASE_ID, Album, Catalog
from media_cache.models.config import CacheConfig
from media_cache.storage import AssetCache, ConfigManager, PlaybackStateStore
from media_cache.storage.playback_state import PlaybackState, restore_carousel_index

from .formatters import (
    print_catalog_table,
    print_config,
    print_release_panel,
    print_status_table,
    print_summary_panel,
)

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("media_cache")

app = typer.Typer(
    name="media-cache",
    help=(
        "Offline asset cache for an S3-hosted music catalog. Use 'media-cache"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "media-cache"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"
CACHE_DIR = CONFIG_DIR / "assets"
PLAYBACK_STATE_FILE = CONFIG_DIR / "playback_state.json"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Media Cache CLI"""
    if version:
        console.print(f"[bold]media-cache[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    log.setLevel(log_level)

    if show_config:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_config(CONFIG_FILE, config)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@dataclass
class Services:
    config: CacheConfig
    cache: AssetCache
    scanner: CatalogScanner
    resolver: AssetResolver
    tasks: TaskRunner


@asynccontextmanager
async def open_services(cli_options: dict | None = None):
    """Loads the configuration and wires the cache, catalog and resolver together."""
    config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    store = S3ObjectStore.from_config(config)
    tasks = TaskRunner()

    async with AssetFetcher(max_attempts=config.fetch_attempts) as fetcher:
        cache = AssetCache(
            CACHE_DIR,
            fetcher,
            ttl_seconds=config.cache_ttl_seconds,
            max_concurrent_fetches=config.max_concurrent_fetches,
        )
        await cache.init()
        await cache.start_background_cleanup()
        scanner = CatalogScanner(store, artist=config.artist)
        resolver = AssetResolver(cache, store, scanner, tasks)
        try:
            yield Services(config, cache, scanner, resolver, tasks)
        finally:
            await tasks.drain()
            await cache.stop_background_cleanup()


async def _cached_ids(cache: AssetCache, catalog: Catalog) -> set[str]:
    return {album.id for album in catalog.albums if await cache.is_cached(album.id)}


def _select_albums(catalog: Catalog, album_ids: list[str]) -> list[Album]:
    if not album_ids:
        return list(catalog.albums)
    selected = []
    for album_id in album_ids:
        album = catalog.get_album(album_id)
        if album is None:
            console.print(f"[yellow]⚠️  Unknown album id '{album_id}', skipping.[/yellow]")
        else:
            selected.append(album)
    return selected


@app.command()
def init(
    bucket: str = typer.Argument(..., help="Name of the bucket holding the catalog."),
    region: str = typer.Option("us-east-1", "--region", "-r", help="Bucket region."),
    endpoint_url: str = typer.Option(
        "", "--endpoint", help="Custom S3-compatible endpoint URL (R2, MinIO, ...)."
    ),
    access_key_id: str = typer.Option(
        "", "--access-key", help="Access key id. Empty uses the default AWS chain."
    ),
    secret_access_key: str = typer.Option(
        "", "--secret-key", help="Secret access key. Empty uses the default AWS chain."
    ),
    artist: str | None = typer.Option(
        None, "--artist", help="Artist name attached to every album and release."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Initialize configuration for a bucket."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "bucket": bucket,
        "region": region,
        "endpoint_url": endpoint_url,
        "access_key_id": access_key_id,
        "secret_access_key": secret_access_key,
    }
    if artist:
        settings["artist"] = artist

    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready! Try: [cyan]media-cache scan[/cyan]")


@app.command()
def scan():
    """Scan the bucket and list the albums it holds."""

    async def _scan_async():
        async with open_services() as services:
            catalog = await services.scanner.scan()
            print_catalog_table(catalog, await _cached_ids(services.cache, catalog))

    asyncio.run(_scan_async())


@app.command()
def warm(
    album_ids: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Album ids to cache. All albums when omitted."
    ),
    releases: bool = typer.Option(
        True, "--releases/--no-releases", help="Also cache the latest and upcoming releases."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous downloads."
    ),
):
    """Download albums into the offline cache."""

    async def _warm_async():
        async with open_services({"max_concurrent_fetches": workers}) as services:
            catalog = await services.scanner.scan()
            albums = _select_albums(catalog, album_ids or [])
            if not albums and not releases:
                console.print("[yellow]Nothing to cache.[/yellow]")
                return

            console.print(
                f"[bold cyan]🎵 Warming cache for {len(albums)} album(s)...[/bold cyan]"
            )
            start_time = time.monotonic()
            for album in albums:
                services.resolver.warm_album(album)
            if releases:
                await services.resolver.get_latest_release()
                await services.resolver.get_upcoming_release()
            await services.tasks.drain()
            print_summary_panel(services.cache.stats, time.monotonic() - start_time)

    asyncio.run(_warm_async())


@app.command()
def resolve(
    album_id: str = typer.Argument(..., help="Album id as shown by 'scan'."),
    song: str | None = typer.Option(
        None, "--song", "-s", help="Only resolve the song with this id."
    ),
):
    """Print playable URLs for an album, preferring cached copies."""

    async def _resolve_async():
        async with open_services() as services:
            catalog = await services.scanner.scan()
            album = catalog.get_album(album_id)
            if album is None:
                console.print(f"[red]✗ Unknown album id '{album_id}'.[/red]")
                raise typer.Exit(code=1)

            songs = [s for s in album.songs if song is None or s.id == song]
            if song is not None and not songs:
                console.print(f"[red]✗ Album '{album_id}' has no song '{song}'.[/red]")
                raise typer.Exit(code=1)

            cover_url = await services.resolver.resolve_album_cover_url(album)
            console.print(f"[bold cyan]Cover:[/bold cyan] {cover_url}")
            for s in songs:
                url = await services.resolver.resolve_song_url(s.key, album.id)
                console.print(f"[bold]{s.title}[/bold]: {url}")

            # Remember the selection the way a player would
            playback = PlaybackStateStore(PLAYBACK_STATE_FILE)
            state = playback.load()
            state.album_id = album.id
            if songs:
                state.song_id = songs[0].id
                state.position_sec = 0.0
            state.carousel_index = restore_carousel_index(
                PlaybackState(album_id=album.id), catalog.albums
            )
            playback.save(state)

    asyncio.run(_resolve_async())


@app.command(name="releases")
def releases_command():
    """Show the latest and upcoming releases and cache them."""

    async def _releases_async():
        async with open_services() as services:
            resolver = services.resolver
            for label, getter in (
                ("Latest", resolver.get_latest_release),
                ("Upcoming", resolver.get_upcoming_release),
            ):
                release = await getter()
                cover_url = (
                    await resolver.resolve_release_cover_url(release) if release else None
                )
                print_release_panel(label, release, cover_url)

    asyncio.run(_releases_async())


@app.command()
def status():
    """Show what is in the offline cache and when it expires."""

    async def _status_async():
        cache = AssetCache(CACHE_DIR, AssetFetcher())
        if not await cache.init():
            console.print(f"[red]✗ Cache directory '{CACHE_DIR}' is unavailable.[/red]")
            raise typer.Exit(code=1)
        print_status_table(await cache.entries(), await cache.disk_usage(), time.time())

        state = PlaybackStateStore(PLAYBACK_STATE_FILE).load()
        if state.album_id:
            console.print(
                f"[bold]Last played:[/bold] {state.album_id}"
                f"{' / ' + state.song_id if state.song_id else ''} "
                f"[dim](volume {state.volume:.0%})[/dim]"
            )

    asyncio.run(_status_async())


@app.command()
def clear(
    entity_ids: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Album or release ids to remove. Everything when omitted."
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Bypass the confirmation prompt.",
    ),
):
    """Remove entries from the offline cache."""
    if not entity_ids and not force and not typer.confirm(
        "Are you sure you want to clear the entire asset cache?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _clear_async():
        cache = AssetCache(CACHE_DIR, AssetFetcher())
        await cache.init()
        if entity_ids:
            for entity_id in entity_ids:
                if entity_id in (LATEST_RELEASE_ID, UPCOMING_RELEASE_ID):
                    await cache.clear_release(entity_id)
                else:
                    await cache.clear_album(entity_id)
            console.print(f"[green]✓ Removed {len(entity_ids)} cache entries.[/green]")
        elif await cache.clear_all():
            console.print("[green]✓ Asset cache cleared successfully.[/green]")
        else:
            console.print("[red]✗ Failed to clear asset cache.[/red]")

    asyncio.run(_clear_async())

