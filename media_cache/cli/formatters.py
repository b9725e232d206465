"""
Rich renderables for the media-cache CLI: error panels, catalog and release
views, cache status and warm-up summaries.
"""

from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from media_cache.models.catalog import Catalog, Release
from media_cache.models.config import CacheConfig
from media_cache.models.records import CachedAlbum, CachedRelease
from media_cache.models.stats import CacheStats
from media_cache.utils.formatting import format_remaining, format_size, format_timestamp


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `media-cache init <BUCKET>` to create a configuration file.",
            "• Check the values in your config.ini against `media-cache init --help`.",
        ],
        "StorageUnavailableError": [
            "• Verify the bucket name, region and endpoint URL.",
            "• Check that your credentials may list and read the bucket.",
            "• Leave the keys empty to use the default AWS credential chain.",
        ],
        "IssuerError": [
            "• The object store refused to sign an access URL.",
            "• Your credentials may have expired or lack s3:GetObject.",
        ],
        "ResolutionError": [
            "• The asset is not cached and no access URL could be issued.",
            "• Run `media-cache warm` while online to make assets available offline.",
        ],
        "FetchError": [
            "• A signed URL could not be downloaded.",
            "• Signed URLs expire; retry the command to issue fresh ones.",
        ],
        "TimeoutError": [
            "• Fetching an asset timed out; the object store may be throttling.",
            "• Lower `max_concurrent_fetches` in the configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]media-cache error[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: CacheConfig):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key in sorted(CacheConfig.get_ini_keys()):
        value = getattr(config, key)
        if key == "secret_access_key" and value:
            value = "[hidden]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_catalog_table(catalog: Catalog, cached_ids: set[str]):
    """Lists the albums of a scan, marking the ones available offline."""
    console = Console()
    if not catalog.albums:
        console.print("[yellow]No albums found in the bucket.[/yellow]")
        return

    table = Table(title="Catalog", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Album", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Songs", justify="right")
    table.add_column("Offline", justify="center")
    for i, album in enumerate(catalog.albums, 1):
        offline = "[green]✓[/green]" if album.id in cached_ids else "[dim]✗[/dim]"
        table.add_row(str(i), album.title, album.id, str(len(album.songs)), offline)
    console.print(table)
    console.print(
        f"[bold]{len(catalog.albums)}[/bold] album(s), "
        f"[bold]{len(catalog.songs)}[/bold] song(s)."
    )


def print_release_panel(label: str, release: Release | None, cover_url: str | None):
    console = Console()
    if release is None:
        console.print(f"[dim]No {label.lower()} release published.[/dim]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("Title:", release.title)
    table.add_row("Artist:", release.artist)
    table.add_row("Release Date:", release.release_date)
    table.add_row("Cover:", f"[dim]{release.cover_key}[/dim]")
    table.add_row(
        "Preview:", f"[dim]{release.key}[/dim]" if release.has_preview else "✗ None"
    )
    if cover_url:
        table.add_row("Cover URL:", f"[dim]{cover_url}[/dim]")

    console.print(Panel(table, title=f"[bold]{label} Release[/bold]", border_style="magenta"))


def print_status_table(
    records: list[CachedAlbum | CachedRelease], disk_usage: int, now: float
):
    """Displays every cache record with its contents and remaining lifetime."""
    console = Console()
    if not records:
        console.print("[dim]The asset cache is empty.[/dim]")
    else:
        table = Table(title="Asset Cache", box=box.ROUNDED)
        table.add_column("Entity", style="cyan")
        table.add_column("Kind", style="dim")
        table.add_column("Contents")
        table.add_column("Cached At", style="dim")
        table.add_column("Expires In", justify="right")

        for record in sorted(records, key=lambda r: r.entity_id):
            if isinstance(record, CachedAlbum):
                total = len(record.album.songs)
                contents = f"{len(record.audio_urls)}/{total} songs"
                if not record.has_content():
                    contents = f"[yellow]cover only ({total} songs)[/yellow]"
            else:
                contents = "cover + preview" if record.audio_url else "cover"

            remaining = format_remaining(record.expires_at, now)
            if remaining == "expired":
                remaining = "[red]expired[/red]"
            table.add_row(
                record.entity_id,
                record.kind,
                contents,
                format_timestamp(record.timestamp),
                remaining,
            )
        console.print(table)

    console.print(f"[bold]Disk usage:[/bold] [cyan]{format_size(disk_usage)}[/cyan]")


def print_summary_panel(stats: CacheStats, duration_s: float):
    """Displays a summary of the fetches performed by a command."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=16)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Fetched:", f"[bold green]{stats.items_fetched}[/bold green]"
    )
    if stats.items_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.items_failed}[/bold red]")
    stats_table.add_row(
        "Entities:", f"[green]{len(stats.entities_cached)}[/green] cached"
    )
    if stats.evictions > 0:
        stats_table.add_row("Evicted:", f"[yellow]{stats.evictions}[/yellow]")

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_fetched)}[/cyan]"
    )
    avg_speed = stats.bytes_fetched / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    if stats.hits or stats.misses:
        stats_table.add_row(
            "Hit Ratio:",
            f"[blue]{stats.hit_ratio:.0%}[/blue] ({stats.hits}/{stats.hits + stats.misses})",
        )

    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎵 [bold]Cache Warm-up Complete[/bold]",
            border_style="green" if not stats.items_failed else "yellow",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
