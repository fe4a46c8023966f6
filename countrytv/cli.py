from __future__ import annotations
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .availability import CheckOptions, OEmbedProbe, Outcome, validate_playlist_file
from .config import load_config
from .errors import PlaylistIOError
from .logging_setup import setup_logging
from .paths import get_dirs
from .playlist import load_playlist
from .scraper import build_scraper
from .updater import AutoUpdateService

console = Console()

app = typer.Typer(no_args_is_help=True)

_OUTCOME_TAGS = {
    Outcome.PASS: "[green]\\[PASS][/green]",
    Outcome.RECOVERED: "[cyan]\\[RECOVERED][/cyan]",
    Outcome.NEWLY_UNAVAILABLE: "[red]\\[FAIL][/red]",
    Outcome.ALREADY_FLAGGED: "[yellow]\\[ALREADY FLAGGED][/yellow]",
    Outcome.SKIPPED: "[dim]\\[SKIP][/dim]",
}


def _init(config_path):
    cfg = load_config(config_path)
    setup_logging(cfg.log_level, cfg.log_dir or None)
    return cfg


@app.command()
def validate(
    dry_run: bool = typer.Option(False, "--dry-run", help="Print results without modifying playlist.json"),
    verbose: bool = typer.Option(False, "--verbose", help="Print status for every song, not just changes"),
    concurrency: int = typer.Option(None, "--concurrency", min=1, help="Concurrent checks (default 5)"),
    timeout: int = typer.Option(None, "--timeout", min=1, help="Milliseconds before a check times out (default 5000)"),
    playlist: str = typer.Option(None, "--playlist", help="Path to playlist.json"),
    config: str = typer.Option(None, "--config", help="Path to config.yaml"),
):
    """Check every song's YouTube video and flag the ones that disappeared."""
    cfg = _init(config)
    path = playlist or cfg.playlist_path
    try:
        options = CheckOptions(
            concurrency=concurrency or cfg.check_concurrency,
            timeout_ms=timeout or cfg.check_timeout_ms,
            dry_run=dry_run,
            verbose=verbose,
        )
    except ValueError as e:
        # Bad check_concurrency / check_timeout_ms from config or env
        console.print(f"[red]Fatal:[/red] {e}")
        raise typer.Exit(code=2)

    console.print("[bold]CountryTV24 Playlist Validator[/bold]")
    if dry_run:
        console.print("[yellow](dry-run mode: playlist.json will NOT be modified)[/yellow]")

    try:
        outcome = validate_playlist_file(path, options, OEmbedProbe(user_agent=cfg.user_agent))
    except PlaylistIOError as e:
        console.print(f"[red]Fatal:[/red] {e}")
        raise typer.Exit(code=1)

    report = outcome.report
    for entry in report.entries:
        if entry.changed or verbose:
            console.print(f"{_OUTCOME_TAGS[entry.outcome]} {escape(entry.song.label)}")

    t = Table(title="Summary")
    t.add_column("Result"); t.add_column("Songs", justify="right")
    t.add_row("Total songs checked", str(report.checked))
    t.add_row("Available", str(report.available))
    t.add_row("Unavailable (new)", str(report.newly_unavailable))
    t.add_row("Already flagged", str(report.already_flagged))
    t.add_row("Recovered", str(report.recovered))
    t.add_row("Skipped (net errors)", str(report.skipped))
    t.add_row("No YouTube ID", str(report.ignored))
    console.print(t)

    if dry_run:
        console.print("Dry-run complete. No changes written.")
    else:
        console.print(f"[green]{path} updated.[/green]")


@app.command()
def update(
    playlist: str = typer.Option(None, "--playlist", help="Path to playlist.json"),
    source_url: str = typer.Option(None, "--source-url", help="Override the configured source URL"),
    source_kind: str = typer.Option(None, "--source-kind", help="json | html"),
    config: str = typer.Option(None, "--config", help="Path to config.yaml"),
):
    """Refresh playlist.json from the upstream source once and wait for it."""
    cfg = _init(config)
    try:
        scraper = build_scraper(source_kind or cfg.source_kind, source_url or cfg.source_url,
                                label=cfg.source_label)
    except ValueError as e:
        console.print(f"[red]Fatal:[/red] {e}")
        raise typer.Exit(code=2)

    result = AutoUpdateService(playlist or cfg.playlist_path, scraper).run_now()
    if not result.success:
        console.print(f"[red]Update failed:[/red] {result.error}")
        raise typer.Exit(code=1)
    console.print(
        f"[green]Updated[/green] from {result.source}: "
        f"{result.added} added, {result.updated} updated, "
        f"{result.unchanged} unchanged, {result.retained} retained ({result.total} total)"
    )


@app.command("new-songs")
def new_songs(
    playlist: str = typer.Option(None, "--playlist", help="Path to playlist.json"),
    config: str = typer.Option(None, "--config", help="Path to config.yaml"),
):
    """List songs flagged as new by the last refreshes."""
    cfg = _init(config)
    try:
        pl = load_playlist(playlist or cfg.playlist_path)
    except PlaylistIOError as e:
        console.print(f"[red]Fatal:[/red] {e}")
        raise typer.Exit(code=1)

    songs = pl.new_songs()
    if not songs:
        console.print("[yellow]No new songs[/yellow]")
        return
    t = Table(title=f"New songs ({len(songs)})")
    t.add_column("#", justify="right"); t.add_column("Artist"); t.add_column("Title")
    t.add_column("YouTube"); t.add_column("Added")
    for s in songs:
        t.add_row(str(s.position), s.artist, s.title, s.youtube_id, s.added_date)
    console.print(t)


@app.command()
def serve(config: str = typer.Option(None, "--config", help="Path to config.yaml")):
    """Run the status/trigger API with the maintenance scheduler."""
    import uvicorn
    from .web.app import create_app
    cfg = _init(config)
    uvicorn.run(create_app(cfg), host=cfg.web_host, port=cfg.web_port)


@app.command()
def schedule(config: str = typer.Option(None, "--config", help="Path to config.yaml")):
    """Run the maintenance scheduler in the foreground (no web server)."""
    from .scheduler import start_scheduler
    cfg = _init(config)
    start_scheduler(cfg)


@app.command("paths")
def show_paths():
    """Show where countrytv stores logs, cache and config."""
    t = Table(title="countrytv paths")
    t.add_column("Kind"); t.add_column("Location")
    for k, p in get_dirs().items():
        t.add_row(k, str(p))
    console.print(t)
