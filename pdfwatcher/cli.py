"""CLI commands for PDFWatcher."""

import logging
import time
from typing import Optional

import click

from . import __version__
from .config import load_config
from .extractor import ScrapeError, fetch_documents
from .models import Record
from .service import DocumentService, search_records
from .signals import UPDATES_AVAILABLE, UPDATES_CLEARED
from .store import KeyValueStore

TYPE_COLORS = [
    ("nfz", "blue"),
    ("akty prawne", "magenta"),
    ("iso", "cyan"),
    ("szkolenia", "green"),
    ("covid", "red"),
]


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """PDFWatcher - Track documents published on an intranet page."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = load_config()
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        raise SystemExit(1)


def _notify(message: str, level: str) -> None:
    click.echo(click.style(message, fg="red" if level == "error" else "cyan"))


def _make_service(config) -> DocumentService:
    store = KeyValueStore(config.client.db_path)
    service = DocumentService(
        config.client.api_base_url,
        store,
        notify=_notify,
        timeout=config.client.timeout_seconds,
    )
    service.signals.connect(
        UPDATES_AVAILABLE,
        lambda count: click.echo(click.style(f"{count} new document(s)!", fg="green", bold=True)),
    )
    service.signals.connect(
        UPDATES_CLEARED,
        lambda: click.echo("No new documents."),
    )
    return service


def _close_service(service: DocumentService) -> None:
    service.close()
    service.store.close()


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", type=int, help="Port to bind to (default: $PORT or 3000)")
@click.pass_obj
def serve(config, host: str, port: Optional[int]):
    """Run the API server and the background poller."""
    import uvicorn

    from .api import create_app

    logging.getLogger().setLevel(logging.INFO)
    uvicorn.run(create_app(config), host=host, port=port or config.server.port)


@cli.command()
@click.option("--url", help="Page to scrape (default: $TARGET_URL)")
@click.pass_obj
def scrape(config, url: Optional[str]):
    """Fetch the remote page once and print the documents found."""
    target = url or config.scraper.target_url
    if not target:
        click.echo(click.style("Error: No URL given and TARGET_URL is not set", fg="red"))
        raise SystemExit(1)

    try:
        records = fetch_documents(
            target,
            auth=config.scraper.auth,
            timeout=config.scraper.timeout_seconds,
            selector=config.scraper.selector,
        )
    except ScrapeError as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        raise SystemExit(1)

    if not records:
        click.echo(click.style("No documents found.", fg="yellow"))
        return

    click.echo(click.style(f"Found {len(records)} document(s):", fg="cyan", bold=True))
    click.echo()
    for record in records:
        _print_record(record)


@cli.command()
@click.option("--force", "-f", is_flag=True, help="Announce the refresh before fetching")
@click.pass_obj
def refresh(config, force: bool):
    """Fetch the latest document list from the server into the local cache."""
    service = _make_service(config)
    try:
        service.refresh(force)
    finally:
        _close_service(service)


@cli.command()
@click.option("--search", "-s", "term", help="Only show documents matching this text")
@click.pass_obj
def documents(config, term: Optional[str]):
    """List cached documents, newest first."""
    service = _make_service(config)
    try:
        cached = service.cached_snapshot()
        if cached is None:
            click.echo("No documents cached yet. Use 'pdfwatcher refresh' first.")
            return

        records = sorted(cached, key=lambda r: r.date, reverse=True)
        if term:
            records = search_records(records, term)

        if not records:
            click.echo("No results.")
            return

        click.echo(click.style(f"Documents ({len(records)}):", fg="cyan", bold=True))
        click.echo()
        for record in records:
            _print_record(record)
    finally:
        _close_service(service)


def _type_color(doc_type: str) -> str:
    lowered = doc_type.lower()
    for match, color in TYPE_COLORS:
        if match in lowered:
            return color
    return "white"


def _print_record(record: Record):
    """Print a single document."""
    type_str = click.style(f"[{record.type}]", fg=_type_color(record.type))
    click.echo(f"  {record.date} {type_str} {record.title}")
    click.echo(f"       URL: {record.url}")


@cli.command()
@click.pass_obj
def seen(config):
    """Mark all cached documents as seen."""
    service = _make_service(config)
    try:
        if service.cached_snapshot() is None:
            click.echo("No documents cached yet.")
            return
        service.mark_seen()
    finally:
        _close_service(service)


@cli.command()
@click.pass_obj
def status(config):
    """Show the scraper status reported by the server."""
    service = _make_service(config)
    try:
        server_status = service.get_server_status()
        if server_status is None:
            click.echo(click.style("Error: Server status unavailable", fg="red"))
            raise SystemExit(1)

        click.echo(click.style("Server status:", fg="cyan", bold=True))
        click.echo(f"  Documents: {server_status.get('documentsCount')}")
        click.echo(f"  Last scrape: {server_status.get('lastScrapingTime') or 'never'}")
        click.echo(f"  In progress: {server_status.get('isScrapingInProgress')}")
        if server_status.get("scrapingError"):
            click.echo(click.style(f"  Error: {server_status['scrapingError']}", fg="red"))
    finally:
        _close_service(service)


@cli.command()
@click.option("--interval", default=600, show_default=True, help="Polling interval in seconds")
@click.pass_obj
def watch(config, interval: int):
    """Refresh on a timer and whenever the server announces new documents."""
    service = _make_service(config)
    try:
        service.refresh(False)
        service.on_remote_change_signal()
        while True:
            time.sleep(interval)
            service.refresh(False)
    except KeyboardInterrupt:
        click.echo()
    finally:
        _close_service(service)


if __name__ == "__main__":
    cli()
