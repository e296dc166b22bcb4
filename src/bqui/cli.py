"""Click CLI for bqui."""

import logging
from pathlib import Path
from typing import Optional

import click
from textual.logging import TextualHandler

from bqui import __version__
from bqui.config import BquiConfig, resolve_project
from bqui.errors import CacheError, StartupError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(log_file: Optional[str] = None, debug: bool = False) -> None:
    """Send bqui logs to the Textual devtools console and, optionally, a file.

    Nothing is written to the terminal itself while the UI owns it.
    """
    logger = logging.getLogger("bqui")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.handlers.clear()
    logger.addHandler(TextualHandler())
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)


def clear_cache(config: BquiConfig) -> int:
    """Drop every cached listing. Returns the number of entries removed."""
    from bqui.cache import CatalogCache

    cache = CatalogCache(path=Path(config.cache_path) if config.cache_path else None)
    return cache.clear_all()


@click.command()
@click.version_option(version=__version__, prog_name="bqui", message="%(prog)s version %(version)s")
@click.option("--project", "-p", default=None, help="Project ID to open.")
@click.option(
    "--credentials",
    "-c",
    default=None,
    help="Service account JSON key file. Defaults to Application Default Credentials.",
)
@click.option(
    "--endpoint",
    "--emulator",
    "endpoint",
    default=None,
    help="Alternate API endpoint, e.g. http://localhost:9050 for an emulator.",
)
@click.option("--log-file", default=None, type=click.Path(dir_okay=False), help="Write logs to this file.")
@click.option("--debug", is_flag=True, help="Log debug messages.")
@click.option("--clear-cache", "clear", is_flag=True, help="Clear cached listings and exit.")
def cli(
    project: Optional[str],
    credentials: Optional[str],
    endpoint: Optional[str],
    log_file: Optional[str],
    debug: bool,
    clear: bool,
) -> None:
    """bqui - browse BigQuery projects, datasets and tables from the terminal.

    The project is taken from --project, then GOOGLE_CLOUD_PROJECT or
    GCP_PROJECT, then `gcloud config get-value project`.

    Keyboard shortcuts:
        ↑/↓ or j/k - Move
        Enter      - Open dataset / table
        Tab        - Next tab
        /          - Filter
        y          - Copy
        Ctrl+P     - Switch project
        ?          - Help
        q          - Quit
    """
    setup_logging(log_file, debug)
    config = BquiConfig.load()

    if clear:
        try:
            removed = clear_cache(config)
        except CacheError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
        click.echo(f"Removed {removed} cached entries")
        return

    try:
        project_id = resolve_project(project, config)
        if credentials and not Path(credentials).is_file():
            raise StartupError(f"credentials file not found: {credentials}")
        from bqui.tui import build_app

        app = build_app(project_id, credentials_file=credentials, endpoint=endpoint, config=config)
    except StartupError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    app.run()


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
