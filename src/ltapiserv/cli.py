"""Command line interface for ltapiserv."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import httpx
import typer
from rich.console import Console

from ltapiserv.checkers.dictionary import DictionaryWatcher
from ltapiserv.checkers.pipeline import Checkers
from ltapiserv.client import LanguageToolClient, convert_with_pandoc, print_report
from ltapiserv.config import ARCHIVE_ENV, AppConfig
from ltapiserv.errors import LtApiServError
from ltapiserv.web.app import app as web_app


console = Console()
app = typer.Typer(help="ltapiserv - alternative API server for LanguageTool")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    logging.getLogger("nlprule").setLevel(logging.ERROR)


def _load_checkers(config: AppConfig) -> Checkers:
    archive = config.resolve_archive_path(Path.cwd())
    if archive is None:
        raise typer.BadParameter(
            f"No language model archive given. Pass --archive or set {ARCHIVE_ENV}."
        )

    start = time.perf_counter()
    logging.getLogger(__name__).info("Initializing...")
    checkers = Checkers.from_archive(archive, cache_dir=config.cache_dir)
    for dictionary in config.resolve_dictionaries(Path.cwd()):
        checkers.add_dictionary(dictionary)
    logging.getLogger(__name__).info(
        "Done initializing %s checkers in %.2fs", checkers.language, time.perf_counter() - start
    )
    return checkers


@app.command()
def serve(
    archive: Optional[Path] = typer.Option(
        None, "--archive", envvar=ARCHIVE_ENV, help="Path to a .tar.gz language model archive"
    ),
    dictionary: List[Path] = typer.Option(
        [], "--dictionary", help="Custom dictionary file (one or more words per line)"
    ),
    host: str = typer.Option(AppConfig().host, help="Host interface"),
    port: int = typer.Option(AppConfig().port, help="Server port"),
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Model snapshot cache directory"),
    max_text_length: int = typer.Option(
        AppConfig().max_text_length, help="Reject requests with more characters than this"
    ),
    watch: bool = typer.Option(False, "--watch", help="Reload dictionaries when they change"),
    verbose: bool = typer.Option(False, "--verbose", "-v", "--debug", "-d", help="Verbose logging"),
) -> None:
    """Start the LanguageTool-compatible API server."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install it with \"python -m pip install uvicorn\""
        ) from exc

    _setup_logging(verbose)
    config = AppConfig(
        archive_path=archive,
        dictionaries=list(dictionary),
        cache_dir=cache_dir,
        host=host,
        port=port,
        max_text_length=max_text_length,
        watch_dictionaries=watch,
    )

    try:
        checkers = _load_checkers(config)
    except LtApiServError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    web_app.state.checkers = checkers
    web_app.state.config = config

    watcher = None
    if config.watch_dictionaries and checkers.dictionary_paths:
        watcher = DictionaryWatcher(
            checkers.dictionary_paths,
            checkers.reload_dictionaries,
            interval=config.watch_interval,
            debounce=config.watch_debounce,
        )
        watcher.start()

    console.print(f"Serving {checkers.language} on http://{config.host}:{config.port}")
    try:
        uvicorn.run(
            web_app,
            host=config.host,
            port=config.port,
            reload=False,
            log_level="debug" if verbose else "info",
        )
    finally:
        if watcher is not None:
            watcher.stop()


@app.command()
def check(
    filename: Optional[Path] = typer.Argument(
        None, help="File to check; reads from stdin when omitted"
    ),
    language: str = typer.Option("en-US", "--language", "-l", help="Language code"),
    server: str = typer.Option(
        ..., "--server", "-s", envvar="LTAPI_SERVER", help="Server base URL (e.g. http://localhost:8875)"
    ),
    as_json: bool = typer.Option(False, "--json", help="JSON output"),
    suggestions: int = typer.Option(3, help="Number of suggestions to display"),
    pandoc: bool = typer.Option(
        False, "--pandoc", help="Convert to plain text with pandoc first (needs a filename)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run text through a LanguageTool server and display the results."""
    _setup_logging(verbose)
    logger = logging.getLogger(__name__)

    if pandoc and filename is None:
        raise typer.BadParameter("--pandoc requires a filename")

    try:
        if filename is None:
            logger.info("Reading from stdin")
            text = sys.stdin.read()
        elif pandoc:
            logger.info("Converting to plain text with pandoc")
            text = convert_with_pandoc(filename)
        else:
            text = filename.read_text(encoding="utf-8")
    except (OSError, LtApiServError) as exc:
        console.print(f"[red]Could not read {filename or 'stdin'}: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    client = LanguageToolClient(server)
    start = time.perf_counter()
    try:
        response = client.check(text, language)
    except httpx.HTTPError as exc:
        console.print(f"[red]Request failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    logger.info("Received response in %.2fs", time.perf_counter() - start)

    n_errors = len(response.matches)
    if as_json:
        typer.echo(json.dumps(response.raw, indent=2, ensure_ascii=False))
    elif n_errors == 0:
        console.print("[green]No errors found[/green]")
        return
    else:
        print_report(
            console,
            response,
            text,
            suggestions=suggestions,
            source=str(filename) if filename is not None else "<stdin>",
        )
        console.print(f"Found {n_errors} potential errors")

    if n_errors > 0:
        raise typer.Exit(code=1)
