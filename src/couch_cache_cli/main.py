"""CLI entrypoint using typer."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

import structlog
import typer
from rich.console import Console

from couch_cache_core.config.settings import Settings
from couch_cache_core.exceptions import CouchCacheError
from couch_cache_core.models.document import CacheDocument
from couch_cache_infra.observability import command_context, configure_logging
from couch_cache_infra.repository import CacheRepository
from couch_cache_infra.store.factory import create_store

app = typer.Typer(
    name="couch-cache",
    help="Document-store-backed cache with compound keys and TTL expiry",
)
console = Console()
logger = structlog.get_logger()

R = TypeVar("R")


def _load_settings(verbose: bool) -> Settings:
    """Load settings from the environment and configure logging."""
    settings = Settings()
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    return settings


def _run(
    settings: Settings,
    command: str,
    action: Callable[[CacheRepository], Awaitable[R]],
) -> R:
    """Open a repository, run action against it, and map cache errors to exit code 1."""

    async def _main() -> R:
        repository = CacheRepository(
            create_store(settings),
            collection=settings.collection,
            default_timeout=settings.request_timeout_seconds,
        )
        async with repository:
            return await action(repository)

    with command_context(command, settings.collection):
        try:
            return asyncio.run(_main())
        except CouchCacheError as exc:
            logger.error("command_failed", error=str(exc), error_type=type(exc).__name__)
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=1) from exc


def _parse_fields(pairs: list[str]) -> dict[str, Any]:
    """Parse name=value pairs; values are JSON when they parse as JSON, else strings."""
    fields: dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name:
            console.print(f"[red]Error:[/red] Expected name=value, got {pair!r}")
            raise typer.Exit(code=2)
        try:
            fields[name] = json.loads(raw)
        except json.JSONDecodeError:
            fields[name] = raw
    return fields


def _print_document(doc: CacheDocument | None) -> None:
    """Print a document as JSON, or exit 1 on a miss."""
    if doc is None:
        console.print("[yellow]Not found[/yellow]")
        raise typer.Exit(code=1)
    console.print_json(doc.model_dump_json())


@app.command("set")
def set_entry(
    key: str = typer.Argument(..., help="Logical cache key"),
    field: list[str] = typer.Option([], "--field", "-f", help="Payload field as name=value"),
    ttl: int | None = typer.Option(None, "--ttl", min=1, help="Time-to-live in seconds"),
    specific: bool = typer.Option(False, "--specific", help="Store as a specific entry"),
    sub_key: str | None = typer.Option(
        None, "--sub-key", help="Sub-key of a specific entry (implies --specific)"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Store a document under KEY."""
    settings = _load_settings(verbose)
    seconds = ttl if ttl is not None else settings.default_ttl_seconds
    lifetime = timedelta(seconds=seconds) if seconds is not None else None
    doc = CacheDocument(**_parse_fields(field))

    async def _set(repository: CacheRepository) -> None:
        if specific or sub_key is not None:
            await repository.set_specific(doc, key, sub_key, ttl=lifetime)
        else:
            await repository.set(doc, key, ttl=lifetime)

    _run(settings, "set", _set)
    if doc.sub_key:
        console.print(f"[green]Stored[/green] {key} (sub-key {doc.sub_key})")
    else:
        console.print(f"[green]Stored[/green] {key}")


@app.command()
def get(
    key: str = typer.Argument(..., help="Logical cache key"),
    specific: bool = typer.Option(False, "--specific", help="Read a specific entry"),
    sub_key: str | None = typer.Option(None, "--sub-key", help="Sub-key of a specific entry"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Print the document stored under KEY."""
    settings = _load_settings(verbose)

    async def _get(repository: CacheRepository) -> CacheDocument | None:
        if specific or sub_key is not None:
            return await repository.get_specific(key, CacheDocument, sub_key)
        return await repository.get(key)

    _print_document(_run(settings, "get", _get))


@app.command()
def remove(
    key: str = typer.Argument(..., help="Logical cache key"),
    specific: bool = typer.Option(False, "--specific", help="Remove specific entries"),
    sub_key: str | None = typer.Option(None, "--sub-key", help="Sub-key of a specific entry"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Remove the document(s) stored under KEY."""
    settings = _load_settings(verbose)

    async def _remove(repository: CacheRepository) -> None:
        if specific or sub_key is not None:
            await repository.remove_specific(key, CacheDocument, sub_key)
        else:
            await repository.remove(key)

    _run(settings, "remove", _remove)
    console.print(f"[green]Removed[/green] {key}")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Delete every document in the collection."""
    settings = _load_settings(verbose)
    if not yes:
        typer.confirm(f"Delete every document in {settings.collection}?", abort=True)

    async def _clear(repository: CacheRepository) -> None:
        await repository.clear()

    _run(settings, "clear", _clear)
    console.print(f"[green]Cleared[/green] {settings.collection}")


@app.command()
def count(
    include_expired: bool = typer.Option(
        False, "--include-expired", help="Count expired documents too"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Print how many documents the collection holds."""
    settings = _load_settings(verbose)

    async def _count(repository: CacheRepository) -> int:
        return await repository.get_doc_count(CacheDocument, live_only=not include_expired)

    console.print(str(_run(settings, "count", _count)))


@app.command()
def purge(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
) -> None:
    """Delete every expired document."""
    settings = _load_settings(verbose)

    async def _purge(repository: CacheRepository) -> int:
        return await repository.purge_expired()

    removed = _run(settings, "purge", _purge)
    logger.info("purge_complete", removed=removed)
    console.print(f"[green]Purged[/green] {removed} expired document(s)")


@app.command()
def version() -> None:
    """Show version."""
    console.print("couch-cache v0.1.0")


if __name__ == "__main__":
    app()
