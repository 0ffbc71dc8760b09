"""CLI entry point for fitchallenge-sync."""

import asyncio
import os
from pathlib import Path

import typer
import uvicorn

from fitchallenge_sync import __version__
from fitchallenge_sync.client.executor import HttpActionExecutor
from fitchallenge_sync.client.queue import ActionQueue
from fitchallenge_sync.client.repository import JsonFileQueueRepository
from fitchallenge_sync.core.config import settings

app = typer.Typer(
    name="fitchallenge-sync",
    help="Idempotent activity sync for fitness challenges",
    no_args_is_help=True,
)
queue_app = typer.Typer(help="Inspect and operate a local offline queue", no_args_is_help=True)
app.add_typer(queue_app, name="queue")


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (overrides config)"),
    port: int = typer.Option(None, help="Port to bind to (overrides config)"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server.

    Example:
        fitchallenge-sync serve
        fitchallenge-sync serve --host 0.0.0.0 --port 8080 --reload
    """
    uvicorn.run(
        "fitchallenge_sync.app:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"fitchallenge-sync v{__version__}")


def _repository(path: Path | None) -> JsonFileQueueRepository:
    return JsonFileQueueRepository(path or settings.queue_path)


@queue_app.command("status")
def queue_status(
    path: Path = typer.Option(None, help="Queue file (defaults to QUEUE_PATH)"),
) -> None:
    """List pending queued actions."""
    items = _repository(path).load()
    typer.echo(f"{len(items)} pending action(s)")
    for item in items:
        line = f"  {item.id}  {item.kind:<20} retries={item.retry_count}"
        if item.last_error:
            line += f"  last_error={item.last_error}"
        typer.echo(line)


@queue_app.command("drain")
def queue_drain(
    path: Path = typer.Option(None, help="Queue file (defaults to QUEUE_PATH)"),
    server_url: str = typer.Option(None, help="Sync server URL (defaults to SYNC_SERVER_URL)"),
    token_env: str = typer.Option("FITCHALLENGE_TOKEN", help="Env var holding the session token"),
) -> None:
    """Run one drain pass against the sync server."""

    async def token_provider() -> str | None:
        return os.environ.get(token_env)

    async def run() -> None:
        executor = HttpActionExecutor(token_provider=token_provider, base_url=server_url)
        try:
            queue = ActionQueue(_repository(path), executor)
            result = await queue.process_queue()
        finally:
            await executor.aclose()

        typer.echo(
            f"processed={result.processed} succeeded={result.succeeded} "
            f"failed={result.failed} remaining={result.remaining}"
        )
        for failure in queue.failures:
            typer.echo(
                f"  dropped {failure.item.id} ({failure.item.kind}): {failure.message}", err=True
            )

    asyncio.run(run())


@queue_app.command("clear")
def queue_clear(
    path: Path = typer.Option(None, help="Queue file (defaults to QUEUE_PATH)"),
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
) -> None:
    """Drop every pending action."""
    repository = _repository(path)
    pending = len(repository.load())
    if not yes:
        typer.confirm(f"Drop {pending} pending action(s)?", abort=True)
    repository.save([])
    typer.echo(f"Cleared {pending} action(s)")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
