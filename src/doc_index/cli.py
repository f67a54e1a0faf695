import asyncio
import logging
import sys
if sys.platform == "win32":
    # asyncpg needs the selector loop on Windows
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

import typer

from doc_index import create_doc_index, create_engine_for
from doc_index.config import get_settings
from doc_index.db.base import Base
from doc_index.exceptions import DocIndexError
from doc_index.logging import configure_logging
from doc_index.utils.cli_utils import format_size_mb, get_rich_console


app = typer.Typer(help="CLI for doc-index management.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.command()
def init():
    """
    Creates the index tables and makes sure the MinIO bucket exists.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")
    settings = get_settings()

    with console.status("Creating index tables...", spinner="dots"):
        async def _create_tables():
            engine = create_engine_for(settings.postgres)
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            finally:
                await engine.dispose()

        try:
            asyncio.run(_create_tables())
            console.log("[bold green]✔[/bold green] Database tables created successfully.")
        except Exception as e:
            console.log(f"[bold red]✖[/bold red] Database initialization FAILED: {e}")
            raise typer.Exit(code=1)

    with console.status("Initializing MinIO storage bucket...", spinner="dots"):
        async def _init_storage():
            client = create_doc_index(settings.to_config())
            try:
                await client.minio.check_connection()
                return client.minio.bucket
            finally:
                await client.aclose()

        try:
            bucket = asyncio.run(_init_storage())
            console.log(f"[bold green]✔[/bold green] MinIO bucket '{bucket}' is ready.")
        except DocIndexError as e:
            console.log(f"[bold red]✖[/bold red] MinIO storage initialization FAILED: {e}")
            raise typer.Exit(code=1)

    console.print("\n[bold green]All services initialized.[/bold green]")


@app.command()
def check():
    """Checks connectivity to PostgreSQL, MinIO and (if configured) the response cache."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        client = create_doc_index(get_settings().to_config())
        try:
            return await client.check_connections()
        finally:
            await client.aclose()

    statuses = asyncio.run(_check())
    failed = False
    for name, status in statuses.items():
        if status == "ok":
            console.print(f"[bold green]✔[/bold green] {name} connection: OK")
        else:
            failed = True
            console.print(f"[bold red]✖[/bold red] {name} connection: FAILED ({status})")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def consistency(
    prune: bool = typer.Option(False, "--prune", help="Remove blobs that no file row references."),
):
    """Reports blobs without rows and rows without blobs."""
    console.rule("[bold cyan]Consistency Check[/bold cyan]")

    async def _run():
        client = create_doc_index(get_settings().to_config())
        try:
            report = await client.find_inconsistencies()
            removed = await client.prune_orphan_blobs(report) if prune else []
            return report, removed
        finally:
            await client.aclose()

    report, removed = asyncio.run(_run())
    for key in report.orphan_blobs:
        console.print(f"[yellow]orphan blob[/yellow] {key}")
    for file_id in report.missing_blobs:
        console.print(f"[red]missing blob[/red] for file {file_id}")
    if removed:
        console.print(f"Removed {len(removed)} orphan blob(s).")
    if report.ok:
        console.print("[bold green]✔[/bold green] Index and blob store agree.")


@app.command()
def search(query: str = typer.Argument("", help="Substring of a filename or tag.")):
    """Runs the same search as the API and prints the hits."""
    async def _search():
        client = create_doc_index(get_settings().to_config())
        try:
            return await client.search(query)
        finally:
            await client.aclose()

    for hit in asyncio.run(_search()):
        tags = " ".join(hit.tags)
        console.print(f"{hit.id}  {hit.filename}  ({format_size_mb(hit.size)})  [dim]{tags}[/dim]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0"),
    port: int = typer.Option(8000),
):
    """Runs the HTTP API with uvicorn."""
    import uvicorn

    configure_logging(get_settings().log_level)
    uvicorn.run("doc_index.server.main:create_app", factory=True, host=host, port=port)
