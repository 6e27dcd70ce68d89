"""chunklift CLI - Main commands."""
import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

app = typer.Typer(
    name="chunklift",
    help="Resumable chunked uploads with catalog registration",
    add_completion=False
)
console = Console()


def run_async(coro):
    """Run async function."""
    return asyncio.run(coro)


def load_config(database: Optional[Path] = None):
    from chunklift.core.config import ChunkLiftConfig
    
    config = ChunkLiftConfig.from_env()
    if database is not None:
        config.storage = replace(config.storage, database=database)
    return config


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind host"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port"),
    storage_root: Path = typer.Option(None, "--storage", "-s", help="Object storage directory"),
    database: Path = typer.Option(None, "--database", "-d", help="SQLite database file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Run the upload endpoint."""
    from chunklift import setup_logging
    from chunklift.server import run
    
    config = load_config(database)
    if host:
        config.server = replace(config.server, host=host)
    if port:
        config.server = replace(config.server, port=port)
    if storage_root:
        config.storage = replace(config.storage, root=storage_root)
    
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    setup_logging(logging.DEBUG if verbose else config.log_level)
    console.print(
        f"[green]Serving[/green] http://{config.server.host}:{config.server.port}"
        f"{config.server.base_path}"
    )
    run(config)


@app.command()
def upload(
    files: List[Path] = typer.Argument(..., help="Files to upload", exists=True, dir_okay=False),
    folder: str = typer.Option("", "--folder", "-f", help="Destination folder id (root if empty)"),
    endpoint: str = typer.Option(None, "--endpoint", "-e", help="Upload endpoint URL"),
    uploader: str = typer.Option(None, "--uploader", "-u", help="Uploader identity"),
    parallel: int = typer.Option(None, "--parallel", "-j", help="Concurrent transfers"),
    chunk_mb: int = typer.Option(None, "--chunk-mb", help="Chunk size in MB"),
    checksum: str = typer.Option(None, "--checksum", help="Per-chunk checksum (sha1, sha256, md5)"),
):
    """Upload files through the resumable transfer protocol."""
    from chunklift import UploadClient
    from chunklift.core.config import MB, TransferConfig
    from chunklift.core.upload import TransferItem, TransferStatus
    
    overrides = {}
    if endpoint:
        overrides['endpoint'] = endpoint
    if uploader:
        overrides['uploader_id'] = uploader
    if parallel:
        overrides['max_parallel_uploads'] = parallel
    if chunk_mb:
        overrides['chunk_size'] = chunk_mb * MB
    if checksum:
        overrides['checksum_algorithm'] = checksum
    
    async def do_upload():
        config = replace(TransferConfig.from_env(), **overrides)
        
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console
        ) as progress:
            tasks = {}
            
            def on_progress(item: TransferItem, state):
                task = tasks.get(item.id)
                if task is not None:
                    progress.update(task, completed=item.bytes_transferred)
            
            def on_status(item: TransferItem):
                task = tasks.get(item.id)
                if task is not None:
                    progress.update(task, description=f"{item.name} [{item.status.value}]")
            
            async with UploadClient(config=config) as client:
                client.on('progress', on_progress).on('status', on_status)
                items = client.enqueue(files, folder_id=folder)
                for item in items:
                    tasks[item.id] = progress.add_task(
                        f"{item.name} [{item.status.value}]", total=item.size or 1
                    )
                await client.queue.wait()
        
        table = Table()
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Size", justify="right")
        table.add_column("File version", style="dim")
        table.add_column("Error", style="red")
        for item in items:
            style = "green" if item.status == TransferStatus.COMPLETE else "red"
            table.add_row(
                item.name,
                f"[{style}]{item.status.value}[/{style}]",
                f"{item.size:,}",
                item.file_version_id or "-",
                item.error or "",
            )
        console.print(table)
        
        if any(item.status != TransferStatus.COMPLETE for item in items):
            raise typer.Exit(1)
    
    run_async(do_upload())


@app.command()
def mappings(
    status: str = typer.Option(None, "--status", help="Filter: pending, processing, ready, error"),
    database: Path = typer.Option(None, "--database", "-d", help="SQLite database file"),
):
    """List conversion mappings."""
    from chunklift.core.conversion import ConversionStatus, SQLiteMappingRepository
    from chunklift.core.db import SQLiteDatabase
    
    try:
        wanted = ConversionStatus(status) if status else None
    except ValueError:
        console.print(f"[red]Unknown status: {status}[/red]")
        raise typer.Exit(1)
    
    config = load_config(database)
    with SQLiteDatabase(config.storage.database) as db:
        rows = SQLiteMappingRepository(db).list_mappings(wanted)
    
    if not rows:
        console.print("[yellow]No conversion mappings[/yellow]")
        return
    
    colors = {'pending': 'yellow', 'processing': 'cyan', 'ready': 'green', 'error': 'red'}
    table = Table()
    table.add_column("File version", style="dim")
    table.add_column("Status")
    table.add_column("Remote model")
    table.add_column("Result")
    table.add_column("Updated")
    table.add_column("Error", style="red")
    for mapping in rows:
        color = colors[mapping.status.value]
        table.add_row(
            mapping.file_version_id,
            f"[{color}]{mapping.status.value}[/{color}]",
            mapping.remote_model_id or "-",
            mapping.result_ref or "-",
            mapping.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
            mapping.error_message or "",
        )
    console.print(table)


@app.command()
def reregister(
    session_id: str = typer.Argument(None, help="Terminal session to register again"),
    all_sessions: bool = typer.Option(False, "--all", "-a", help="Retry every unregistered session"),
    database: Path = typer.Option(None, "--database", "-d", help="SQLite database file"),
):
    """Retry catalog registration of completed transfers."""
    from chunklift.server import UploadServer
    from chunklift.core.exceptions import ChunkLiftException
    
    async def do_reregister():
        server = UploadServer(load_config(database))
        failed = 0
        try:
            pending = server.endpoint.list_unregistered()
            if session_id:
                targets = [session_id]
            elif all_sessions:
                targets = [s.session_id for s in pending]
            else:
                if not pending:
                    console.print("[green]No unregistered sessions[/green]")
                    return
                table = Table()
                table.add_column("Session", style="dim")
                table.add_column("File")
                table.add_column("Size", justify="right")
                table.add_column("Error", style="red")
                for session in pending:
                    table.add_row(
                        session.session_id,
                        session.metadata.filename,
                        f"{session.total_length:,}",
                        session.registration_error or "",
                    )
                console.print(table)
                return
            
            for target in targets:
                try:
                    file_version_id = await server.endpoint.retry_completion(target)
                    console.print(f"[green]Registered[/green] {target} -> {file_version_id}")
                except ChunkLiftException as e:
                    failed += 1
                    console.print(f"[red]{target}: {e.message}[/red]")
            if server.bridge is not None:
                await server.bridge.join()
        finally:
            await server.close()
        
        if failed:
            raise typer.Exit(1)
    
    run_async(do_reregister())


@app.command()
def mkdir(
    name: str = typer.Argument(..., help="Folder name"),
    project: str = typer.Option(..., "--project", "-p", help="Project id"),
    database: Path = typer.Option(None, "--database", "-d", help="SQLite database file"),
):
    """Create a catalog folder and print its id."""
    from chunklift.core.catalog import SQLiteCatalog
    from chunklift.core.db import SQLiteDatabase
    
    config = load_config(database)
    with SQLiteDatabase(config.storage.database) as db:
        folder_id = SQLiteCatalog(db).create_folder(name, project)
    console.print(f"[green]Created folder[/green] {name}: {folder_id}")


@app.command()
def files(
    folder: str = typer.Option(None, "--folder", "-f", help="Folder id ('root' for unlinked files)"),
    database: Path = typer.Option(None, "--database", "-d", help="SQLite database file"),
):
    """List registered files."""
    from chunklift.core.catalog import SQLiteCatalog
    from chunklift.core.db import SQLiteDatabase
    
    config = load_config(database)
    with SQLiteDatabase(config.storage.database) as db:
        entries = SQLiteCatalog(db).list_entries(folder)
    
    table = Table()
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Folder")
    table.add_column("File version", style="dim")
    table.add_column("Created")
    for entry in entries:
        table.add_row(
            entry.file.filename,
            f"{entry.version.size:,}",
            entry.folder_id or "root",
            entry.file_version_id,
            entry.version.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
