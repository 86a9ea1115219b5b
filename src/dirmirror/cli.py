"""CLI for dirmirror."""

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from .config import load_mirror_config, read_files_from
from .contents import list_all_files
from .core import DiffType, SyncPlan
from .errors import DirMirrorError
from .log import configure_logging, resolve_log_level
from .paths import AbsolutePath
from .reconcile import plan_directory_replacement, replace_directory_contents_with_files


app = typer.Typer(help="""\
Replace the contents of destination directories with files from a source
directory. Unchanged files are not rewritten, and destination paths matching
the exclude globs are never replaced or removed.""")

console = Console()
err_console = Console(stderr=True)

_DIFF_STYLES = {
    DiffType.ADDED: "green",
    DiffType.CHANGED_CONTENTS: "yellow",
    DiffType.CHANGED_TYPES: "magenta",
    DiffType.REMOVED: "red",
}


def _resolve_inputs(
    source: Optional[Path],
    destinations: Optional[List[Path]],
    exclude: Optional[List[str]],
    files_from: Optional[Path],
    config_path: Optional[Path],
) -> Tuple[AbsolutePath, List[AbsolutePath], List[str], Optional[List[str]]]:
    """Merge CLI flags over the config file.

    Returns:
        Source, destinations, exclude globs and the explicit file list
        (None means every file in the source)

    Raises:
        typer.Exit: If no source or no destination is given
    """
    config = load_mirror_config(Path.cwd(), config_path)

    source = source or config.source
    if source is None:
        err_console.print("[red]✗[/red] No source directory given")
        raise typer.Exit(1)

    destination_paths = list(destinations) if destinations else config.destinations
    if not destination_paths:
        err_console.print("[red]✗[/red] No destination directories given (use -d)")
        raise typer.Exit(1)

    globs = list(exclude) if exclude else config.exclude

    files_from = files_from or config.files_from
    files = read_files_from(files_from) if files_from is not None else None

    return (
        AbsolutePath(source),
        [AbsolutePath(d) for d in destination_paths],
        globs,
        files,
    )


async def _files_to_copy(source: AbsolutePath, files: Optional[List[str]]) -> List[str]:
    if files is not None:
        return files
    return await list_all_files(source)


def _print_plan(plan: SyncPlan) -> None:
    console.print(f"\n[bold]{plan.destination}[/bold]: {plan.summary()}")
    actions = plan.actions()
    if not actions:
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Change")
    table.add_column("Path")
    for result in actions:
        style = _DIFF_STYLES.get(result.diff_type, "")
        table.add_row(f"[{style}]{result.diff_type.value}[/{style}]", result.path)
    console.print(table)


@app.command()
def sync(
    source: Optional[Path] = typer.Argument(None, help="Directory to copy from"),
    destinations: Optional[List[Path]] = typer.Option(
        None, "--destination", "-d", help="Directory whose contents get replaced (repeatable)"
    ),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-e", help="Glob of destination paths to leave untouched (repeatable)"
    ),
    files_from: Optional[Path] = typer.Option(
        None, "--files-from", help="File listing source paths to copy, one per line (default: all files)"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Configuration file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without changing it"),
    info: bool = typer.Option(False, "--info", help="Log progress of each phase"),
    debug: bool = typer.Option(False, "--debug", help="Log very detailed output"),
):
    """Replace destination contents with the source files."""
    configure_logging(resolve_log_level(info, debug), err_console)

    try:
        source_path, destination_paths, globs, files = _resolve_inputs(
            source, destinations, exclude, files_from, config_path
        )

        status = f"Copying files\n  from - {source_path}"
        for destination in destination_paths:
            status += f"\n  to - {destination}"
        console.print(status)

        async def run():
            files_to_copy = await _files_to_copy(source_path, files)
            if dry_run:
                return await plan_directory_replacement(source_path, destination_paths, files_to_copy, globs)
            return await replace_directory_contents_with_files(source_path, destination_paths, files_to_copy, globs)

        outcomes = asyncio.run(run())
    except (DirMirrorError, OSError) as e:
        err_console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    if dry_run:
        console.print("[dim]Dry run: no changes made[/dim]")
        for plan in outcomes:
            _print_plan(plan)
        return

    for result in outcomes:
        console.print(f"[green]{result.destination}[/green]: {result.summary()}")
    console.print(f"[green]Done copying files from - {source_path}[/green]")


@app.command()
def diff(
    source: Path = typer.Argument(..., help="Directory to copy from"),
    destination: Path = typer.Argument(..., help="Directory to compare against"),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-e", help="Glob of destination paths to leave untouched (repeatable)"
    ),
    files_from: Optional[Path] = typer.Option(
        None, "--files-from", help="File listing source paths to copy, one per line (default: all files)"
    ),
    info: bool = typer.Option(False, "--info", help="Log progress of each phase"),
    debug: bool = typer.Option(False, "--debug", help="Log very detailed output"),
):
    """Show how a destination differs from the source."""
    configure_logging(resolve_log_level(info, debug), err_console)

    try:
        source_path, destination_paths, globs, files = _resolve_inputs(
            source, [destination], exclude, files_from, None
        )

        async def run():
            files_to_copy = await _files_to_copy(source_path, files)
            return await plan_directory_replacement(source_path, destination_paths, files_to_copy, globs)

        plans = asyncio.run(run())
    except (DirMirrorError, OSError) as e:
        err_console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    for plan in plans:
        _print_plan(plan)


if __name__ == "__main__":
    app()
