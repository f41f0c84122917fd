"""Command-line interface for atomic-arrays.

Shell scripts share a store by exporting its path and calling the tool
from the parent and from background children alike::

    export ATOMIC_ARRAYS_INSTANCE_FILE=/tmp/build.$$.txt
    token="$(atomic-arrays add worker-1 running)"
    ( atomic-arrays add worker-2 running ) &
    wait
    atomic-arrays get worker
    atomic-arrays destroy

Records are owned by the invoking process (subshell forks are skipped)
unless ``--pid`` / ``ATOMIC_ARRAYS_PID`` pins an owner explicitly.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from atomic_arrays.config import (
    ENV_INSTANCE_FILE,
    ENV_PID,
    StoreConfig,
    UniquenessScope,
    default_store_path,
)
from atomic_arrays.errors import AtomicArraysError
from atomic_arrays.identity import OwnerMode, ProcessIdentityResolver
from atomic_arrays.records import Record
from atomic_arrays.store import AtomicArrays

app = typer.Typer(
    name="atomic-arrays",
    help="File-backed record store for coordinating shell processes",
    add_completion=False,
)


@dataclass
class CliState:
    """Store handle and pinned owner shared by all commands."""

    store: AtomicArrays
    pid: int | None = None


def _configure_logging(ctx: typer.Context, verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger = logging.getLogger("atomic_arrays")
    package_logger.setLevel(level)
    package_logger.addHandler(handler)
    ctx.call_on_close(lambda: package_logger.removeHandler(handler))


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _fail(error: Exception) -> NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1)


def _print_records(records: list[Record], table: bool) -> None:
    if not table:
        for record in records:
            typer.echo(record.render())
        return

    width = max((len(r.fields) for r in records), default=0)
    grid = Table(show_header=True, header_style="bold")
    grid.add_column("Token", justify="right")
    for i in range(width):
        grid.add_column(f"Field {i + 1}")
    grid.add_column("PID", justify="right")
    for record in records:
        padded = list(record.fields) + [""] * (width - len(record.fields))
        grid.add_row(str(record.token), *padded, str(record.pid))
    Console().print(grid)


@app.callback()
def main(
    ctx: typer.Context,
    file: Annotated[
        Optional[Path],
        typer.Option(
            "--file",
            "-f",
            envvar=ENV_INSTANCE_FILE,
            help="Backing file (default: a file per owning process in the temp directory)",
        ),
    ] = None,
    global_unique: Annotated[
        Optional[bool],
        typer.Option(
            "--global-unique/--per-process",
            help="Only suppress duplicates owned by the same pid (default: per-process)",
        ),
    ] = None,
    pid: Annotated[
        Optional[int],
        typer.Option("--pid", envvar=ENV_PID, help="Owning pid to record instead of the caller"),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="-v for info, -vv for debug output"),
    ] = 0,
) -> None:
    """Add, query and remove records shared between processes."""
    _configure_logging(ctx, verbose)

    try:
        config = StoreConfig.from_env()
    except ValueError as e:
        _fail(e)
    resolver = ProcessIdentityResolver(OwnerMode.CALLER)

    if file is not None:
        config.path = file
    else:
        config.path = default_store_path(pid if pid is not None else resolver.resolve())
    if global_unique is not None:
        config.uniqueness = UniquenessScope.GLOBAL if global_unique else UniquenessScope.PER_PROCESS

    ctx.obj = CliState(store=AtomicArrays(config, resolver=resolver), pid=pid)


@app.command(name="add")
def add_cmd(
    ctx: typer.Context,
    fields: Annotated[list[str], typer.Argument(help="Key fields of the record")],
) -> None:
    """Add a record and print its token."""
    state = _state(ctx)
    try:
        with state.store.resolver.scope(state.pid):
            result = state.store.add(*fields)
    except AtomicArraysError as e:
        _fail(e)

    if result.added:
        typer.echo(str(result.token))


@app.command(name="get")
def get_cmd(
    ctx: typer.Context,
    fields: Annotated[
        Optional[list[str]],
        typer.Argument(help="Leading key fields to match (may be partial)"),
    ] = None,
    table: Annotated[bool, typer.Option("--table", help="Render as a table with tokens")] = False,
) -> None:
    """Print records matching the given key prefix."""
    state = _state(ctx)
    with state.store.resolver.scope(state.pid):
        records = state.store.get(*(fields or []))
    _print_records(records, table)


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    table: Annotated[bool, typer.Option("--table", help="Render as a table with tokens")] = False,
) -> None:
    """Print every record."""
    state = _state(ctx)
    with state.store.resolver.scope(state.pid):
        records = state.store.list()
    _print_records(records, table)


@app.command(name="delete")
def delete_cmd(
    ctx: typer.Context,
    fields: Annotated[
        Optional[list[str]],
        typer.Argument(help="Leading key fields to match (may be partial)"),
    ] = None,
) -> None:
    """Remove matching records and print how many were removed.

    With no fields every record is removed.
    """
    state = _state(ctx)
    try:
        with state.store.resolver.scope(state.pid):
            removed = state.store.delete(*(fields or []))
    except AtomicArraysError as e:
        _fail(e)
    typer.echo(str(removed))


@app.command(name="destroy")
def destroy_cmd(ctx: typer.Context) -> None:
    """Remove the backing file."""
    state = _state(ctx)
    with state.store.resolver.scope(state.pid):
        state.store.destroy()


@app.command(name="path")
def path_cmd(ctx: typer.Context) -> None:
    """Print the backing file path."""
    typer.echo(str(_state(ctx).store.path))
