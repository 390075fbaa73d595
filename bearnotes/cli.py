from __future__ import annotations
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree
from rich.markdown import Markdown
from rich.markup import escape

from .errors import StorageWriteError
from .log import setup_logging
from .models import CLEAR, UNCHANGED, NoteFilter, SetTo
from .services import Storage, filter_notes, note_title, use_system_collation

app = typer.Typer(help="bearnotes — notes, folders and #tags")
console = Console()


@app.callback()
def _boot(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="defaults to BEARNOTES_LOG_LEVEL"),
):
    setup_logging(log_level)
    use_system_collation()
    ctx.obj = Storage.open()


def _storage(ctx: typer.Context) -> Storage:
    return ctx.obj


def _not_found(identifier: str):
    console.print(f"[red]Not found[/]: {identifier}")
    raise typer.Exit(1)


def _bad_argument(e: ValueError):
    console.print(f"[red]Error[/]: {e}")
    raise typer.Exit(2)


def _write_failed(e: StorageWriteError):
    console.print(f"[red]Not saved[/]: {e}")
    raise typer.Exit(1)


# ---------- notes ----------
@app.command()
def add(
    ctx: typer.Context,
    content: str = typer.Option("", "--content", "-c"),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="folder id"),
):
    try:
        n = _storage(ctx).notes.create(content, folder)
    except ValueError as e:
        _bad_argument(e)
    except StorageWriteError as e:
        _write_failed(e)
    console.print(f"[green]Created[/] {n.id}: {escape(note_title(n.content))}")


@app.command("list")
def _list(
    ctx: typer.Context,
    trash: bool = typer.Option(False, "--trash"),
    tag: Optional[str] = typer.Option(None, "--tag"),
    folder: Optional[str] = typer.Option(None, "--folder"),
    search: Optional[str] = typer.Option(None, "--search"),
):
    if trash:
        view = NoteFilter(kind="trash")
    elif tag:
        view = NoteFilter(kind="tag", tag=tag)
    elif folder:
        view = NoteFilter(kind="folder", folder_id=folder)
    else:
        view = NoteFilter()
    notes = filter_notes(_storage(ctx).notes.list_all(), view, search)
    table = Table(title="Trash" if trash else "Notes")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Tags", style="magenta")
    table.add_column("Pinned")
    table.add_column("Updated")
    for n in notes:
        table.add_row(
            n.id, escape(note_title(n.content)), ", ".join(f"#{t}" for t in n.tags),
            "✓" if n.is_pinned else "",
            n.updated_at.isoformat(timespec="minutes"),
        )
    console.print(table)


@app.command()
def show(ctx: typer.Context, identifier: str):
    n = _storage(ctx).notes.get(identifier)
    if not n:
        _not_found(identifier)
    console.rule(f"{n.id}{' (trashed)' if n.is_trashed else ''}")
    if n.tags:
        console.print(f"[dim]tags:[/] {', '.join(n.tags)}")
    if n.folder_id:
        console.print(f"[dim]folder:[/] {n.folder_id}")
    console.print(Markdown(n.content or "_<empty>_"))


@app.command()
def edit(
    ctx: typer.Context,
    identifier: str,
    content: str = typer.Option(..., "--content", "-c"),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="move into this folder"),
    no_folder: bool = typer.Option(False, "--no-folder", help="move to the root"),
):
    if folder and no_folder:
        _bad_argument(ValueError("--folder and --no-folder are exclusive"))
    change = SetTo(folder) if folder else CLEAR if no_folder else UNCHANGED
    try:
        n = _storage(ctx).notes.update(identifier, content, change)
    except ValueError as e:
        _bad_argument(e)
    except StorageWriteError as e:
        _write_failed(e)
    if not n:
        _not_found(identifier)
    console.print(f"[green]Updated[/] {n.id}: {escape(note_title(n.content))}")


@app.command()
def pin(ctx: typer.Context, identifier: str):
    """Toggle the pin on a note."""
    try:
        n = _storage(ctx).notes.toggle_pin(identifier)
    except StorageWriteError as e:
        _write_failed(e)
    if not n:
        _not_found(identifier)
    if n.is_trashed:
        console.print(f"[yellow]Trashed notes can't be pinned[/]: {n.id}")
        return
    console.print(f"[green]Pinned[/] {n.id}" if n.is_pinned else f"[yellow]Unpinned[/] {n.id}")


@app.command()
def trash(ctx: typer.Context, identifier: str):
    try:
        n = _storage(ctx).notes.move_to_trash(identifier)
    except StorageWriteError as e:
        _write_failed(e)
    if not n:
        _not_found(identifier)
    console.print(f"[yellow]Trashed[/] {n.id}")


@app.command()
def restore(ctx: typer.Context, identifier: str):
    try:
        n = _storage(ctx).notes.restore(identifier)
    except StorageWriteError as e:
        _write_failed(e)
    if not n:
        _not_found(identifier)
    console.print(f"[green]Restored[/] {n.id}")


@app.command()
def purge(ctx: typer.Context, identifier: str):
    try:
        removed = _storage(ctx).notes.delete_permanently(identifier)
    except StorageWriteError as e:
        _write_failed(e)
    if not removed:
        _not_found(identifier)
    console.print(f"[red]Purged[/]: {identifier}")


# ---------- folders ----------
@app.command()
def folders(ctx: typer.Context):
    store = _storage(ctx).folders
    tree = Tree("[bold]Folders[/]")

    def grow(branch: Tree, parent_id: Optional[str]):
        for f in store.children(parent_id):
            grow(branch.add(f"{escape(f.name)} [dim]{f.id}[/]"), f.id)

    grow(tree, None)
    console.print(tree)


@app.command()
def mkdir(
    ctx: typer.Context,
    name: str,
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="parent folder id"),
):
    name = name.strip()
    if not name:
        _bad_argument(ValueError("folder name must not be empty"))
    try:
        f = _storage(ctx).folders.create(name, parent)
    except ValueError as e:
        _bad_argument(e)
    except StorageWriteError as e:
        _write_failed(e)
    console.print(f"[green]Created folder[/] {f.id}: {escape(f.name)}")


@app.command("rename-folder")
def rename_folder(ctx: typer.Context, identifier: str, name: str):
    name = name.strip()
    if not name:
        _bad_argument(ValueError("folder name must not be empty"))
    try:
        f = _storage(ctx).folders.rename(identifier, name)
    except StorageWriteError as e:
        _write_failed(e)
    if not f:
        _not_found(identifier)
    console.print(f"[green]Renamed folder[/] {f.id}: {escape(f.name)}")


@app.command()
def rmdir(ctx: typer.Context, identifier: str):
    """Delete a folder; its notes and subfolders move to the root."""
    try:
        removed = _storage(ctx).folders.delete(identifier)
    except StorageWriteError as e:
        _write_failed(e)
    if not removed:
        _not_found(identifier)
    console.print(f"[yellow]Deleted folder[/] {identifier}")


# ---------- tags ----------
@app.command()
def tags(ctx: typer.Context):
    counts = sorted(_storage(ctx).tags.list_tags(), key=lambda t: t.tag)
    table = Table(title="Tags")
    table.add_column("Tag", style="magenta")
    table.add_column("Notes", justify="right")
    for t in counts:
        table.add_row(f"#{t.tag}", str(t.count))
    console.print(table)


@app.command("rename-tag")
def rename_tag(ctx: typer.Context, old: str, new: str):
    try:
        changed = _storage(ctx).tags.rename_tag(old, new)
    except ValueError as e:
        _bad_argument(e)
    except StorageWriteError as e:
        _write_failed(e)
    console.print(f"[green]Renamed[/] #{old} → #{new} in {changed} note(s)")


@app.command("delete-tag")
def delete_tag(ctx: typer.Context, tag: str):
    try:
        changed = _storage(ctx).tags.delete_tag(tag)
    except StorageWriteError as e:
        _write_failed(e)
    console.print(f"[yellow]Removed[/] #{tag} from {changed} note(s)")


def main():
    app()


if __name__ == "__main__":
    main()
