"""CLI entry point for notevault.

Commands:
    notevault init                 — Create the base directory and default vault
    notevault vault create|list|delete
    notevault note write|read|delete|list
    notevault search               — Ranked full-text search in a vault
    notevault links / backlinks    — Outgoing references / referencing notes
    notevault render / plain       — Markdown → HTML / plain text
    notevault reindex / verify     — Rebuild or check the in-memory index
    notevault call                 — Run one command-surface command, print JSON
    notevault serve                — JSON-lines command surface on stdin/stdout
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler

from notevault import __version__
from notevault.errors import NoteVaultError

if TYPE_CHECKING:
    from notevault.service import KnowledgeBase

console = Console()
# Logs go to stderr so `call` and `serve` keep stdout pure JSON
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def _fail(e: NoteVaultError) -> NoReturn:
    console.print(f"[red]✗[/red] {e.kind}: {e.message}")
    sys.exit(1)


def _open_kb(ctx: click.Context) -> KnowledgeBase:
    from notevault.config import load_settings
    from notevault.service import KnowledgeBase

    if "kb" not in ctx.obj:
        settings = load_settings(ctx.obj.get("config_path"))
        try:
            ctx.obj["kb"] = KnowledgeBase.open(settings)
        except NoteVaultError as e:
            _fail(e)
    return ctx.obj["kb"]


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """notevault — local knowledge base for Markdown vaults."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the base directory and the default vault."""
    kb = _open_kb(ctx)
    storage = kb.settings.storage
    console.print(f"[green]✓[/green] notevault initialized at {storage.base_path}")
    for vault in kb.vaults.vaults():
        console.print(f"  {vault.name}: {vault.root_path}")


# --- Vaults ---


@cli.group()
def vault() -> None:
    """Create, list and delete vaults."""


@vault.command("create")
@click.argument("name")
@click.option("--base-path", type=click.Path(file_okay=False), help="Parent directory")
@click.pass_context
def vault_create(ctx: click.Context, name: str, base_path: str | None) -> None:
    kb = _open_kb(ctx)
    try:
        created = kb.create_vault(name, base_path)
    except NoteVaultError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Created vault '{created.name}' at {created.root_path}")


@vault.command("list")
@click.pass_context
def vault_list(ctx: click.Context) -> None:
    from rich.table import Table

    kb = _open_kb(ctx)
    table = Table(show_header=True, header_style="bold magenta", box=None)
    table.add_column("Vault")
    table.add_column("Notes", justify="right")
    table.add_column("Root")
    for v in kb.vaults.vaults():
        table.add_row(v.name, str(len(kb.list_notes(v.name))), str(v.root_path))
    console.print(table)


@vault.command("delete")
@click.argument("name")
@click.confirmation_option(prompt="Delete the vault and every note in it?")
@click.pass_context
def vault_delete(ctx: click.Context, name: str) -> None:
    kb = _open_kb(ctx)
    try:
        kb.delete_vault(name)
    except NoteVaultError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Deleted vault '{name}'")


# --- Notes ---


@cli.group()
def note() -> None:
    """Write, read, delete and list notes."""


@note.command("write")
@click.argument("vault_name", metavar="VAULT")
@click.argument("title")
@click.option("--content", help="Note content (default: read from --file or stdin)")
@click.option("--file", "source", type=click.Path(dir_okay=False), help="Read content from file")
@click.pass_context
def note_write(
    ctx: click.Context, vault_name: str, title: str, content: str | None, source: str | None
) -> None:
    kb = _open_kb(ctx)
    if content is None:
        content = _read_source(source or "-")
    try:
        kb.create_note(vault_name, title, content)
    except NoteVaultError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Saved '{title}' in '{vault_name}'")


@note.command("read")
@click.argument("vault_name", metavar="VAULT")
@click.argument("title")
@click.pass_context
def note_read(ctx: click.Context, vault_name: str, title: str) -> None:
    kb = _open_kb(ctx)
    try:
        content = kb.read_note(vault_name, title)
    except NoteVaultError as e:
        _fail(e)
    click.echo(content, nl=False)


@note.command("delete")
@click.argument("vault_name", metavar="VAULT")
@click.argument("title")
@click.pass_context
def note_delete(ctx: click.Context, vault_name: str, title: str) -> None:
    kb = _open_kb(ctx)
    try:
        kb.delete_note(vault_name, title)
    except NoteVaultError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Deleted '{title}' from '{vault_name}'")


@note.command("list")
@click.argument("vault_name", metavar="VAULT")
@click.pass_context
def note_list(ctx: click.Context, vault_name: str) -> None:
    kb = _open_kb(ctx)
    try:
        titles = kb.list_notes(vault_name)
    except NoteVaultError as e:
        _fail(e)
    for title in titles:
        click.echo(title)


# --- Search, links, rendering ---


@cli.command()
@click.argument("vault_name", metavar="VAULT")
@click.argument("query")
@click.option("-n", "--limit", type=click.IntRange(min=1), default=None, help="Max results")
@click.pass_context
def search(ctx: click.Context, vault_name: str, query: str, limit: int | None) -> None:
    """Ranked full-text search."""
    kb = _open_kb(ctx)
    try:
        hits = kb.search_hits(vault_name, query, limit)
    except NoteVaultError as e:
        _fail(e)
    if not hits:
        console.print("[dim]No matches.[/dim]")
        return
    for hit in hits:
        console.print(f"  [cyan]{hit.score:>4}[/cyan]  {hit.title}")


@cli.command()
@click.argument("vault_name", metavar="VAULT")
@click.argument("title")
@click.pass_context
def links(ctx: click.Context, vault_name: str, title: str) -> None:
    """List the titles a note references, marking unresolved ones."""
    kb = _open_kb(ctx)
    try:
        targets = kb.extract_links(vault_name, title)
        existing = {t.casefold() for t in kb.list_notes(vault_name)}
    except NoteVaultError as e:
        _fail(e)
    for target in targets:
        marker = "" if target.casefold() in existing else "  [yellow](unresolved)[/yellow]"
        console.print(f"  {target}{marker}")


@cli.command()
@click.argument("vault_name", metavar="VAULT")
@click.argument("title")
@click.pass_context
def backlinks(ctx: click.Context, vault_name: str, title: str) -> None:
    """List notes that reference TITLE."""
    kb = _open_kb(ctx)
    try:
        sources = kb.backlinks(vault_name, title)
    except NoteVaultError as e:
        _fail(e)
    for source in sources:
        click.echo(source)


@cli.command()
@click.argument("source", default="-")
@click.pass_context
def render(ctx: click.Context, source: str) -> None:
    """Render Markdown from SOURCE (file or '-') to sanitized HTML."""
    from notevault.config import load_settings
    from notevault.render import MarkupRenderer

    renderer = MarkupRenderer(load_settings(ctx.obj.get("config_path")).render)
    click.echo(renderer.render(_read_source(source)))


@cli.command()
@click.argument("source", default="-")
@click.pass_context
def plain(ctx: click.Context, source: str) -> None:
    """Print the plain-text projection of SOURCE (file or '-')."""
    from notevault.config import load_settings
    from notevault.render import MarkupRenderer

    renderer = MarkupRenderer(load_settings(ctx.obj.get("config_path")).render)
    click.echo(renderer.plain_text(_read_source(source)))


# --- Maintenance ---


@cli.command()
@click.argument("vault_name", metavar="VAULT", required=False)
@click.pass_context
def reindex(ctx: click.Context, vault_name: str | None) -> None:
    """Rebuild index and link graph from disk (all vaults by default)."""
    kb = _open_kb(ctx)
    names = [vault_name] if vault_name else kb.list_vaults()
    for name in names:
        try:
            count = kb.reindex_vault(name)
        except NoteVaultError as e:
            _fail(e)
        stats = kb.index.stats(name)
        console.print(f"[green]✓[/green] {name}: {count} notes, {stats['terms']} terms")


@cli.command()
@click.argument("vault_name", metavar="VAULT", required=False)
@click.pass_context
def verify(ctx: click.Context, vault_name: str | None) -> None:
    """Check that the index matches a from-scratch rebuild."""
    kb = _open_kb(ctx)
    names = [vault_name] if vault_name else kb.list_vaults()
    failed = False
    for name in names:
        try:
            ok = kb.verify_index(name)
        except NoteVaultError as e:
            _fail(e)
        if ok:
            console.print(f"[green]✓[/green] {name}: index consistent")
        else:
            failed = True
            console.print(f"[red]✗[/red] {name}: index diverged from notes")
    if failed:
        sys.exit(1)


# --- Command surface ---


@cli.command()
@click.argument("command")
@click.argument("payload", default="{}")
@click.pass_context
def call(ctx: click.Context, command: str, payload: str) -> None:
    """Run COMMAND with a JSON PAYLOAD and print the JSON response."""
    from notevault.commands import CommandResponse, CommandSurface
    from notevault.errors import InvalidInput

    surface = CommandSurface(_open_kb(ctx))
    try:
        args = json.loads(payload)
    except json.JSONDecodeError as e:
        response = CommandResponse.failure(InvalidInput(f"Payload is not JSON: {e}"))
    else:
        response = surface.dispatch(command, args)
    click.echo(response.model_dump_json())
    if not response.ok:
        sys.exit(1)


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Serve the command surface as JSON lines on stdin/stdout.

    Each request line is {"id": ..., "command": "...", "args": {...}}; each
    response line echoes the id alongside ok/data/error.
    """
    from notevault.commands import CommandResponse, CommandSurface
    from notevault.errors import InvalidInput

    surface = CommandSurface(_open_kb(ctx))
    logging.getLogger(__name__).info("Serving %d commands on stdio", len(surface.command_names()))
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        request_id = None
        try:
            message = json.loads(line)
            if not isinstance(message, dict):
                raise InvalidInput("Request must be a JSON object")
            request_id = message.get("id")
            response = surface.dispatch(str(message.get("command", "")), message.get("args"))
        except json.JSONDecodeError as e:
            response = CommandResponse.failure(InvalidInput(f"Request is not JSON: {e}"))
        except InvalidInput as e:
            response = CommandResponse.failure(e)
        out = {"id": request_id, **response.model_dump(mode="json")}
        sys.stdout.write(json.dumps(out) + "\n")
        sys.stdout.flush()


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
