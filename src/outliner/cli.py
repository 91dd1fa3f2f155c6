"""CLI for the outliner (documents, editing, filters, import/export)."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from loguru import logger

from outliner.config import DATABASE_FILENAME, resolve_data_directory
from outliner.core.database.store import SqliteStorage
from outliner.core.importer.json_reader import ImportValidationError, load_nodes_json, nodes_to_json
from outliner.core.importer.opml import export_opml, parse_opml
from outliner.core.tree.markdown import render_markdown
from outliner.logging_config import add_file_log, configure_logging
from outliner.models.node import Document, Node
from outliner.session import OutlineSession
from outliner.workspace import Workspace

app = typer.Typer(help="Outliner: hierarchical notes with checkboxes, tags and filters.")

T = TypeVar("T")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Database directory"),
]

_SHORT_ID = 8


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_data_dir(data_dir: Path | None) -> Path:
    dst = data_dir or resolve_data_directory()
    dst.mkdir(parents=True, exist_ok=True)
    return dst


def _run(data_dir: Path | None, action: Callable[[Workspace], Awaitable[T]]) -> T:
    """Open the store, load the current document, run one action, flush writes."""
    dst = _open_data_dir(data_dir)
    file_sink = add_file_log(dst)
    storage = SqliteStorage.open(str(dst / DATABASE_FILENAME))

    async def run() -> T:
        ws = Workspace(storage)
        await ws.init(storage.get_current_document_id())
        try:
            result = await action(ws)
        finally:
            await ws.session.flush()
            if ws.current_doc_id is not None:
                storage.set_current_document_id(ws.current_doc_id)
        if ws.session.failed_writes:
            logger.error("{} write(s) could not be saved", len(ws.session.failed_writes))
            raise typer.Exit(1)
        return result

    try:
        return asyncio.run(run())
    finally:
        storage.close()
        logger.remove(file_sink)


def _resolve_document(ws: Workspace, ref: str) -> Document:
    """Find a document by id or title."""
    for doc in ws.documents:
        if ref in (doc.id, doc.title):
            return doc
    logger.error("Document '{}' not found.", ref)
    raise typer.Exit(1)


def _resolve_node(session: OutlineSession, ref: str) -> str:
    """Find a node by full id or a unique id prefix."""
    if ref in session.seq:
        return ref
    found = [n.id for n in session.nodes if n.id.startswith(ref)]
    if len(found) == 1:
        return found[0]
    if found:
        logger.error("Node id '{}' is ambiguous ({} matches).", ref, len(found))
    else:
        logger.error("Node '{}' not found.", ref)
    raise typer.Exit(1)


# --- Documents ---


@app.command()
def documents(data_dir: DataDirOption = None) -> None:
    """List all documents."""

    async def action(ws: Workspace) -> None:
        typer.echo(f"{len(ws.documents)} documents:\n")
        for doc in ws.documents:
            marker = "*" if doc.id == ws.current_doc_id else " "
            typer.echo(f" {marker} {doc.title}  [id={doc.id}]")

    _run(data_dir, action)


@app.command(name="new-document")
def new_document(
    title: str = typer.Argument(..., help="Document title"),
    data_dir: DataDirOption = None,
) -> None:
    """Create a document and make it current."""

    async def action(ws: Workspace) -> None:
        doc = await ws.create_document(title)
        typer.echo(f"Created '{doc.title}' [id={doc.id}]")

    _run(data_dir, action)


@app.command(name="rename-document")
def rename_document(
    document: str = typer.Argument(..., help="Document id or title"),
    title: str = typer.Argument(..., help="New title"),
    data_dir: DataDirOption = None,
) -> None:
    """Rename a document."""

    async def action(ws: Workspace) -> None:
        doc = _resolve_document(ws, document)
        await ws.rename_document(doc.id, title)
        typer.echo(f"Renamed '{doc.title}' to '{title}'")

    _run(data_dir, action)


@app.command(name="delete-document")
def delete_document(
    document: str = typer.Argument(..., help="Document id or title"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a document with all its nodes and saved filters."""

    async def action(ws: Workspace) -> None:
        doc = _resolve_document(ws, document)
        await ws.delete_document(doc.id)
        typer.echo(f"Deleted '{doc.title}'")

    _run(data_dir, action)


@app.command()
def use(
    document: str = typer.Argument(..., help="Document id or title"),
    data_dir: DataDirOption = None,
) -> None:
    """Switch the current document."""

    async def action(ws: Workspace) -> None:
        doc = _resolve_document(ws, document)
        await ws.switch_document(doc.id)
        typer.echo(f"Now editing '{doc.title}'")

    _run(data_dir, action)


# --- Viewing ---


def _format_line(
    node: Node, *, has_children: bool, dimmed: bool, indeterminate: bool, base: int
) -> str:
    indent = "  " * (node.level - base)
    if node.checked:
        box = "[x]"
    elif indeterminate:
        box = "[-]"
    else:
        box = "[ ]"
    fold = "+" if node.collapsed and has_children else "-"
    text = node.text.replace("\n", " / ")
    if dimmed:
        text = f"({text})"
    return f"{indent}{fold} {box} {text}  [{node.id[:_SHORT_ID]}]"


@app.command()
def show(
    search: Annotated[
        str | None,
        typer.Option("--search", "-s", help="Case-insensitive text filter"),
    ] = None,
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Required tag (repeatable), e.g. #work"),
    ] = None,
    hoist: Annotated[
        str | None,
        typer.Option("--hoist", help="Only show this node and its descendants"),
    ] = None,
    saved_filter: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Apply a saved filter (id or label)"),
    ] = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Show the current document as an outline."""

    async def action(ws: Workspace) -> None:
        session = ws.session
        if saved_filter:
            found = ws.find_filter(saved_filter)
            if found is None:
                logger.error("Saved filter '{}' not found.", saved_filter)
                raise typer.Exit(1)
            ws.apply_saved_filter(found)
        if search:
            session.set_search_query(search)
        for tag in tags or []:
            session.toggle_tag(tag if tag.startswith("#") else f"#{tag}")
        if hoist:
            session.set_hoisted_node(_resolve_node(session, hoist))

        visible = session.visible_nodes()
        states = session.indeterminate_states()

        if output_json:
            data = [
                {
                    "id": v.node.id,
                    "text": v.node.text,
                    "level": v.node.level,
                    "checked": v.node.checked,
                    "collapsed": v.node.collapsed,
                    "indeterminate": states.get(v.node.id, False),
                    "hasChildren": v.has_children,
                    "dimmed": v.is_dimmed,
                }
                for v in visible
            ]
            typer.echo(json.dumps(data, indent=2))
            return

        doc = ws.current_document
        typer.echo(f"# {doc.title if doc else session.doc_id}\n")
        if not visible:
            typer.echo("(empty)")
            return
        base = visible[0].node.level if session.hoisted_node_id else 0
        for v in visible:
            typer.echo(
                _format_line(
                    v.node,
                    has_children=v.has_children,
                    dimmed=v.is_dimmed,
                    indeterminate=states.get(v.node.id, False),
                    base=base,
                )
            )

    _run(data_dir, action)


@app.command(name="tags")
def list_tags(data_dir: DataDirOption = None) -> None:
    """List tags in the current document with node counts."""

    async def action(ws: Workspace) -> None:
        found = ws.session.tags()
        if not found:
            typer.echo("No tags.")
            return
        for tag in found:
            typer.echo(f"  {tag.name}  ({tag.count})")

    _run(data_dir, action)


# --- Editing ---


@app.command()
def add(
    text: str = typer.Argument("", help="Node text"),
    after: Annotated[
        str | None,
        typer.Option("--after", "-a", help="Insert as the next sibling of this node"),
    ] = None,
    parent: Annotated[
        str | None,
        typer.Option("--parent", "-p", help="Append as the last child of this node"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Add a node (a new last root unless --after or --parent is given)."""
    if after and parent:
        logger.error("Use either --after or --parent, not both.")
        raise typer.Exit(1)

    async def action(ws: Workspace) -> None:
        session = ws.session
        after_id = _resolve_node(session, after) if after else None
        parent_id = _resolve_node(session, parent) if parent else None
        node_id = session.add_node(after_id=after_id, parent_id=parent_id)
        if node_id is None:
            logger.error("Cannot add a node there (maximum depth reached).")
            raise typer.Exit(1)
        if text:
            session.update_node(node_id, text=text)
        typer.echo(node_id)

    _run(data_dir, action)


@app.command()
def edit(
    node: str = typer.Argument(..., help="Node id (or unique prefix)"),
    text: str = typer.Argument(..., help="New text"),
    data_dir: DataDirOption = None,
) -> None:
    """Replace a node's text."""

    async def action(ws: Workspace) -> None:
        session = ws.session
        node_id = _resolve_node(session, node)
        session.take_snapshot()
        session.update_node(node_id, text=text)

    _run(data_dir, action)


@app.command()
def check(
    nodes: Annotated[list[str] | None, typer.Argument(help="Node ids (or unique prefixes)")] = None,
    all_nodes: bool = typer.Option(False, "--all", help="Toggle every node"),
    data_dir: DataDirOption = None,
) -> None:
    """Toggle checkboxes.

    A single node cascades to its descendants and ancestors. Several nodes are
    all checked, or all unchecked when every one of them is already checked.
    """

    async def action(ws: Workspace) -> None:
        session = ws.session
        if all_nodes:
            session.toggle_check_all()
            return
        ids = [_resolve_node(session, ref) for ref in nodes or []]
        if not ids:
            logger.error("No nodes given.")
            raise typer.Exit(1)
        if len(ids) == 1:
            session.toggle_check(ids[0])
        else:
            session.toggle_check_nodes(ids)

    _run(data_dir, action)


@app.command()
def collapse(
    node: Annotated[str | None, typer.Argument(help="Node id to fold or unfold")] = None,
    all_nodes: bool = typer.Option(False, "--all", help="Collapse every node"),
    expand_all: bool = typer.Option(False, "--expand-all", help="Expand every node"),
    data_dir: DataDirOption = None,
) -> None:
    """Toggle a node's collapsed state, or collapse/expand everything."""

    async def action(ws: Workspace) -> None:
        session = ws.session
        if all_nodes:
            session.collapse_all()
        elif expand_all:
            session.expand_all()
        elif node:
            session.toggle_collapse(_resolve_node(session, node))
        else:
            logger.error("Give a node id, --all or --expand-all.")
            raise typer.Exit(1)

    _run(data_dir, action)


def _structural(
    data_dir: Path | None,
    refs: list[str],
    apply: Callable[[OutlineSession, list[str]], bool],
    what: str,
) -> None:
    async def action(ws: Workspace) -> None:
        session = ws.session
        ids = [_resolve_node(session, ref) for ref in refs]
        if not apply(session, ids):
            typer.echo(f"Nothing to {what}.")

    _run(data_dir, action)


@app.command()
def indent(
    nodes: Annotated[list[str], typer.Argument(help="Node ids (or unique prefixes)")],
    data_dir: DataDirOption = None,
) -> None:
    """Make nodes children of their previous sibling."""
    _structural(data_dir, nodes, OutlineSession.indent_nodes, "indent")


@app.command()
def outdent(
    nodes: Annotated[list[str], typer.Argument(help="Node ids (or unique prefixes)")],
    data_dir: DataDirOption = None,
) -> None:
    """Move nodes out to their grandparent."""
    _structural(data_dir, nodes, OutlineSession.outdent_nodes, "outdent")


@app.command()
def up(
    node: str = typer.Argument(..., help="Node id (or unique prefix)"),
    data_dir: DataDirOption = None,
) -> None:
    """Swap a node with its previous sibling."""
    _structural(data_dir, [node], lambda s, ids: s.move_node_up(ids[0]), "move")


@app.command()
def down(
    node: str = typer.Argument(..., help="Node id (or unique prefix)"),
    data_dir: DataDirOption = None,
) -> None:
    """Swap a node with its next sibling."""
    _structural(data_dir, [node], lambda s, ids: s.move_node_down(ids[0]), "move")


@app.command()
def move(
    node: str = typer.Argument(..., help="Node id (or unique prefix)"),
    parent: Annotated[
        str | None,
        typer.Option("--parent", "-p", help="New parent (omit to move to the top level)"),
    ] = None,
    index: Annotated[
        int | None,
        typer.Option("--index", "-i", help="Position among the new siblings (default: last)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Move a node with its subtree under another parent."""

    async def action(ws: Workspace) -> None:
        session = ws.session
        node_id = _resolve_node(session, node)
        parent_id = _resolve_node(session, parent) if parent else None
        if not session.move_node(node_id, parent_id=parent_id, index=index):
            logger.error("Cannot move a node there.")
            raise typer.Exit(1)

    _run(data_dir, action)


@app.command()
def delete(
    nodes: Annotated[list[str], typer.Argument(help="Node ids (or unique prefixes)")],
    data_dir: DataDirOption = None,
) -> None:
    """Delete nodes together with their descendants."""
    _structural(data_dir, nodes, OutlineSession.delete_nodes, "delete")


# --- Saved filters ---


@app.command()
def filters(data_dir: DataDirOption = None) -> None:
    """List the saved filters of the current document."""

    async def action(ws: Workspace) -> None:
        if not ws.saved_filters:
            typer.echo("No saved filters.")
            return
        for f in ws.saved_filters:
            parts = [f"search={f.query!r}"] if f.query else []
            if f.tags:
                parts.append("tags=" + " ".join(f.tags))
            typer.echo(f"  {f.label}: {', '.join(parts) or '(empty)'}  [id={f.id}]")

    _run(data_dir, action)


@app.command(name="save-filter")
def save_filter(
    label: str = typer.Argument(..., help="Filter name"),
    search: Annotated[
        str | None,
        typer.Option("--search", "-s", help="Case-insensitive text filter"),
    ] = None,
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Required tag (repeatable)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Save a search/tag filter for the current document."""

    async def action(ws: Workspace) -> None:
        session = ws.session
        session.set_search_query(search or "")
        for tag in tags or []:
            session.toggle_tag(tag if tag.startswith("#") else f"#{tag}")
        saved = await ws.save_current_filter(label)
        typer.echo(f"Saved filter '{saved.label}' [id={saved.id}]")

    _run(data_dir, action)


@app.command(name="delete-filter")
def delete_filter(
    key: str = typer.Argument(..., help="Saved filter id or label"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a saved filter."""

    async def action(ws: Workspace) -> None:
        found = ws.find_filter(key)
        if found is None:
            logger.error("Saved filter '{}' not found.", key)
            raise typer.Exit(1)
        await ws.delete_saved_filter(found.id)
        typer.echo(f"Deleted filter '{found.label}'")

    _run(data_dir, action)


# --- Import / export ---


@app.command(name="import")
def import_cmd(
    path: Path = typer.Argument(..., help="JSON or OPML file"),
    trust_parents: bool = typer.Option(
        False, "--trust-parents", help="Keep parentId links from JSON when they form a valid tree"
    ),
    data_dir: DataDirOption = None,
) -> None:
    """Replace the current document's outline with the contents of a file."""
    if not path.exists():
        logger.error("File not found: {}", path)
        raise typer.Exit(1)
    raw = path.read_text(encoding="utf-8")

    async def action(ws: Workspace) -> None:
        doc_id = ws.session.require_loaded()
        try:
            if path.suffix.lower() in (".opml", ".xml"):
                nodes = parse_opml(raw, doc_id=doc_id)
            else:
                nodes = load_nodes_json(raw, doc_id=doc_id, trust_parents=trust_parents)
        except ImportValidationError as e:
            logger.error("Import failed: {}", e)
            raise typer.Exit(1) from e
        count = ws.session.import_nodes(nodes)
        typer.echo(f"Imported {count} nodes")

    _run(data_dir, action)


@app.command()
def export(
    fmt: Annotated[
        str,
        typer.Option("--format", "-F", help="json, markdown or opml"),
    ] = "json",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to this file instead of stdout"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Export the current document."""
    renderers: dict[str, Callable[[list[Node]], str]] = {
        "json": nodes_to_json,
        "markdown": render_markdown,
        "md": render_markdown,
        "opml": export_opml,
    }
    render = renderers.get(fmt.lower())
    if render is None:
        logger.error("Unknown format '{}'. Use json, markdown or opml.", fmt)
        raise typer.Exit(1)

    async def action(ws: Workspace) -> str:
        return render(ws.session.nodes)

    text = _run(data_dir, action)
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Wrote {output}")
