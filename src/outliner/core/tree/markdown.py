"""Render outline nodes as markdown."""

import io

from outliner.models.node import Node


def _metadata_suffix(node: Node) -> str:
    parts = [f"*{k}*: {v}" for k, v in node.metadata.items() if v is not None and v != ""]
    return f" ({', '.join(parts)})" if parts else ""


def render_markdown(
    nodes: list[Node],
    *,
    title: str | None = "Outline Export",
    root_id: str | None = None,
) -> str:
    """Render nodes as an indented checkbox bullet list.

    Args:
        nodes: Nodes in canonical pre-order.
        title: Heading written above the list (None = no heading).
        root_id: Render only this node and its descendants, indented relative
            to it.

    Returns:
        Markdown string. Multi-line text continues on indented lines.
    """
    out = io.StringIO()
    if title:
        out.write(f"# {title}\n\n")

    base_level = 0
    inside: set[str] | None = None
    if root_id is not None:
        root = next((n for n in nodes if n.id == root_id), None)
        if root is None:
            return out.getvalue()
        base_level = root.level
        inside = {root.id}

    for n in nodes:
        if inside is not None:
            if n.id != root_id and n.parent_id not in inside:
                continue
            inside.add(n.id)

        indent = "  " * (n.level - base_level)
        checkbox = "[x]" if n.checked else "[ ]"
        lines = n.text.split("\n")
        out.write(f"{indent}- {checkbox} {lines[0]}{_metadata_suffix(n)}\n")
        for line in lines[1:]:
            out.write(f"{indent}  {line}\n")

    return out.getvalue()
