"""Derive the displayed subset of an outline from filters, hoist and fold state."""

from collections.abc import Sequence

from outliner.models.node import Node, VisibleNode


def is_filter_active(search_query: str, active_tags: Sequence[str]) -> bool:
    return bool(search_query) or len(active_tags) > 0


def _matches(node: Node, query: str, tags: Sequence[str]) -> bool:
    text_match = not query or query in node.text.lower()
    tag_match = all(t in node.text for t in tags)
    return text_match and tag_match


def visible_nodes(
    nodes: Sequence[Node],
    *,
    search_query: str = "",
    active_tags: Sequence[str] = (),
    hoisted_node_id: str | None = None,
) -> list[VisibleNode]:
    """Compute the ordered list of nodes to display.

    With a search query or active tags, every match is shown together with its
    ancestors (dimmed, for context) regardless of fold state. Without a filter,
    nodes under a collapsed ancestor are hidden. A hoisted node restricts
    either view to itself and its descendants.

    Args:
        nodes: Full outline in canonical order.
        search_query: Case-insensitive substring to look for in node text.
        active_tags: Tags that must all appear literally in node text.
        hoisted_node_id: Optional node to focus on.

    Returns:
        Visible nodes in canonical order with has-children and dimmed flags.
    """
    by_id = {n.id: n for n in nodes}
    query = search_query.lower()
    filtering = is_filter_active(search_query, active_tags)

    parents_with_children = {n.parent_id for n in nodes if n.parent_id is not None}

    matches: set[str] = set()
    ancestors: set[str] = set()
    if filtering:
        matches = {n.id for n in nodes if _matches(n, query, active_tags)}
        for node_id in matches:
            parent_id = by_id[node_id].parent_id
            while parent_id is not None and parent_id not in ancestors:
                ancestors.add(parent_id)
                parent = by_id.get(parent_id)
                parent_id = parent.parent_id if parent is not None else None

    def parent_chain(node: Node) -> list[Node]:
        chain: list[Node] = []
        seen = {node.id}
        parent = by_id.get(node.parent_id) if node.parent_id is not None else None
        while parent is not None and parent.id not in seen:
            chain.append(parent)
            seen.add(parent.id)
            parent = by_id.get(parent.parent_id) if parent.parent_id is not None else None
        return chain

    result: list[VisibleNode] = []
    for node in nodes:
        chain: list[Node] | None = None
        if hoisted_node_id is not None and node.id != hoisted_node_id:
            chain = parent_chain(node)
            if not any(p.id == hoisted_node_id for p in chain):
                continue

        if filtering:
            if node.id not in matches and node.id not in ancestors:
                continue
        else:
            if chain is None:
                chain = parent_chain(node)
            if any(p.collapsed for p in chain):
                continue

        result.append(
            VisibleNode(
                node=node,
                has_children=node.id in parents_with_children,
                is_dimmed=filtering and node.id not in matches,
            )
        )
    return result
