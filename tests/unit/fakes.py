"""Fake implementations and node builders for testing the outliner."""

from outliner.core.tree.arrange import rebuild_from_levels
from outliner.core.tree.sequence import NodeSequence
from outliner.models.node import Document, MetadataValue, Node, SavedFilter


def make_node(
    node_id: str,
    *,
    level: int = 0,
    rank: float = 0,
    parent_id: str | None = None,
    text: str | None = None,
    checked: bool = False,
    collapsed: bool = False,
    doc_id: str = "doc",
    updated_at: int = 1000,
    metadata: dict[str, MetadataValue] | None = None,
) -> Node:
    """Build a node; text defaults to the id."""
    return Node(
        id=node_id,
        text=node_id if text is None else text,
        level=level,
        rank=rank,
        parent_id=parent_id,
        updated_at=updated_at,
        doc_id=doc_id,
        checked=checked,
        collapsed=collapsed,
        metadata=metadata or {},
    )


def build_outline(*entries: tuple[str, int], doc_id: str = "doc") -> list[Node]:
    """Nodes from ``(id, level)`` pairs in pre-order, parents derived from levels."""
    return rebuild_from_levels([make_node(i, level=lvl, doc_id=doc_id) for i, lvl in entries])


def build_sequence(*entries: tuple[str, int]) -> NodeSequence:
    return NodeSequence(build_outline(*entries))


class FakeStorage:
    """In-memory fake for the storage protocol.

    Records every call for assertions. ``fail_next`` makes that many upcoming
    writes raise ``OSError``.
    """

    def __init__(self, nodes: list[Node] | None = None) -> None:
        self.nodes: dict[str, Node] = {n.id: n for n in nodes or []}
        self.documents: dict[str, Document] = {}
        self.filters: dict[str, SavedFilter] = {}
        self.calls: list[tuple[str, object]] = []
        self.fail_next = 0

    def _maybe_fail(self, name: str) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            msg = f"FakeStorage: simulated failure in {name}"
            raise OSError(msg)

    async def load(self, doc_id: str) -> list[Node]:
        self.calls.append(("load", doc_id))
        return [n for n in self.nodes.values() if n.doc_id == doc_id]

    async def save_node(self, node: Node) -> None:
        self.calls.append(("save_node", node.id))
        self._maybe_fail("save_node")
        self.nodes[node.id] = node

    async def save_nodes(self, nodes: list[Node]) -> None:
        self.calls.append(("save_nodes", [n.id for n in nodes]))
        self._maybe_fail("save_nodes")
        for n in nodes:
            self.nodes[n.id] = n

    async def delete_nodes(self, ids: list[str]) -> None:
        self.calls.append(("delete_nodes", list(ids)))
        self._maybe_fail("delete_nodes")
        for i in ids:
            self.nodes.pop(i, None)

    async def load_documents(self) -> list[Document]:
        self.calls.append(("load_documents", None))
        return list(self.documents.values())

    async def save_document(self, doc: Document) -> None:
        self.calls.append(("save_document", doc.id))
        self.documents[doc.id] = doc

    async def delete_document(self, doc_id: str) -> None:
        self.calls.append(("delete_document", doc_id))
        self.documents.pop(doc_id, None)
        self.nodes = {k: n for k, n in self.nodes.items() if n.doc_id != doc_id}
        self.filters = {k: f for k, f in self.filters.items() if f.doc_id != doc_id}

    async def load_filters(self, doc_id: str) -> list[SavedFilter]:
        self.calls.append(("load_filters", doc_id))
        return [f for f in self.filters.values() if f.doc_id == doc_id]

    async def save_filter(self, saved_filter: SavedFilter) -> None:
        self.calls.append(("save_filter", saved_filter.id))
        self.filters[saved_filter.id] = saved_filter

    async def delete_filter(self, filter_id: str) -> None:
        self.calls.append(("delete_filter", filter_id))
        self.filters.pop(filter_id, None)

    def stored(self, doc_id: str = "doc") -> dict[str, Node]:
        return {k: n for k, n in self.nodes.items() if n.doc_id == doc_id}


def assert_well_formed(nodes: list[Node]) -> None:
    """Check the structure of a whole outline in canonical pre-order.

    Every node is a root at level 0 or sits one level below its parent, which
    is the nearest preceding node one level up (so each subtree is one
    contiguous run). Ids are unique, and sibling ranks strictly increase in
    list order.
    """
    path: list[Node] = []
    ranks: dict[str | None, list[float]] = {}
    seen: set[str] = set()
    for n in nodes:
        assert n.id not in seen, f"duplicate id {n.id!r}"
        seen.add(n.id)
        assert n.level <= len(path), f"{n.id!r} jumps to level {n.level} below {len(path)}"
        del path[n.level :]
        expected = path[-1].id if path else None
        assert n.parent_id == expected, f"{n.id!r} has parent {n.parent_id!r}, not {expected!r}"
        ranks.setdefault(n.parent_id, []).append(n.rank)
        path.append(n)
    for parent_id, group in ranks.items():
        assert group == sorted(set(group)), f"sibling ranks under {parent_id!r}: {group}"
