"""Flat pre-order node sequence with an id index.

The outline tree is stored as a single list in pre-order: a parent always
immediately precedes its descendants and siblings appear in rank order. A
node's subtree is therefore the contiguous slice after it whose levels are
strictly greater than its own.
"""

import copy
from collections.abc import Iterable, Iterator

from outliner.models.node import Node


class NodeSequence:
    """Ordered list of nodes plus an ``id -> index`` lookup."""

    def __init__(self, nodes: Iterable[Node] = ()) -> None:
        self._nodes: list[Node] = list(nodes)
        self._index: dict[str, int] = {}
        self._reindex()

    def _reindex(self, start: int = 0) -> None:
        if start == 0:
            self._index = {}
        for i in range(start, len(self._nodes)):
            self._index[self._nodes[i].id] = i

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def __getitem__(self, i: int) -> Node:
        return self._nodes[i]

    @property
    def nodes(self) -> list[Node]:
        """A shallow copy of the current list."""
        return list(self._nodes)

    def snapshot(self) -> tuple[Node, ...]:
        """A deep copy of the current list, safe to keep across mutations."""
        return tuple(copy.deepcopy(self._nodes))

    def ids(self) -> list[str]:
        return [n.id for n in self._nodes]

    def index_of(self, node_id: str) -> int | None:
        return self._index.get(node_id)

    def position(self, node_id: str) -> int:
        """Index of a node known to be present; raises KeyError otherwise."""
        return self._index[node_id]

    def get(self, node_id: str | None) -> Node | None:
        if node_id is None:
            return None
        i = self._index.get(node_id)
        return self._nodes[i] if i is not None else None

    # --- Tree queries ---

    def subtree_end(self, i: int) -> int:
        """Index one past the last descendant of the node at index ``i``."""
        level = self._nodes[i].level
        j = i + 1
        while j < len(self._nodes) and self._nodes[j].level > level:
            j += 1
        return j

    def subtree(self, node_id: str) -> list[Node]:
        """The node followed by all its descendants, or empty if unknown."""
        i = self._index.get(node_id)
        if i is None:
            return []
        return self._nodes[i : self.subtree_end(i)]

    def descendants(self, node_id: str) -> list[Node]:
        return self.subtree(node_id)[1:]

    def children(self, node_id: str | None) -> list[Node]:
        """Direct children of ``node_id`` (roots for ``None``) in sibling order."""
        if node_id is None:
            return [n for n in self._nodes if n.parent_id is None]
        i = self._index.get(node_id)
        if i is None:
            return []
        child_level = self._nodes[i].level + 1
        return [n for n in self._nodes[i + 1 : self.subtree_end(i)] if n.level == child_level]

    def siblings(self, node_id: str) -> list[Node]:
        """All children of the node's parent, the node included."""
        node = self.get(node_id)
        if node is None:
            return []
        return self.children(node.parent_id)

    def previous_sibling(self, node_id: str) -> Node | None:
        sibs = self.siblings(node_id)
        pos = next((k for k, s in enumerate(sibs) if s.id == node_id), None)
        if not pos:
            return None
        return sibs[pos - 1]

    def next_sibling(self, node_id: str) -> Node | None:
        sibs = self.siblings(node_id)
        pos = next((k for k, s in enumerate(sibs) if s.id == node_id), None)
        if pos is None or pos + 1 >= len(sibs):
            return None
        return sibs[pos + 1]

    def ancestors(self, node_id: str) -> list[Node]:
        """Ancestors from immediate parent up to the root."""
        result: list[Node] = []
        seen: set[str] = {node_id}
        node = self.get(node_id)
        while node is not None and node.parent_id is not None and node.parent_id not in seen:
            node = self.get(node.parent_id)
            if node is None:
                break
            seen.add(node.id)
            result.append(node)
        return result

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        return any(a.id == ancestor_id for a in self.ancestors(node_id))

    # --- Mutation ---

    def replace(self, node: Node) -> None:
        """Swap in a new value for an existing node, keeping its position."""
        self._nodes[self._index[node.id]] = node

    def insert_block(self, i: int, block: list[Node]) -> None:
        self._nodes[i:i] = block
        self._reindex(i)

    def remove_block(self, i: int, j: int) -> list[Node]:
        """Remove and return ``nodes[i:j]``."""
        block = self._nodes[i:j]
        del self._nodes[i:j]
        for n in block:
            del self._index[n.id]
        self._reindex(i)
        return block

    def reset(self, nodes: Iterable[Node]) -> None:
        self._nodes = list(nodes)
        self._reindex()
