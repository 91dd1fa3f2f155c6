"""Structural and content operations over a node sequence.

Every operation mutates the sequence in place and returns a ``Change`` listing
the nodes to write back and the ids to delete. Unknown ids and moves that would
break the depth bound are silent no-ops that return an empty ``Change``.
"""

import time
import uuid
from dataclasses import replace
from typing import Any

from outliner.config import MAX_LEVEL
from outliner.core.tree.sequence import NodeSequence
from outliner.models.node import Change, MetadataValue, Node

_CONTENT_FIELDS = frozenset({"text", "checked", "collapsed", "metadata"})


def now_ms() -> int:
    return int(time.time() * 1000)


def touch(node: Node, **fields: Any) -> Node:
    """Return ``node`` with ``fields`` applied and ``updated_at`` refreshed."""
    return replace(node, **fields, updated_at=max(now_ms(), node.updated_at))


class _Collector:
    """Accumulates touched nodes, last write per id wins."""

    def __init__(self, seq: NodeSequence) -> None:
        self.seq = seq
        self.saved: dict[str, Node] = {}

    def put(self, node: Node) -> None:
        if node.id in self.seq:
            self.seq.replace(node)
        self.saved[node.id] = node

    def change(self, node_id: str | None = None) -> Change:
        return Change(saved=tuple(self.saved.values()), node_id=node_id)


def _max_depth_below(seq: NodeSequence, i: int, j: int) -> int:
    """Levels between the node at ``i`` and its deepest descendant."""
    return max(seq[k].level for k in range(i, j)) - seq[i].level


def _shifted_block(
    block: list[Node], *, level: int, parent_id: str | None, rank: float
) -> list[Node]:
    delta = level - block[0].level
    head = touch(block[0], level=level, parent_id=parent_id, rank=rank)
    return [head] + [touch(n, level=n.level + delta) for n in block[1:]]


# --- Creation / content ---


def add_node(
    seq: NodeSequence,
    *,
    doc_id: str,
    after_id: str | None = None,
    parent_id: str | None = None,
) -> Change:
    """Create an empty node.

    With ``after_id`` the node becomes the next sibling of that node, placed
    right after its subtree. With ``parent_id`` it is appended as the last
    child. With neither it is appended as the last root.
    """
    out = _Collector(seq)
    if after_id is not None:
        ref = seq.get(after_id)
        if ref is None:
            return Change()
        parent_id = ref.parent_id
        level = ref.level
        rank = ref.rank + 1
        later = sorted(
            (s for s in seq.children(parent_id) if s.rank > ref.rank),
            key=lambda s: s.rank,
        )
        for k, s in enumerate(later):
            out.put(touch(s, rank=ref.rank + 2 + k))
        insert_at = seq.subtree_end(seq.position(after_id))
    elif parent_id is not None:
        parent = seq.get(parent_id)
        if parent is None or parent.level + 1 > MAX_LEVEL:
            return Change()
        level = parent.level + 1
        kids = seq.children(parent_id)
        rank = max(k.rank for k in kids) + 1 if kids else 0
        insert_at = seq.subtree_end(seq.position(parent_id))
    else:
        level = 0
        roots = seq.children(None)
        rank = max(r.rank for r in roots) + 1 if roots else 0
        insert_at = len(seq)

    node = Node(
        id=str(uuid.uuid4()),
        text="",
        level=level,
        rank=rank,
        parent_id=parent_id,
        updated_at=now_ms(),
        doc_id=doc_id,
    )
    seq.insert_block(insert_at, [node])
    out.put(node)
    return out.change(node_id=node.id)


def update_node(seq: NodeSequence, node_id: str, **fields: Any) -> Change:
    """Shallow-merge content fields into a node, refreshing ``updated_at``.

    Structure is changed only through the dedicated operations, so ``level``,
    ``rank``, ``parent_id`` and identity fields are rejected.
    """
    unknown = set(fields) - _CONTENT_FIELDS
    if unknown:
        msg = f"Cannot update fields {sorted(unknown)!r}; allowed: {sorted(_CONTENT_FIELDS)!r}"
        raise ValueError(msg)
    node = seq.get(node_id)
    if node is None:
        return Change()
    out = _Collector(seq)
    out.put(touch(node, **fields))
    return out.change()


def update_metadata(
    seq: NodeSequence, node_id: str, column_id: str, value: MetadataValue
) -> Change:
    node = seq.get(node_id)
    if node is None:
        return Change()
    return update_node(seq, node_id, metadata={**node.metadata, column_id: value})


def toggle_collapse(seq: NodeSequence, node_id: str) -> Change:
    node = seq.get(node_id)
    if node is None:
        return Change()
    return update_node(seq, node_id, collapsed=not node.collapsed)


def set_all_collapsed(seq: NodeSequence, collapsed: bool) -> Change:
    """Collapse or expand every node."""
    out = _Collector(seq)
    for node in seq.nodes:
        if node.collapsed != collapsed:
            out.put(touch(node, collapsed=collapsed))
    return out.change()


# --- Deletion ---


def delete_nodes(seq: NodeSequence, node_ids: list[str]) -> Change:
    """Remove the targets together with their whole subtrees."""
    doomed: dict[str, None] = {}
    for node_id in node_ids:
        i = seq.index_of(node_id)
        if i is None:
            continue
        for k in range(i, seq.subtree_end(i)):
            doomed[seq[k].id] = None
    if not doomed:
        return Change()
    seq.reset(n for n in seq if n.id not in doomed)
    return Change(deleted=tuple(doomed))


def delete_node(seq: NodeSequence, node_id: str) -> Change:
    return delete_nodes(seq, [node_id])


# --- Restructuring ---


def indent_node(seq: NodeSequence, node_id: str) -> Change:
    """Make the node the last child of its previous sibling.

    The sequence order does not change: the previous sibling's subtree already
    ends right where the node begins.
    """
    i = seq.index_of(node_id)
    prev = seq.previous_sibling(node_id)
    if i is None or prev is None:
        return Change()
    j = seq.subtree_end(i)
    if prev.level + 1 + _max_depth_below(seq, i, j) > MAX_LEVEL:
        return Change()

    kids = seq.children(prev.id)
    rank = max(k.rank for k in kids) + 1 if kids else 0
    out = _Collector(seq)
    for n in _shifted_block(seq.nodes[i:j], level=prev.level + 1, parent_id=prev.id, rank=rank):
        out.put(n)
    if prev.collapsed:
        out.put(touch(prev, collapsed=False))
    return out.change()


def outdent_node(seq: NodeSequence, node_id: str) -> Change:
    """Move the node out of its parent, to sit right after the parent's subtree.

    The parent's later siblings are renumbered to follow the node. The node's
    own later siblings stay with the old parent.
    """
    node = seq.get(node_id)
    if node is None or node.parent_id is None:
        return Change()
    parent = seq.get(node.parent_id)
    if parent is None:
        return Change()

    i = seq.position(node_id)
    block = seq.remove_block(i, seq.subtree_end(i))
    out = _Collector(seq)
    later = sorted(
        (s for s in seq.children(parent.parent_id) if s.rank > parent.rank),
        key=lambda s: s.rank,
    )
    for k, s in enumerate(later):
        out.put(touch(s, rank=parent.rank + 2 + k))

    moved = _shifted_block(
        block, level=parent.level, parent_id=parent.parent_id, rank=parent.rank + 1
    )
    seq.insert_block(seq.subtree_end(seq.position(parent.id)), moved)
    for n in moved:
        out.put(n)
    return out.change()


def indent_nodes(seq: NodeSequence, node_ids: list[str]) -> Change:
    return _merge(seq, [indent_node(seq, node_id) for node_id in node_ids])


def outdent_nodes(seq: NodeSequence, node_ids: list[str]) -> Change:
    return _merge(seq, [outdent_node(seq, node_id) for node_id in node_ids])


def _merge(seq: NodeSequence, changes: list[Change]) -> Change:
    ids: dict[str, None] = {}
    for change in changes:
        ids.update((n.id, None) for n in change.saved)
    return Change(saved=tuple(seq[seq.position(node_id)] for node_id in ids if node_id in seq))


def _swap_with(seq: NodeSequence, node: Node, other: Node) -> Change:
    """Swap two adjacent sibling blocks; ``other`` must directly precede ``node``."""
    a = seq.position(other.id)
    b = seq.position(node.id)
    block = seq.remove_block(b, seq.subtree_end(b))
    seq.insert_block(a, block)
    out = _Collector(seq)
    out.put(touch(node, rank=other.rank))
    out.put(touch(other, rank=node.rank))
    return out.change()


def move_node_up(seq: NodeSequence, node_id: str) -> Change:
    node = seq.get(node_id)
    prev = seq.previous_sibling(node_id)
    if node is None or prev is None:
        return Change()
    return _swap_with(seq, node, prev)


def move_node_down(seq: NodeSequence, node_id: str) -> Change:
    node = seq.get(node_id)
    nxt = seq.next_sibling(node_id)
    if node is None or nxt is None:
        return Change()
    return _swap_with(seq, nxt, node)


def move_node(
    seq: NodeSequence,
    node_id: str,
    *,
    parent_id: str | None,
    index: int | None = None,
) -> Change:
    """Reparent a node (with its subtree) to position ``index`` among the new siblings.

    ``index=None`` appends. Moving a node under itself or one of its own
    descendants is refused, as is any move that would exceed ``MAX_LEVEL``.
    """
    node = seq.get(node_id)
    if node is None:
        return Change()
    parent = seq.get(parent_id)
    if parent_id is not None:
        if parent is None or parent_id == node_id or seq.is_descendant(parent_id, node_id):
            return Change()
    level = parent.level + 1 if parent is not None else 0
    i = seq.position(node_id)
    j = seq.subtree_end(i)
    if level + _max_depth_below(seq, i, j) > MAX_LEVEL:
        return Change()

    block = seq.remove_block(i, j)
    siblings = seq.children(parent_id)
    if index is None or index < 0 or index > len(siblings):
        index = len(siblings)
    if index < len(siblings):
        insert_at = seq.position(siblings[index].id)
    elif parent_id is not None:
        insert_at = seq.subtree_end(seq.position(parent_id))
    else:
        insert_at = len(seq)

    out = _Collector(seq)
    moved = _shifted_block(block, level=level, parent_id=parent_id, rank=index)
    seq.insert_block(insert_at, moved)
    for n in moved:
        out.put(n)
    for k, s in enumerate(siblings):
        rank = k if k < index else k + 1
        if s.rank != rank:
            out.put(touch(s, rank=rank))
    return out.change()
