"""Checkbox cascade and tri-state (indeterminate) computation."""

from outliner.core.tree.operations import touch
from outliner.core.tree.sequence import NodeSequence
from outliner.models.node import Change, Node


def toggle_check(seq: NodeSequence, node_id: str) -> Change:
    """Flip a node's checkbox and cascade.

    Every descendant is overwritten with the new value. Ancestors are then
    recomputed bottom-up (checked iff all direct children are checked), stopping
    at the first ancestor whose value does not change.
    """
    i = seq.index_of(node_id)
    if i is None:
        return Change()
    new_checked = not seq[i].checked

    saved: dict[str, Node] = {}
    for k in range(i, seq.subtree_end(i)):
        node = seq[k]
        if k == i or node.checked != new_checked:
            updated = touch(node, checked=new_checked)
            seq.replace(updated)
            saved[updated.id] = updated

    current = seq[i]
    while current.parent_id is not None:
        parent = seq.get(current.parent_id)
        if parent is None:
            break
        all_checked = all(c.checked for c in seq.children(parent.id))
        if parent.checked == all_checked:
            break
        parent = touch(parent, checked=all_checked)
        seq.replace(parent)
        saved[parent.id] = parent
        current = parent

    return Change(saved=tuple(saved.values()))


def toggle_check_nodes(seq: NodeSequence, node_ids: list[str]) -> Change:
    """Bulk toggle: uncheck all targets if all are checked, else check all.

    Only the targets change; there is no cascade in the bulk path.
    """
    targets = [n for n in (seq.get(node_id) for node_id in node_ids) if n is not None]
    if not targets:
        return Change()
    new_checked = not all(n.checked for n in targets)
    saved = []
    for node in targets:
        updated = touch(node, checked=new_checked)
        seq.replace(updated)
        saved.append(updated)
    return Change(saved=tuple(saved))


def toggle_check_all(seq: NodeSequence) -> Change:
    return toggle_check_nodes(seq, seq.ids())


def indeterminate_states(nodes: list[Node]) -> dict[str, bool]:
    """Tri-state flag for every node.

    A node is indeterminate when it is unchecked, has children, and those
    children are mixed or any of them is itself indeterminate.
    """
    children: dict[str, list[Node]] = {}
    for n in nodes:
        if n.parent_id is not None:
            children.setdefault(n.parent_id, []).append(n)

    states: dict[str, bool] = {}
    # pre-order reversed visits every child before its parent
    for n in reversed(nodes):
        kids = children.get(n.id)
        if n.checked or not kids:
            states[n.id] = False
            continue
        checked = [k.checked for k in kids]
        mixed = any(checked) and not all(checked)
        states[n.id] = mixed or any(states.get(k.id, False) for k in kids)
    return states


def indeterminate(seq: NodeSequence, node_id: str) -> bool:
    subtree = seq.subtree(node_id)
    return indeterminate_states(subtree).get(node_id, False)
