"""Put loaded or imported nodes into canonical pre-order and repair the tree.

Storage hands back nodes in no particular order, and imported data may carry
``parent_id`` links that cannot be trusted. Both paths end here.
"""

from collections import defaultdict
from dataclasses import replace

from loguru import logger

from outliner.config import MAX_LEVEL
from outliner.models.node import Node


def find_cycle_members(nodes: list[Node]) -> set[str]:
    """Ids of nodes whose ``parent_id`` chain loops back on itself."""
    parent_of = {n.id: n.parent_id for n in nodes}
    in_cycle: set[str] = set()
    safe: set[str] = set()
    for start in parent_of:
        path: list[str] = []
        on_path: set[str] = set()
        current: str | None = start
        while current is not None and current in parent_of:
            if current in safe or current in in_cycle:
                break
            if current in on_path:
                in_cycle.update(path[path.index(current) :])
                break
            path.append(current)
            on_path.add(current)
            current = parent_of[current]
        safe.update(p for p in path if p not in in_cycle)
    return in_cycle


def arrange_by_links(nodes: list[Node]) -> list[Node]:
    """Order nodes in pre-order following ``parent_id`` links and sibling rank.

    Nodes whose parent is unknown or that sit on a cycle cannot be reached from
    a root; they are appended after the reachable tree in input order, keeping
    their stored level so that a later pass can re-derive their parent.
    """
    input_pos = {n.id: i for i, n in enumerate(nodes)}
    children: defaultdict[str | None, list[Node]] = defaultdict(list)
    for n in nodes:
        children[n.parent_id].append(n)
    for group in children.values():
        group.sort(key=lambda n: (n.rank, input_pos[n.id]))

    result: list[Node] = []
    visited: set[str] = set()
    stack = list(reversed(children[None]))
    while stack:
        node = stack.pop()
        if node.id in visited:
            continue
        visited.add(node.id)
        result.append(node)
        stack.extend(reversed(children.get(node.id, [])))

    detached = [n for n in nodes if n.id not in visited]
    if detached:
        logger.debug(
            "{} node(s) unreachable from a root (missing parent or cycle)",
            len(detached),
        )
        result.extend(detached)
    return result


def derive_levels(ordered: list[Node]) -> list[Node]:
    """Recompute cached levels from ``parent_id`` wherever the parent precedes the node.

    Nodes whose parent has not been seen yet keep their stored level.
    """
    result: list[Node] = []
    level_of: dict[str, int] = {}
    for n in ordered:
        if n.parent_id is None:
            level = 0
        elif n.parent_id in level_of:
            level = level_of[n.parent_id] + 1
        else:
            level = n.level
        level_of[n.id] = level
        result.append(n if n.level == level else replace(n, level=level))
    return result


def is_consistent(ordered: list[Node]) -> bool:
    """Whether every link in a pre-ordered list satisfies the level invariant."""
    seen: dict[str, Node] = {}
    for n in ordered:
        if n.parent_id is None:
            if n.level != 0:
                return False
        else:
            parent = seen.get(n.parent_id)
            if parent is None or n.level != parent.level + 1:
                return False
        if n.level > MAX_LEVEL:
            return False
        seen[n.id] = n
    return True


def rebuild_from_levels(ordered: list[Node]) -> list[Node]:
    """Re-derive ``parent_id`` and ``rank`` from ``level`` and list order alone.

    Each node's parent becomes the nearest preceding node whose level is
    exactly one less. A node may not sit more than one level below its
    predecessor (nor deeper than ``MAX_LEVEL``); such levels are clamped, and a
    first node is always a root. Ranks are renumbered by input order within
    each sibling group.
    """
    result: list[Node] = []
    # last_at_level[k] is the most recent node at level k in the current path
    last_at_level: list[Node] = []
    next_rank: defaultdict[str | None, int] = defaultdict(int)
    for n in ordered:
        level = max(0, min(n.level, len(last_at_level), MAX_LEVEL))
        del last_at_level[level:]
        parent_id = last_at_level[-1].id if level > 0 else None
        rank = next_rank[parent_id]
        next_rank[parent_id] += 1
        fixed = replace(n, level=level, parent_id=parent_id, rank=rank)
        result.append(fixed)
        last_at_level.append(fixed)
    return result


def repair(nodes: list[Node]) -> tuple[list[Node], list[Node]]:
    """Canonicalize nodes loaded from storage.

    Sibling groups whose ranks collide are renumbered in their current order,
    so that every later move has distinct ranks to swap.

    Returns:
        Tuple of (nodes in canonical pre-order, the subset that had to change
        and should be written back).
    """
    before = {n.id: n for n in nodes}
    ordered = derive_levels(arrange_by_links(nodes))
    if not is_consistent(ordered):
        logger.warning("Outline structure inconsistent, re-deriving parents from levels")
        ordered = rebuild_from_levels(ordered)
    clashing = duplicate_rank_parents(ordered)
    if clashing:
        logger.debug("Renumbering {} sibling group(s) with duplicate ranks", len(clashing))
        ordered = renumber_ranks(ordered, parents=clashing)
    changed = [n for n in ordered if before[n.id] != n]
    return ordered, changed


def duplicate_rank_parents(ordered: list[Node]) -> set[str | None]:
    """Parent ids (None for roots) of sibling groups in which two nodes share a rank."""
    seen: set[tuple[str | None, float]] = set()
    clashing: set[str | None] = set()
    for n in ordered:
        key = (n.parent_id, n.rank)
        if key in seen:
            clashing.add(n.parent_id)
        seen.add(key)
    return clashing


def renumber_ranks(
    ordered: list[Node], *, parents: set[str | None] | None = None
) -> list[Node]:
    """Give sibling groups contiguous ranks following list order.

    With ``parents`` only the children of those parents are renumbered.
    """
    next_rank: defaultdict[str | None, int] = defaultdict(int)
    result: list[Node] = []
    for n in ordered:
        if parents is not None and n.parent_id not in parents:
            result.append(n)
            continue
        rank = next_rank[n.parent_id]
        next_rank[n.parent_id] += 1
        result.append(n if n.rank == rank else replace(n, rank=rank))
    return result
