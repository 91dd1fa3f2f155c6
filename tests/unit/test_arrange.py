"""Tests for load repair and structure re-derivation."""

from outliner.config import MAX_LEVEL
from outliner.core.tree.arrange import (
    arrange_by_links,
    duplicate_rank_parents,
    find_cycle_members,
    is_consistent,
    rebuild_from_levels,
    renumber_ranks,
    repair,
)
from tests.unit.fakes import build_outline, make_node


def test_rebuild_from_levels_derives_parents_and_ranks() -> None:
    nodes = rebuild_from_levels(
        [make_node("a"), make_node("b", level=1), make_node("c", level=1), make_node("d")]
    )
    assert [(n.id, n.parent_id, n.rank) for n in nodes] == [
        ("a", None, 0),
        ("b", "a", 0),
        ("c", "a", 1),
        ("d", None, 1),
    ]


def test_rebuild_clamps_level_jumps() -> None:
    nodes = rebuild_from_levels([make_node("a", level=2), make_node("b", level=5)])
    assert [(n.level, n.parent_id) for n in nodes] == [(0, None), (1, "a")]


def test_arrange_orders_by_links_and_rank() -> None:
    shuffled = [
        make_node("b", rank=1),
        make_node("a1", level=1, parent_id="a"),
        make_node("a", rank=0),
    ]
    assert [n.id for n in arrange_by_links(shuffled)] == ["a", "a1", "b"]


def test_repair_fixes_stale_levels_from_parent_links() -> None:
    nodes = [make_node("a"), make_node("b", level=3, parent_id="a")]
    ordered, changed = repair(nodes)
    assert [(n.id, n.level) for n in ordered] == [("a", 0), ("b", 1)]
    assert [n.id for n in changed] == ["b"]


def test_repair_reattaches_orphans_by_level() -> None:
    nodes = [make_node("a"), make_node("lost", level=1, parent_id="gone", rank=0)]
    ordered, changed = repair(nodes)
    lost = next(n for n in ordered if n.id == "lost")
    assert lost.parent_id == "a"
    assert is_consistent(ordered)
    assert lost in changed


def test_repair_breaks_cycles() -> None:
    nodes = [
        make_node("r"),
        make_node("x", level=1, parent_id="y"),
        make_node("y", level=2, parent_id="x"),
    ]
    assert find_cycle_members(nodes) == {"x", "y"}
    ordered, _ = repair(nodes)
    assert is_consistent(ordered)
    assert find_cycle_members(ordered) == set()


def test_repair_leaves_consistent_outline_untouched() -> None:
    nodes = build_outline(("a", 0), ("b", 1), ("c", 0))
    ordered, changed = repair(list(reversed(nodes)))
    assert [n.id for n in ordered] == ["a", "b", "c"]
    assert changed == []


def test_is_consistent_rejects_too_deep_levels() -> None:
    entries = [(f"n{i}", i) for i in range(MAX_LEVEL + 2)]
    nodes = [
        make_node(i, level=lvl, parent_id=f"n{lvl - 1}" if lvl else None) for i, lvl in entries
    ]
    assert not is_consistent(nodes)


def test_renumber_ranks_follows_list_order() -> None:
    nodes = [
        make_node("a", rank=5),
        make_node("b", rank=2),
        make_node("a1", level=1, parent_id="a", rank=9),
    ]
    assert [n.rank for n in renumber_ranks(nodes)] == [0, 1, 0]


def test_repair_renumbers_only_groups_with_duplicate_ranks() -> None:
    nodes = [
        make_node("a", rank=0),
        make_node("b", rank=0),
        make_node("a1", level=1, parent_id="a", rank=3),
        make_node("a2", level=1, parent_id="a", rank=7),
    ]
    ordered, changed = repair(nodes)
    assert [(n.id, n.rank) for n in ordered] == [("a", 0), ("a1", 3), ("a2", 7), ("b", 1)]
    assert [n.id for n in changed] == ["b"]


def test_duplicate_rank_parents() -> None:
    nodes = [
        make_node("a", rank=1),
        make_node("a1", level=1, parent_id="a", rank=0),
        make_node("a2", level=1, parent_id="a", rank=0),
        make_node("b", rank=2),
    ]
    assert duplicate_rank_parents(nodes) == {"a"}
    assert duplicate_rank_parents(build_outline(("x", 0), ("y", 0))) == set()
