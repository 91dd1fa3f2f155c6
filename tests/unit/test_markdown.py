"""Tests for markdown rendering of outlines."""

from dataclasses import replace

from outliner.core.tree.markdown import render_markdown
from tests.unit.fakes import build_outline


def test_render_checkbox_bullets_with_indentation() -> None:
    nodes = build_outline(("Groceries", 0), ("milk", 1), ("Work", 0))
    nodes[1] = replace(nodes[1], checked=True)
    md = render_markdown(nodes)
    assert md == "# Outline Export\n\n- [ ] Groceries\n  - [x] milk\n- [ ] Work\n"


def test_metadata_suffix_skips_empty_values() -> None:
    nodes = build_outline(("task", 0))
    nodes[0] = replace(nodes[0], metadata={"owner": "sam", "due": "", "est": None, "pts": 3})
    md = render_markdown(nodes, title=None)
    assert md == "- [ ] task (*owner*: sam, *pts*: 3)\n"


def test_multiline_text_continues_indented() -> None:
    nodes = build_outline(("a", 0), ("b", 1))
    nodes[1] = replace(nodes[1], text="first\nsecond")
    md = render_markdown(nodes, title=None)
    assert md == "- [ ] a\n  - [ ] first\n    second\n"


def test_render_subtree_relative_to_root() -> None:
    nodes = build_outline(("a", 0), ("b", 1), ("c", 2), ("d", 1), ("e", 0))
    md = render_markdown(nodes, title=None, root_id="b")
    assert md == "- [ ] b\n  - [ ] c\n"


def test_render_unknown_root_is_empty() -> None:
    assert render_markdown(build_outline(("a", 0)), title=None, root_id="zzz") == ""
