"""Tests for the outliner CLI."""

import json
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from loguru import logger
from typer.testing import CliRunner

from outliner.cli import app
from outliner.config import DATABASE_FILENAME, LOG_FILENAME

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """The CLI callback points loguru at the runner's captured stderr."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def data(tmp_path: Path) -> Path:
    return tmp_path / "data"


def _ok(data: Path, *args: str) -> str:
    result = runner.invoke(app, [*args, "--data-dir", str(data)])
    assert result.exit_code == 0, result.output
    return result.stdout


def _fails(data: Path, *args: str) -> None:
    result = runner.invoke(app, [*args, "--data-dir", str(data)])
    assert result.exit_code == 1, result.output


def _add(data: Path, text: str, *options: str) -> str:
    return _ok(data, "add", text, *options).strip().splitlines()[-1]


def _show(data: Path, *options: str) -> list[dict[str, Any]]:
    return json.loads(_ok(data, "show", "--json", *options))


def test_documents_creates_database_with_default(data: Path) -> None:
    out = _ok(data, "documents")
    assert "Main Outline" in out
    assert (data / DATABASE_FILENAME).exists()


def test_commands_keep_debug_log_in_data_dir(data: Path) -> None:
    _add(data, "Groceries")
    log = (data / LOG_FILENAME).read_text()
    assert "Created default document 'Main Outline'" in log
    assert "DEBUG" in log
    assert "| INFO     |" in log


def test_add_and_show_outline(data: Path) -> None:
    parent = _add(data, "Groceries")
    _add(data, "milk", "--parent", parent)
    _add(data, "Work")

    shown = _show(data)
    assert [(n["text"], n["level"]) for n in shown] == [("Groceries", 0), ("milk", 1), ("Work", 0)]
    assert shown[0]["hasChildren"]

    out = _ok(data, "show")
    assert "- [ ] Groceries" in out
    assert "  - [ ] milk" in out


def test_add_after_sibling_and_short_ids(data: Path) -> None:
    first = _add(data, "one")
    _add(data, "three")
    _add(data, "two", "--after", first[:8])
    assert [n["text"] for n in _show(data)] == ["one", "two", "three"]


def test_check_cascades_and_indeterminate(data: Path) -> None:
    parent = _add(data, "P")
    child1 = _add(data, "c1", "--parent", parent)
    _add(data, "c2", "--parent", parent)

    _ok(data, "check", child1)
    shown = _show(data)
    assert shown[0]["indeterminate"]
    assert "[-]" in _ok(data, "show")

    _ok(data, "check", parent)
    assert all(n["checked"] for n in _show(data))


def test_edit_collapse_and_structure(data: Path) -> None:
    a = _add(data, "a")
    b = _add(data, "b")
    _ok(data, "edit", b, "bee")
    _ok(data, "indent", b)
    assert [(n["text"], n["level"]) for n in _show(data)] == [("a", 0), ("bee", 1)]

    _ok(data, "collapse", a)
    assert [n["text"] for n in _show(data)] == ["a"]
    _ok(data, "collapse", "--expand-all")

    _ok(data, "outdent", b)
    _ok(data, "up", b)
    assert [n["text"] for n in _show(data)] == ["bee", "a"]
    _ok(data, "down", b)
    _ok(data, "move", b, "--parent", a)
    assert [(n["text"], n["level"]) for n in _show(data)] == [("a", 0), ("bee", 1)]

    _ok(data, "delete", a)
    assert _show(data) == []


def test_noop_structure_change_reports(data: Path) -> None:
    a = _add(data, "a")
    assert "Nothing to indent" in _ok(data, "indent", a)


def test_unknown_node_fails(data: Path) -> None:
    _add(data, "a")
    _fails(data, "check", "no-such-node")


def test_search_tags_and_saved_filters(data: Path) -> None:
    parent = _add(data, "Errands")
    _add(data, "call bank #phone", "--parent", parent)
    _add(data, "Other")

    shown = _show(data, "--search", "bank")
    assert [(n["text"], n["dimmed"]) for n in shown] == [
        ("Errands", True),
        ("call bank #phone", False),
    ]
    assert [n["text"] for n in _show(data, "--tag", "phone")] == ["Errands", "call bank #phone"]
    assert "#phone  (1)" in _ok(data, "tags")

    _ok(data, "save-filter", "Calls", "--tag", "#phone")
    assert "Calls" in _ok(data, "filters")
    assert len(_show(data, "--filter", "Calls")) == 2
    _ok(data, "delete-filter", "Calls")
    assert "No saved filters" in _ok(data, "filters")
    _fails(data, "show", "--filter", "Calls")


def test_hoist(data: Path) -> None:
    parent = _add(data, "Top")
    _add(data, "inner", "--parent", parent)
    _add(data, "Other")
    assert [n["text"] for n in _show(data, "--hoist", parent)] == ["Top", "inner"]


def test_document_management(data: Path) -> None:
    _add(data, "in default")
    assert "Created 'Projects'" in _ok(data, "new-document", "Projects")
    assert _show(data) == []
    _add(data, "in projects")

    out = _ok(data, "documents")
    assert " * Projects" in out

    _ok(data, "use", "Main Outline")
    assert [n["text"] for n in _show(data)] == ["in default"]

    _ok(data, "rename-document", "Projects", "Archive")
    assert "Archive" in _ok(data, "documents")
    _ok(data, "delete-document", "Archive")
    assert "Archive" not in _ok(data, "documents")
    _fails(data, "use", "Archive")


def test_import_json_and_export_formats(data: Path, tmp_path: Path) -> None:
    source = tmp_path / "outline.json"
    source.write_text(
        json.dumps(
            [
                {"id": "a", "text": "Alpha", "level": 0},
                {"id": "b", "text": "Beta", "level": 1, "checked": True},
            ]
        )
    )
    _add(data, "replaced")
    assert "Imported 2 nodes" in _ok(data, "import", str(source))
    assert [n["text"] for n in _show(data)] == ["Alpha", "Beta"]

    exported = json.loads(_ok(data, "export"))
    assert [n["parentId"] for n in exported] == [None, "a"]

    md = _ok(data, "export", "--format", "markdown")
    assert "- [ ] Alpha\n  - [x] Beta" in md

    target = tmp_path / "out.opml"
    _ok(data, "export", "--format", "opml", "--output", str(target))
    assert '<outline text="Beta" _checked="true"' in target.read_text()


def test_import_opml(data: Path, tmp_path: Path) -> None:
    source = tmp_path / "outline.opml"
    source.write_text(
        '<opml version="2.0"><body><outline text="X"><outline text="Y"/></outline></body></opml>'
    )
    _ok(data, "import", str(source))
    assert [(n["text"], n["level"]) for n in _show(data)] == [("X", 0), ("Y", 1)]


def test_invalid_import_fails_without_changes(data: Path, tmp_path: Path) -> None:
    _add(data, "kept")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"text": "x", "level": 99}]))
    _fails(data, "import", str(bad))
    _fails(data, "import", str(tmp_path / "missing.json"))
    assert [n["text"] for n in _show(data)] == ["kept"]


def test_unknown_export_format_fails(data: Path) -> None:
    _fails(data, "export", "--format", "docx")
