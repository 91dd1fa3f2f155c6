"""Tests for the SQLite schema and storage."""

import asyncio
import sqlite3

import pytest

from outliner.core.database.schema import SCHEMA_VERSION, get_schema_version, migrate_schema
from outliner.core.database.store import SqliteStorage
from outliner.models.node import Document, SavedFilter
from outliner.protocols import StorageProtocol
from tests.unit.fakes import FakeStorage, build_outline, make_node


def test_schema_created_with_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) is None
    migrate_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"documents", "nodes", "filters", "metadata"} <= tables


def test_storages_satisfy_protocol(sqlite_storage: SqliteStorage) -> None:
    assert isinstance(sqlite_storage, StorageProtocol)
    assert isinstance(FakeStorage(), StorageProtocol)


def test_nodes_round_trip(sqlite_storage: SqliteStorage) -> None:
    nodes = build_outline(("a", 0), ("b", 1))
    nodes.append(make_node("c", rank=1.5, checked=True, collapsed=True, metadata={"p": 2}))

    async def run() -> list:
        await sqlite_storage.save_nodes(nodes)
        await sqlite_storage.save_node(make_node("other", doc_id="elsewhere"))
        return await sqlite_storage.load("doc")

    loaded = asyncio.run(run())
    assert sorted(loaded, key=lambda n: n.id) == sorted(nodes, key=lambda n: n.id)


def test_save_is_upsert_and_delete_removes(sqlite_storage: SqliteStorage) -> None:
    async def run() -> list:
        await sqlite_storage.save_node(make_node("a", text="old"))
        await sqlite_storage.save_node(make_node("a", text="new"))
        await sqlite_storage.save_node(make_node("b"))
        await sqlite_storage.delete_nodes(["b", "missing"])
        return await sqlite_storage.load("doc")

    loaded = asyncio.run(run())
    assert [(n.id, n.text) for n in loaded] == [("a", "new")]


def test_documents_and_cascade_delete(sqlite_storage: SqliteStorage) -> None:
    async def run() -> tuple:
        await sqlite_storage.save_document(Document(id="d1", title="One", updated_at=1))
        await sqlite_storage.save_document(Document(id="d2", title="Two", updated_at=1))
        await sqlite_storage.save_document(Document(id="d1", title="Renamed", updated_at=2))
        await sqlite_storage.save_node(make_node("n", doc_id="d1"))
        await sqlite_storage.save_filter(
            SavedFilter(id="f", label="L", query="q", tags=("#t",), doc_id="d1")
        )
        await sqlite_storage.delete_document("d1")
        return (
            await sqlite_storage.load_documents(),
            await sqlite_storage.load("d1"),
            await sqlite_storage.load_filters("d1"),
        )

    docs, nodes, filters = asyncio.run(run())
    assert [d.id for d in docs] == ["d2"]
    assert nodes == []
    assert filters == []


def test_filters_round_trip(sqlite_storage: SqliteStorage) -> None:
    saved = SavedFilter(id="f", label="Urgent", query="call", tags=("#a", "#b"), doc_id="doc")

    async def run() -> tuple:
        await sqlite_storage.save_filter(saved)
        first = await sqlite_storage.load_filters("doc")
        await sqlite_storage.delete_filter("f")
        return first, await sqlite_storage.load_filters("doc")

    first, after = asyncio.run(run())
    assert first == [saved]
    assert after == []


def test_current_document_setting(sqlite_storage: SqliteStorage) -> None:
    assert sqlite_storage.get_current_document_id() is None
    sqlite_storage.set_current_document_id("d9")
    assert sqlite_storage.get_current_document_id() == "d9"


def test_failed_write_rolls_back(sqlite_storage: SqliteStorage) -> None:
    sqlite_storage.conn.execute("DROP TABLE nodes")
    with pytest.raises(sqlite3.OperationalError):
        asyncio.run(sqlite_storage.save_node(make_node("a")))
    assert not sqlite_storage.conn.in_transaction
