"""SQLite-backed implementation of the storage protocol."""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger

from outliner.core.database.schema import get_metadata, migrate_schema, set_metadata
from outliner.models.node import Document, Node, SavedFilter

_NODE_COLUMNS = (
    "id, doc_id, parent_id, text, level, rank, checked, collapsed, updated_at, metadata"
)


def _row_to_node(row: tuple) -> Node:
    rank = row[5]
    return Node(
        id=row[0],
        doc_id=row[1],
        parent_id=row[2],
        text=row[3],
        level=row[4],
        rank=int(rank) if float(rank).is_integer() else rank,
        checked=bool(row[6]),
        collapsed=bool(row[7]),
        updated_at=row[8],
        metadata=json.loads(row[9]),
    )


def _node_params(n: Node) -> tuple:
    return (
        n.id, n.doc_id, n.parent_id, n.text, n.level, n.rank,
        int(n.checked), int(n.collapsed), n.updated_at, json.dumps(n.metadata),
    )


class SqliteStorage:
    """Outline persistence in a single SQLite database.

    Every write commits on its own; a failed write is rolled back and the
    error re-raised to the caller.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        migrate_schema(conn)

    @classmethod
    def open(cls, path: str) -> "SqliteStorage":
        logger.debug("Opening outline database {}", path)
        return cls(sqlite3.connect(path))

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self.conn
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

    # --- Nodes ---

    async def load(self, doc_id: str) -> list[Node]:
        rows = self.conn.execute(
            f"SELECT {_NODE_COLUMNS} FROM nodes WHERE doc_id = ?", (doc_id,)
        ).fetchall()
        return [_row_to_node(r) for r in rows]

    async def save_node(self, node: Node) -> None:
        await self.save_nodes([node])

    async def save_nodes(self, nodes: list[Node]) -> None:
        with self._write() as conn:
            conn.executemany(
                f"INSERT OR REPLACE INTO nodes ({_NODE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_node_params(n) for n in nodes],
            )

    async def delete_nodes(self, ids: list[str]) -> None:
        with self._write() as conn:
            conn.executemany("DELETE FROM nodes WHERE id = ?", [(i,) for i in ids])

    # --- Documents ---

    async def load_documents(self) -> list[Document]:
        rows = self.conn.execute(
            "SELECT id, title, updated_at FROM documents ORDER BY rowid"
        ).fetchall()
        return [Document(id=r[0], title=r[1], updated_at=r[2]) for r in rows]

    async def save_document(self, doc: Document) -> None:
        with self._write() as conn:
            conn.execute(
                "INSERT INTO documents (id, title, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET title = excluded.title, "
                "updated_at = excluded.updated_at",
                (doc.id, doc.title, doc.updated_at),
            )

    async def delete_document(self, doc_id: str) -> None:
        with self._write() as conn:
            conn.execute("DELETE FROM nodes WHERE doc_id = ?", (doc_id,))
            conn.execute("DELETE FROM filters WHERE doc_id = ?", (doc_id,))
            conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))

    # --- Saved filters ---

    async def load_filters(self, doc_id: str) -> list[SavedFilter]:
        rows = self.conn.execute(
            "SELECT id, label, query, tags, doc_id FROM filters WHERE doc_id = ? ORDER BY rowid",
            (doc_id,),
        ).fetchall()
        return [
            SavedFilter(id=r[0], label=r[1], query=r[2], tags=tuple(json.loads(r[3])), doc_id=r[4])
            for r in rows
        ]

    async def save_filter(self, saved_filter: SavedFilter) -> None:
        f = saved_filter
        with self._write() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO filters (id, doc_id, label, query, tags) "
                "VALUES (?, ?, ?, ?, ?)",
                (f.id, f.doc_id, f.label, f.query, json.dumps(list(f.tags))),
            )

    async def delete_filter(self, filter_id: str) -> None:
        with self._write() as conn:
            conn.execute("DELETE FROM filters WHERE id = ?", (filter_id,))

    # --- Settings ---

    def get_current_document_id(self) -> str | None:
        return get_metadata(self.conn, "current_doc_id")

    def set_current_document_id(self, doc_id: str) -> None:
        set_metadata(self.conn, "current_doc_id", doc_id)
