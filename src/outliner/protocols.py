"""Protocols for dependency injection in the outline engine."""

from typing import Protocol, runtime_checkable

from outliner.models.node import Document, Node, SavedFilter


@runtime_checkable
class StorageProtocol(Protocol):
    """Asynchronous persistence backend, keyed by document id.

    Saves are idempotent upserts by id.
    """

    async def load(self, doc_id: str) -> list[Node]:
        """Return every node of a document, in no particular order."""
        ...

    async def save_node(self, node: Node) -> None:
        ...

    async def save_nodes(self, nodes: list[Node]) -> None:
        ...

    async def delete_nodes(self, ids: list[str]) -> None:
        ...

    async def load_documents(self) -> list[Document]:
        ...

    async def save_document(self, doc: Document) -> None:
        ...

    async def delete_document(self, doc_id: str) -> None:
        """Delete a document together with its nodes and saved filters."""
        ...

    async def load_filters(self, doc_id: str) -> list[SavedFilter]:
        ...

    async def save_filter(self, saved_filter: SavedFilter) -> None:
        ...

    async def delete_filter(self, filter_id: str) -> None:
        ...
