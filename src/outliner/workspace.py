"""Documents and saved filters around a single editing session."""

import time
import uuid

from loguru import logger

from outliner.config import DEFAULT_DOCUMENT_ID, DEFAULT_DOCUMENT_TITLE
from outliner.models.node import Document, SavedFilter
from outliner.protocols import StorageProtocol
from outliner.session import OutlineSession


class DocumentNotFoundError(LookupError):
    """No document with the requested id exists."""


def _now_ms() -> int:
    return int(time.time() * 1000)


class Workspace:
    """The list of documents, the one currently open, and its saved filters.

    Exactly one document is loaded into ``session`` at a time. Deleting the
    current document switches to the first remaining one; deleting the last
    one recreates the default document.
    """

    def __init__(self, storage: StorageProtocol, *, session: OutlineSession | None = None) -> None:
        self.storage = storage
        self.session = session or OutlineSession(storage)
        self.documents: list[Document] = []
        self.saved_filters: list[SavedFilter] = []

    @property
    def current_doc_id(self) -> str | None:
        return self.session.doc_id

    @property
    def current_document(self) -> Document | None:
        return self.find_document(self.current_doc_id) if self.current_doc_id else None

    def find_document(self, doc_id: str) -> Document | None:
        return next((d for d in self.documents if d.id == doc_id), None)

    async def init(self, doc_id: str | None = None) -> None:
        """Load the document list and open ``doc_id`` (or the first document).

        An empty store gets the default document.
        """
        self.documents = await self.storage.load_documents()
        if not self.documents:
            await self._create_default()
        if doc_id is None or self.find_document(doc_id) is None:
            doc_id = self.documents[0].id
        await self._open(doc_id)

    async def _create_default(self) -> Document:
        doc = Document(id=DEFAULT_DOCUMENT_ID, title=DEFAULT_DOCUMENT_TITLE, updated_at=_now_ms())
        await self.storage.save_document(doc)
        self.documents.append(doc)
        logger.info("Created default document '{}'", doc.title)
        return doc

    async def _open(self, doc_id: str) -> None:
        await self.session.flush()
        await self.session.load(doc_id)
        self.saved_filters = await self.storage.load_filters(doc_id)

    # --- Documents ---

    async def switch_document(self, doc_id: str) -> None:
        if self.find_document(doc_id) is None:
            msg = f"Unknown document {doc_id!r}"
            raise DocumentNotFoundError(msg)
        if doc_id == self.current_doc_id:
            return
        await self._open(doc_id)

    async def create_document(self, title: str) -> Document:
        """Create a document and switch to it."""
        doc = Document(id=str(uuid.uuid4()), title=title, updated_at=_now_ms())
        await self.storage.save_document(doc)
        self.documents.append(doc)
        await self._open(doc.id)
        return doc

    async def rename_document(self, doc_id: str, title: str) -> Document:
        doc = self.find_document(doc_id)
        if doc is None:
            msg = f"Unknown document {doc_id!r}"
            raise DocumentNotFoundError(msg)
        updated = Document(id=doc.id, title=title, updated_at=max(_now_ms(), doc.updated_at))
        await self.storage.save_document(updated)
        self.documents = [updated if d.id == doc_id else d for d in self.documents]
        return updated

    async def delete_document(self, doc_id: str) -> None:
        """Delete a document with its nodes and saved filters."""
        if self.find_document(doc_id) is None:
            msg = f"Unknown document {doc_id!r}"
            raise DocumentNotFoundError(msg)
        if doc_id == self.current_doc_id:
            # pending writes for this document must land before the cascade
            await self.session.flush()
        await self.storage.delete_document(doc_id)
        self.documents = [d for d in self.documents if d.id != doc_id]
        logger.info("Deleted document {}", doc_id)

        if doc_id == self.current_doc_id:
            if not self.documents:
                await self._create_default()
            await self._open(self.documents[0].id)

    # --- Saved filters ---

    async def save_current_filter(self, label: str) -> SavedFilter:
        """Store the session's current search query and tags under ``label``."""
        doc_id = self.session.require_loaded()
        saved = SavedFilter(
            id=str(uuid.uuid4()),
            label=label,
            query=self.session.search_query,
            tags=tuple(self.session.active_tags),
            doc_id=doc_id,
        )
        await self.storage.save_filter(saved)
        self.saved_filters.append(saved)
        return saved

    async def delete_saved_filter(self, filter_id: str) -> bool:
        if not any(f.id == filter_id for f in self.saved_filters):
            return False
        await self.storage.delete_filter(filter_id)
        self.saved_filters = [f for f in self.saved_filters if f.id != filter_id]
        return True

    def find_filter(self, key: str) -> SavedFilter | None:
        """Look a saved filter up by id or label."""
        return next((f for f in self.saved_filters if key in (f.id, f.label)), None)

    def apply_saved_filter(self, saved: SavedFilter) -> None:
        self.session.set_search_query(saved.query)
        self.session.active_tags = tuple(saved.tags)
