"""One loaded document: its node sequence, undo history, view state and write queue."""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from typing import Any

from loguru import logger

from outliner.config import UNDO_LIMIT, WRITE_RETRIES
from outliner.core.history import UndoManager
from outliner.core.search.tags import collect_tags
from outliner.core.search.visibility import visible_nodes
from outliner.core.tree import checkbox, operations
from outliner.core.tree.arrange import repair
from outliner.core.tree.sequence import NodeSequence
from outliner.models.node import Change, MetadataValue, Node, TagInfo, VisibleNode
from outliner.protocols import StorageProtocol

WriteFactory = Callable[[], Awaitable[None]]


class SessionNotLoadedError(RuntimeError):
    """A mutation was attempted before a document finished loading."""


class OutlineSession:
    """Explicit context for editing one document.

    Every mutation runs synchronously against the in-memory sequence; the
    resulting writes go to storage in the background, one at a time and in
    the order they were issued. A write that keeps failing is logged and
    recorded in ``failed_writes``; the in-memory state is kept as is.
    """

    def __init__(
        self,
        storage: StorageProtocol,
        *,
        undo_limit: int = UNDO_LIMIT,
        write_retries: int = WRITE_RETRIES,
    ) -> None:
        self.storage = storage
        self.write_retries = write_retries
        self.doc_id: str | None = None
        self.seq = NodeSequence()
        self.history = UndoManager(limit=undo_limit)
        self.search_query = ""
        self.active_tags: tuple[str, ...] = ()
        self.hoisted_node_id: str | None = None
        self.failed_writes: list[tuple[str, Exception]] = []
        self._loading = False
        self._drain_task: asyncio.Task[None] | None = None
        self._backlog: deque[tuple[str, WriteFactory]] = deque()

    @property
    def loaded(self) -> bool:
        return self.doc_id is not None and not self._loading

    @property
    def nodes(self) -> list[Node]:
        return self.seq.nodes

    def get(self, node_id: str) -> Node | None:
        return self.seq.get(node_id)

    # --- Loading ---

    async def load(self, doc_id: str) -> None:
        """Load a document, repair its structure, and reset history and view state."""
        self._loading = True
        self.doc_id = None
        try:
            raw = await self.storage.load(doc_id)
        finally:
            self._loading = False

        ordered, changed = repair(raw)
        self.seq.reset(ordered)
        self.doc_id = doc_id
        self.history.clear()
        self.clear_filters()
        self.hoisted_node_id = None
        logger.debug("Loaded {} node(s) for document {}", len(ordered), doc_id)
        if changed:
            logger.info("Repaired {} node(s) in document {}", len(changed), doc_id)
            await self._write(
                f"save {len(changed)} repaired node(s)", lambda: self.storage.save_nodes(changed)
            )

    def require_loaded(self) -> str:
        if self._loading:
            msg = "Document is still loading"
            raise SessionNotLoadedError(msg)
        if self.doc_id is None:
            msg = "No document loaded"
            raise SessionNotLoadedError(msg)
        return self.doc_id

    # --- Write queue ---

    def _schedule(self, description: str, factory: WriteFactory) -> None:
        self._backlog.append((description, factory))
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._start_drain()

    def _start_drain(self) -> None:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        """Run queued writes one at a time in the order they were issued.

        The head of the queue stays in place until its write (retries included)
        is over, so a later write to the same node always lands last.
        """
        while self._backlog:
            description, factory = self._backlog[0]
            await self._write(description, factory)
            self._backlog.popleft()

    async def _write(self, description: str, factory: WriteFactory) -> None:
        for attempt in range(self.write_retries + 1):
            try:
                await factory()
            except Exception as e:
                if attempt < self.write_retries:
                    logger.warning("Write failed ({}), retrying: {}", description, e)
                    continue
                logger.exception("Giving up on write: {}", description)
                self.failed_writes.append((description, e))
            return

    async def flush(self) -> None:
        """Wait until every queued and in-flight write has finished."""
        while self._backlog:
            self._start_drain()
            await self._drain_task

    @property
    def pending_writes(self) -> int:
        return len(self._backlog)

    def _persist(self, change: Change) -> None:
        if change.deleted:
            ids = list(change.deleted)
            self._schedule(f"delete {len(ids)} node(s)", lambda: self.storage.delete_nodes(ids))
        if len(change.saved) == 1:
            node = change.saved[0]
            self._schedule(f"save node {node.id}", lambda: self.storage.save_node(node))
        elif change.saved:
            nodes = list(change.saved)
            self._schedule(f"save {len(nodes)} node(s)", lambda: self.storage.save_nodes(nodes))

    # --- Mutations ---

    def _apply(
        self, op: Callable[..., Change], *args: Any, snapshot: bool = True, **kwargs: Any
    ) -> Change:
        self.require_loaded()
        before = self.seq.nodes
        change = op(self.seq, *args, **kwargs)
        if change:
            if snapshot:
                self.history.take_snapshot(before)
            self._persist(change)
        return change

    def take_snapshot(self) -> None:
        """Record the current state as one undo step (call at action boundaries)."""
        self.require_loaded()
        self.history.take_snapshot(self.seq.nodes)

    def add_node(self, *, after_id: str | None = None, parent_id: str | None = None) -> str | None:
        """Create an empty node; returns its id, or None when nothing was added."""
        doc_id = self.require_loaded()
        change = self._apply(
            operations.add_node, doc_id=doc_id, after_id=after_id, parent_id=parent_id
        )
        return change.node_id

    def update_node(self, node_id: str, **fields: Any) -> bool:
        return bool(self._apply(operations.update_node, node_id, snapshot=False, **fields))

    def update_metadata(self, node_id: str, column_id: str, value: MetadataValue) -> bool:
        change = self._apply(operations.update_metadata, node_id, column_id, value, snapshot=False)
        return bool(change)

    def toggle_collapse(self, node_id: str) -> bool:
        return bool(self._apply(operations.toggle_collapse, node_id, snapshot=False))

    def collapse_all(self) -> bool:
        return bool(self._apply(operations.set_all_collapsed, True))

    def expand_all(self) -> bool:
        return bool(self._apply(operations.set_all_collapsed, False))

    def delete_node(self, node_id: str) -> bool:
        return self.delete_nodes([node_id])

    def delete_nodes(self, node_ids: Sequence[str]) -> bool:
        change = self._apply(operations.delete_nodes, list(node_ids))
        if self.hoisted_node_id in change.deleted:
            self.hoisted_node_id = None
        return bool(change)

    def indent_node(self, node_id: str) -> bool:
        return bool(self._apply(operations.indent_node, node_id))

    def indent_nodes(self, node_ids: Sequence[str]) -> bool:
        return bool(self._apply(operations.indent_nodes, list(node_ids)))

    def outdent_node(self, node_id: str) -> bool:
        return bool(self._apply(operations.outdent_node, node_id))

    def outdent_nodes(self, node_ids: Sequence[str]) -> bool:
        return bool(self._apply(operations.outdent_nodes, list(node_ids)))

    def move_node_up(self, node_id: str) -> bool:
        return bool(self._apply(operations.move_node_up, node_id))

    def move_node_down(self, node_id: str) -> bool:
        return bool(self._apply(operations.move_node_down, node_id))

    def move_node(self, node_id: str, *, parent_id: str | None, index: int | None = None) -> bool:
        return bool(self._apply(operations.move_node, node_id, parent_id=parent_id, index=index))

    def toggle_check(self, node_id: str) -> bool:
        return bool(self._apply(checkbox.toggle_check, node_id))

    def toggle_check_nodes(self, node_ids: Sequence[str]) -> bool:
        return bool(self._apply(checkbox.toggle_check_nodes, list(node_ids)))

    def toggle_check_all(self) -> bool:
        return bool(self._apply(checkbox.toggle_check_all))

    def import_nodes(self, nodes: Sequence[Node]) -> int:
        """Replace the whole outline with ``nodes`` as one undoable action.

        Returns:
            Number of nodes now in the outline.
        """
        doc_id = self.require_loaded()
        owned = [n if n.doc_id == doc_id else replace(n, doc_id=doc_id) for n in nodes]
        ordered, _ = repair(owned)
        new_ids = {n.id for n in ordered}
        removed = tuple(i for i in self.seq.ids() if i not in new_ids)

        self.history.take_snapshot(self.seq.nodes)
        self.seq.reset(ordered)
        self.hoisted_node_id = None
        self._persist(Change(saved=tuple(ordered), deleted=removed))
        logger.info("Imported {} node(s) into document {}", len(ordered), doc_id)
        return len(ordered)

    # --- Undo / redo ---

    def _restore(self, state: Sequence[Node]) -> None:
        restored_ids = {n.id for n in state}
        removed = tuple(i for i in self.seq.ids() if i not in restored_ids)
        self.seq.reset(state)
        if self.hoisted_node_id not in self.seq:
            self.hoisted_node_id = None
        self._persist(Change(saved=tuple(state), deleted=removed))

    def undo(self) -> bool:
        self.require_loaded()
        previous = self.history.undo(self.seq.nodes)
        if previous is None:
            return False
        self._restore(previous)
        return True

    def redo(self) -> bool:
        self.require_loaded()
        following = self.history.redo(self.seq.nodes)
        if following is None:
            return False
        self._restore(following)
        return True

    # --- View state ---

    def set_search_query(self, query: str) -> None:
        self.search_query = query

    def toggle_tag(self, tag: str) -> None:
        if tag in self.active_tags:
            self.active_tags = tuple(t for t in self.active_tags if t != tag)
        else:
            self.active_tags = (*self.active_tags, tag)

    def clear_filters(self) -> None:
        self.search_query = ""
        self.active_tags = ()

    def set_hoisted_node(self, node_id: str | None) -> None:
        self.hoisted_node_id = node_id

    # --- Derived views ---

    def visible_nodes(self) -> list[VisibleNode]:
        return visible_nodes(
            self.seq.nodes,
            search_query=self.search_query,
            active_tags=self.active_tags,
            hoisted_node_id=self.hoisted_node_id,
        )

    def indeterminate_states(self) -> dict[str, bool]:
        return checkbox.indeterminate_states(self.seq.nodes)

    def tags(self) -> list[TagInfo]:
        return collect_tags(self.seq.nodes)
