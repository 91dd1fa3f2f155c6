"""Snapshot-based undo/redo."""

import copy
from collections import deque
from collections.abc import Sequence

from outliner.config import UNDO_LIMIT
from outliner.models.node import Node

Snapshot = tuple[Node, ...]


class UndoManager:
    """Two bounded stacks of full outline snapshots.

    Take one snapshot per logical user action, before mutating. Taking a
    snapshot invalidates the redo stack.
    """

    def __init__(self, *, limit: int = UNDO_LIMIT) -> None:
        self._undo: deque[Snapshot] = deque(maxlen=limit)
        self._redo: deque[Snapshot] = deque(maxlen=limit)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def take_snapshot(self, nodes: Sequence[Node]) -> None:
        self._undo.append(tuple(copy.deepcopy(list(nodes))))
        self._redo.clear()

    def undo(self, current: Sequence[Node]) -> Snapshot | None:
        """Pop the last snapshot; ``current`` moves onto the redo stack."""
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(tuple(copy.deepcopy(list(current))))
        return previous

    def redo(self, current: Sequence[Node]) -> Snapshot | None:
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(tuple(copy.deepcopy(list(current))))
        return following

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
