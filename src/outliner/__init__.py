"""Hierarchical outline engine with checkboxes, tags, filters and undo."""

from outliner.core.database.store import SqliteStorage
from outliner.models.node import Change, Document, Node, SavedFilter, VisibleNode
from outliner.protocols import StorageProtocol
from outliner.session import OutlineSession, SessionNotLoadedError
from outliner.workspace import Workspace

__all__ = [
    "Change",
    "Document",
    "Node",
    "OutlineSession",
    "SavedFilter",
    "SessionNotLoadedError",
    "SqliteStorage",
    "StorageProtocol",
    "VisibleNode",
    "Workspace",
]
