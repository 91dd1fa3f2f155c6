"""Domain models for the outliner."""

from dataclasses import dataclass, field
from typing import Union

MetadataValue = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Document:
    """A named, independently persisted collection of nodes."""

    id: str
    title: str
    updated_at: int


@dataclass(frozen=True)
class Node:
    """A single outline item.

    ``parent_id`` is the source of truth for structure; ``level`` is a cached
    depth recomputed whenever the node is reparented.
    """

    id: str
    text: str
    level: int
    rank: float
    parent_id: str | None
    updated_at: int
    doc_id: str
    checked: bool = False
    collapsed: bool = False
    metadata: dict[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True)
class SavedFilter:
    """A reusable search/tag filter preset for one document."""

    id: str
    label: str
    query: str
    tags: tuple[str, ...]
    doc_id: str


@dataclass(frozen=True)
class VisibleNode:
    """A node as presented by the visibility engine."""

    node: Node
    has_children: bool
    is_dimmed: bool = False


@dataclass(frozen=True)
class TagInfo:
    """A tag and the number of nodes carrying it."""

    name: str
    count: int


@dataclass(frozen=True)
class TextSegment:
    """One styled run of text produced by the markup parser."""

    text: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    is_tag: bool = False
    is_marker: bool = False


@dataclass(frozen=True)
class Change:
    """Outcome of a structural or content operation.

    An empty change means the operation was a no-op.
    """

    saved: tuple[Node, ...] = ()
    deleted: tuple[str, ...] = ()
    node_id: str | None = None

    def __bool__(self) -> bool:
        return bool(self.saved or self.deleted)
