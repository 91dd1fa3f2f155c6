"""Parse and produce the JSON node-list interchange format."""

import json
import time
import uuid
from typing import Any

from loguru import logger

from outliner.config import MAX_LEVEL
from outliner.core.tree.arrange import (
    arrange_by_links,
    derive_levels,
    find_cycle_members,
    is_consistent,
    rebuild_from_levels,
    renumber_ranks,
)
from outliner.models.node import MetadataValue, Node


class ImportValidationError(ValueError):
    """The payload does not describe a list of nodes."""


def _require(item: dict[str, Any], key: str, types: tuple[type, ...], where: str) -> Any:
    value = item[key]
    # bool is an int subclass; never accept it for numeric fields
    if not isinstance(value, types) or (isinstance(value, bool) and bool not in types):
        msg = f"{where}: field {key!r} has invalid type {type(value).__name__}"
        raise ImportValidationError(msg)
    return value


def _parse_metadata(raw: Any, where: str) -> dict[str, MetadataValue]:
    if not isinstance(raw, dict):
        msg = f"{where}: metadata must be an object"
        raise ImportValidationError(msg)
    for key, value in raw.items():
        if value is not None and not isinstance(value, (str, int, float, bool)):
            msg = f"{where}: metadata {key!r} must be a string, number, boolean or null"
            raise ImportValidationError(msg)
    return dict(raw)


def _parse_item(item: Any, position: int, *, doc_id: str, now: int) -> Node:
    where = f"node #{position}"
    if not isinstance(item, dict):
        msg = f"{where}: expected an object, got {type(item).__name__}"
        raise ImportValidationError(msg)
    for key in ("text", "level"):
        if key not in item:
            msg = f"{where}: missing field {key!r}"
            raise ImportValidationError(msg)

    text = _require(item, "text", (str,), where)
    level = _require(item, "level", (int,), where)
    if not 0 <= level <= MAX_LEVEL:
        msg = f"{where}: level {level} outside 0..{MAX_LEVEL}"
        raise ImportValidationError(msg)

    node_id = _require(item, "id", (str,), where) if "id" in item else str(uuid.uuid4())
    parent_id = item.get("parentId")
    if parent_id is not None and not isinstance(parent_id, str):
        msg = f"{where}: field 'parentId' must be a string or null"
        raise ImportValidationError(msg)

    return Node(
        id=node_id,
        text=text,
        level=level,
        rank=_require(item, "rank", (int, float), where) if "rank" in item else position,
        parent_id=parent_id,
        updated_at=_require(item, "updatedAt", (int,), where) if "updatedAt" in item else now,
        doc_id=doc_id,
        checked=_require(item, "checked", (bool,), where) if "checked" in item else False,
        collapsed=_require(item, "collapsed", (bool,), where) if "collapsed" in item else False,
        metadata=_parse_metadata(item.get("metadata", {}), where),
    )


def parse_nodes_payload(data: Any, *, doc_id: str, trust_parents: bool = False) -> list[Node]:
    """Validate a decoded JSON payload and turn it into canonical nodes.

    Args:
        data: Decoded JSON, expected to be a list of node objects.
        doc_id: Document the imported nodes will belong to.
        trust_parents: Keep explicit ``parentId`` links when they form a valid
            tree. Otherwise, and whenever they don't, parents are re-derived
            from ``level`` and input order.

    Returns:
        Nodes in canonical pre-order with non-colliding ranks.

    Raises:
        ImportValidationError: If the payload is not a list or any item fails
            validation. Nothing is returned partially.
    """
    if not isinstance(data, list):
        msg = f"Expected a list of nodes, got {type(data).__name__}"
        raise ImportValidationError(msg)

    now = int(time.time() * 1000)
    nodes = [_parse_item(item, i, doc_id=doc_id, now=now) for i, item in enumerate(data)]

    seen: set[str] = set()
    for n in nodes:
        if n.id in seen:
            msg = f"Duplicate node id {n.id!r}"
            raise ImportValidationError(msg)
        seen.add(n.id)

    if trust_parents:
        ordered = derive_levels(arrange_by_links(nodes))
        if not find_cycle_members(nodes) and is_consistent(ordered):
            return renumber_ranks(ordered)
        logger.warning("Imported parent links are not a valid tree, using levels instead")

    return rebuild_from_levels(nodes)


def load_nodes_json(raw: str, *, doc_id: str, trust_parents: bool = False) -> list[Node]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON: {e}"
        raise ImportValidationError(msg) from e
    return parse_nodes_payload(data, doc_id=doc_id, trust_parents=trust_parents)


def dump_nodes(nodes: list[Node]) -> list[dict[str, Any]]:
    """Serialize nodes to the interchange shape (camelCase keys)."""
    return [
        {
            "id": n.id,
            "text": n.text,
            "level": n.level,
            "rank": n.rank,
            "checked": n.checked,
            "collapsed": n.collapsed,
            "parentId": n.parent_id,
            "updatedAt": n.updated_at,
            "docId": n.doc_id,
            "metadata": n.metadata,
        }
        for n in nodes
    ]


def nodes_to_json(nodes: list[Node]) -> str:
    return json.dumps(dump_nodes(nodes), indent=2)
