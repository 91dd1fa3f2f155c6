"""OPML import and export."""

import time
import uuid
import xml.etree.ElementTree as ET

from outliner.core.importer.json_reader import ImportValidationError
from outliner.core.tree.arrange import rebuild_from_levels
from outliner.models.node import Node

EXPORT_TITLE = "Outline Export"


def parse_opml(xml: str, *, doc_id: str) -> list[Node]:
    """Parse an OPML document into canonical nodes.

    Every ``<outline>`` becomes a node with a fresh id; nesting gives the
    level. Text comes from ``text`` falling back to ``title``. ``_checked`` and
    ``_collapsed`` are honoured, as is ``state="closed"``.

    Raises:
        ImportValidationError: If the XML cannot be parsed.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        msg = f"Invalid OPML format: {e}"
        raise ImportValidationError(msg) from e

    body = root.find("body")
    if body is None:
        return []

    now = int(time.time() * 1000)
    nodes: list[Node] = []

    def walk(element: ET.Element, level: int) -> None:
        for outline in element.findall("outline"):
            nodes.append(
                Node(
                    id=str(uuid.uuid4()),
                    text=outline.get("text") or outline.get("title") or "",
                    level=level,
                    rank=0,
                    parent_id=None,
                    updated_at=now,
                    doc_id=doc_id,
                    checked=outline.get("_checked") == "true",
                    collapsed=(
                        outline.get("_collapsed") == "true" or outline.get("state") == "closed"
                    ),
                )
            )
            walk(outline, level + 1)

    walk(body, 0)
    return rebuild_from_levels(nodes)


def export_opml(nodes: list[Node], *, title: str = EXPORT_TITLE) -> str:
    """Serialize nodes (canonical order) as an OPML 2.0 document."""
    opml = ET.Element("opml", version="2.0")
    head = ET.SubElement(opml, "head")
    ET.SubElement(head, "title").text = title
    body = ET.SubElement(opml, "body")

    elements: dict[str, ET.Element] = {}
    for n in nodes:
        parent = elements.get(n.parent_id, body) if n.parent_id else body
        outline = ET.SubElement(parent, "outline", text=n.text)
        if n.checked:
            outline.set("_checked", "true")
        if n.collapsed:
            outline.set("_collapsed", "true")
        elements[n.id] = outline

    ET.indent(opml)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(opml, encoding="unicode")
