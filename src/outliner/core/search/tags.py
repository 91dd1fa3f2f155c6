"""Tag index and tag completion."""

import re
from collections import Counter
from collections.abc import Iterable, Sequence

from outliner.config import TAG_SUGGESTION_LIMIT
from outliner.models.node import Node, TagInfo

TAG_PATTERN = re.compile(r"#[\wÀ-ÿ-]+")

# A tag being typed right before the cursor, captured without the '#'.
_PARTIAL_TAG_PATTERN = re.compile(r"#([\wÀ-ÿ-]*)$")


def extract_tags(text: str) -> list[str]:
    return TAG_PATTERN.findall(text)


def collect_tags(nodes: Iterable[Node]) -> list[TagInfo]:
    """Count every occurrence of each tag across the nodes, sorted by tag name."""
    counts: Counter[str] = Counter()
    for node in nodes:
        counts.update(extract_tags(node.text))
    return [TagInfo(name=name, count=count) for name, count in sorted(counts.items())]


def tag_query_at_cursor(text: str, cursor: int) -> str | None:
    """Return the partial tag typed just before ``cursor``, or None if not in a tag."""
    m = _PARTIAL_TAG_PATTERN.search(text[:cursor])
    return m.group(1) if m else None


def suggest_tags(
    tags: Sequence[str], query: str, *, limit: int = TAG_SUGGESTION_LIMIT
) -> list[str]:
    if not query:
        return list(tags[:limit])
    q = query.lower()
    return [t for t in tags if q in t.lower()][:limit]
