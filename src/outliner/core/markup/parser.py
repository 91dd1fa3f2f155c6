"""Inline markup parser: node text to styled segments."""

import re
from dataclasses import replace
from typing import NamedTuple

from outliner.config import PARSE_CACHE_SIZE
from outliner.models.node import TextSegment


class _Rule(NamedTuple):
    name: str
    symbol: str
    pattern: re.Pattern[str]
    styles: tuple[str, ...]


# Order matters: on equal start positions the earlier rule wins.
_RULES: tuple[_Rule, ...] = (
    _Rule("tag", "", re.compile(r"#[\wÀ-ÿ-]+"), ()),
    _Rule("bolditalic", "***", re.compile(r"\*\*\*(.*?)\*\*\*"), ("bold", "italic")),
    _Rule("bold", "**", re.compile(r"\*\*(.*?)\*\*"), ("bold",)),
    _Rule("underline", "__", re.compile(r"__(.*?)__"), ("underline",)),
    _Rule("strikethrough", "~~", re.compile(r"~~(.*?)~~"), ("strikethrough",)),
    _Rule("italic", "*", re.compile(r"\*(.*?)\*"), ("italic",)),
)

_PARSE_CACHE: dict[str, list[TextSegment]] = {}


def _parse(text: str, style: TextSegment) -> list[TextSegment]:
    if not text:
        return []

    best: re.Match[str] | None = None
    best_rule: _Rule | None = None
    for rule in _RULES:
        m = rule.pattern.search(text)
        if m and (best is None or m.start() < best.start()):
            best, best_rule = m, rule

    if best is None or best_rule is None:
        return [replace(style, text=text)]

    result: list[TextSegment] = []
    if best.start() > 0:
        result.extend(_parse(text[: best.start()], style))

    if best_rule.name == "tag":
        result.append(replace(style, text=best.group(0), is_tag=True))
    else:
        inner = replace(style, **{name: True for name in best_rule.styles})
        marker = replace(style, text=best_rule.symbol, is_marker=True)
        result.append(marker)
        result.extend(_parse(best.group(1) or "", inner))
        result.append(marker)

    if best.end() < len(text):
        result.extend(_parse(text[best.end() :], style))
    return result


def parse_markup(text: str) -> list[TextSegment]:
    """Split raw node text into styled segments.

    Never fails: text without recognised markup comes back as a single plain
    segment, and the segment texts always concatenate back to ``text``.
    """
    cached = _PARSE_CACHE.get(text)
    if cached is not None:
        return list(cached)

    segments = _parse(text, TextSegment(text=""))
    if len(_PARSE_CACHE) >= PARSE_CACHE_SIZE:
        # dicts keep insertion order, so the first key is the oldest entry
        del _PARSE_CACHE[next(iter(_PARSE_CACHE))]
    _PARSE_CACHE[text] = segments
    return list(segments)


def clear_parse_cache() -> None:
    _PARSE_CACHE.clear()


def apply_format(text: str, start: int, end: int, symbol: str) -> tuple[str, int, int]:
    """Wrap the selection ``text[start:end]`` in ``symbol``, or unwrap it if already wrapped.

    Returns:
        Tuple of (new text, new selection start, new selection end).
    """
    n = len(symbol)
    selection = text[start:end]
    is_wrapped = start >= n and text[start - n : start] == symbol and text[end : end + n] == symbol
    if is_wrapped:
        return text[: start - n] + selection + text[end + n :], start - n, end - n
    return text[:start] + symbol + selection + symbol + text[end:], start + n, end + n
