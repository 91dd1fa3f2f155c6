"""Shared test fixtures."""

import sqlite3
from collections.abc import Iterator

import pytest

from outliner.core.database.store import SqliteStorage
from outliner.core.markup.parser import clear_parse_cache
from outliner.core.tree.sequence import NodeSequence
from tests.unit.fakes import FakeStorage, build_outline, build_sequence

# A
#   A1
#     A1a
#   A2
# B
#   B1
# C
SAMPLE_OUTLINE = (
    ("A", 0),
    ("A1", 1),
    ("A1a", 2),
    ("A2", 1),
    ("B", 0),
    ("B1", 1),
    ("C", 0),
)


@pytest.fixture
def seq() -> NodeSequence:
    """The sample outline as a node sequence."""
    return build_sequence(*SAMPLE_OUTLINE)


@pytest.fixture
def storage() -> FakeStorage:
    """Fake storage pre-filled with the sample outline in document 'doc'."""
    return FakeStorage(build_outline(*SAMPLE_OUTLINE))


@pytest.fixture
def sqlite_storage() -> Iterator[SqliteStorage]:
    """SQLite storage on an in-memory database."""
    store = SqliteStorage(sqlite3.connect(":memory:"))
    yield store
    store.close()


@pytest.fixture(autouse=True)
def _fresh_parse_cache() -> Iterator[None]:
    clear_parse_cache()
    yield
    clear_parse_cache()
