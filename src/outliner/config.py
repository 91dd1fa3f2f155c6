"""Configuration constants for the outliner."""

from pathlib import Path

# Directory with the database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/outliner").expanduser(),
    Path("~/.outliner").expanduser(),
    Path("~/.config/outliner").expanduser(),
]

DATABASE_FILENAME: str = "outline.db"

# Debug log kept beside the database, rotated by size.
LOG_FILENAME: str = "outliner.log"
LOG_ROTATION: str = "1 MB"
LOG_RETENTION: int = 3

# Created on first start when the store has no documents.
DEFAULT_DOCUMENT_ID: str = "default"
DEFAULT_DOCUMENT_TITLE: str = "Main Outline"

# Deepest allowed level (root = 0).
MAX_LEVEL: int = 10

# Snapshots kept on the undo stack.
UNDO_LIMIT: int = 50

# Top-level markup parses kept in memory, FIFO eviction.
PARSE_CACHE_SIZE: int = 1000

# Extra attempts for a failed persistence write before giving up.
WRITE_RETRIES: int = 2

TAG_SUGGESTION_LIMIT: int = 5


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the first candidate if none exist."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
