"""File type detection by extension."""

from pathlib import PurePath
from typing import Optional

EXTENSION_MAP = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
    ".csv": "csv",
    ".tsv": "csv",
    ".json": "json",
}

# Hidden directories are skipped as well; these are listed for the
# non-hidden ones and for readability.
SKIP_DIRS = frozenset({
    ".git",
    ".obsidian",
    ".notegraph",
    ".trash",
    "node_modules",
    "__pycache__",
})


def detect_file_type(file_path) -> Optional[str]:
    """Return the document type for a path, or None if unsupported."""
    return EXTENSION_MAP.get(PurePath(file_path).suffix.lower())


def is_supported_file(file_path) -> bool:
    return detect_file_type(file_path) is not None


def should_skip_dir(name: str) -> bool:
    return name.startswith(".") or name in SKIP_DIRS
