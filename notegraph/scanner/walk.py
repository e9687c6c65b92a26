"""Vault directory walk."""

from dataclasses import dataclass
from pathlib import Path
from typing import List

from notegraph.scanner.types import detect_file_type, should_skip_dir


@dataclass(frozen=True)
class VaultFile:
    relative_path: str  # forward slashes, relative to the vault root
    absolute_path: Path
    file_type: str


def walk_vault(root: Path) -> List[VaultFile]:
    """List supported files under ``root``, sorted by relative path.

    Uses an explicit stack so deep trees do not grow the call stack.
    Hidden and control directories are not entered. Symlinked directories
    are not followed.
    """
    root = Path(root)
    results: List[VaultFile] = []
    stack = [root]

    while stack:
        current = stack.pop()
        for entry in current.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                if not should_skip_dir(entry.name):
                    stack.append(entry)
            elif entry.is_file():
                file_type = detect_file_type(entry.name)
                if file_type:
                    results.append(
                        VaultFile(
                            relative_path=entry.relative_to(root).as_posix(),
                            absolute_path=entry,
                            file_type=file_type,
                        )
                    )

    results.sort(key=lambda f: f.relative_path)
    return results
