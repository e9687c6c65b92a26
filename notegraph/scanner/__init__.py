"""Vault scanning: walk, fingerprint, extract, sync."""

from notegraph.scanner.extractors import extract_content
from notegraph.scanner.hash import hash_file
from notegraph.scanner.sync import SyncResult, VaultSynchronizer
from notegraph.scanner.types import SKIP_DIRS, detect_file_type
from notegraph.scanner.walk import VaultFile, walk_vault

__all__ = [
    "extract_content",
    "hash_file",
    "SyncResult",
    "VaultSynchronizer",
    "SKIP_DIRS",
    "detect_file_type",
    "VaultFile",
    "walk_vault",
]
