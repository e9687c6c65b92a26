"""
VaultSynchronizer - bring the document store in line with the vault.

Each file is classified as new, modified (fingerprint changed), unchanged
or, for stored file documents not seen during the walk, deleted. Each
mutation is its own transaction; a read error aborts the pass.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from notegraph.audit import log_audit
from notegraph.core.db import GraphDatabase
from notegraph.core.documents import DocumentStore
from notegraph.scanner.extractors import extract_content
from notegraph.scanner.hash import hash_file
from notegraph.scanner.walk import VaultFile, walk_vault


@dataclass
class SyncResult:
    new: int = 0
    modified: int = 0
    unchanged: int = 0
    deleted: int = 0
    total: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.new or self.modified or self.deleted)


class VaultSynchronizer:
    """Incremental sync of vault files into the document store."""

    def __init__(self, db: GraphDatabase):
        self.db = db
        self.documents = DocumentStore(db)

    def sync(
        self,
        root: Path,
        on_file: Optional[Callable[[VaultFile, str], None]] = None,
    ) -> SyncResult:
        """Walk ``root`` and apply new/modified/deleted changes.

        Args:
            root: Vault root directory
            on_file: Optional callback(file, status) for progress output

        Returns:
            SyncResult with counts per outcome
        """
        root = Path(root)
        files = walk_vault(root)
        result = SyncResult(total=len(files))
        seen = set()

        for file in files:
            seen.add(file.relative_path)
            file_hash = hash_file(file.absolute_path)
            existing = self.documents.get_by_path(file.relative_path)

            if existing is None:
                extracted = extract_content(file.relative_path, file.absolute_path, file.file_type)
                doc_id = self.documents.create_file(
                    file.relative_path, file_hash, file.file_type, extracted
                )
                result.new += 1
                status = "new"
                log_audit("sync", "new", {"path": file.relative_path, "document_id": doc_id})
            elif existing.file_hash != file_hash:
                extracted = extract_content(file.relative_path, file.absolute_path, file.file_type)
                self.documents.update_file(existing.id, file_hash, extracted)
                result.modified += 1
                status = "modified"
                log_audit("sync", "modified", {"path": file.relative_path, "document_id": existing.id})
            else:
                result.unchanged += 1
                status = "unchanged"

            if on_file:
                on_file(file, status)

        for doc in self.documents.list_files():
            if doc.file_path not in seen:
                self.documents.delete(doc.id)
                result.deleted += 1
                log_audit("sync", "deleted", {"path": doc.file_path, "document_id": doc.id})

        log_audit(
            "sync",
            "complete",
            {
                "root": str(root),
                "new": result.new,
                "modified": result.modified,
                "unchanged": result.unchanged,
                "deleted": result.deleted,
            },
        )
        return result
