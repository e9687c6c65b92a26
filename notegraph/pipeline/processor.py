"""
ExtractionOrchestrator - turn pending documents into graph mutations.

Per document: skip short text, truncate long text, extract entities,
resolve and link them, extract relationships between the resolved set,
store the edges, mark the document processed. Any failure marks that
document errored and the run moves on.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from notegraph.audit import log_audit, log_error
from notegraph.core.config import NotegraphConfig
from notegraph.core.db import GraphDatabase
from notegraph.core.documents import Document, DocumentStore
from notegraph.core.entities import EntityStore
from notegraph.core.links import DocumentLinks
from notegraph.core.relationships import RelationshipStore
from notegraph.core.resolver import EntityResolver
from notegraph.llm.client import LLMClient
from notegraph.llm.extract import extract_entities
from notegraph.llm.relate import extract_relationships
from notegraph.matching import load_strategies

TRUNCATION_MARKER = "\n\n[TRUNCATED]"
SKIP_REASON = "Content too short for extraction"


@dataclass
class ProcessResult:
    entity_count: int = 0
    relationship_count: int = 0
    skipped: bool = False


@dataclass
class RunSummary:
    processed: int = 0
    errored: int = 0
    entities: int = 0
    relationships: int = 0

    @property
    def total(self) -> int:
        return self.processed + self.errored


# Called after each document: (document, result or None, error or None, done, total)
ProgressCallback = Callable[[Document, Optional[ProcessResult], Optional[BaseException], int, int], None]


class ExtractionOrchestrator:
    """Drives document -> entities -> relationships."""

    def __init__(self, db: GraphDatabase, client: LLMClient, config: NotegraphConfig):
        self.db = db
        self.client = client
        self.config = config
        self.documents = DocumentStore(db)
        self.entities = EntityStore(db)
        self.links = DocumentLinks(db)
        self.relationships = RelationshipStore(db)
        self.resolver = EntityResolver(
            db,
            strategies=load_strategies(
                config.matching.strategies,
                max_distance=config.matching.fuzzy_max_distance,
            ),
            max_distance=config.matching.fuzzy_max_distance,
            max_aliases=config.matching.max_aliases,
        )

    def prepare_text(self, text: str) -> str:
        """Cut text to the character budget, marking the cut."""
        limit = self.config.extraction.max_text_chars
        if len(text) > limit:
            return text[:limit] + TRUNCATION_MARKER
        return text

    def process(self, document: Document) -> ProcessResult:
        """Extract and store the graph for one document.

        Exceptions from the model call propagate; ``process_pending``
        turns them into an errored document.
        """
        extraction = self.config.extraction
        text = document.text

        if len(text.strip()) < extraction.min_text_length:
            self.links.clear_document(document.id)
            self.documents.mark_processed(document.id, SKIP_REASON)
            log_audit("document", "skipped", {"document_id": document.id, "reason": SKIP_REASON})
            return ProcessResult(skipped=True)

        prepared = self.prepare_text(text)
        if len(text) > extraction.max_text_chars:
            log_audit("document", "truncated", {"document_id": document.id, "chars": len(text)})

        model = self.config.llm.resolve_model("extraction")
        known = self.entities.known_entities(extraction.known_entity_limit)
        records = extract_entities(self.client, prepared, known, model, extraction.known_entity_limit)

        self.links.clear_document(document.id)
        resolved: List[Dict[str, str]] = []
        for record in records:
            entity_id = self.resolver.resolve_id(record.name, record.type, record.mentions)
            self.links.link(document.id, entity_id, record.mentions[0] if record.mentions else None)
            resolved.append({"name": record.name, "type": record.type, "id": entity_id})

        relationship_count = 0
        if len(resolved) >= 2:
            ids_by_name: Dict[str, str] = {}
            for entry in resolved:
                ids_by_name.setdefault(entry["name"].lower(), entry["id"])

            for rel in extract_relationships(
                self.client, prepared, resolved, model, extraction.relationship_policy
            ):
                source_id = ids_by_name[rel.source.lower()]
                target_id = ids_by_name[rel.target.lower()]
                # Two names can resolve to the same entity
                if source_id == target_id:
                    continue
                self.relationships.find_or_create(source_id, target_id, rel.type)
                relationship_count += 1

        self.documents.mark_processed(document.id)
        log_audit(
            "document",
            "processed",
            {
                "document_id": document.id,
                "entities": len(resolved),
                "relationships": relationship_count,
            },
        )
        return ProcessResult(len(resolved), relationship_count)

    def _process_safely(self, document: Document) -> ProcessResult:
        try:
            return self.process(document)
        except Exception as e:
            self.documents.mark_errored(document.id, str(e) or type(e).__name__)
            log_error(e, {"document_id": document.id, "label": document.label})
            log_audit("document", "errored", {"document_id": document.id, "error": str(e)})
            raise

    def process_pending(
        self,
        relink: bool = False,
        concurrency: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RunSummary:
        """Process every pending or errored document.

        Args:
            relink: Reset every document to pending and drop all links first
            concurrency: Documents in flight (default ``extraction.concurrency``)
            on_progress: Optional callback after each document

        Returns:
            RunSummary with per-run totals
        """
        if relink:
            with self.db.transaction():
                reset = self.documents.reset_all_pending()
                self.links.clear_all()
            log_audit("document", "relink", {"documents": reset})

        pending = self.documents.list_unprocessed()
        workers = concurrency or self.config.extraction.concurrency
        summary = RunSummary()
        total = len(pending)
        start = time.monotonic()
        log_audit("session", "start", {"documents": total, "concurrency": workers, "relink": relink})

        def record(doc: Document, result: Optional[ProcessResult], error: Optional[BaseException]) -> None:
            if error is None:
                summary.processed += 1
                summary.entities += result.entity_count
                summary.relationships += result.relationship_count
            else:
                summary.errored += 1
            if on_progress:
                on_progress(doc, result, error, summary.total, total)

        if workers <= 1:
            for doc in pending:
                try:
                    result = self._process_safely(doc)
                except Exception as e:
                    record(doc, None, e)
                else:
                    record(doc, result, None)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {pool.submit(self._process_safely, doc): doc for doc in pending}
                for future in as_completed(futures):
                    doc = futures[future]
                    error = future.exception()
                    record(doc, None if error else future.result(), error)

        log_audit(
            "session",
            "complete",
            {
                "processed": summary.processed,
                "errored": summary.errored,
                "entities": summary.entities,
                "relationships": summary.relationships,
            },
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return summary
