"""
notegraph - personal knowledge graph from a folder of notes

A language model reads each note and names the people, places, bills and
other things in it; notegraph deduplicates them against everything seen
before, stores the resulting graph in SQLite and answers questions from it.

Core components:
- GraphDatabase: SQLite store with full-text indexes kept in sync by triggers
- VaultSynchronizer: incremental, fingerprint-based vault scan
- EntityResolver: exact, alias and fuzzy matching before creating an entity
- ExtractionOrchestrator: document -> entities -> relationships
- Retriever: question answering over a graph neighbourhood
"""

__version__ = "0.1.0"

from notegraph.core import (
    Document,
    DocumentStatus,
    DocumentStore,
    Entity,
    EntityResolver,
    EntityStore,
    GraphDatabase,
    NotegraphConfig,
    RelationshipStore,
    load_config,
)
from notegraph.llm import LLMClient, LLMConnectionError, LLMError, parse_json_array
from notegraph.llm.ask import AskResult, Retriever
from notegraph.pipeline import ExtractionOrchestrator, RunSummary
from notegraph.scanner import SyncResult, VaultSynchronizer

__all__ = [
    "__version__",
    "Document",
    "DocumentStatus",
    "DocumentStore",
    "Entity",
    "EntityResolver",
    "EntityStore",
    "GraphDatabase",
    "NotegraphConfig",
    "RelationshipStore",
    "load_config",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "parse_json_array",
    "AskResult",
    "Retriever",
    "ExtractionOrchestrator",
    "RunSummary",
    "SyncResult",
    "VaultSynchronizer",
]
