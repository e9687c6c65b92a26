"""Core storage: database handle, stores, resolver and configuration."""

from notegraph.core.config import NotegraphConfig, load_config
from notegraph.core.db import GraphDatabase
from notegraph.core.documents import Document, DocumentStatus, DocumentStore
from notegraph.core.entities import Entity, EntityStore, RelatedEntity
from notegraph.core.links import DocumentLinks
from notegraph.core.relationships import Relationship, RelationshipStore
from notegraph.core.resolver import EntityResolver, ResolveResult

__all__ = [
    "NotegraphConfig",
    "load_config",
    "GraphDatabase",
    "Document",
    "DocumentStatus",
    "DocumentStore",
    "Entity",
    "EntityStore",
    "RelatedEntity",
    "DocumentLinks",
    "Relationship",
    "RelationshipStore",
    "EntityResolver",
    "ResolveResult",
]
