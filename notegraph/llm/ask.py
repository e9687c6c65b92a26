"""
Question answering over the knowledge graph.

1. Find seed entities: keyword pass through the model, then full-text
   search over entities and documents; the raw question is the fallback.
2. Build a context block per seed: aliases, one-hop neighbours and
   excerpts from the documents that mention it.
3. Cap the context and ask the model to answer from it alone.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from notegraph.audit import log_audit, log_error
from notegraph.core.config import NotegraphConfig
from notegraph.core.db import GraphDatabase
from notegraph.core.entities import Entity, EntityStore
from notegraph.llm.client import LLMClient, LLMError
from notegraph.llm.parse import parse_json_array

NO_RESULTS_ANSWER = "No relevant entities found in your knowledge graph for this question."

CONTEXT_TRUNCATED_MARKER = "\n\n[CONTEXT TRUNCATED]"

ASK_SYSTEM_PROMPT = """You are a knowledge graph assistant. Answer the user's question using ONLY the provided context from their personal knowledge graph.

Rules:
- Only use information from the provided context. Do not make up facts.
- Reference specific entities by name in your answer.
- If the context doesn't contain enough information to answer, say so clearly.
- Be concise and direct.
- When mentioning amounts or dates, be specific."""

KEYWORD_EXTRACTION_PROMPT = """Extract search keywords from this question about a personal knowledge graph.
Return a JSON array of strings: only nouns, proper nouns, and named entities.
Omit verbs, stop words, question words, pronouns, and generic actions.
Return ONLY the JSON array, no other text.

Examples:
"where did i order pizza" -> ["pizza"]
"how much did the kitchen renovation cost" -> ["kitchen renovation"]
"what did John say about the project" -> ["John", "project"]
"where did i eat mapo tofu" -> ["mapo tofu"]"""


@dataclass
class AskResult:
    answer: str
    referenced_entity_ids: List[str] = field(default_factory=list)


def extract_snippet(
    text: Optional[str],
    entity_name: str,
    mention: Optional[str] = None,
    window: int = 300,
) -> str:
    """Excerpt of ``text`` around the first occurrence of the mention.

    The mention (or the entity name) is searched case-insensitively and
    centered in a ``window``-character span; ``...`` marks a cut side.
    Without a hit the first ``window`` characters are returned.
    """
    if not text:
        return mention or ""

    term = mention or entity_name
    idx = text.lower().find(term.lower())
    if idx == -1:
        return text[:window]

    half = window // 2
    start = max(0, idx - half)
    end = min(len(text), idx + len(term) + half)
    snippet = text[start:end].strip()
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."
    return snippet


class Retriever:
    """Answer questions from a neighbourhood of the graph."""

    def __init__(self, db: GraphDatabase, client: LLMClient, config: NotegraphConfig):
        self.db = db
        self.client = client
        self.config = config
        self.entities = EntityStore(db)

    def extract_keywords(self, question: str) -> List[str]:
        """Search keywords from the question; failure means no keywords."""
        try:
            response = self.client.complete(
                [
                    {"role": "system", "content": KEYWORD_EXTRACTION_PROMPT},
                    {"role": "user", "content": question},
                ],
                self.config.llm.resolve_model("extraction"),
            )
        except LLMError as e:
            log_error(e, {"stage": "keywords", "question": question})
            log_audit("llm", "keywords_failed", {"error": str(e)})
            return []

        return [
            item.strip()
            for item in parse_json_array(response)
            if isinstance(item, str) and item.strip()
        ]

    def find_seeds(self, question: str) -> List[Entity]:
        """Seed entities in discovery order, capped at ``ask.max_seeds``."""
        seeds: Dict[str, Entity] = {}

        for keyword in self.extract_keywords(question):
            for entity in self.entities.search(keyword):
                seeds.setdefault(entity.id, entity)
            for entity in self.entities.search_by_documents(keyword):
                seeds.setdefault(entity.id, entity)

        if not seeds:
            for entity in self.entities.search(question):
                seeds.setdefault(entity.id, entity)

        return list(seeds.values())[: self.config.ask.max_seeds]

    def build_context(self, seeds: List[Entity]) -> Tuple[str, List[str]]:
        """Context text plus the ids of every seed and neighbour used."""
        ask = self.config.ask
        referenced: Dict[str, None] = {}
        lines: List[str] = []

        for entity in seeds:
            referenced[entity.id] = None
            lines.append(f"\n## Entity: {entity.name} ({entity.type})")
            if entity.aliases:
                lines.append(f"Also known as: {', '.join(entity.aliases)}")

            related = self.entities.related(entity.id)[: ask.max_related]
            if related:
                lines.append("Related:")
                for rel in related:
                    referenced[rel.entity.id] = None
                    lines.append(f"  {rel.arrow} {rel.entity.name} ({rel.entity.type}) {rel.type}")

            docs = self.entities.documents_for(entity.id)[: ask.max_documents]
            if docs:
                lines.append("Mentioned in:")
                for doc in docs:
                    source = doc.file_path or f"(entry {doc.date or ''})"
                    preview = extract_snippet(doc.text, entity.name, doc.mention, ask.snippet_window)
                    lines.append(f'  - {source}: "{preview}"')

        context = "\n".join(lines) + "\n"
        if len(context) > ask.max_context_chars:
            context = context[: ask.max_context_chars] + CONTEXT_TRUNCATED_MARKER
        return context, list(referenced)

    def answer(self, question: str) -> AskResult:
        """Answer a question from the graph.

        Raises:
            LLMError: the final answer call failed
        """
        seeds = self.find_seeds(question)
        log_audit("ask", "seeds", {"question": question, "seeds": [e.name for e in seeds]})

        if not seeds:
            log_audit("ask", "no_results", {"question": question})
            return AskResult(NO_RESULTS_ANSWER, [])

        context, referenced = self.build_context(seeds)
        answer = self.client.complete(
            [
                {"role": "system", "content": ASK_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"Context from knowledge graph:\n{context}\n\nQuestion: {question}",
                },
            ],
            self.config.llm.resolve_model("ask"),
        )

        log_audit("ask", "answer", {"question": question, "referenced": len(referenced)})
        return AskResult(answer, referenced)
