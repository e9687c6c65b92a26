"""
Shared pytest fixtures for notegraph tests.

Provides fixtures for:
- Configuration and a temporary vault
- An open graph database
- A scripted LLM client that never touches the network
- An audit log bound to a temp file
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from notegraph.audit import close_logger, init_logger
from notegraph.core.config import LLMConfig, NotegraphConfig
from notegraph.core.db import GraphDatabase
from notegraph.llm.ask import ASK_SYSTEM_PROMPT, KEYWORD_EXTRACTION_PROMPT
from notegraph.llm.client import LLMClient
from notegraph.llm.extract import ENTITY_EXTRACTION_SYSTEM_PROMPT
from notegraph.llm.relate import (
    OPEN_RELATIONSHIP_SYSTEM_PROMPT,
    RELATIONSHIP_EXTRACTION_SYSTEM_PROMPT,
)

Reply = Union[str, list, dict, Callable[[str], Any], None]


class ScriptedLLM(LLMClient):
    """
    LLM client for tests. Returns scripted replies instead of calling a server.

    Each call is classified by its system prompt ("entities", "relationships",
    "keywords", "answer"). A reply may be a string, a JSON-able list/dict, or a
    callable taking the user message. ``queue`` holds one-shot replies per
    kind that take precedence; ``errors`` maps a kind to an exception to raise.
    """

    def __init__(
        self,
        entities: Reply = "[]",
        relationships: Reply = "[]",
        keywords: Reply = "[]",
        answer: Reply = "I don't know.",
        errors: Optional[Dict[str, BaseException]] = None,
    ):
        super().__init__(LLMConfig())
        self.replies: Dict[str, Reply] = {
            "entities": entities,
            "relationships": relationships,
            "keywords": keywords,
            "answer": answer,
        }
        self.queue: Dict[str, List[Reply]] = {}
        self.errors = errors or {}
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def classify(system_prompt: str) -> str:
        if system_prompt == ENTITY_EXTRACTION_SYSTEM_PROMPT:
            return "entities"
        if system_prompt in (RELATIONSHIP_EXTRACTION_SYSTEM_PROMPT, OPEN_RELATIONSHIP_SYSTEM_PROMPT):
            return "relationships"
        if system_prompt == KEYWORD_EXTRACTION_PROMPT:
            return "keywords"
        if system_prompt == ASK_SYSTEM_PROMPT:
            return "answer"
        return "unknown"

    def enqueue(self, kind: str, reply: Reply) -> None:
        self.queue.setdefault(kind, []).append(reply)

    def calls_of(self, kind: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["kind"] == kind]

    def _call_llm(self, messages, model):
        kind = self.classify(messages[0]["content"])
        user = messages[-1]["content"]
        self.calls.append({"kind": kind, "messages": messages, "model": model, "user": user})

        if kind in self.errors:
            raise self.errors[kind]

        pending = self.queue.get(kind)
        reply = pending.pop(0) if pending else self.replies.get(kind)
        if callable(reply):
            reply = reply(user)
        if reply is None or isinstance(reply, str):
            return reply
        return json.dumps(reply)


def _write_note(vault: Path, relative_path: str, text: str) -> Path:
    """Create a file inside the vault, making parent directories."""
    path = vault / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    """Keep tests away from the real home directory, cwd and env config."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("NOTEGRAPH_"):
            monkeypatch.delenv(key)
    yield
    close_logger()


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """Empty vault directory."""
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def config(vault: Path) -> NotegraphConfig:
    """Default configuration pointing at the temp vault."""
    return NotegraphConfig.from_dict({"vault": {"path": str(vault)}})


@pytest.fixture
def db(tmp_path: Path):
    """Open graph database, closed after the test."""
    database = GraphDatabase(tmp_path / "data" / "index.db")
    yield database
    database.close()


@pytest.fixture
def audit_log(tmp_path: Path):
    """Audit logger writing to a temp file."""
    return init_logger(tmp_path / "logs" / "audit.jsonl", retention_days=0, session_id="test")


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def write_note():
    """Helper that writes a file into a vault: write_note(vault, "a/b.md", text)."""
    return _write_note
