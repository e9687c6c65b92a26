"""Model-facing pieces: client, output parsing, extraction, answering."""

from notegraph.llm.client import LLMClient, LLMConnectionError, LLMError
from notegraph.llm.parse import parse_json_array

__all__ = ["LLMClient", "LLMConnectionError", "LLMError", "parse_json_array"]
