"""
LLM client for an OpenAI-compatible chat completions endpoint.

Works against a local Ollama/vLLM server as well as hosted APIs. Retries
and timeouts are delegated to the openai client.
"""

import time
from typing import Dict, List, Optional

from openai import APIConnectionError, OpenAI, OpenAIError

from notegraph.audit import log_audit
from notegraph.core.config import LLMConfig

Message = Dict[str, str]  # {"role": "system" | "user" | "assistant", "content": ...}


class LLMError(RuntimeError):
    """The model call failed or returned nothing usable."""


class LLMConnectionError(LLMError):
    """The model endpoint could not be reached."""


class LLMClient:
    """Chat completions with a low temperature for stable structured output."""

    temperature = 0.1

    def __init__(self, config: LLMConfig):
        """
        Args:
            config: Endpoint, model and timeout settings
        """
        self.config = config
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                base_url=self.config.base_url,
                api_key=self.config.api_key or "not-needed",
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    def complete(self, messages: List[Message], model: Optional[str] = None) -> str:
        """Send messages and return the completion text.

        Raises:
            LLMConnectionError: endpoint unreachable
            LLMError: empty completion or any other API failure
        """
        use_model = model or self.config.model
        start = time.monotonic()
        log_audit("llm", "request", {"model": use_model, "messages": len(messages)})

        content = self._call_llm(messages, use_model)
        if not content or not content.strip():
            raise LLMError(f"Empty response from LLM ({use_model})")

        log_audit(
            "llm",
            "complete",
            {"model": use_model, "chars": len(content)},
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return content

    def _call_llm(self, messages: List[Message], model: str) -> Optional[str]:
        """Call the chat completions API."""
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.temperature,
            )
        except APIConnectionError as e:
            raise LLMConnectionError(
                f"Cannot connect to LLM at {self.config.base_url}. Is the server running?"
            ) from e
        except OpenAIError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        if not response.choices:
            return None
        return response.choices[0].message.content
