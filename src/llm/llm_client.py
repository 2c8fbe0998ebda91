import json
import logging
import os
import re
from typing import Any, Optional

from llm.providers.base import LLMProvider

logger = logging.getLogger(__name__)

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "anthropic").strip().lower()

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def make_provider(name: str = LLM_PROVIDER) -> LLMProvider:
    if name == "openai":
        from llm.providers.openai_provider import OpenAIProvider
        return OpenAIProvider()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider
        return MockProvider()
    if name == "anthropic":
        from llm.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider()
    raise ValueError(f"Unknown LLM_PROVIDER: {name}")


def extract_json(text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of free-form model output."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ValueError("No JSON object found in model output")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Model output JSON is not an object")
    return data


class LLMClient:
    """Thin wrapper over an LLMProvider that returns parsed JSON."""

    def __init__(self, provider: Optional[LLMProvider] = None, system: str = ""):
        self._provider = provider
        self.system = system

    @property
    def provider(self) -> LLMProvider:
        # Resolved lazily so a missing API key only fails on first use
        if self._provider is None:
            self._provider = make_provider()
        return self._provider

    def complete(self, prompt: str) -> str:
        return self.provider.generate(system=self.system, user=prompt)

    def complete_json(self, prompt: str) -> dict[str, Any]:
        text = self.complete(prompt)
        logger.debug(f"LLM raw output: {text[:200]}")
        return extract_json(text)
