from __future__ import annotations
import os
import httpx
from .base import LLMProvider

class OpenAIProvider(LLMProvider):
    """OpenAI-compatible chat completions endpoint, asked for a JSON object."""

    def __init__(self):
        self.api_key = os.getenv("OPENAI_API_KEY", "").strip()
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip()
        self.base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/")

        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        messages = [{"role": "user", "content": user}]
        if system:
            messages.insert(0, {"role": "system", "content": system})

        with httpx.Client(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=60.0,
        ) as client:
            r = client.post(
                "/chat/completions",
                json={
                    "model": model or self.model,
                    "messages": messages,
                    "response_format": {"type": "json_object"},
                    "max_tokens": 2048,
                },
            )
            r.raise_for_status()
            choice = r.json()["choices"][0]

        return choice["message"]["content"] or ""
