"""OpenAIProvider: OpenAI-compatible /chat/completions endpoint via httpx.

Works with api.openai.com and with Ollama, vLLM, LM Studio, or any server
exposing /v1/chat/completions.
"""

from __future__ import annotations

import httpx

from ..types import CompletionRequest
from .base import MAX_RETRIES, BaseProvider


class OpenAIProvider(BaseProvider):
    """Completion gateway speaking the OpenAI chat completions wire format."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        max_retries: int = MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, max_retries=max_retries, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _provider_name(self) -> str:
        return "openai"

    def _get_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(self, request: CompletionRequest) -> dict:
        return request.to_payload()

    def _extract_text(self, data: dict) -> str:
        choices = data.get("choices") or []
        if choices:
            return (choices[0].get("message") or {}).get("content") or ""
        return ""
