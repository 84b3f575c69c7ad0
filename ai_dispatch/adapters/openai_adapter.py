"""
OpenAI provider adapter implementation.
"""

from typing import Sequence

from ..models import Message, ProviderResult
from .base import ProviderAdapter


class OpenAIAdapter(ProviderAdapter):
    """
    Adapter for the OpenAI chat completions API.

    Also the base for every vendor exposing an OpenAI-compatible endpoint.
    Extracts token usage from the response (prompt_tokens, completion_tokens).
    """

    name: str = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    temperature: float = 0.7
    max_tokens: int = 2000

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_request(self, messages: Sequence[Message], model: str) -> tuple[str, dict, dict]:
        payload = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return f"{self.base_url}/chat/completions", self._headers(), payload

    def _parse_response(self, data: dict, model: str) -> ProviderResult:
        text = data["choices"][0]["message"]["content"]
        usage = data.get("usage") or {}
        return ProviderResult(
            content=text,
            provider=self.name,
            model=data.get("model") or model,
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
            raw_response=data,
        )
