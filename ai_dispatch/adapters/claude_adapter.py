"""
Anthropic Claude provider adapter implementation.
"""

from typing import Sequence

from ..models import Message, ProviderResult
from .base import ProviderAdapter


class ClaudeAdapter(ProviderAdapter):
    """
    Adapter for the Anthropic messages API.

    System messages are lifted out of the conversation into the top-level
    "system" field; the API rejects them inline.
    """

    name: str = "claude"
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"

    max_tokens: int = 4096

    def _build_request(self, messages: Sequence[Message], model: str) -> tuple[str, dict, dict]:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
        }
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
        }
        if system:
            payload["system"] = system
        return f"{self.base_url}/messages", headers, payload

    def _parse_response(self, data: dict, model: str) -> ProviderResult:
        text = "".join(
            block.get("text", "") for block in data["content"] if block.get("type", "text") == "text"
        )
        usage = data.get("usage") or {}
        return ProviderResult(
            content=text,
            provider=self.name,
            model=data.get("model") or model,
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
            raw_response=data,
        )
