"""
Google Gemini provider adapter implementation (HTTP generateContent API).
"""

from typing import Sequence

from ..models import Message, ProviderResult
from .base import ProviderAdapter


class GeminiAdapter(ProviderAdapter):
    """
    Adapter for Google Gemini API.

    Gemini names the assistant role "model" and has no inline system role,
    so system messages are sent as systemInstruction.
    """

    name: str = "gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    temperature: float = 0.7
    max_output_tokens: int = 2000

    def _build_request(self, messages: Sequence[Message], model: str) -> tuple[str, dict, dict]:
        # Accept both "gemini-1.5-flash" and "models/gemini-1.5-flash"
        clean_model = model.removeprefix("models/")
        url = f"{self.base_url}/models/{clean_model}:generateContent"
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        payload = {
            "contents": [
                {
                    "role": "user" if m.role == "user" else "model",
                    "parts": [{"text": m.content}],
                }
                for m in messages
                if m.role != "system"
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return url, headers, payload

    def _parse_response(self, data: dict, model: str) -> ProviderResult:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
        usage = data.get("usageMetadata") or {}
        return ProviderResult(
            content=text,
            provider=self.name,
            model=model,
            input_tokens=usage.get("promptTokenCount"),
            output_tokens=usage.get("candidatesTokenCount"),
            raw_response=data,
        )
