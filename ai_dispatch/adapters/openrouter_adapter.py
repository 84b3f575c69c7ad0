"""
OpenRouter provider adapter implementation.

OpenRouter is a unified API that provides access to multiple LLM providers
including OpenAI, Anthropic, Google, Meta, and many others.
"""

from ..models import ProviderResult
from .base import ProviderError
from .openai_adapter import OpenAIAdapter


class OpenRouterAdapter(OpenAIAdapter):
    """
    Adapter for OpenRouter API.

    API Documentation: https://openrouter.ai/docs
    """

    name: str = "openrouter"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

    def _parse_response(self, data: dict, model: str) -> ProviderResult:
        # OpenRouter can answer 200 with an error body
        if "error" in data:
            error = data["error"]
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise ProviderError(
                self.name,
                f"API error: {message}",
                status_code=code if isinstance(code, int) else None,
            )
        return super()._parse_response(data, model)
