"""
DeepSeek provider adapter implementation.
"""

from .openai_adapter import OpenAIAdapter


class DeepSeekAdapter(OpenAIAdapter):
    """Adapter for the DeepSeek chat API."""

    name: str = "deepseek"
    DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
