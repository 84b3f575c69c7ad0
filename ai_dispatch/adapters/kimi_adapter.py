"""
Kimi (Moonshot) provider adapter implementation.
"""

from .openai_adapter import OpenAIAdapter


class KimiAdapter(OpenAIAdapter):
    """Adapter for the Moonshot API serving Kimi models."""

    name: str = "kimi"
    DEFAULT_BASE_URL = "https://api.moonshot.cn/v1"
