"""
Groq provider adapter implementation.
"""

from .openai_adapter import OpenAIAdapter


class GroqAdapter(OpenAIAdapter):
    """Adapter for Groq's OpenAI-compatible endpoint (Llama models)."""

    name: str = "groq"
    DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
