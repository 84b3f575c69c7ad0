"""
Provider adapters for the supported AI vendors.
"""

from .base import (
    ProviderAdapter,
    ProviderError,
    ProviderErrorKind,
)
from .openai_adapter import OpenAIAdapter
from .claude_adapter import ClaudeAdapter
from .gemini_adapter import GeminiAdapter
from .groq_adapter import GroqAdapter
from .deepseek_adapter import DeepSeekAdapter
from .kimi_adapter import KimiAdapter
from .openrouter_adapter import OpenRouterAdapter
from .registry import AdapterRegistry

__all__ = [
    "ProviderAdapter",
    "ProviderError",
    "ProviderErrorKind",
    "OpenAIAdapter",
    "ClaudeAdapter",
    "GeminiAdapter",
    "GroqAdapter",
    "DeepSeekAdapter",
    "KimiAdapter",
    "OpenRouterAdapter",
    "AdapterRegistry",
]
