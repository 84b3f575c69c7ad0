"""
Adapter registry: builds one adapter per configured provider on demand.
"""

import httpx

from ..config import ConfigManager
from .base import ProviderAdapter, ProviderError, ProviderErrorKind
from .claude_adapter import ClaudeAdapter
from .deepseek_adapter import DeepSeekAdapter
from .gemini_adapter import GeminiAdapter
from .groq_adapter import GroqAdapter
from .kimi_adapter import KimiAdapter
from .openai_adapter import OpenAIAdapter
from .openrouter_adapter import OpenRouterAdapter


class AdapterRegistry:
    """
    Lazily constructs provider adapters from configuration.

    A provider that is unsupported or has no API key configured is reported
    as a ProviderError of kind UNAUTHORIZED, so callers treat it like any
    other failed provider.
    """

    PROVIDER_ADAPTERS: dict[str, type[ProviderAdapter]] = {
        "openai": OpenAIAdapter,
        "claude": ClaudeAdapter,
        "gemini": GeminiAdapter,
        "groq": GroqAdapter,
        "deepseek": DeepSeekAdapter,
        "kimi": KimiAdapter,
        "openrouter": OpenRouterAdapter,
    }

    def __init__(
        self,
        config_manager: ConfigManager,
        adapters: dict[str, ProviderAdapter] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            config_manager: Loaded configuration
            adapters: Pre-built adapters keyed by provider name
            transport: Optional transport shared by every built client
        """
        self._config_manager = config_manager
        self._adapters: dict[str, ProviderAdapter] = dict(adapters or {})
        self._transport = transport

    def get(self, provider: str) -> ProviderAdapter:
        """
        Get or create the adapter for a provider.

        Raises:
            ProviderError: If the provider is unsupported or not configured
        """
        if provider in self._adapters:
            return self._adapters[provider]

        adapter_class = self.PROVIDER_ADAPTERS.get(provider)
        if adapter_class is None:
            raise ProviderError(
                provider, f"Unsupported provider: {provider}", kind=ProviderErrorKind.UNAUTHORIZED
            )

        config = self._config_manager.config
        provider_config = config.providers.get(provider)
        if provider_config is None:
            raise ProviderError(
                provider,
                f"{provider} API key not configured. Please add your API key to the configuration.",
                kind=ProviderErrorKind.UNAUTHORIZED,
            )

        client = None
        if self._transport is not None:
            client = httpx.AsyncClient(transport=self._transport, timeout=provider_config.timeout)
        adapter = adapter_class(provider_config, client=client, http_config=config.http_client)
        self._adapters[provider] = adapter
        return adapter

    async def aclose(self) -> None:
        """Close every adapter that has been built."""
        for adapter in self._adapters.values():
            await adapter.aclose()
        self._adapters.clear()
