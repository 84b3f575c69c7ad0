"""
Test doubles shared by the property tests.
"""

from typing import Sequence

import httpx

from ai_dispatch.adapters.base import ProviderAdapter, ProviderError
from ai_dispatch.adapters.registry import AdapterRegistry
from ai_dispatch.config import SUPPORTED_PROVIDERS, ConfigManager, ProviderConfig
from ai_dispatch.models import Message, ProviderResult
from ai_dispatch.request_logger import RequestLogger


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected HTTP request to {request.url}")


class ScriptedAdapter(ProviderAdapter):
    """Adapter that answers from a script instead of the network."""

    def __init__(self, name: str, calls: list[str], error: str | Exception | None = None):
        self.name = name
        self.error = error
        self.calls = calls
        super().__init__(
            ProviderConfig(api_key="test-key"),
            client=httpx.AsyncClient(transport=httpx.MockTransport(_unreachable)),
            request_logger=RequestLogger(name, enabled=False),
        )

    def _build_request(self, messages, model):
        raise NotImplementedError

    def _parse_response(self, data, model):
        raise NotImplementedError

    async def call(self, messages: Sequence[Message], model: str) -> ProviderResult:
        self.calls.append(self.name)
        if isinstance(self.error, Exception):
            raise self.error
        if self.error is not None:
            raise ProviderError(self.name, self.error)
        return ProviderResult(content=f"answer from {self.name}", provider=self.name, model=model)


def scripted_registry(
    config_manager: ConfigManager,
    failing: dict[str, str | Exception] | None = None,
) -> tuple[AdapterRegistry, list[str]]:
    """
    Registry in which every supported provider is scripted.

    Returns:
        (registry, call log) where the call log lists providers in call order
    """
    failing = failing or {}
    calls: list[str] = []
    adapters = {
        name: ScriptedAdapter(name, calls, failing.get(name))
        for name in SUPPORTED_PROVIDERS
    }
    return AdapterRegistry(config_manager, adapters=adapters), calls


def silent_logger(channel: str = "test") -> RequestLogger:
    return RequestLogger(channel, enabled=False)
