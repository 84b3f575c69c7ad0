"""
Abstract base class for AI provider adapters.
"""

import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Sequence

import httpx

from ..config import HttpClientConfig, ProviderConfig
from ..models import Message, ProviderResult
from ..request_logger import RequestLogger, get_logger


class ProviderErrorKind(str, Enum):
    """Structured failure reported by an adapter."""
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    TRANSPORT_FAILURE = "transport_failure"
    OTHER = "other"


class ProviderError(Exception):
    """Exception raised when a provider API call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        kind: ProviderErrorKind | None = None,
    ):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.kind = kind or self.kind_for_status(status_code)
        super().__init__(f"[{provider}] {message}")

    @staticmethod
    def kind_for_status(status_code: int | None) -> ProviderErrorKind:
        if status_code == 429:
            return ProviderErrorKind.RATE_LIMITED
        if status_code in (401, 403):
            return ProviderErrorKind.UNAUTHORIZED
        return ProviderErrorKind.OTHER


def build_client(config: ProviderConfig, http_config: HttpClientConfig | None = None) -> httpx.AsyncClient:
    """Create the pooled HTTP client an adapter owns."""
    http_config = http_config or HttpClientConfig()
    client_kwargs = {
        "timeout": config.timeout,
        "limits": httpx.Limits(
            max_connections=http_config.max_connections,
            max_keepalive_connections=http_config.max_keepalive_connections,
        ),
    }
    if config.proxy_url:
        return httpx.AsyncClient(proxy=config.proxy_url, **client_kwargs)
    return httpx.AsyncClient(**client_kwargs)


class ProviderAdapter(ABC):
    """
    Abstract base class for AI provider adapters.

    Each adapter receives its ProviderConfig (API key, base URL, timeout) at
    construction and never reads ambient configuration afterwards. A call
    either returns a ProviderResult or raises ProviderError.

    Subclasses implement:
    - _build_request(): URL, headers and JSON payload for the vendor
    - _parse_response(): extract the text and token counts
    """

    name: str = "base"
    DEFAULT_BASE_URL: str = ""

    def __init__(
        self,
        config: ProviderConfig,
        client: httpx.AsyncClient | None = None,
        http_config: HttpClientConfig | None = None,
        request_logger: RequestLogger | None = None,
    ):
        """
        Initialize the adapter.

        Args:
            config: Provider configuration validated at startup
            client: Optional pre-built HTTP client (tests inject a mock transport)
            http_config: Connection pool settings used when building a client
            request_logger: Optional logger, defaults to the adapter's channel
        """
        self.config = config
        self.api_key = config.api_key
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._client = client or build_client(config, http_config)
        self._logger = request_logger or get_logger(self.name)

    @abstractmethod
    def _build_request(self, messages: Sequence[Message], model: str) -> tuple[str, dict, dict]:
        """Return (url, headers, payload) for a chat request."""

    @abstractmethod
    def _parse_response(self, data: dict, model: str) -> ProviderResult:
        """Turn a decoded JSON body into a ProviderResult."""

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            error_data = response.json()
        except ValueError:
            return response.text or f"API returned {response.status_code}"
        error = error_data.get("error") if isinstance(error_data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return error
        return response.text or f"API returned {response.status_code}"

    async def call(self, messages: Sequence[Message], model: str) -> ProviderResult:
        """
        Send a conversation to the provider.

        Args:
            messages: Ordered conversation history
            model: Provider model name

        Returns:
            ProviderResult with the generated text and token counts

        Raises:
            ProviderError: If the API call fails for any reason
        """
        start_time = time.time()
        result: ProviderResult | None = None
        error: ProviderError | None = None

        try:
            if not self.api_key:
                raise ProviderError(
                    self.name, "API key not configured", kind=ProviderErrorKind.UNAUTHORIZED
                )

            url, headers, payload = self._build_request(messages, model)
            try:
                response = await self._client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException:
                raise ProviderError(self.name, "Request timed out", kind=ProviderErrorKind.TRANSPORT_FAILURE)
            except httpx.HTTPStatusError as e:
                raise ProviderError(
                    self.name,
                    f"API error: {self._error_detail(e.response)}",
                    status_code=e.response.status_code,
                )
            except httpx.TransportError as e:
                raise ProviderError(
                    self.name,
                    f"Network error - could not reach API: {e}",
                    kind=ProviderErrorKind.TRANSPORT_FAILURE,
                )
            except ValueError as e:
                raise ProviderError(self.name, f"Invalid JSON response: {e}")

            try:
                result = self._parse_response(data, model)
            except (KeyError, IndexError, TypeError, AttributeError) as e:
                raise ProviderError(self.name, f"Invalid response format: {e}")
            if not result.content:
                raise ProviderError(self.name, "Empty response from API")
            return result

        except ProviderError as e:
            error = e
            raise

        finally:
            # 记录请求日志
            last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
            self._logger.log_request(
                model=model,
                prompt=last_user,
                message_count=len(messages),
                response_text=result.content if result else None,
                input_tokens=result.input_tokens if result else None,
                output_tokens=result.output_tokens if result else None,
                duration_ms=(time.time() - start_time) * 1000,
                success=error is None and result is not None,
                error_message=error.message if error else None,
                status_code=error.status_code if error else None,
            )

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()
