"""
Fallback router: dispatches a conversation to its primary provider and, on
failure, walks an ordered chain of alternate providers.
"""

import asyncio
import dataclasses
import time
from typing import Callable, Sequence

from .adapters.base import ProviderError, ProviderErrorKind
from .adapters.registry import AdapterRegistry
from .classifier import ErrorClassifier
from .config import ConfigManager
from .models import (
    AttemptRecord,
    FallbackCandidate,
    GenerationOutcome,
    GenerationRequest,
    Message,
    ProviderResult,
)
from .request_logger import RequestLogger, get_logger
from .resolver import ModelResolver


class DispatchError(Exception):
    """Raised when a request cannot be dispatched at all."""
    pass


class FallbackRouter:
    """
    Sequential, first-success-wins dispatcher.

    Guarantees:
    - The primary route is always tried first; on success nothing else runs
    - Fallback candidates run in list order, one at a time
    - No provider is called twice for one request, including the primary
    - At most N+1 provider calls for N candidates, no retries per call

    When every provider fails, the primary error is classified and a single
    message lists the providers attempted in order.

    Optional latency bounds come from the "dispatch" config section: a
    per-attempt timeout and an overall deadline after which no further
    candidate is started.
    """

    ERROR_PREVIEW_CHARS = 200

    def __init__(
        self,
        config_manager: ConfigManager,
        resolver: ModelResolver,
        registry: AdapterRegistry,
        classifier: ErrorClassifier | None = None,
        request_logger: RequestLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config_manager = config_manager
        self._resolver = resolver
        self._registry = registry
        self._classifier = classifier or ErrorClassifier()
        self._logger = request_logger or get_logger("router")
        self._clock = clock

    @property
    def resolver(self) -> ModelResolver:
        return self._resolver

    def fallback_chain(self, category: str | None = None) -> list[FallbackCandidate]:
        return self._config_manager.get_fallback_chain(category)

    async def dispatch(self, request: GenerationRequest) -> GenerationOutcome:
        """
        Dispatch a request with automatic fallback on failure.

        Args:
            request: Validated GenerationRequest

        Returns:
            GenerationOutcome; provider failures never propagate as exceptions
        """
        if not request.messages:
            raise DispatchError("Cannot dispatch a request without messages")

        route = self._resolver.resolve(request.model_id)
        dispatch_config = self._config_manager.config.dispatch
        deadline = None
        if dispatch_config.deadline is not None:
            deadline = self._clock() + dispatch_config.deadline

        attempts: list[AttemptRecord] = []
        try:
            result = await self._attempt(route.provider, route.provider_model, request.messages, attempts, deadline)
            return GenerationOutcome.succeeded(result, attempts)
        except ProviderError as e:
            primary_error = e

        self._logger.log_event(
            "fallback_started", success=False,
            user_id=request.user_id, model_id=request.model_id,
            provider=route.provider, error=self._truncate(primary_error.message),
        )

        attempted = {route.provider}
        budget_exhausted = False
        for candidate in self.fallback_chain(request.category):
            if candidate.provider in attempted:
                continue
            if deadline is not None and self._clock() >= deadline:
                budget_exhausted = True
                break
            attempted.add(candidate.provider)

            try:
                result = await self._attempt(
                    candidate.provider, candidate.provider_model, request.messages, attempts, deadline
                )
            except ProviderError:
                continue

            self._logger.log_event(
                "fallback_succeeded",
                user_id=request.user_id, model_id=request.model_id,
                failed_provider=route.provider, provider=candidate.provider,
                attempts=len(attempts),
            )
            annotated = dataclasses.replace(
                result, content=result.content + self.fallback_note(candidate, route.provider)
            )
            return GenerationOutcome.succeeded(annotated, attempts)

        kind = self._classifier.classify(primary_error)
        outcome = GenerationOutcome.failed(
            kind,
            self._aggregate_message(route.provider, primary_error, attempts, budget_exhausted),
            attempts,
        )
        self._logger.log_event(
            "dispatch_failed", success=False,
            user_id=request.user_id, model_id=request.model_id,
            error_kind=kind.value, providers=outcome.attempted_providers,
            budget_exhausted=budget_exhausted,
        )
        return outcome

    async def _attempt(
        self,
        provider: str,
        model: str,
        messages: Sequence[Message],
        attempts: list[AttemptRecord],
        deadline: float | None,
    ) -> ProviderResult:
        """Make exactly one provider call and record it."""
        start = time.time()
        try:
            adapter = self._registry.get(provider)
            timeout = self._attempt_timeout(deadline)
            if timeout is None:
                result = await adapter.call(messages, model)
            else:
                try:
                    result = await asyncio.wait_for(adapter.call(messages, model), timeout)
                except asyncio.TimeoutError:
                    raise ProviderError(provider, "Request timed out", kind=ProviderErrorKind.TRANSPORT_FAILURE)
        except ProviderError as e:
            attempts.append(AttemptRecord(
                provider=provider,
                model=model,
                success=False,
                error=self._truncate(e.message),
                duration_ms=(time.time() - start) * 1000,
            ))
            raise
        except Exception as e:
            attempts.append(AttemptRecord(
                provider=provider,
                model=model,
                success=False,
                error=self._truncate(f"Request failed: {e}"),
                duration_ms=(time.time() - start) * 1000,
            ))
            raise ProviderError(provider, f"Request failed: {e}") from e

        attempts.append(AttemptRecord(
            provider=provider,
            model=model,
            success=True,
            duration_ms=(time.time() - start) * 1000,
        ))
        return result

    def _attempt_timeout(self, deadline: float | None) -> float | None:
        attempt_timeout = self._config_manager.config.dispatch.attempt_timeout
        if deadline is None:
            return attempt_timeout
        remaining = max(0.0, deadline - self._clock())
        if attempt_timeout is None:
            return remaining
        return min(attempt_timeout, remaining)

    @classmethod
    def _truncate(cls, text: str) -> str:
        if len(text) <= cls.ERROR_PREVIEW_CHARS:
            return text
        return text[: cls.ERROR_PREVIEW_CHARS] + "..."

    @staticmethod
    def fallback_note(candidate: FallbackCandidate, failed_provider: str) -> str:
        """Informational notice appended to a response served by a fallback."""
        return (
            f"\n\n_Note: Responded using {candidate.display_name} ({candidate.provider}) "
            f"because {failed_provider} was unavailable_"
        )

    def _aggregate_message(
        self,
        primary_provider: str,
        primary_error: ProviderError,
        attempts: list[AttemptRecord],
        budget_exhausted: bool,
    ) -> str:
        tried: list[str] = []
        for attempt in attempts:
            if attempt.provider not in tried:
                tried.append(attempt.provider)

        kind = self._classifier.classify(primary_error)
        lines = [
            f"AI service temporarily unavailable. {primary_provider}: {self._truncate(primary_error.message)}",
            f"Providers attempted: {', '.join(tried)}.",
        ]
        if budget_exhausted:
            lines.append("Stopped trying further providers after the dispatch deadline was reached.")
        lines.append(self._classifier.remediation(kind))
        return "\n\n".join(lines)
