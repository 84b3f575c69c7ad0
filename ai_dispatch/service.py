"""
GenerationService - Unified entry point for gated, metered AI generation.

Integrates the admission controller, fallback router and metering unit:
admission -> dispatch -> settle. Every path returns a GenerationOutcome.
"""

from typing import Any, Awaitable, Callable

from .adapters.registry import AdapterRegistry
from .admission import AdmissionController
from .classifier import ErrorClassifier
from .config import ConfigManager
from .metering import MeteringUnit
from .models import ErrorKind, GenerationCategory, GenerationOutcome, GenerationRequest, ProviderResult
from .pricing import PricingTable
from .resolver import ModelResolver
from .router import DispatchError, FallbackRouter
from .stores.base import BalanceStore, QuotaStore, format_quota_message
from .stores.memory import InMemoryBalanceStore, InMemoryQuotaStore
from .stores.rpc import RpcBalanceStore, RpcClient, RpcQuotaStore


class ValidationError(Exception):
    """Exception raised when request validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Validation failed: {'; '.join(errors)}")


GenerationFn = Callable[[], Awaitable[Any]]


class GenerationService:
    """
    统一生成入口 - gates, dispatches and meters every generation.

    Features:
    - Monthly quota and token balance checks before any provider call
    - Model resolution and sequential cross-provider fallback for chat
    - Caller-supplied generation functions for image/video/song/tts/ppt
    - Token debit and quota increment only after a success
    """

    def __init__(
        self,
        config_manager: ConfigManager | None = None,
        config_path: str | None = None,
        quota_store: QuotaStore | None = None,
        balance_store: BalanceStore | None = None,
        registry: AdapterRegistry | None = None,
    ):
        """
        Initialize GenerationService. Configuration is validated once here.

        Args:
            config_manager: Optional ConfigManager instance. If None, creates one.
            config_path: Optional path to config file (used if config_manager is None)
            quota_store: Quota store; defaults from the "store" config section
            balance_store: Balance store; defaults from the "store" config section
            registry: Adapter registry; built from configuration when None

        Raises:
            ConfigError: If the configuration is invalid
        """
        self._config_manager = config_manager or ConfigManager(config_path)
        self._config_manager.validate()
        config = self._config_manager.config

        if quota_store is None or balance_store is None:
            if config.store.url:
                rpc = RpcClient(config.store)
                quota_store = quota_store or RpcQuotaStore(rpc)
                balance_store = balance_store or RpcBalanceStore(rpc)
            else:
                quota_store = quota_store or InMemoryQuotaStore(config.quota.free_limits)
                balance_store = balance_store or InMemoryBalanceStore()

        self._quota_store = quota_store
        self._balance_store = balance_store
        self._classifier = ErrorClassifier()
        self._pricing = PricingTable(self._config_manager)
        self._resolver = ModelResolver(self._config_manager)
        self._registry = registry or AdapterRegistry(self._config_manager)
        self._router = FallbackRouter(
            self._config_manager, self._resolver, self._registry, classifier=self._classifier
        )
        self._admission = AdmissionController(quota_store, balance_store, self._pricing)
        self._metering = MeteringUnit(quota_store, balance_store)

    @property
    def config_manager(self) -> ConfigManager:
        return self._config_manager

    @property
    def router(self) -> FallbackRouter:
        return self._router

    @property
    def admission(self) -> AdmissionController:
        return self._admission

    @property
    def metering(self) -> MeteringUnit:
        return self._metering

    @property
    def pricing(self) -> PricingTable:
        return self._pricing

    @property
    def quota_store(self) -> QuotaStore:
        return self._quota_store

    @property
    def balance_store(self) -> BalanceStore:
        return self._balance_store

    def validate_request(self, request: GenerationRequest) -> None:
        """
        Raises:
            ValidationError: If the request is malformed
        """
        errors = request.validate()
        if errors:
            raise ValidationError(errors)

    async def execute(
        self,
        request: GenerationRequest,
        generation_fn: GenerationFn | None = None,
    ) -> GenerationOutcome:
        """
        Run one generation end to end.

        1. Validates the request
        2. Checks quota, then balance for premium accounts
        3. Dispatches through the fallback router, or awaits generation_fn
        4. Settles usage only if the generation succeeded

        Args:
            request: The generation request
            generation_fn: Optional coroutine factory producing a non-chat
                asset; when given it replaces the router call

        Returns:
            GenerationOutcome with the settlement attached on success
        """
        try:
            self.validate_request(request)
        except ValidationError as e:
            return GenerationOutcome.failed(ErrorKind.UNKNOWN, str(e))

        decision = await self._admission.check(request.user_id, request.category, request.model_id)
        if not decision.admitted:
            return decision.denial

        if generation_fn is None:
            try:
                outcome = await self._router.dispatch(request)
            except DispatchError as e:
                return GenerationOutcome.failed(ErrorKind.UNKNOWN, str(e))
        else:
            outcome = await self._run_generation_fn(generation_fn)
        if not outcome.success:
            return outcome

        if isinstance(outcome.payload, ProviderResult):
            provider = outcome.payload.provider
        else:
            provider = request.provider or self._resolver.resolve(request.model_id).provider

        outcome.settlement = await self._metering.settle(
            request.user_id,
            request.model_id,
            provider,
            decision.cost.cost_per_message,
            request.category,
        )
        return outcome

    async def _run_generation_fn(self, generation_fn: GenerationFn) -> GenerationOutcome:
        try:
            payload = await generation_fn()
        except Exception as e:
            kind = self._classifier.classify(e)
            return GenerationOutcome.failed(kind, f"{e}\n\n{self._classifier.remediation(kind)}")
        if payload is None:
            return GenerationOutcome.failed(ErrorKind.UNKNOWN, "Generation returned no result")
        return GenerationOutcome.succeeded(payload)

    async def generate(
        self,
        user_id: str,
        prompt: str,
        model_id: str,
        category: GenerationCategory = "chat",
    ) -> GenerationOutcome:
        """Generate from a single prompt."""
        return await self.execute(GenerationRequest.from_prompt(user_id, prompt, model_id, category))

    @staticmethod
    def quota_message(category: str, is_unmetered: bool, current: int, limit: int) -> str:
        return format_quota_message(category, is_unmetered, current, limit)

    async def aclose(self) -> None:
        await self._registry.aclose()
        await self._quota_store.aclose()
        if self._balance_store is not self._quota_store:
            await self._balance_store.aclose()

    async def __aenter__(self) -> "GenerationService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
