"""
AI Dispatch - 多供应商AI请求调度与准入控制

Resolves logical model ids to providers, dispatches with sequential
cross-provider fallback, gates generations behind quota and token balance
checks, and meters usage only after a success.

Example usage:
    from ai_dispatch import GenerationService

    service = GenerationService(config_path="config.yaml")
    outcome = await service.generate(
        user_id="user123",
        prompt="Hello, world!",
        model_id="grok-2",
    )
    if outcome.success:
        print(outcome.payload.content)
    else:
        print(outcome.error_kind, outcome.error_message)
"""

__version__ = "0.1.0"

# Core data models
from .models import (
    AttemptRecord,
    DebitResult,
    ErrorKind,
    FallbackCandidate,
    GenerationOutcome,
    GenerationRequest,
    Message,
    ModelCost,
    ModelRoute,
    ProviderResult,
    QuotaStatus,
    SettlementResult,
    TierInfo,
)

# Configuration management
from .config import ConfigManager, ConfigError

# Components
from .resolver import ModelResolver
from .classifier import ErrorClassifier, classify
from .pricing import PricingTable
from .router import FallbackRouter, DispatchError
from .admission import AdmissionController, AdmissionDecision, BalanceCheck
from .metering import MeteringUnit

# Stores
from .stores import (
    BalanceStore,
    QuotaStore,
    StoreError,
    InMemoryBalanceStore,
    InMemoryQuotaStore,
    RpcBalanceStore,
    RpcClient,
    RpcQuotaStore,
)

# Main entry point
from .service import GenerationService, ValidationError

# Provider adapters (for advanced usage)
from .adapters import (
    AdapterRegistry,
    ProviderAdapter,
    ProviderError,
    ProviderErrorKind,
)

__all__ = [
    "__version__",
    # Main entry point
    "GenerationService",
    "ValidationError",
    # Data models
    "AttemptRecord",
    "DebitResult",
    "ErrorKind",
    "FallbackCandidate",
    "GenerationOutcome",
    "GenerationRequest",
    "Message",
    "ModelCost",
    "ModelRoute",
    "ProviderResult",
    "QuotaStatus",
    "SettlementResult",
    "TierInfo",
    # Configuration
    "ConfigManager",
    "ConfigError",
    # Components
    "ModelResolver",
    "ErrorClassifier",
    "classify",
    "PricingTable",
    "FallbackRouter",
    "DispatchError",
    "AdmissionController",
    "AdmissionDecision",
    "BalanceCheck",
    "MeteringUnit",
    # Stores
    "BalanceStore",
    "QuotaStore",
    "StoreError",
    "InMemoryBalanceStore",
    "InMemoryQuotaStore",
    "RpcBalanceStore",
    "RpcClient",
    "RpcQuotaStore",
    # Provider adapters
    "AdapterRegistry",
    "ProviderAdapter",
    "ProviderError",
    "ProviderErrorKind",
]
