"""
Core data models for the AI dispatch system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


GenerationCategory = Literal["image", "video", "song", "tts", "chat", "ppt"]
GENERATION_CATEGORIES: tuple[str, ...] = ("image", "video", "song", "tts", "chat", "ppt")

MESSAGE_ROLES: tuple[str, ...] = ("user", "assistant", "system")


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced to callers."""
    LIMIT_REACHED = "limit_reached"
    INSUFFICIENT_TOKENS = "insufficient_tokens"
    QUOTA_RATE_LIMIT = "quota_rate_limit"
    NETWORK = "network"
    AUTH_CONFIG = "auth_config"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Message:
    """One turn of a conversation."""
    role: Literal["user", "assistant", "system"]
    content: str

    def validate(self) -> list[str]:
        errors = []
        if self.role not in MESSAGE_ROLES:
            errors.append(f"role must be one of: {', '.join(MESSAGE_ROLES)}")
        if not isinstance(self.content, str):
            errors.append("content must be a string")
        return errors

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ModelRoute:
    """Static mapping from a logical model id to a concrete provider model."""
    logical_model_id: str
    provider: str
    provider_model: str
    fallback_model: str | None = None


@dataclass(frozen=True)
class FallbackCandidate:
    """An alternate provider tried after the primary route fails."""
    provider: str
    provider_model: str
    display_name: str
    speed_tier: Literal["fast", "medium", "slow"] = "medium"


@dataclass
class GenerationRequest:
    """A single user generation, consumed once."""
    user_id: str
    category: GenerationCategory
    model_id: str
    messages: tuple[Message, ...] = ()
    provider: str | None = None

    def __post_init__(self):
        # Conversation order matters and must not change during a request
        self.messages = tuple(self.messages)

    @classmethod
    def from_prompt(
        cls,
        user_id: str,
        prompt: str,
        model_id: str,
        category: GenerationCategory = "chat",
    ) -> "GenerationRequest":
        return cls(
            user_id=user_id,
            category=category,
            model_id=model_id,
            messages=(Message(role="user", content=prompt),),
        )

    def validate(self) -> list[str]:
        """验证请求参数，返回错误列表"""
        errors = []
        if not self.user_id or not self.user_id.strip():
            errors.append("user_id is required and cannot be empty")
        if not self.model_id or not self.model_id.strip():
            errors.append("model_id is required and cannot be empty")
        if self.category not in GENERATION_CATEGORIES:
            errors.append(f"category must be one of: {', '.join(GENERATION_CATEGORIES)}")
        if self.category == "chat":
            if not self.messages:
                errors.append("messages are required for chat generation")
            elif not any(m.content.strip() for m in self.messages if isinstance(m.content, str)):
                errors.append("messages cannot all be empty")
        for index, message in enumerate(self.messages):
            for error in message.validate():
                errors.append(f"messages[{index}]: {error}")
        return errors


@dataclass
class ProviderResult:
    """Normalized result of a single provider call."""
    content: str
    provider: str
    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    raw_response: dict | None = None


@dataclass
class AttemptRecord:
    """One provider call made while dispatching a request."""
    provider: str
    model: str
    success: bool
    error: str | None = None
    duration_ms: float = 0.0


@dataclass
class QuotaStatus:
    """Monthly category quota, derived fresh on every request."""
    can_generate: bool
    current_count: int
    monthly_limit: int
    is_unmetered_tier: bool
    message: str

    @property
    def remaining(self) -> int:
        return max(0, self.monthly_limit - self.current_count)


@dataclass
class TierInfo:
    """Account tier and token balance as reported by the billing store."""
    tier: Literal["free", "premium"] = "free"
    token_balance: int = 0
    free_tokens: int = 0
    paid_tokens: int = 0

    @property
    def is_premium(self) -> bool:
        return self.tier == "premium"

    @classmethod
    def fail_closed(cls) -> "TierInfo":
        """Free tier with an empty balance, used whenever the lookup fails."""
        return cls(tier="free", token_balance=0, free_tokens=0, paid_tokens=0)


@dataclass(frozen=True)
class ModelCost:
    """Token price of one generation with a given model."""
    model_id: str
    cost_per_message: int
    is_default: bool = False


@dataclass
class DebitResult:
    """Result of a balance store debit."""
    success: bool
    balance: int = 0
    transaction_id: str | None = None
    error: str | None = None


@dataclass
class SettlementResult:
    """What the metering unit managed to record for a successful generation."""
    debited: bool
    counted: bool
    balance: int | None = None
    error: str | None = None
    # Set when the quota increment failed; the debit still stands
    increment_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.debited and self.error is None


@dataclass
class GenerationOutcome:
    """
    Terminal value returned to the caller.

    Either a success (payload present, no error kind) or a failure
    (payload absent), never both.
    """
    success: bool
    payload: Any = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    limit_reached: bool = False
    insufficient_tokens: bool = False
    attempts: list[AttemptRecord] = field(default_factory=list)
    settlement: SettlementResult | None = None

    def __post_init__(self):
        if self.success:
            if self.payload is None:
                raise ValueError("successful outcome requires a payload")
            if self.error_kind is not None:
                raise ValueError("successful outcome cannot carry an error kind")
        elif self.payload is not None:
            raise ValueError("failed outcome cannot carry a payload")

    @classmethod
    def succeeded(cls, payload: Any, attempts: list[AttemptRecord] | None = None) -> "GenerationOutcome":
        return cls(success=True, payload=payload, attempts=list(attempts or []))

    @classmethod
    def failed(
        cls,
        error_kind: ErrorKind,
        error_message: str,
        attempts: list[AttemptRecord] | None = None,
        limit_reached: bool = False,
        insufficient_tokens: bool = False,
    ) -> "GenerationOutcome":
        return cls(
            success=False,
            error_kind=error_kind,
            error_message=error_message,
            limit_reached=limit_reached,
            insufficient_tokens=insufficient_tokens,
            attempts=list(attempts or []),
        )

    @property
    def attempted_providers(self) -> list[str]:
        """Distinct providers called, in attempt order."""
        seen: list[str] = []
        for attempt in self.attempts:
            if attempt.provider not in seen:
                seen.append(attempt.provider)
        return seen
