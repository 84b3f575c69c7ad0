"""
Admission controller: gates every generation behind quota and balance checks.
"""

from dataclasses import dataclass

from .classifier import ErrorClassifier
from .models import ErrorKind, GenerationOutcome, ModelCost, QuotaStatus, TierInfo
from .pricing import PricingTable
from .request_logger import RequestLogger, get_logger
from .stores.base import BalanceStore, QuotaStore, StoreError


def _describe(error: Exception) -> str:
    if isinstance(error, StoreError):
        return str(error)
    return f"{type(error).__name__}: {error}"


@dataclass
class BalanceCheck:
    """Outcome of comparing a model's cost against the current balance."""
    sufficient: bool
    required: int
    balance: int

    @property
    def message(self) -> str:
        if self.sufficient:
            return "Sufficient tokens"
        return (
            f"Insufficient tokens. This generation requires {self.required:,} tokens, "
            f"but you have {self.balance:,} tokens remaining."
        )


@dataclass
class AdmissionDecision:
    """Result of the full pre-generation check."""
    admitted: bool
    quota: QuotaStatus
    tier: TierInfo
    cost: ModelCost
    denial: GenerationOutcome | None = None


class AdmissionController:
    """
    Pre-generation gate.

    Order of checks:
    1. Category quota, for every tier
    2. Token balance against the model's cost, premium accounts only

    Every lookup goes to the stores; nothing is cached between requests.
    Store failures fail closed.
    """

    QUOTA_ERROR_MESSAGE = "Error checking limit"

    def __init__(
        self,
        quota_store: QuotaStore,
        balance_store: BalanceStore,
        pricing: PricingTable,
        request_logger: RequestLogger | None = None,
    ):
        self._quota_store = quota_store
        self._balance_store = balance_store
        self._pricing = pricing
        self._logger = request_logger or get_logger("admission")

    async def get_tier(self, user_id: str) -> TierInfo:
        """
        Read the user's tier, falling back to free with zero balance.
        """
        try:
            tier = await self._balance_store.get_tier(user_id)
        except Exception as e:
            self._logger.log_event("tier_lookup_failed", success=False, user_id=user_id, error=_describe(e))
            return TierInfo.fail_closed()
        if tier is None:
            return TierInfo.fail_closed()
        return tier

    async def admit(
        self,
        user_id: str,
        category: str,
        model_id: str,
        tier_hint: str | None = None,
    ) -> QuotaStatus:
        """
        Check the monthly category quota.

        Args:
            user_id: User identifier
            category: Generation category
            model_id: Logical model id (recorded, not priced here)
            tier_hint: Known tier; looked up when None

        Returns:
            QuotaStatus; can_generate is False when the store fails
        """
        if tier_hint is None:
            tier_hint = (await self.get_tier(user_id)).tier
        try:
            return await self._quota_store.check_limit(user_id, category, tier_hint)
        except Exception as e:
            self._logger.log_event(
                "quota_check_failed", success=False,
                user_id=user_id, category=category, model_id=model_id, error=_describe(e),
            )
            return QuotaStatus(
                can_generate=False,
                current_count=0,
                monthly_limit=0,
                is_unmetered_tier=False,
                message=self.QUOTA_ERROR_MESSAGE,
            )

    async def verify_balance(
        self,
        user_id: str,
        model_id: str,
        tier: TierInfo | None = None,
    ) -> BalanceCheck:
        """
        Compare the model's per-message cost against the token balance.

        Args:
            user_id: User identifier
            model_id: Logical model id
            tier: Tier info read for this request; looked up when None
        """
        if tier is None:
            tier = await self.get_tier(user_id)
        cost = self._pricing.get_cost(model_id)
        return BalanceCheck(
            sufficient=tier.token_balance >= cost.cost_per_message,
            required=cost.cost_per_message,
            balance=tier.token_balance,
        )

    async def check(self, user_id: str, category: str, model_id: str) -> AdmissionDecision:
        """
        Run the full admission sequence for one request.

        Returns:
            AdmissionDecision whose denial outcome is set when not admitted
        """
        tier = await self.get_tier(user_id)
        cost = self._pricing.get_cost(model_id)
        quota = await self.admit(user_id, category, model_id, tier_hint=tier.tier)

        if not quota.can_generate:
            self._logger.log_event(
                "limit_reached", success=False,
                user_id=user_id, category=category, model_id=model_id,
                current=quota.current_count, limit=quota.monthly_limit,
            )
            denial = GenerationOutcome.failed(
                ErrorKind.LIMIT_REACHED,
                quota.message or ErrorClassifier.REMEDIATION[ErrorKind.LIMIT_REACHED],
                limit_reached=True,
            )
            return AdmissionDecision(False, quota, tier, cost, denial)

        # Free accounts are gated by quota alone
        if tier.is_premium:
            balance = await self.verify_balance(user_id, model_id, tier)
            if not balance.sufficient:
                self._logger.log_event(
                    "insufficient_tokens", success=False,
                    user_id=user_id, category=category, model_id=model_id,
                    required=balance.required, balance=balance.balance,
                )
                denial = GenerationOutcome.failed(
                    ErrorKind.INSUFFICIENT_TOKENS,
                    balance.message,
                    insufficient_tokens=True,
                )
                return AdmissionDecision(False, quota, tier, cost, denial)

        return AdmissionDecision(True, quota, tier, cost)
