"""
Metering unit: records usage after a successful generation.
"""

from .models import SettlementResult
from .request_logger import RequestLogger, get_logger
from .stores.base import BalanceStore, QuotaStore, StoreError


class MeteringUnit:
    """
    Post-success accounting.

    The token debit comes first and is authoritative. The quota increment
    follows and is best-effort: if it fails the debit stands and the drift
    is only logged.
    """

    def __init__(
        self,
        quota_store: QuotaStore,
        balance_store: BalanceStore,
        request_logger: RequestLogger | None = None,
    ):
        self._quota_store = quota_store
        self._balance_store = balance_store
        self._logger = request_logger or get_logger("metering")

    async def settle(
        self,
        user_id: str,
        model_id: str,
        provider: str,
        cost: int,
        category: str,
    ) -> SettlementResult:
        """
        Debit the model cost, then count the generation.

        Args:
            user_id: User identifier
            model_id: Logical model id that was requested
            provider: Provider that actually served the request
            cost: Tokens to debit
            category: Generation category

        Returns:
            SettlementResult; never raises on store failures
        """
        debited = False
        balance = None
        transaction_id = None
        error = None

        try:
            debit = await self._balance_store.debit(user_id, model_id, provider, cost, category)
        except Exception as e:
            # Any store failure is reported, never raised past settlement
            error = f"Failed to deduct tokens: {e}"
        else:
            debited = debit.success
            balance = debit.balance
            transaction_id = debit.transaction_id
            if not debit.success:
                error = debit.error or "Token deduction failed"

        self._logger.log_event(
            "debit", success=debited,
            user_id=user_id, model_id=model_id, provider=provider,
            amount=cost, category=category, balance=balance, error=error,
            transaction_id=transaction_id,
        )

        try:
            counted = await self._quota_store.increment_count(user_id, category)
            increment_error = None if counted else "increment refused"
        except Exception as e:
            counted = False
            increment_error = str(e) if isinstance(e, StoreError) else f"{type(e).__name__}: {e}"

        if not counted:
            # Bookkeeping drift only; the debit is not rolled back
            self._logger.log_event(
                "increment_failed", success=False,
                user_id=user_id, category=category, error=increment_error, debited=debited,
            )

        return SettlementResult(
            debited=debited, counted=counted, balance=balance, error=error,
            increment_error=increment_error,
        )
