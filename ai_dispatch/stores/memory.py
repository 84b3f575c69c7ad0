"""
In-process quota and balance stores.

Used by the example script and tests; production deployments talk to the
RPC stores instead.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ..config import DEFAULT_FREE_LIMITS
from ..models import DebitResult, QuotaStatus, TierInfo
from .base import BalanceStore, QuotaStore, format_quota_message


class InMemoryQuotaStore(QuotaStore):
    """
    Month-keyed generation counters.

    Premium accounts are unmetered; free accounts are capped per category.
    """

    def __init__(
        self,
        free_limits: dict[str, int] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.free_limits = dict(free_limits if free_limits is not None else DEFAULT_FREE_LIMITS)
        self._clock = clock
        self._counts: dict[tuple[str, str, str], int] = {}
        self._lock = asyncio.Lock()

    def _month(self) -> str:
        return self._clock().strftime("%Y-%m")

    def get_count(self, user_id: str, category: str) -> int:
        return self._counts.get((user_id, category, self._month()), 0)

    def set_count(self, user_id: str, category: str, count: int) -> None:
        self._counts[(user_id, category, self._month())] = count

    async def check_limit(self, user_id: str, category: str, tier_hint: str) -> QuotaStatus:
        current = self.get_count(user_id, category)
        limit = self.free_limits.get(category, 0)
        if tier_hint == "premium":
            return QuotaStatus(
                can_generate=True,
                current_count=current,
                monthly_limit=limit,
                is_unmetered_tier=True,
                message=format_quota_message(category, True, current, limit),
            )
        return QuotaStatus(
            can_generate=current < limit,
            current_count=current,
            monthly_limit=limit,
            is_unmetered_tier=False,
            message=format_quota_message(category, False, current, limit),
        )

    async def increment_count(self, user_id: str, category: str) -> bool:
        async with self._lock:
            key = (user_id, category, self._month())
            self._counts[key] = self._counts.get(key, 0) + 1
        return True


@dataclass
class _Account:
    tier: str = "free"
    free_tokens: int = 0
    paid_tokens: int = 0
    transactions: list[DebitResult] = field(default_factory=list)

    @property
    def balance(self) -> int:
        return self.free_tokens + self.paid_tokens


class InMemoryBalanceStore(BalanceStore):
    """
    Token balances with a conditional debit.

    Free tokens are spent before paid tokens. A debit larger than the
    balance is refused without touching it.
    """

    def __init__(self):
        self._accounts: dict[str, _Account] = {}
        self._lock = asyncio.Lock()

    def set_account(
        self,
        user_id: str,
        tier: str = "free",
        free_tokens: int = 0,
        paid_tokens: int = 0,
    ) -> None:
        self._accounts[user_id] = _Account(tier=tier, free_tokens=free_tokens, paid_tokens=paid_tokens)

    def balance_of(self, user_id: str) -> int:
        account = self._accounts.get(user_id)
        return account.balance if account else 0

    def transactions_of(self, user_id: str) -> list[DebitResult]:
        account = self._accounts.get(user_id)
        return list(account.transactions) if account else []

    async def get_tier(self, user_id: str) -> TierInfo | None:
        account = self._accounts.get(user_id)
        if account is None:
            return None
        return TierInfo(
            tier=account.tier,
            token_balance=account.balance,
            free_tokens=account.free_tokens,
            paid_tokens=account.paid_tokens,
        )

    async def debit(
        self,
        user_id: str,
        model_id: str,
        provider: str,
        amount: int,
        category: str,
    ) -> DebitResult:
        async with self._lock:
            account = self._accounts.get(user_id)
            if account is None:
                return DebitResult(success=False, balance=0, error="Account not found")
            if amount > account.balance:
                return DebitResult(success=False, balance=account.balance, error="Insufficient tokens")

            from_free = min(amount, account.free_tokens)
            account.free_tokens -= from_free
            account.paid_tokens -= amount - from_free

            result = DebitResult(
                success=True,
                balance=account.balance,
                transaction_id=uuid.uuid4().hex,
            )
            account.transactions.append(result)
            return result
