"""
Contracts of the remote quota and balance stores.
"""

from abc import ABC, abstractmethod

from ..models import DebitResult, QuotaStatus, TierInfo


class StoreError(Exception):
    """Raised when a quota or balance store cannot be reached or answers badly."""
    pass


CATEGORY_NAMES: dict[str, str] = {
    "image": "image",
    "video": "video",
    "song": "song",
    "tts": "text-to-speech conversion",
    "ppt": "presentation",
    "chat": "chat message",
}


def format_quota_message(category: str, is_unmetered: bool, current: int, limit: int) -> str:
    """
    Human-readable remaining-quota message.

    >>> format_quota_message("image", False, 2, 5)
    '3 of 5 free images remaining this month'
    """
    if is_unmetered:
        return "Unlimited generations (token-based billing)"

    remaining = max(0, limit - current)
    name = CATEGORY_NAMES.get(category, category)
    plural = "" if remaining == 1 else "s"
    return f"{remaining} of {limit} free {name}{plural} remaining this month"


class QuotaStore(ABC):
    """Monthly per-category generation counters."""

    @abstractmethod
    async def check_limit(self, user_id: str, category: str, tier_hint: str) -> QuotaStatus:
        """
        Check whether the user may generate in this category this month.

        Raises:
            StoreError: If the store cannot answer
        """

    @abstractmethod
    async def increment_count(self, user_id: str, category: str) -> bool:
        """
        Count one generation. Returns False if the store refused.

        Raises:
            StoreError: If the store cannot be reached
        """

    async def aclose(self) -> None:
        return None


class BalanceStore(ABC):
    """Account tiers and token balances."""

    @abstractmethod
    async def get_tier(self, user_id: str) -> TierInfo | None:
        """
        Fetch the user's tier and balance. None when no record exists.

        Raises:
            StoreError: If the store cannot answer
        """

    @abstractmethod
    async def debit(
        self,
        user_id: str,
        model_id: str,
        provider: str,
        amount: int,
        category: str,
    ) -> DebitResult:
        """
        Atomically decrement the balance if it covers the amount.

        Raises:
            StoreError: If the store cannot be reached
        """

    async def aclose(self) -> None:
        return None
