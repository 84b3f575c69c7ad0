"""
Property-based tests for post-success metering.

Feature: ai-dispatch
Property 11: 扣费与计数顺序
"""

import asyncio

from hypothesis import given, strategies as st, settings

from ai_dispatch.metering import MeteringUnit
from ai_dispatch.models import DebitResult, GENERATION_CATEGORIES
from ai_dispatch.stores.base import BalanceStore, StoreError
from ai_dispatch.stores.memory import InMemoryBalanceStore, InMemoryQuotaStore

from helpers import silent_logger


class _RecordingQuotaStore(InMemoryQuotaStore):
    def __init__(self, events: list[str], fail: bool = False):
        super().__init__()
        self.events = events
        self.fail = fail

    async def increment_count(self, user_id, category):
        self.events.append("increment")
        if self.fail:
            raise StoreError("increment_generation request failed: timeout")
        return await super().increment_count(user_id, category)


class _RecordingBalanceStore(InMemoryBalanceStore):
    def __init__(self, events: list[str]):
        super().__init__()
        self.events = events

    async def debit(self, user_id, model_id, provider, amount, category) -> DebitResult:
        self.events.append("debit")
        return await super().debit(user_id, model_id, provider, amount, category)


class _UnreachableBalanceStore(BalanceStore):
    async def get_tier(self, user_id):
        return None

    async def debit(self, user_id, model_id, provider, amount, category):
        raise StoreError("deduct_tokens request failed: connection refused")


class _ExplodingQuotaStore(InMemoryQuotaStore):
    def __init__(self, events: list[str]):
        super().__init__()
        self.events = events

    async def increment_count(self, user_id, category):
        self.events.append("increment")
        raise RuntimeError("counter backend exploded")


class _GarbledBalanceStore(BalanceStore):
    async def get_tier(self, user_id):
        return None

    async def debit(self, user_id, model_id, provider, amount, category):
        raise ValueError("invalid literal for int() with base 10: 'lots'")


class TestSettlementOrder:
    """
    Property 11: 扣费与计数顺序

    The debit always precedes the increment; the increment always runs;
    a failed increment never rolls back a debit.
    """

    @settings(max_examples=100)
    @given(
        balance=st.integers(min_value=0, max_value=10_000),
        cost=st.integers(min_value=0, max_value=10_000),
        category=st.sampled_from(GENERATION_CATEGORIES),
        tier=st.sampled_from(["free", "premium"]),
    )
    def test_debit_then_increment(self, balance: int, cost: int, category: str, tier: str):
        events: list[str] = []
        quota_store = _RecordingQuotaStore(events)
        balance_store = _RecordingBalanceStore(events)
        balance_store.set_account("u1", tier=tier, paid_tokens=balance)
        metering = MeteringUnit(quota_store, balance_store, request_logger=silent_logger("metering"))

        result = asyncio.run(metering.settle("u1", "grok-2", "groq", cost, category))

        assert events == ["debit", "increment"]
        assert result.counted
        assert quota_store.get_count("u1", category) == 1
        assert result.debited == (balance >= cost)
        if result.debited:
            assert balance_store.balance_of("u1") == balance - cost
            assert result.balance == balance - cost
        else:
            assert balance_store.balance_of("u1") == balance
            assert result.error == "Insufficient tokens"

    def test_increment_failure_keeps_the_debit(self):
        events: list[str] = []
        quota_store = _RecordingQuotaStore(events, fail=True)
        balance_store = _RecordingBalanceStore(events)
        balance_store.set_account("p1", tier="premium", paid_tokens=1000)
        metering = MeteringUnit(quota_store, balance_store, request_logger=silent_logger("metering"))

        result = asyncio.run(metering.settle("p1", "grok-2", "gemini", 300, "chat"))

        assert events == ["debit", "increment"]
        assert result.debited
        assert not result.counted
        assert result.ok
        assert balance_store.balance_of("p1") == 700
        assert len(balance_store.transactions_of("p1")) == 1

    def test_unexpected_increment_error_keeps_the_debit(self):
        events: list[str] = []
        quota_store = _ExplodingQuotaStore(events)
        balance_store = _RecordingBalanceStore(events)
        balance_store.set_account("p1", tier="premium", paid_tokens=1000)
        metering = MeteringUnit(quota_store, balance_store, request_logger=silent_logger("metering"))

        result = asyncio.run(metering.settle("p1", "grok-2", "gemini", 300, "chat"))

        assert events == ["debit", "increment"]
        assert result.debited
        assert not result.counted
        assert result.ok
        assert result.increment_error == "RuntimeError: counter backend exploded"
        assert balance_store.balance_of("p1") == 700

    def test_unexpected_debit_error_still_counts(self):
        quota_store = InMemoryQuotaStore()
        metering = MeteringUnit(quota_store, _GarbledBalanceStore(), request_logger=silent_logger("metering"))

        result = asyncio.run(metering.settle("u1", "grok-2", "groq", 300, "chat"))

        assert not result.debited
        assert result.counted
        assert result.error.startswith("Failed to deduct tokens:")
        assert quota_store.get_count("u1", "chat") == 1

    def test_debit_failure_still_counts(self):
        quota_store = InMemoryQuotaStore()
        metering = MeteringUnit(quota_store, _UnreachableBalanceStore(), request_logger=silent_logger("metering"))

        result = asyncio.run(metering.settle("u1", "grok-2", "groq", 300, "chat"))

        assert not result.debited
        assert result.counted
        assert result.error.startswith("Failed to deduct tokens:")
        assert quota_store.get_count("u1", "chat") == 1

    def test_free_tokens_are_spent_first(self):
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("p1", tier="premium", free_tokens=200, paid_tokens=1000)
        metering = MeteringUnit(InMemoryQuotaStore(), balance_store, request_logger=silent_logger("metering"))

        asyncio.run(metering.settle("p1", "grok-2", "groq", 300, "chat"))
        tier = asyncio.run(balance_store.get_tier("p1"))

        assert tier.free_tokens == 0
        assert tier.paid_tokens == 900
