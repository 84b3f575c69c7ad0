"""
Property-based tests for the admission controller.

Feature: ai-dispatch
Property 9: 准入顺序 (quota before balance)
Property 10: 存储故障时拒绝
"""

import asyncio

from hypothesis import given, strategies as st, settings

from ai_dispatch.admission import AdmissionController
from ai_dispatch.config import DEFAULT_FREE_LIMITS, ConfigManager
from ai_dispatch.models import GENERATION_CATEGORIES, ErrorKind, TierInfo
from ai_dispatch.pricing import PricingTable
from ai_dispatch.stores.base import BalanceStore, QuotaStore, StoreError
from ai_dispatch.stores.memory import InMemoryBalanceStore, InMemoryQuotaStore

from helpers import silent_logger


def build_controller(
    quota_store: QuotaStore | None = None,
    balance_store: BalanceStore | None = None,
    pricing: dict | None = None,
) -> AdmissionController:
    manager = ConfigManager.from_dict({"pricing": pricing or {}})
    return AdmissionController(
        quota_store or InMemoryQuotaStore(),
        balance_store or InMemoryBalanceStore(),
        PricingTable(manager),
        request_logger=silent_logger("admission"),
    )


class _BrokenQuotaStore(QuotaStore):
    async def check_limit(self, user_id, category, tier_hint):
        raise StoreError("check_generation_limit request failed: connection refused")

    async def increment_count(self, user_id, category):
        raise StoreError("increment_generation request failed: connection refused")


class _BrokenBalanceStore(BalanceStore):
    def __init__(self):
        self.debits = 0

    async def get_tier(self, user_id):
        raise StoreError("get_user_tier request failed: connection refused")

    async def debit(self, user_id, model_id, provider, amount, category):
        self.debits += 1
        raise StoreError("deduct_tokens request failed: connection refused")


class _FaultyQuotaStore(QuotaStore):
    def __init__(self, error: Exception):
        self.error = error

    async def check_limit(self, user_id, category, tier_hint):
        raise self.error

    async def increment_count(self, user_id, category):
        raise self.error


class _FaultyBalanceStore(BalanceStore):
    def __init__(self, error: Exception):
        self.error = error

    async def get_tier(self, user_id):
        raise self.error

    async def debit(self, user_id, model_id, provider, amount, category):
        raise self.error


UNEXPECTED_ERRORS = st.sampled_from([
    RuntimeError("backend exploded"),
    AttributeError("'str' object has no attribute 'get'"),
    ValueError("invalid literal for int()"),
])


class TestQuotaGate:
    """
    Property 9: 准入顺序

    Free accounts are admitted while under their monthly category limit;
    premium accounts are unmetered but must cover the model's cost.
    """

    @settings(max_examples=100)
    @given(
        category=st.sampled_from(GENERATION_CATEGORIES),
        used=st.integers(min_value=0, max_value=60),
    )
    def test_free_accounts_are_capped(self, category: str, used: int):
        quota_store = InMemoryQuotaStore()
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("u1", tier="free", free_tokens=0)
        quota_store.set_count("u1", category, used)
        controller = build_controller(quota_store, balance_store)

        decision = asyncio.run(controller.check("u1", category, "grok-2"))

        limit = DEFAULT_FREE_LIMITS[category]
        assert decision.admitted == (used < limit)
        assert decision.quota.current_count == used
        assert decision.quota.monthly_limit == limit
        if not decision.admitted:
            assert decision.denial.limit_reached
            assert decision.denial.error_kind == ErrorKind.LIMIT_REACHED
            assert not decision.denial.insufficient_tokens

    def test_free_image_at_limit(self):
        quota_store = InMemoryQuotaStore()
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("u1", tier="free")
        quota_store.set_count("u1", "image", 5)
        controller = build_controller(quota_store, balance_store)

        decision = asyncio.run(controller.check("u1", "image", "grok-2"))

        assert not decision.admitted
        assert decision.denial.limit_reached
        assert decision.quota.remaining == 0

    def test_free_accounts_skip_the_balance_check(self):
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("u1", tier="free", free_tokens=0)
        controller = build_controller(balance_store=balance_store, pricing={"models": {"grok-2": 10_000}})

        decision = asyncio.run(controller.check("u1", "chat", "grok-2"))

        assert decision.admitted

    @settings(max_examples=100)
    @given(
        balance=st.integers(min_value=0, max_value=5000),
        cost=st.integers(min_value=1, max_value=5000),
        used=st.integers(min_value=0, max_value=500),
    )
    def test_premium_accounts_need_balance(self, balance: int, cost: int, used: int):
        quota_store = InMemoryQuotaStore()
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("p1", tier="premium", paid_tokens=balance)
        quota_store.set_count("p1", "chat", used)
        controller = build_controller(quota_store, balance_store, pricing={"models": {"house": cost}})

        decision = asyncio.run(controller.check("p1", "chat", "house"))

        assert decision.quota.is_unmetered_tier
        assert decision.admitted == (balance >= cost)
        if not decision.admitted:
            assert decision.denial.insufficient_tokens
            assert decision.denial.error_kind == ErrorKind.INSUFFICIENT_TOKENS
            assert not decision.denial.limit_reached

    def test_premium_insufficient_message(self):
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("p1", tier="premium", paid_tokens=100)
        controller = build_controller(balance_store=balance_store, pricing={"models": {"house": 500}})

        decision = asyncio.run(controller.check("p1", "chat", "house"))

        assert decision.denial.error_message == (
            "Insufficient tokens. This generation requires 500 tokens, "
            "but you have 100 tokens remaining."
        )
        assert balance_store.balance_of("p1") == 100

    def test_unknown_model_is_priced_at_default(self):
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("p1", tier="premium", paid_tokens=999)
        controller = build_controller(balance_store=balance_store)

        decision = asyncio.run(controller.check("p1", "chat", "mystery-model"))

        assert decision.cost.is_default
        assert not decision.admitted


class TestFailClosed:
    """
    Property 10: 存储故障时拒绝

    A store that cannot answer never lets a request through.
    """

    def test_tier_lookup_failure_falls_back_to_free(self):
        controller = build_controller(balance_store=_BrokenBalanceStore())
        tier = asyncio.run(controller.get_tier("u1"))
        assert tier == TierInfo.fail_closed()

    def test_missing_account_is_free(self):
        controller = build_controller()
        tier = asyncio.run(controller.get_tier("nobody"))
        assert tier.tier == "free"
        assert tier.token_balance == 0

    @settings(max_examples=50)
    @given(category=st.sampled_from(GENERATION_CATEGORIES))
    def test_quota_store_failure_denies(self, category: str):
        controller = build_controller(quota_store=_BrokenQuotaStore())

        decision = asyncio.run(controller.check("u1", category, "grok-2"))

        assert not decision.admitted
        assert decision.quota.message == AdmissionController.QUOTA_ERROR_MESSAGE
        assert decision.denial.limit_reached

    def test_balance_store_failure_denies_premium_models(self):
        # A failed tier lookup degrades a premium user to free, which is then quota gated
        quota_store = InMemoryQuotaStore()
        quota_store.set_count("p1", "video", 1)
        controller = build_controller(quota_store=quota_store, balance_store=_BrokenBalanceStore())

        decision = asyncio.run(controller.check("p1", "video", "gpt-4o"))

        assert not decision.admitted
        assert decision.tier.tier == "free"

    @settings(max_examples=30)
    @given(error=UNEXPECTED_ERRORS)
    def test_unexpected_tier_error_falls_back_to_free(self, error: Exception):
        controller = build_controller(balance_store=_FaultyBalanceStore(error))
        tier = asyncio.run(controller.get_tier("p1"))
        assert tier == TierInfo.fail_closed()

    @settings(max_examples=30)
    @given(error=UNEXPECTED_ERRORS, category=st.sampled_from(GENERATION_CATEGORIES))
    def test_unexpected_quota_error_denies(self, error: Exception, category: str):
        controller = build_controller(quota_store=_FaultyQuotaStore(error))

        decision = asyncio.run(controller.check("u1", category, "grok-2"))

        assert not decision.admitted
        assert decision.quota.message == AdmissionController.QUOTA_ERROR_MESSAGE
        assert decision.denial.error_kind == ErrorKind.LIMIT_REACHED


class TestVerifyBalance:
    @settings(max_examples=100)
    @given(balance=st.integers(min_value=0, max_value=20_000))
    def test_verify_balance_against_model_cost(self, balance: int):
        balance_store = InMemoryBalanceStore()
        balance_store.set_account("p1", tier="premium", free_tokens=balance)
        controller = build_controller(balance_store=balance_store)

        check = asyncio.run(controller.verify_balance("p1", "gpt-4o"))

        assert check.required == 2500
        assert check.balance == balance
        assert check.sufficient == (balance >= 2500)
