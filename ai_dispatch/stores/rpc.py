"""
Quota and balance stores backed by PostgREST-style remote procedures.

Each operation is one POST to {url}/rest/v1/rpc/<function>; atomicity of
the debit and the increment is the database function's job.
"""

from typing import Any

import httpx

from ..config import StoreConfig
from ..models import DebitResult, QuotaStatus, TierInfo
from .base import BalanceStore, QuotaStore, StoreError


class RpcClient:
    """Thin async client for calling remote database functions."""

    def __init__(self, config: StoreConfig, client: httpx.AsyncClient | None = None):
        if not config.url:
            raise StoreError("store.url is required for RPC stores")
        self.base_url = config.url.rstrip("/")
        self.api_key = config.api_key or ""
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    async def call(self, function: str, params: dict[str, Any]) -> Any:
        """
        Invoke a remote procedure and return its decoded JSON result.

        Raises:
            StoreError: On transport failure, non-2xx status or invalid JSON
        """
        url = f"{self.base_url}/rest/v1/rpc/{function}"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(url, headers=headers, json=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StoreError(f"{function} failed with status {e.response.status_code}: {e.response.text}")
        except httpx.HTTPError as e:
            raise StoreError(f"{function} request failed: {e}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"{function} returned invalid JSON: {e}")

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()


def _single(data: Any) -> dict | None:
    """Unwrap a set-returning function result to its first row."""
    if isinstance(data, list):
        return data[0] if data else None
    return data


class RpcQuotaStore(QuotaStore):
    """Quota counters kept by check_generation_limit / increment_generation."""

    def __init__(self, client: RpcClient):
        self._rpc = client

    async def check_limit(self, user_id: str, category: str, tier_hint: str) -> QuotaStatus:
        data = _single(await self._rpc.call("check_generation_limit", {
            "p_user_id": user_id,
            "p_generation_type": category,
            "p_user_type": tier_hint,
        }))
        if not isinstance(data, dict):
            raise StoreError("check_generation_limit returned no data")
        try:
            return QuotaStatus(
                can_generate=bool(data["can_generate"]),
                current_count=int(data.get("current") or 0),
                monthly_limit=int(data.get("limit") or 0),
                is_unmetered_tier=bool(data.get("is_paid", False)),
                message=str(data.get("message") or ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"check_generation_limit returned malformed data: {e}")

    async def increment_count(self, user_id: str, category: str) -> bool:
        data = await self._rpc.call("increment_generation", {
            "p_user_id": user_id,
            "p_generation_type": category,
        })
        return data is True

    async def aclose(self) -> None:
        await self._rpc.aclose()


class RpcBalanceStore(BalanceStore):
    """Tiers and balances kept by get_user_tier / deduct_tokens."""

    def __init__(self, client: RpcClient):
        self._rpc = client

    async def get_tier(self, user_id: str) -> TierInfo | None:
        data = _single(await self._rpc.call("get_user_tier", {"p_user_id": user_id}))
        if not data:
            return None
        if not isinstance(data, dict):
            raise StoreError(f"get_user_tier returned unexpected data: {data!r}")
        if "is_premium" in data:
            premium = bool(data["is_premium"])
        else:
            premium = data.get("tier") == "premium"
        try:
            return TierInfo(
                tier="premium" if premium else "free",
                token_balance=int(data.get("token_balance") or 0),
                free_tokens=int(data.get("free_tokens") or 0),
                paid_tokens=int(data.get("paid_tokens") or 0),
            )
        except (TypeError, ValueError) as e:
            raise StoreError(f"get_user_tier returned malformed data: {e}")

    async def debit(
        self,
        user_id: str,
        model_id: str,
        provider: str,
        amount: int,
        category: str,
    ) -> DebitResult:
        data = _single(await self._rpc.call("deduct_tokens", {
            "p_user_id": user_id,
            "p_tokens": amount,
            "p_model": model_id,
            "p_provider": provider,
            "p_request_type": category,
        }))
        if not isinstance(data, dict):
            raise StoreError("deduct_tokens returned no data")
        try:
            balance = int(data.get("balance") or 0)
        except (TypeError, ValueError) as e:
            raise StoreError(f"deduct_tokens returned malformed balance: {e}")
        if not data.get("success"):
            return DebitResult(
                success=False,
                balance=balance,
                error=data.get("error") or "Token deduction failed",
            )
        return DebitResult(
            success=True,
            balance=balance,
            transaction_id=data.get("transaction_id"),
        )

    async def aclose(self) -> None:
        await self._rpc.aclose()
