"""
Quota and balance stores.
"""

from .base import BalanceStore, QuotaStore, StoreError, format_quota_message
from .memory import InMemoryBalanceStore, InMemoryQuotaStore
from .rpc import RpcBalanceStore, RpcClient, RpcQuotaStore

__all__ = [
    "BalanceStore",
    "QuotaStore",
    "StoreError",
    "format_quota_message",
    "InMemoryBalanceStore",
    "InMemoryQuotaStore",
    "RpcBalanceStore",
    "RpcClient",
    "RpcQuotaStore",
]
