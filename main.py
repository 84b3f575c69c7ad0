"""
AI Dispatch usage example.

Loads a configuration, seeds in-memory quota and balance stores for one
user, runs a single generation and prints the outcome.

Usage:
    python main.py "What is the capital of France?"
    python main.py "Hello" --model gemini-flash --tier premium --tokens 5000
    python main.py "Hello" --config config.yaml --used 50
"""

import argparse
import asyncio

from ai_dispatch import (
    ConfigError,
    ConfigManager,
    GenerationOutcome,
    GenerationRequest,
    GenerationService,
    InMemoryBalanceStore,
    InMemoryQuotaStore,
    ProviderResult,
)


def print_outcome(outcome: GenerationOutcome) -> None:
    print("=" * 60)
    if outcome.success:
        payload = outcome.payload
        if isinstance(payload, ProviderResult):
            print(f"Provider: {payload.provider}")
            print(f"Model: {payload.model}")
            print(f"Input Tokens: {payload.input_tokens}")
            print(f"Output Tokens: {payload.output_tokens}")
            print(f"\n{payload.content}")
        else:
            print(f"Result: {payload}")
        if outcome.settlement:
            print(f"\nDebited: {outcome.settlement.debited} (balance {outcome.settlement.balance})")
            if outcome.settlement.error:
                print(f"Settlement error: {outcome.settlement.error}")
    else:
        print(f"Failed ({outcome.error_kind.value})")
        if outcome.limit_reached:
            print("Monthly limit reached")
        if outcome.insufficient_tokens:
            print("Insufficient tokens")
        print(f"\n{outcome.error_message}")

    if outcome.attempts:
        print("\nAttempts:")
        for attempt in outcome.attempts:
            status = "ok" if attempt.success else f"failed: {attempt.error}"
            print(f"  {attempt.provider}/{attempt.model} {attempt.duration_ms:.0f}ms {status}")
    print("=" * 60)


async def run(args: argparse.Namespace) -> int:
    config_manager = ConfigManager(args.config)
    quota_store = InMemoryQuotaStore()
    balance_store = InMemoryBalanceStore()
    try:
        config_manager.load()
        quota_store.free_limits = dict(config_manager.config.quota.free_limits)
        service = GenerationService(
            config_manager=config_manager,
            quota_store=quota_store,
            balance_store=balance_store,
        )
    except ConfigError as e:
        print(f"Config error: {e}")
        return 1

    balance_store.set_account(args.user, tier=args.tier, paid_tokens=args.tokens)
    quota_store.set_count(args.user, args.category, args.used)

    async with service:
        status = await service.admission.admit(args.user, args.category, args.model, tier_hint=args.tier)
        print(f"Quota: {status.message}")

        request = GenerationRequest.from_prompt(args.user, args.prompt, args.model, args.category)
        outcome = await service.execute(request)

    print_outcome(outcome)
    return 0 if outcome.success else 2


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one gated, metered AI generation.")
    parser.add_argument("prompt", help="User prompt")
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    parser.add_argument("--model", default="grok-2", help="Logical model id (default: grok-2)")
    parser.add_argument("--category", default="chat", help="Generation category (default: chat)")
    parser.add_argument("--user", default="demo-user", help="User id for the in-memory stores")
    parser.add_argument("--tier", choices=["free", "premium"], default="free", help="Account tier")
    parser.add_argument("--tokens", type=int, default=10_000, help="Starting token balance")
    parser.add_argument("--used", type=int, default=0, help="Generations already used this month")
    args = parser.parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
