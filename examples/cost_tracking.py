"""Demonstrates cost tracking, guardrails and the CSV cost ledger."""

import asyncio
import uuid

from backlog_gateway import GatewayConfig, LLMClient, LLMRequest
from backlog_gateway.exceptions import CostLimitExceededError
from backlog_gateway.observability import bind_run_context


async def main() -> None:
    """Run several refinement calls, then append this run to the ledger."""
    run_id = uuid.uuid4().hex[:8]
    bind_run_context(run_id=run_id)

    config = GatewayConfig(
        cost_limit_usd=0.10,  # Hard limit: $0.10
        cost_warn_usd=0.05,  # Warning at $0.05
    )
    async with LLMClient(config=config) as llm:
        for i in range(10):
            request = LLMRequest(
                system_prompt="Rewrite the backlog item as a user story.",
                user_prompt=f"Backlog item {i}: export reports to CSV",
            )
            if not llm.tracker.can_afford(llm.estimate_cost(request, "USD").cost_usd):
                print("Next call would exceed the budget, stopping early")
                break
            try:
                resp = await llm.send(request, operation="refine")
            except CostLimitExceededError as exc:
                print(f"Cost limit reached after {llm.call_count} calls: {exc}")
                break
            print(f"Call {i}: ${resp.cost_usd:.6f} | Cumulative: ${llm.total_cost_usd:.6f}")

        print(f"\nFinal summary: {llm.cost_summary()}")
        path = llm.tracker.export_ledger(config.ledger_path, run_id=run_id)
        print(f"Ledger updated: {path}")


if __name__ == "__main__":
    asyncio.run(main())
