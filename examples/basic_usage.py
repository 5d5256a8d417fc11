"""Turn meeting notes into backlog items with backlog-gateway."""

import asyncio

from pydantic import BaseModel

from backlog_gateway import LLMClient, LLMRequest, format_currency


class BacklogItem(BaseModel):
    """One refined backlog item."""

    title: str
    description: str
    priority: int


class Backlog(BaseModel):
    items: list[BacklogItem]


NOTES = """
Anna: customers keep asking for CSV export on the reports page.
Ben: login times out on mobile after a minute, that's urgent.
"""


async def main() -> None:
    """Estimate, then run one structured extraction call."""
    request = LLMRequest(
        system_prompt=(
            "Extract backlog items from meeting notes. Reply with JSON shaped like "
            '{"items": [{"title": ..., "description": ..., "priority": 1-5}]}.'
        ),
        user_prompt=NOTES,
        temperature=0.2,
    )

    # LLMClient reads LLM_* env vars automatically
    async with LLMClient() as llm:
        estimate = llm.estimate_cost(request)
        print(f"Estimated: {format_currency(estimate.cost, estimate.currency)}")

        backlog = await llm.send_structured(request, operation="extract", response_model=Backlog)
        for item in backlog.items:
            print(f"[P{item.priority}] {item.title}: {item.description}")

        print(f"Actual: ${llm.total_cost_usd:.6f} over {llm.call_count} call(s)")


if __name__ == "__main__":
    asyncio.run(main())
