"""Token cost formula and per-run cost tracking."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from backlog_gateway.exceptions import CostLimitExceededError
from backlog_gateway.types import LLMResponse, ModelPricing, TokenUsage

logger = logging.getLogger(__name__)

_PER_MILLION = 1_000_000


def cost_for_tokens(
    pricing: ModelPricing, input_tokens: int, output_tokens: int
) -> tuple[float, float]:
    """Calculate USD cost for a given token count.

    Returns:
        Tuple of (input_cost_usd, output_cost_usd).
    """
    input_cost = input_tokens / _PER_MILLION * pricing.input
    output_cost = output_tokens / _PER_MILLION * pricing.output
    return input_cost, output_cost


def build_token_usage(
    pricing: ModelPricing | None, input_tokens: int, output_tokens: int
) -> TokenUsage:
    """Build a TokenUsage, zero-priced when ``pricing`` is None."""
    if pricing is None:
        return TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)
    input_cost, output_cost = cost_for_tokens(pricing, input_tokens, output_tokens)
    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_cost_usd=input_cost,
        output_cost_usd=output_cost,
    )


# ── Tracker Records ─────────────────────────────────────────────


@dataclass(frozen=True)
class UsageRecord:
    """One recorded LLM call."""

    operation: str
    provider: str
    model: str
    usage: TokenUsage
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OperationTotals:
    input_tokens: int = 0
    output_tokens: int = 0
    call_count: int = 0
    cost_usd: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, usage: TokenUsage) -> None:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.cost_usd += usage.total_cost_usd
        self.call_count += 1


@dataclass(frozen=True)
class LedgerRow:
    """Aggregated usage of one model within a run, as persisted to the ledger."""

    timestamp: str
    run_id: str
    model: str
    call_count: int
    input_tokens: int
    output_tokens: int
    input_cost_usd: float
    output_cost_usd: float

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def total_cost_usd(self) -> float:
        return self.input_cost_usd + self.output_cost_usd


class CostTracker:
    """Accumulates token usage and cost across the LLM calls of one run.

    Records are appended under an internal lock and every total is derived
    from them, so concurrent ``record()`` calls from several in-flight
    requests need no locking by the caller. Supports cost guardrails (warn
    and hard limit); the limit check happens after the call is recorded,
    since the money is already spent.
    """

    def __init__(
        self,
        cost_limit_usd: float | None = None,
        cost_warn_usd: float | None = None,
        run_id: str | None = None,
    ) -> None:
        self._cost_limit = cost_limit_usd
        self._cost_warn = cost_warn_usd
        self.run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self._records: list[UsageRecord] = []
        self._lock = threading.Lock()
        self._warned: bool = False

    def record(self, response: LLMResponse, operation: str = "default") -> UsageRecord:
        """Record a single LLM call's usage and check guardrails."""
        return self.record_usage(
            response.usage,
            operation=operation,
            provider=response.provider,
            model=response.model,
        )

    def record_usage(
        self,
        usage: TokenUsage,
        *,
        operation: str = "default",
        provider: str = "unknown",
        model: str = "unknown",
    ) -> UsageRecord:
        entry = UsageRecord(operation=operation, provider=provider, model=model, usage=usage)
        with self._lock:
            self._records.append(entry)
            total = self._total_cost_locked()
            warn = (
                self._cost_warn is not None and not self._warned and total >= self._cost_warn
            )
            if warn:
                self._warned = True
        self._check_guardrails(total, warn)
        return entry

    def _check_guardrails(self, total: float, warn: bool) -> None:
        """Enforce cost warning and hard limit."""
        if warn:
            logger.warning(
                "LLM cost warning threshold reached: $%.4f >= $%.4f",
                total,
                self._cost_warn,
            )

        if self._cost_limit is not None and total >= self._cost_limit:
            raise CostLimitExceededError(total, self._cost_limit)

    def can_afford(self, estimated_cost_usd: float) -> bool:
        """Whether a call of the estimated cost stays under the hard limit."""
        if self._cost_limit is None:
            return True
        return self.total_cost_usd + estimated_cost_usd <= self._cost_limit

    def _total_cost_locked(self) -> float:
        return sum(r.usage.total_cost_usd for r in self._records)

    def records(self) -> tuple[UsageRecord, ...]:
        """Snapshot of all recorded calls, oldest first."""
        with self._lock:
            return tuple(self._records)

    @property
    def total_cost_usd(self) -> float:
        """Cumulative cost in USD."""
        with self._lock:
            return self._total_cost_locked()

    @property
    def total_tokens(self) -> int:
        """Cumulative total tokens."""
        return sum(r.usage.total_tokens for r in self.records())

    @property
    def call_count(self) -> int:
        """Number of LLM calls recorded."""
        with self._lock:
            return len(self._records)

    def breakdown(self) -> dict[str, OperationTotals]:
        """Totals per operation label."""
        return _group(self.records(), lambda r: r.operation)

    def by_provider(self) -> dict[str, OperationTotals]:
        """Totals per provider name."""
        return _group(self.records(), lambda r: r.provider)

    def summary(self) -> dict[str, Any]:
        """Return a summary dict suitable for logging or span attributes."""
        records = self.records()
        input_tokens = sum(r.usage.input_tokens for r in records)
        output_tokens = sum(r.usage.output_tokens for r in records)
        return {
            "run_id": self.run_id,
            "total_input_tokens": input_tokens,
            "total_output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "total_cost_usd": round(sum(r.usage.total_cost_usd for r in records), 6),
            "call_count": len(records),
            "by_operation": {
                name: round(totals.cost_usd, 6)
                for name, totals in _group(records, lambda r: r.operation).items()
            },
        }

    def ledger_rows(self, run_id: str | None = None) -> list[LedgerRow]:
        """Aggregate the run into one ledger row per model."""
        timestamp = datetime.now(timezone.utc).isoformat()
        per_model: dict[str, list[UsageRecord]] = {}
        for entry in self.records():
            per_model.setdefault(entry.model, []).append(entry)

        return [
            LedgerRow(
                timestamp=timestamp,
                run_id=run_id or self.run_id,
                model=model,
                call_count=len(entries),
                input_tokens=sum(e.usage.input_tokens for e in entries),
                output_tokens=sum(e.usage.output_tokens for e in entries),
                input_cost_usd=sum(e.usage.input_cost_usd for e in entries),
                output_cost_usd=sum(e.usage.output_cost_usd for e in entries),
            )
            for model, entries in per_model.items()
        ]

    def export_ledger(self, path: str | Path, run_id: str | None = None) -> Path:
        """Append this run's ledger rows to a CSV file."""
        from backlog_gateway.ledger import append_ledger

        return append_ledger(path, self.ledger_rows(run_id))

    def reset(self) -> None:
        """Reset all accumulators."""
        with self._lock:
            self._records.clear()
            self._warned = False


def _group(records: Iterable[UsageRecord], key: Any) -> dict[str, OperationTotals]:
    grouped: dict[str, OperationTotals] = {}
    for entry in records:
        grouped.setdefault(key(entry), OperationTotals()).add(entry.usage)
    return grouped
