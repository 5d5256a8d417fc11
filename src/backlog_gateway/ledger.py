"""Append-only CSV cost ledger."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from pathlib import Path

from backlog_gateway.cost import LedgerRow

logger = logging.getLogger(__name__)

LEDGER_HEADER: tuple[str, ...] = (
    "timestamp",
    "run_id",
    "model",
    "api_calls",
    "input_tokens",
    "output_tokens",
    "total_tokens",
    "input_cost_usd",
    "output_cost_usd",
    "total_cost_usd",
)


def _format_row(row: LedgerRow) -> list[str]:
    return [
        row.timestamp,
        row.run_id,
        row.model,
        str(row.call_count),
        str(row.input_tokens),
        str(row.output_tokens),
        str(row.total_tokens),
        f"{row.input_cost_usd:.6f}",
        f"{row.output_cost_usd:.6f}",
        f"{row.total_cost_usd:.6f}",
    ]


def append_ledger(path: str | Path, rows: Iterable[LedgerRow]) -> Path:
    """Append rows to the ledger at ``path``, writing the header for a new file.

    Args:
        path: CSV file location. Parent directories are created.
        rows: Ledger rows to append.

    Returns:
        The resolved ledger path.
    """
    ledger_path = Path(path)
    ledger_path.parent.mkdir(parents=True, exist_ok=True)
    is_new = not ledger_path.exists() or ledger_path.stat().st_size == 0

    rows = list(rows)
    with ledger_path.open("a", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        if is_new:
            writer.writerow(LEDGER_HEADER)
        for row in rows:
            writer.writerow(_format_row(row))

    logger.info("Appended %d ledger row(s) to %s", len(rows), ledger_path)
    return ledger_path
