"""USD-relative currency conversion for cost reporting."""

from __future__ import annotations

import logging

from backlog_gateway.exceptions import UnsupportedCurrencyError

logger = logging.getLogger(__name__)

# ── Exchange Rates (units of currency per 1 USD) ───────────────
EXCHANGE_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
}

_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def supported_currencies() -> list[str]:
    """Return the currency codes that can be converted to."""
    return list(EXCHANGE_RATES)


def get_exchange_rate(currency: str) -> float:
    """Return the USD-relative rate for ``currency``.

    Raises:
        UnsupportedCurrencyError: If the currency has no known rate.
    """
    rate = EXCHANGE_RATES.get(currency)
    if rate is None:
        raise UnsupportedCurrencyError(currency, supported_currencies())
    return rate


def convert_from_usd(amount_usd: float, currency: str) -> float:
    """Convert a USD amount into ``currency``."""
    return amount_usd * get_exchange_rate(currency)


def format_currency(amount: float, currency: str) -> str:
    """Render an amount with its symbol; sub-cent amounts get six decimals."""
    get_exchange_rate(currency)
    symbol = _SYMBOLS.get(currency, f"{currency} ")
    decimals = 6 if abs(amount) < 0.01 else 4
    return f"{symbol}{amount:.{decimals}f}"


def update_exchange_rates(rates: dict[str, float]) -> None:
    """Override or add exchange rates. USD is pinned at 1.0."""
    for code, rate in rates.items():
        if code == "USD":
            continue
        if rate <= 0:
            msg = f"Exchange rate for {code} must be positive, got {rate}"
            raise ValueError(msg)
        EXCHANGE_RATES[code] = rate
    logger.info("Exchange rates updated: %s", EXCHANGE_RATES)
