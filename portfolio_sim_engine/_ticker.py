"""Symbol and currency resolver helpers."""

from __future__ import annotations

from typing import Optional

from portfolio_sim_engine import config as engine_config


def normalize_symbol(symbol: Optional[str]) -> str:
    return str(symbol or "").strip().upper()


def normalize_currency(currency: Optional[str]) -> Optional[str]:
    if not currency:
        return None
    ccy = str(currency).strip().upper()
    aliases = engine_config.CURRENCY_SETTINGS.get("aliases", {})
    return aliases.get(ccy, ccy)


def is_cash_symbol(symbol: str) -> bool:
    prefix = engine_config.CURRENCY_SETTINGS.get("cash_symbol_prefix", "CASH_")
    return normalize_symbol(symbol).startswith(prefix)


def native_currency(symbol: str) -> str:
    """Infer the currency a symbol is quoted in from its market classification.

    Cash symbols map through ``cash_symbol_currency``; listed symbols map by
    exchange suffix; everything else falls back to the default (USD).
    """
    settings = engine_config.CURRENCY_SETTINGS
    default = settings.get("default_native_currency", "USD")
    sym = normalize_symbol(symbol)

    if is_cash_symbol(sym):
        ccy = settings.get("cash_symbol_currency", {}).get(sym, default)
        return normalize_currency(ccy) or default

    for suffix, ccy in settings.get("market_suffix_currency", {}).items():
        if sym.endswith(suffix.upper()):
            return normalize_currency(ccy) or default
    return default
