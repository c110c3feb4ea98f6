"""Standalone-safe configuration surface for portfolio_sim_engine."""

from __future__ import annotations

import os
from typing import Any


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except ValueError:
        return None


_DEFAULTS: dict[str, Any] = {
    "BACKTEST_DEFAULTS": {
        "risk_free_rate_percent": _env_float("ENGINE_RISK_FREE_RATE_PERCENT", 2.0),
        "trading_days_per_year": _env_int("ENGINE_TRADING_DAYS_PER_YEAR", 252),
        # Forward-looking fallback window for assets listed after the start date.
        "future_price_tolerance_days": _env_int("ENGINE_FUTURE_PRICE_TOLERANCE_DAYS", 30),
        "min_period_days": _env_int("ENGINE_MIN_PERIOD_DAYS", 0),
        "max_period_days": _env_int("ENGINE_MAX_PERIOD_DAYS", 3650),
        "default_benchmark": os.getenv("ENGINE_DEFAULT_BENCHMARK") or None,
    },
    "CURRENCY_SETTINGS": {
        "supported_currencies": ["USD", "CNY"],
        "aliases": {"RMB": "CNY"},
        "default_native_currency": "USD",
        "market_suffix_currency": {".SS": "CNY", ".SZ": "CNY"},
        "cash_symbol_prefix": "CASH_",
        "cash_symbol_currency": {"CASH_RMB": "CNY", "CASH_CNY": "CNY"},
    },
    "GROUPING_DEFAULTS": {
        "uncategorized": "Uncategorized",
        "unknown": "Unknown",
        "all_holdings": "All Holdings",
        "valid_group_by": ["assetStyle", "assetClass", "currency", "none"],
    },
    "DATA_FETCH_DEFAULTS": {
        "max_workers": _env_int("ENGINE_FETCH_MAX_WORKERS", 8),
        "timeout_seconds": _env_optional_float("ENGINE_FETCH_TIMEOUT_SECONDS"),
        "previous_day_lookback_days": _env_int("ENGINE_PREVIOUS_DAY_LOOKBACK_DAYS", 30),
    },
    "RECOVERY_DEFAULTS": {
        "drawdown_threshold_percent": _env_float("ENGINE_RECOVERY_DRAWDOWN_THRESHOLD", 5.0),
    },
    # Fallbacks for run_engine.py when a scenario omits them.
    "SCENARIO_DEFAULTS": {
        "start_date": "2024-01-02",
        "end_date": "2024-12-31",
        "currency": os.getenv("ENGINE_DISPLAY_CURRENCY", "USD"),
        "group_by": "assetStyle",
    },
}


try:  # pragma: no cover - project-level overrides
    import settings as _settings  # type: ignore

    for key in list(_DEFAULTS.keys()):
        if hasattr(_settings, key):
            _DEFAULTS[key] = getattr(_settings, key)
except Exception:
    pass


BACKTEST_DEFAULTS = _DEFAULTS["BACKTEST_DEFAULTS"]
CURRENCY_SETTINGS = _DEFAULTS["CURRENCY_SETTINGS"]
GROUPING_DEFAULTS = _DEFAULTS["GROUPING_DEFAULTS"]
DATA_FETCH_DEFAULTS = _DEFAULTS["DATA_FETCH_DEFAULTS"]
RECOVERY_DEFAULTS = _DEFAULTS["RECOVERY_DEFAULTS"]
SCENARIO_DEFAULTS = _DEFAULTS["SCENARIO_DEFAULTS"]


def configure(**overrides: Any) -> None:
    """Programmatically override package configuration values."""
    globals_dict = globals()
    for key, value in overrides.items():
        if key not in globals_dict or key.startswith("_") or not key.isupper():
            raise KeyError(f"Unknown config key: {key}")
        globals_dict[key] = value
