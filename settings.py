#Project-level defaults for the simulation engine and the run_engine.py CLI
import os
from pathlib import Path

# Ensure local ".env" is loaded even for direct Python invocations
# (e.g., library use that bypasses run_engine.py).
try:
    from dotenv import load_dotenv

    load_dotenv(Path(__file__).resolve().parent / ".env", override=False)
except Exception:
    # Fail open: settings still support explicit process env.
    pass


def _getenv_float(name, default):
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _getenv_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


# settings.py
SCENARIO_DEFAULTS = {
    "start_date": "2024-01-02",  # default backtest start for CLI runs
    "end_date": "2024-12-31",    # default backtest end for CLI runs
    "currency": os.getenv("ENGINE_DISPLAY_CURRENCY", "USD"),
    "group_by": "assetStyle",
}

# Backtest tuning. Read after .env is loaded so local overrides apply.
BACKTEST_DEFAULTS = {
    "risk_free_rate_percent": _getenv_float("ENGINE_RISK_FREE_RATE_PERCENT", 2.0),
    "trading_days_per_year": _getenv_int("ENGINE_TRADING_DAYS_PER_YEAR", 252),
    "future_price_tolerance_days": _getenv_int("ENGINE_FUTURE_PRICE_TOLERANCE_DAYS", 30),
    "min_period_days": _getenv_int("ENGINE_MIN_PERIOD_DAYS", 0),
    "max_period_days": _getenv_int("ENGINE_MAX_PERIOD_DAYS", 3650),
    "default_benchmark": os.getenv("ENGINE_DEFAULT_BENCHMARK") or None,
}

# Concurrent fetch settings (price histories, previous-day prices, classification)
DATA_FETCH_DEFAULTS = {
    "max_workers": _getenv_int("ENGINE_FETCH_MAX_WORKERS", 8),
    "timeout_seconds": _getenv_float("ENGINE_FETCH_TIMEOUT_SECONDS", None),
    "previous_day_lookback_days": _getenv_int("ENGINE_PREVIOUS_DAY_LOOKBACK_DAYS", 30),
}
