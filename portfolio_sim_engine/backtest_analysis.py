"""
Backtest orchestration: replay the current holdings over a historical window.

Primary flow:
    1) Validate the window and display currency.
    2) Derive weights from the holdings snapshot.
    3) Fetch every symbol's history (plus the benchmark) concurrently.
    4) Simulate, compute metrics and contributions, compare to the benchmark.
    5) Package everything into a ``BacktestResult``.

Called by:
- Service/API layers holding a holdings snapshot (``run_backtest``).
- Provider-driven callers and the CLI (``analyze_backtest``).
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._logging import (
    engine_logger,
    log_errors,
    log_operation,
    log_portfolio_operation,
    log_timing,
)
from portfolio_sim_engine._ticker import normalize_symbol
from portfolio_sim_engine._vendor import make_json_safe
from portfolio_sim_engine.benchmark import compare_to_benchmark, excess_return_percent, merge_benchmark_returns
from portfolio_sim_engine.contribution import calculate_asset_contributions
from portfolio_sim_engine.currency_bridge import CurrencyBridge, validate_display_currency
from portfolio_sim_engine.data_loader import fetch_price_histories
from portfolio_sim_engine.data_objects import Holding, coerce_date
from portfolio_sim_engine.exceptions import EngineError, InsufficientDataError, PartialDataWarning, ValidationError
from portfolio_sim_engine.performance_metrics_engine import compute_backtest_metrics, compute_performance_analytics
from portfolio_sim_engine.performance_simulator import simulate_portfolio
from portfolio_sim_engine.providers import FXProvider, PriceProvider, get_holdings_provider
from portfolio_sim_engine.results import BacktestResult
from portfolio_sim_engine.weights import calculate_portfolio_weights, total_current_value


def validate_backtest_params(
    start_date: Any,
    end_date: Any,
    display_currency: Optional[str],
    as_of: Optional[Any] = None,
) -> Tuple[date, date, str]:
    """Return normalized ``(start, end, currency)`` or raise ``ValidationError``."""
    currency = validate_display_currency(display_currency)
    start = coerce_date(start_date, "start_date")
    end = coerce_date(end_date, "end_date")
    today = coerce_date(as_of, "as_of") if as_of is not None else date.today()

    if start > end:
        raise ValidationError(
            "Start date must be on or before end date",
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    if end > today:
        raise ValidationError(
            "End date cannot be in the future",
            details={"end_date": end.isoformat(), "as_of": today.isoformat()},
        )

    window_days = (end - start).days
    min_days = engine_config.BACKTEST_DEFAULTS["min_period_days"]
    max_days = engine_config.BACKTEST_DEFAULTS["max_period_days"]
    if window_days < min_days:
        raise ValidationError(
            f"Backtest period must be at least {min_days} days",
            details={"period_days": window_days},
        )
    if window_days > max_days:
        raise ValidationError(
            f"Backtest period cannot exceed {max_days} days",
            details={"period_days": window_days},
        )
    return start, end, currency


def _dedupe(warnings: Iterable[PartialDataWarning]) -> List[PartialDataWarning]:
    return list(dict.fromkeys(warnings))


@log_errors("high")
@log_operation("backtest")
@log_timing(5.0)
def run_backtest(
    holdings: Iterable[Holding],
    start_date: Any,
    end_date: Any,
    display_currency: str,
    benchmark_symbol: Optional[str] = None,
    *,
    price_provider: Optional[PriceProvider] = None,
    fx_provider: Optional[FXProvider] = None,
    as_of: Optional[Any] = None,
) -> BacktestResult:
    """
    Simulate holding today's portfolio, unchanged, over ``[start_date, end_date]``.

    Parameters
    ----------
    holdings : Iterable[Holding]
        Current holdings snapshot, valued in ``display_currency``.
    start_date, end_date : date-like
        Inclusive backtest window.
    display_currency : str
        "USD" or "CNY" ("RMB" accepted as an alias).
    benchmark_symbol : str, optional
        Index or ticker to compare against; failures only add a warning.
    price_provider, fx_provider : optional
        Default to the registered providers.
    as_of : date-like, optional
        "Today" for the future-date check; defaults to the current date.

    Returns
    -------
    BacktestResult

    Raises
    ------
    ValidationError
        Bad window or currency.
    InsufficientDataError
        No holdings, zero total value, or no usable price data.
    """
    started = time.perf_counter()
    start, end, currency = validate_backtest_params(start_date, end_date, display_currency, as_of)
    benchmark_symbol = normalize_symbol(benchmark_symbol) or engine_config.BACKTEST_DEFAULTS.get("default_benchmark")

    holdings = list(holdings)
    if not holdings:
        raise InsufficientDataError("No holdings found for backtest")
    weights = calculate_portfolio_weights(holdings)
    if not weights:
        raise InsufficientDataError(
            "Portfolio total value must be positive to run a backtest",
            details={"holdings": len(holdings)},
        )
    total_value = total_current_value(holdings)
    bridge = CurrencyBridge(currency, fx_provider)

    symbols = list(weights)
    if benchmark_symbol and benchmark_symbol not in weights:
        symbols.append(benchmark_symbol)
    series_map, fetch_warnings = fetch_price_histories(symbols, start, end, provider=price_provider)

    warnings: List[PartialDataWarning] = []
    for warning in fetch_warnings:
        if warning.symbol in weights:
            warnings.append(warning)
        elif warning.symbol == benchmark_symbol:
            warnings.append(PartialDataWarning(warning.symbol, warning.reason, stage="benchmark"))

    simulation = simulate_portfolio(
        weights,
        {s: series_map[s] for s in weights if s in series_map},
        start,
        end,
        total_value,
        bridge,
    )
    warnings.extend(simulation.warnings)
    points = list(simulation.points)

    metrics = compute_backtest_metrics(points)

    contributions, contribution_warnings = calculate_asset_contributions(
        {s: w for s, w in weights.items() if s in simulation.shares},
        series_map,
        holdings,
        start,
        end,
        total_value,
        bridge,
        start_prices=simulation.start_prices,
    )
    warnings.extend(contribution_warnings)

    comparison = None
    if benchmark_symbol:
        comparison, benchmark_warnings = compare_to_benchmark(
            benchmark_symbol,
            series_map.get(benchmark_symbol),
            start,
            end,
            total_value,
            bridge,
        )
        warnings.extend(benchmark_warnings)
        if comparison is not None:
            points = merge_benchmark_returns(points, comparison.points)
            metrics = metrics.with_excess_return(excess_return_percent(points, comparison))

    excluded = simulation.excluded_symbols
    result = BacktestResult(
        start_date=start,
        end_date=end,
        currency=currency,
        points=points,
        metrics=metrics,
        contributions=contributions,
        benchmark=comparison,
        analytics=compute_performance_analytics(points),
        warnings=_dedupe(warnings),
        excluded_symbols=excluded,
    )

    log_portfolio_operation(
        "backtest_completed",
        {
            "period": f"{start.isoformat()}..{end.isoformat()}",
            "currency": currency,
            "symbols": len(weights),
            "excluded": len(excluded),
            "points": len(points),
            "benchmark": benchmark_symbol if comparison is not None else None,
        },
        execution_time=time.perf_counter() - started,
    )
    return result


def analyze_backtest(
    user_id: str,
    start_date: Any,
    end_date: Any,
    display_currency: str,
    benchmark_symbol: Optional[str] = None,
    *,
    as_of: Optional[Any] = None,
) -> Union[BacktestResult, Dict[str, Any]]:
    """
    Provider-driven backtest for one user.

    Contract notes:
    - Holdings come from the registered ``HoldingsProvider``; prices and FX
      from the registered price/FX providers.
    - Success path returns ``BacktestResult``.
    - Error path returns a JSON-safe dict with ``error`` / ``error_type`` and
      the requested period.
    """
    try:
        currency = validate_display_currency(display_currency)
        holdings = get_holdings_provider().get_holdings(user_id, currency)
        return run_backtest(holdings, start_date, end_date, currency, benchmark_symbol, as_of=as_of)
    except EngineError as exc:
        engine_logger.warning("Backtest failed for user %s: %s", user_id, exc)
        payload = exc.to_dict()
        payload["analysis_period"] = {"start_date": str(start_date), "end_date": str(end_date)}
        payload["user_id"] = user_id
        return make_json_safe(payload)
