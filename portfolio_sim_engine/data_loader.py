"""
Concurrent data acquisition for the simulation and dashboard pipelines.

Every external read is an independent task on a ``ThreadPoolExecutor``; the
caller joins all of them before any computation starts. A failing task never
aborts the join: its symbol is recorded as a ``PartialDataWarning`` and left
out of the returned data.

Core loaders:
- fetch_price_histories: historical series per symbol over a window
- fetch_previous_day_prices: previous trading-day close per symbol
- gather_grouping_inputs: classification lookup plus previous-day prices,
  fetched side by side
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._logging import engine_logger, log_critical_alert, log_portfolio_operation
from portfolio_sim_engine.data_objects import Classification, coerce_date
from portfolio_sim_engine.exceptions import PartialDataWarning
from portfolio_sim_engine.providers import PriceProvider, get_price_provider
from portfolio_sim_engine.series_alignment import previous_trading_price, to_price_series


_CLASSIFICATION_TASK = "__classification__"


def _resolve_workers(max_workers: Optional[int], task_count: int) -> int:
    if max_workers is None:
        max_workers = engine_config.DATA_FETCH_DEFAULTS["max_workers"]
    return max(1, min(int(max_workers), task_count))


def _run_tasks(
    tasks: Dict[str, Callable[[], Any]],
    max_workers: Optional[int],
    timeout: Optional[float],
    stage: str,
) -> Tuple[Dict[str, Any], List[PartialDataWarning]]:
    """Run ``tasks`` concurrently and join all of them.

    Returns results keyed like ``tasks`` (failed keys absent) and one warning
    per failed or unfinished task.
    """
    results: Dict[str, Any] = {}
    warnings: List[PartialDataWarning] = []
    if not tasks:
        return results, warnings

    if timeout is None:
        timeout = engine_config.DATA_FETCH_DEFAULTS.get("timeout_seconds")

    def _collect(fut: Any, key: str) -> None:
        try:
            results[key] = fut.result()
        except Exception as e:
            log_critical_alert(
                "data_fetch_failed",
                "medium",
                f"FETCH FAILED: Key={key}, Stage={stage}, Error={e}",
                "Check provider availability for this symbol",
            )
            warnings.append(PartialDataWarning(key, f"fetch failed ({e})", stage=stage))

    ex = ThreadPoolExecutor(max_workers=_resolve_workers(max_workers, len(tasks)))
    futures = {ex.submit(fn): key for key, fn in tasks.items()}
    visited = set()
    try:
        for fut in as_completed(futures, timeout=timeout):
            visited.add(fut)
            _collect(fut, futures[fut])
    except FuturesTimeoutError:
        for fut, key in futures.items():
            if fut in visited:
                continue
            if fut.done():
                _collect(fut, key)
            else:
                engine_logger.warning("Fetch for %s unfinished after %ss; excluded", key, timeout)
                warnings.append(PartialDataWarning(key, f"fetch timed out after {timeout}s", stage=stage))
    finally:
        ex.shutdown(wait=False, cancel_futures=True)

    # completion order is nondeterministic; report in submission order
    order = {key: i for i, key in enumerate(tasks)}
    warnings.sort(key=lambda w: order.get(w.symbol, len(order)))
    return {key: results[key] for key in tasks if key in results}, warnings


def fetch_price_histories(
    symbols: Iterable[str],
    start_date: Any,
    end_date: Any,
    provider: Optional[PriceProvider] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Tuple[Dict[str, pd.Series], List[PartialDataWarning]]:
    """
    Fetch and canonicalize historical price series for ``symbols``.

    Parameters
    ----------
    symbols : Iterable[str]
        Symbols to fetch; duplicates are fetched once.
    start_date, end_date : date-like
        Inclusive window passed to the provider.
    provider : PriceProvider, optional
        Defaults to the registered price provider.
    max_workers : int, optional
        Defaults to ``DATA_FETCH_DEFAULTS["max_workers"]``.
    timeout : float, optional
        Seconds to wait for the whole join; unfinished symbols are excluded.

    Returns
    -------
    (series_map, warnings)
        ``series_map`` preserves the order of ``symbols``. Symbols whose fetch
        raised, timed out, or returned no usable prices are absent from it.
    """
    provider = provider if provider is not None else get_price_provider()
    start, end = coerce_date(start_date, "start_date"), coerce_date(end_date, "end_date")
    ordered = list(dict.fromkeys(symbols))

    def _loader(symbol: str) -> Callable[[], pd.Series]:
        return lambda: to_price_series(provider.get_historical_prices(symbol, start, end), name=symbol)

    raw, warnings = _run_tasks(
        {symbol: _loader(symbol) for symbol in ordered},
        max_workers,
        timeout,
        stage="fetch",
    )

    series_map: Dict[str, pd.Series] = {}
    for symbol in ordered:
        series = raw.get(symbol)
        if series is None:
            continue
        if series.empty:
            engine_logger.warning("No price data for %s between %s and %s", symbol, start, end)
            warnings.append(PartialDataWarning(symbol, "no price data in range", stage="fetch"))
            continue
        series_map[symbol] = series

    log_portfolio_operation(
        "price_histories_fetched",
        {"requested": len(ordered), "loaded": len(series_map), "failed": len(ordered) - len(series_map)},
    )
    return series_map, warnings


def fetch_previous_day_prices(
    symbols: Iterable[str],
    provider: Optional[PriceProvider] = None,
    as_of: Optional[Any] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Tuple[Dict[str, Optional[float]], List[PartialDataWarning]]:
    """Previous trading-day close per symbol, from a short trailing history."""
    tasks = _previous_price_tasks(symbols, provider, as_of)
    return _run_tasks(tasks, max_workers, timeout, stage="day_change")


def _previous_price_tasks(
    symbols: Iterable[str],
    provider: Optional[PriceProvider],
    as_of: Optional[Any],
) -> Dict[str, Callable[[], Optional[float]]]:
    provider = provider if provider is not None else get_price_provider()
    end = coerce_date(as_of, "as_of") if as_of is not None else date.today()
    start = end - timedelta(days=engine_config.DATA_FETCH_DEFAULTS["previous_day_lookback_days"])

    def _loader(symbol: str) -> Callable[[], Optional[float]]:
        def _load() -> Optional[float]:
            series = to_price_series(provider.get_historical_prices(symbol, start, end), name=symbol)
            return previous_trading_price(series)

        return _load

    return {symbol: _loader(symbol) for symbol in dict.fromkeys(symbols)}


def gather_grouping_inputs(
    symbols: Iterable[str],
    load_classification: Optional[Callable[[], Classification]] = None,
    provider: Optional[PriceProvider] = None,
    as_of: Optional[Any] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Tuple[Classification, Dict[str, Optional[float]], List[PartialDataWarning]]:
    """
    Fetch the classification and previous-day prices side by side.

    A failed classification lookup degrades to an empty classification (every
    holding groups as "Uncategorized"); failed price lookups degrade the day
    change for that holding only. Without a ``provider`` no previous-day
    prices are fetched.
    """
    tasks: Dict[str, Callable[[], Any]] = {}
    if provider is not None:
        tasks.update(_previous_price_tasks(symbols, provider, as_of))
    if load_classification is not None:
        tasks[_CLASSIFICATION_TASK] = load_classification

    raw, fetch_warnings = _run_tasks(tasks, max_workers, timeout, stage="dashboard")

    warnings: List[PartialDataWarning] = []
    classification = raw.pop(_CLASSIFICATION_TASK, None) or Classification.empty()
    for warning in fetch_warnings:
        if warning.symbol == _CLASSIFICATION_TASK:
            warnings.append(PartialDataWarning("classification", warning.reason, stage="classification"))
        else:
            warnings.append(PartialDataWarning(warning.symbol, warning.reason, stage="day_change"))
    return classification, raw, warnings
