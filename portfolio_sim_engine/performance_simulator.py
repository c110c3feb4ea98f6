"""
Buy-and-hold portfolio simulation over historical prices.

Primary flow:
    1) Resolve each weighted symbol's start price on the start date.
    2) Convert its slice of the current portfolio value into the symbol's
       native currency and buy a fixed share count.
    3) Revalue the unchanged share counts on every date of the aligned axis,
       converting each term back into the display currency.
    4) Express each date's value as a cumulative return from the first date.

Contract notes:
- Symbols without usable data are excluded; the remaining weights are NOT
  re-normalized, so the simulated start value can be below the current
  portfolio value. Each exclusion is reported as a ``PartialDataWarning``.
- Zero symbols with a share count is a hard ``InsufficientDataError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

import pandas as pd

from portfolio_sim_engine._logging import engine_logger, log_errors, log_operation, log_timing
from portfolio_sim_engine.currency_bridge import CurrencyBridge
from portfolio_sim_engine.data_objects import SimulatedPoint
from portfolio_sim_engine.exceptions import CurrencyConversionError, InsufficientDataError, PartialDataWarning
from portfolio_sim_engine.series_alignment import (
    build_date_axis,
    clip_to_window,
    earliest_price,
    resolve_price,
    to_iso,
)


@dataclass(frozen=True)
class SimulationResult:
    points: Tuple[SimulatedPoint, ...]
    shares: Dict[str, float] = field(default_factory=dict)
    start_prices: Dict[str, float] = field(default_factory=dict)
    warnings: Tuple[PartialDataWarning, ...] = ()

    @property
    def excluded_symbols(self) -> List[str]:
        excluded = []
        for warning in self.warnings:
            if warning.symbol not in self.shares and warning.symbol not in excluded:
                excluded.append(warning.symbol)
        return excluded

    @property
    def initial_value(self) -> float:
        return self.points[0].portfolio_value if self.points else 0.0

    @property
    def final_value(self) -> float:
        return self.points[-1].portfolio_value if self.points else 0.0


def clip_series_map(series_map: Mapping[str, pd.Series], start_date: Any, end_date: Any) -> Dict[str, pd.Series]:
    return {symbol: clip_to_window(series, start_date, end_date) for symbol, series in series_map.items()}


def compute_fixed_shares(
    weights: Mapping[str, float],
    series_map: Mapping[str, pd.Series],
    start_date: Any,
    total_value: float,
    bridge: CurrencyBridge,
) -> Tuple[Dict[str, float], Dict[str, float], List[PartialDataWarning]]:
    """Return ``(shares, start_prices, warnings)`` for a buy-once-at-start portfolio."""
    shares: Dict[str, float] = {}
    start_prices: Dict[str, float] = {}
    warnings: List[PartialDataWarning] = []

    for symbol, weight in weights.items():
        series = series_map.get(symbol)
        if series is None or series.empty:
            warnings.append(PartialDataWarning(symbol, "no historical prices in range; excluded"))
            engine_logger.warning("No historical prices available for %s, skipping", symbol)
            continue

        start_price = resolve_price(series, start_date)
        if start_price is None or start_price <= 0:
            start_price = earliest_price(series)
            engine_logger.warning(
                "No start price for %s at %s, using first available price %.4f at %s",
                symbol,
                to_iso(pd.Timestamp(start_date)),
                start_price,
                to_iso(series.index[0]),
            )
            warnings.append(
                PartialDataWarning(
                    symbol,
                    f"no price near start date; using first available price from {to_iso(series.index[0])}",
                )
            )

        investment = weight * total_value
        try:
            investment_native = bridge.to_native(investment, symbol)
        except CurrencyConversionError as exc:
            engine_logger.warning("Failed to convert investment for %s: %s", symbol, exc)
            warnings.append(PartialDataWarning(symbol, f"currency conversion failed ({exc.message}); excluded"))
            continue

        shares[symbol] = investment_native / start_price
        start_prices[symbol] = start_price
        engine_logger.debug(
            "%s: weight=%.2f%%, investment=%.2f %s, start_price=%.4f, shares=%.4f",
            symbol,
            weight * 100,
            investment_native,
            bridge.native_currency(symbol),
            start_price,
            shares[symbol],
        )

    return shares, start_prices, warnings


def revalue_portfolio(
    shares: Mapping[str, float],
    series_map: Mapping[str, pd.Series],
    dates: pd.DatetimeIndex,
    bridge: CurrencyBridge,
) -> Tuple[List[float], List[PartialDataWarning]]:
    """Portfolio value in display currency for every date of ``dates``."""
    values: List[float] = []
    gap_counts: Dict[str, int] = {}
    fx_failures: Dict[str, int] = {}

    for ts in dates:
        total = 0.0
        for symbol, share_count in shares.items():
            price = resolve_price(series_map.get(symbol), ts)
            if price is None or price <= 0:
                gap_counts[symbol] = gap_counts.get(symbol, 0) + 1
                continue
            try:
                total += bridge.to_display(share_count * price, symbol)
            except CurrencyConversionError as exc:
                engine_logger.debug("FX failure for %s on %s: %s", symbol, to_iso(ts), exc)
                fx_failures[symbol] = fx_failures.get(symbol, 0) + 1
        values.append(total)

    warnings: List[PartialDataWarning] = []
    for symbol, count in gap_counts.items():
        engine_logger.warning("%s had no resolvable price on %d date(s)", symbol, count)
        warnings.append(PartialDataWarning(symbol, f"no resolvable price on {count} date(s)", stage="revaluation"))
    for symbol, count in fx_failures.items():
        engine_logger.warning("%s could not be converted to display currency on %d date(s)", symbol, count)
        warnings.append(
            PartialDataWarning(symbol, f"currency conversion failed on {count} date(s)", stage="revaluation")
        )
    return values, warnings


def cumulative_returns(values: List[float]) -> List[float]:
    """Percent change of each value from the first; the first is exactly 0."""
    if not values:
        return []
    initial = values[0]
    if initial <= 0:
        return [0.0 for _ in values]
    returns = [(v - initial) / initial * 100 for v in values]
    returns[0] = 0.0
    return returns


@log_errors("high")
@log_operation("portfolio_simulation")
@log_timing(2.0)
def simulate_portfolio(
    weights: Mapping[str, float],
    series_map: Mapping[str, pd.Series],
    start_date: Any,
    end_date: Any,
    total_value: float,
    bridge: CurrencyBridge,
) -> SimulationResult:
    """
    Simulate holding fixed share counts, bought at ``start_date``, through ``end_date``.

    Parameters
    ----------
    weights : Mapping[str, float]
        Symbol → fraction of ``total_value`` to invest.
    series_map : Mapping[str, pd.Series]
        Canonical price series per symbol (see ``series_alignment``); clipped
        to the window here.
    total_value : float
        Current portfolio value in the display currency; the simulated
        initial investment.
    bridge : CurrencyBridge
        Native ↔ display currency conversion.

    Raises
    ------
    InsufficientDataError
        When no symbol yields a share count, or the window holds no dates.
    """
    clipped = clip_series_map(series_map, start_date, end_date)
    dates = build_date_axis(clipped, start_date, end_date)
    if len(dates) == 0:
        raise InsufficientDataError(
            "No historical dates available in the requested window",
            details={"symbols": list(weights.keys())},
        )

    shares, start_prices, warnings = compute_fixed_shares(weights, clipped, start_date, total_value, bridge)
    if not shares:
        raise InsufficientDataError(
            "No usable historical data: no share counts could be calculated",
            details={"warnings": [str(w) for w in warnings]},
        )

    values, revalue_warnings = revalue_portfolio(shares, clipped, dates, bridge)
    warnings.extend(revalue_warnings)
    returns = cumulative_returns(values)

    points = tuple(
        SimulatedPoint(date=ts.date(), portfolio_value=value, cumulative_return_percent=ret)
        for ts, value, ret in zip(dates, values, returns)
    )
    engine_logger.info(
        "Simulated %d points: initial %.2f %s, final %.2f %s (%.2f%%)",
        len(points),
        points[0].portfolio_value,
        bridge.display_currency,
        points[-1].portfolio_value,
        bridge.display_currency,
        points[-1].cumulative_return_percent,
    )
    return SimulationResult(
        points=points,
        shares=shares,
        start_prices=start_prices,
        warnings=tuple(warnings),
    )
