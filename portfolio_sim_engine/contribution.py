"""Per-asset attribution of a simulated buy-and-hold return."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from portfolio_sim_engine._logging import engine_logger
from portfolio_sim_engine._vendor import finite_or_zero
from portfolio_sim_engine.currency_bridge import CurrencyBridge
from portfolio_sim_engine.data_objects import AssetContribution, Holding
from portfolio_sim_engine.exceptions import CurrencyConversionError, PartialDataWarning
from portfolio_sim_engine.series_alignment import clip_to_window, earliest_price, resolve_price


def calculate_asset_contributions(
    weights: Mapping[str, float],
    series_map: Mapping[str, pd.Series],
    holdings: Iterable[Holding],
    start_date: Any,
    end_date: Any,
    total_value: float,
    bridge: CurrencyBridge,
    start_prices: Optional[Mapping[str, float]] = None,
) -> Tuple[List[AssetContribution], List[PartialDataWarning]]:
    """
    Attribute the simulated return to each weighted symbol.

    Each symbol holds the same fixed share count as in the simulation:
    ``weight * total_value`` converted to its native currency, bought at the
    start price. Its return is ``shares * (end_price - start_price)`` converted
    back to the display currency.

    ``start_prices`` (normally ``SimulationResult.start_prices``) pins the
    purchase price per symbol. Otherwise the start price is resolved the way
    the simulator does it, falling back to the earliest price in the window.
    Symbols without a start or an end price are excluded.

    Returns contributions sorted by contribution amount (descending, stable)
    and the warnings for excluded symbols.
    """
    names = {}
    for holding in holdings:
        names.setdefault(holding.symbol, holding.name)

    contributions: List[AssetContribution] = []
    warnings: List[PartialDataWarning] = []

    for symbol, weight in weights.items():
        series = clip_to_window(series_map.get(symbol), start_date, end_date)
        start_price = (start_prices or {}).get(symbol)
        if start_price is None:
            start_price = resolve_price(series, start_date)
        if start_price is None:
            start_price = earliest_price(series)
        end_price = resolve_price(series, end_date)
        if start_price is None or end_price is None or start_price <= 0:
            warnings.append(PartialDataWarning(symbol, "missing start or end price", stage="contribution"))
            continue

        try:
            investment_native = bridge.to_native(weight * total_value, symbol)
            shares = investment_native / start_price
            return_amount = bridge.to_display(shares * (end_price - start_price), symbol)
        except CurrencyConversionError as exc:
            engine_logger.warning("Skipping contribution for %s: %s", symbol, exc)
            warnings.append(
                PartialDataWarning(symbol, f"currency conversion failed ({exc.message})", stage="contribution")
            )
            continue

        contributions.append(
            AssetContribution(
                symbol=symbol,
                name=names.get(symbol, ""),
                weight_percent=weight * 100,
                return_amount=return_amount,
                return_percent=(end_price - start_price) / start_price * 100,
                contribution_amount=return_amount,
                contribution_percent=finite_or_zero(return_amount / total_value * 100) if total_value > 0 else 0.0,
            )
        )

    contributions.sort(key=lambda c: c.contribution_amount, reverse=True)
    return contributions, warnings
