"""Portfolio weight derivation from a holdings snapshot."""

from __future__ import annotations

from typing import Dict, Iterable

from portfolio_sim_engine.data_objects import Holding


def total_current_value(holdings: Iterable[Holding]) -> float:
    return float(sum(h.current_value for h in holdings))


def calculate_portfolio_weights(holdings: Iterable[Holding]) -> Dict[str, float]:
    """
    Weight of each symbol = current value / total current value.

    Returns an empty dict when there are no holdings or the total value is not
    positive; callers treat that as "cannot simulate". Repeated symbols are
    summed into a single weight.
    """
    holdings = list(holdings)
    total = total_current_value(holdings)
    if not holdings or total <= 0:
        return {}

    weights: Dict[str, float] = {}
    for holding in holdings:
        weights[holding.symbol] = weights.get(holding.symbol, 0.0) + holding.current_value / total
    return weights
