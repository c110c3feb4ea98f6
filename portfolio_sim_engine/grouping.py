"""
Grouping aggregator for the dashboard views.

Holdings are bucketed along one dimension (user style, asset class, native
currency, or a single catch-all group), then each bucket's value is expressed
as a share of the whole portfolio.

Invariants:
- Every holding lands in exactly one group, so group values sum to the total.
- Groups exist only for keys at least one holding resolved to.
- Groups are ordered by value, descending; ties keep first-seen order.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._logging import engine_logger
from portfolio_sim_engine._ticker import native_currency
from portfolio_sim_engine.constants import (
    GROUP_BY_ASSET_CLASS,
    GROUP_BY_ASSET_STYLE,
    GROUP_BY_CURRENCY,
    GROUP_BY_NONE,
    VALID_GROUP_BY,
)
from portfolio_sim_engine.currency_bridge import CurrencyBridge
from portfolio_sim_engine.data_objects import Classification, Group, Holding
from portfolio_sim_engine.exceptions import CurrencyConversionError, PartialDataWarning, ValidationError


def validate_group_by(group_by: Optional[str]) -> str:
    valid = engine_config.GROUPING_DEFAULTS.get("valid_group_by", list(VALID_GROUP_BY))
    if group_by not in valid:
        raise ValidationError(
            f"Invalid groupBy parameter: must be one of {', '.join(valid)}",
            details={"group_by": group_by, "valid": list(valid)},
        )
    return group_by


def resolve_group_key(holding: Holding, classification: Classification, group_by: str) -> str:
    """Name of the group ``holding`` belongs to under ``group_by``."""
    labels = engine_config.GROUPING_DEFAULTS
    if group_by == GROUP_BY_NONE:
        return labels["all_holdings"]
    if group_by == GROUP_BY_CURRENCY:
        return native_currency(holding.symbol)

    entry = classification.portfolios.get(holding.symbol)
    if group_by == GROUP_BY_ASSET_CLASS:
        if entry is None or not entry.asset_class:
            return labels["uncategorized"]
        return entry.asset_class

    if group_by == GROUP_BY_ASSET_STYLE:
        if entry is None or entry.asset_style_id is None:
            return labels["uncategorized"]
        return classification.styles.get(entry.asset_style_id, labels["unknown"])

    raise ValidationError(f"Invalid groupBy parameter: {group_by}", details={"group_by": group_by})


def group_holdings(
    holdings: Iterable[Holding],
    classification: Optional[Classification],
    group_by: str,
) -> Dict[str, List[Holding]]:
    classification = classification or Classification.empty()
    groups: Dict[str, List[Holding]] = {}
    for holding in holdings:
        key = resolve_group_key(holding, classification, group_by)
        groups.setdefault(key, []).append(holding)
    return groups


def aggregate_groups(groups: Mapping[str, List[Holding]], total_value: float) -> List[Group]:
    """Value and percentage-of-total for each group, sorted by value descending."""
    aggregated = []
    for name, members in groups.items():
        group_value = float(sum(h.current_value for h in members))
        aggregated.append(
            Group(
                group_name=name,
                group_value=group_value,
                percentage_of_total=group_value / total_value * 100 if total_value > 0 else 0.0,
                holdings=tuple(members),
            )
        )
    aggregated.sort(key=lambda g: g.group_value, reverse=True)
    return aggregated


def portfolio_totals(holdings: Iterable[Holding]) -> Dict[str, float]:
    holdings = list(holdings)
    total_value = float(sum(h.current_value for h in holdings))
    total_cost = float(sum(h.cost_basis for h in holdings))
    total_gain = total_value - total_cost
    return {
        "total_value": total_value,
        "total_cost_basis": total_cost,
        "total_gain": total_gain,
        "percentage_return": total_gain / total_cost * 100 if total_cost > 0 else 0.0,
    }


def compute_day_change(
    holdings: Iterable[Holding],
    previous_prices: Mapping[str, Optional[float]],
    bridge: CurrencyBridge,
) -> Tuple[float, float, List[PartialDataWarning]]:
    """
    Return ``(day_change, day_change_percent, warnings)``.

    A holding's previous-day value is ``shares * previous close`` converted
    from its native currency. Without a previous close, or when conversion
    fails, the holding counts at its current value (no change).
    """
    total_value = 0.0
    previous_value = 0.0
    warnings: List[PartialDataWarning] = []

    for holding in holdings:
        total_value += holding.current_value
        prev_price = previous_prices.get(holding.symbol)
        if prev_price is None or prev_price <= 0:
            engine_logger.debug("No previous day price for %s; assuming no change", holding.symbol)
            warnings.append(PartialDataWarning(holding.symbol, "no previous day price", stage="day_change"))
            previous_value += holding.current_value
            continue
        try:
            previous_value += bridge.to_display(holding.shares * prev_price, holding.symbol)
        except CurrencyConversionError as exc:
            engine_logger.warning("Could not convert previous day value for %s: %s", holding.symbol, exc)
            warnings.append(
                PartialDataWarning(holding.symbol, f"currency conversion failed ({exc.message})", stage="day_change")
            )
            previous_value += holding.current_value

    day_change = total_value - previous_value
    day_change_percent = day_change / previous_value * 100 if previous_value > 0 else 0.0
    return day_change, day_change_percent, warnings
