"""
Dashboard orchestration: totals, day change and grouped/ungrouped allocation.

Called by:
- Service/API layers holding a holdings snapshot (``get_grouped_metrics``,
  ``get_dashboard_metrics``).
- Provider-driven callers and the CLI (``analyze_grouped_dashboard``).

Contract notes:
- An empty holdings snapshot yields a zeroed dashboard, not an error.
- Missing previous-day prices or FX failures only degrade the day change.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from portfolio_sim_engine._logging import engine_logger, log_errors, log_operation, log_portfolio_operation
from portfolio_sim_engine._vendor import make_json_safe
from portfolio_sim_engine.currency_bridge import CurrencyBridge, validate_display_currency
from portfolio_sim_engine.data_loader import gather_grouping_inputs
from portfolio_sim_engine.data_objects import AllocationItem, Classification, Holding
from portfolio_sim_engine.exceptions import EngineError, PartialDataWarning, ProviderNotConfiguredError
from portfolio_sim_engine.grouping import (
    aggregate_groups,
    compute_day_change,
    group_holdings,
    portfolio_totals,
    validate_group_by,
)
from portfolio_sim_engine.providers import (
    FXProvider,
    PriceProvider,
    get_classification_provider,
    get_holdings_provider,
    get_price_provider,
)
from portfolio_sim_engine.results import DashboardMetricsResult, GroupedMetricsResult


def _resolve_price_provider(price_provider: Optional[PriceProvider]) -> Optional[PriceProvider]:
    if price_provider is not None:
        return price_provider
    try:
        return get_price_provider()
    except ProviderNotConfiguredError:
        engine_logger.info("No price provider configured; day change will be zero")
        return None


def _previous_prices_and_classification(
    holdings: List[Holding],
    classification: Optional[Classification],
    load_classification: Optional[Callable[[], Classification]],
    previous_prices: Optional[Mapping[str, Optional[float]]],
    price_provider: Optional[PriceProvider],
    as_of: Optional[Any],
) -> Tuple[Classification, Mapping[str, Optional[float]], List[PartialDataWarning]]:
    provider = None if previous_prices is not None else _resolve_price_provider(price_provider)
    loader = load_classification if classification is None else None
    fetched_classification, fetched_prices, warnings = gather_grouping_inputs(
        [h.symbol for h in holdings],
        load_classification=loader,
        provider=provider,
        as_of=as_of,
    )
    return (
        classification if classification is not None else fetched_classification,
        previous_prices if previous_prices is not None else fetched_prices,
        warnings,
    )


@log_errors("medium")
@log_operation("grouped_dashboard")
def get_grouped_metrics(
    holdings: Iterable[Holding],
    classification: Union[Classification, Callable[[], Classification], None],
    display_currency: str,
    group_by: str,
    *,
    previous_prices: Optional[Mapping[str, Optional[float]]] = None,
    price_provider: Optional[PriceProvider] = None,
    fx_provider: Optional[FXProvider] = None,
    as_of: Optional[Any] = None,
) -> GroupedMetricsResult:
    """
    Group the holdings snapshot along ``group_by`` and compute dashboard totals.

    ``classification`` may be a zero-argument callable; it is then invoked
    concurrently with the previous-day price fetches. ``previous_prices``
    (symbol → previous close in native currency) skips the previous-day fetch;
    otherwise prices come from ``price_provider`` or the registered one.
    """
    load_classification = None
    if callable(classification):
        load_classification, classification = classification, None
    currency = validate_display_currency(display_currency)
    group_by = validate_group_by(group_by)
    holdings = list(holdings)

    if not holdings:
        return GroupedMetricsResult(
            total_value=0.0,
            total_gain=0.0,
            percentage_return=0.0,
            day_change=0.0,
            day_change_percent=0.0,
            groups=[],
            currency=currency,
            group_by=group_by,
        )

    classification, prev_prices, warnings = _previous_prices_and_classification(
        holdings, classification, load_classification, previous_prices, price_provider, as_of
    )
    totals = portfolio_totals(holdings)
    groups = aggregate_groups(group_holdings(holdings, classification, group_by), totals["total_value"])
    day_change, day_change_percent, day_warnings = compute_day_change(
        holdings, prev_prices, CurrencyBridge(currency, fx_provider)
    )
    warnings.extend(day_warnings)

    log_portfolio_operation(
        "grouped_dashboard_completed",
        {"group_by": group_by, "groups": len(groups), "holdings": len(holdings), "currency": currency},
    )
    return GroupedMetricsResult(
        total_value=totals["total_value"],
        total_gain=totals["total_gain"],
        percentage_return=totals["percentage_return"],
        day_change=day_change,
        day_change_percent=day_change_percent,
        groups=groups,
        currency=currency,
        group_by=group_by,
        warnings=list(dict.fromkeys(warnings)),
    )


@log_errors("medium")
@log_operation("dashboard")
def get_dashboard_metrics(
    holdings: Iterable[Holding],
    display_currency: str,
    *,
    previous_prices: Optional[Mapping[str, Optional[float]]] = None,
    price_provider: Optional[PriceProvider] = None,
    fx_provider: Optional[FXProvider] = None,
    as_of: Optional[Any] = None,
) -> DashboardMetricsResult:
    """Ungrouped dashboard: totals, day change and per-symbol allocation."""
    currency = validate_display_currency(display_currency)
    holdings = list(holdings)
    totals = portfolio_totals(holdings)
    total_value = totals["total_value"]

    allocation = [
        AllocationItem(
            symbol=h.symbol,
            value=h.current_value,
            percentage=h.current_value / total_value * 100 if total_value > 0 else 0.0,
        )
        for h in holdings
    ]

    warnings: List[PartialDataWarning] = []
    day_change, day_change_percent = 0.0, 0.0
    if holdings:
        _, prev_prices, warnings = _previous_prices_and_classification(
            holdings, Classification.empty(), None, previous_prices, price_provider, as_of
        )
        day_change, day_change_percent, day_warnings = compute_day_change(
            holdings, prev_prices, CurrencyBridge(currency, fx_provider)
        )
        warnings.extend(day_warnings)

    return DashboardMetricsResult(
        total_value=total_value,
        total_gain=totals["total_gain"],
        percentage_return=totals["percentage_return"],
        day_change=day_change,
        day_change_percent=day_change_percent,
        allocation=allocation,
        currency=currency,
        warnings=list(dict.fromkeys(warnings)),
    )


def analyze_grouped_dashboard(
    user_id: str,
    display_currency: str,
    group_by: str,
    *,
    as_of: Optional[Any] = None,
) -> Union[GroupedMetricsResult, Dict[str, Any]]:
    """
    Provider-driven grouped dashboard for one user.

    Holdings come from the registered ``HoldingsProvider``; the classification
    lookup runs concurrently with the previous-day price fetches. Errors are
    returned as a JSON-safe ``{"error", "error_type", ...}`` dict.
    """
    try:
        currency = validate_display_currency(display_currency)
        validate_group_by(group_by)
        holdings = get_holdings_provider().get_holdings(user_id, currency)
        classification_provider = get_classification_provider()
        return get_grouped_metrics(
            holdings,
            lambda: classification_provider.get_classification(user_id),
            currency,
            group_by,
            as_of=as_of,
        )
    except EngineError as exc:
        engine_logger.warning("Grouped dashboard failed for user %s: %s", user_id, exc)
        payload = exc.to_dict()
        payload["user_id"] = user_id
        payload["group_by"] = group_by
        return make_json_safe(payload)
