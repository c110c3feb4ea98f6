"""Public API for portfolio_sim_engine."""

from portfolio_sim_engine.backtest_analysis import (
    analyze_backtest,
    run_backtest,
    validate_backtest_params,
)
from portfolio_sim_engine.dashboard_analysis import (
    analyze_grouped_dashboard,
    get_dashboard_metrics,
    get_grouped_metrics,
)
from portfolio_sim_engine.data_objects import (
    Classification,
    Holding,
    PortfolioEntry,
    PricePoint,
    SimulatedPoint,
)
from portfolio_sim_engine.exceptions import (
    CurrencyConversionError,
    EngineError,
    InsufficientDataError,
    PartialDataWarning,
    ProviderNotConfiguredError,
    ValidationError,
)
from portfolio_sim_engine.providers import (
    ClassificationProvider,
    FXProvider,
    HoldingsProvider,
    InMemoryClassificationProvider,
    InMemoryHoldingsProvider,
    InMemoryPriceProvider,
    PriceProvider,
    StaticRateFXProvider,
    get_classification_provider,
    get_fx_provider,
    get_holdings_provider,
    get_price_provider,
    set_classification_provider,
    set_fx_provider,
    set_holdings_provider,
    set_price_provider,
)
from portfolio_sim_engine.results import BacktestResult, DashboardMetricsResult, GroupedMetricsResult

__all__ = [
    "run_backtest",
    "analyze_backtest",
    "validate_backtest_params",
    "get_grouped_metrics",
    "get_dashboard_metrics",
    "analyze_grouped_dashboard",
    "Holding",
    "PricePoint",
    "SimulatedPoint",
    "Classification",
    "PortfolioEntry",
    "BacktestResult",
    "GroupedMetricsResult",
    "DashboardMetricsResult",
    "EngineError",
    "ValidationError",
    "InsufficientDataError",
    "PartialDataWarning",
    "ProviderNotConfiguredError",
    "CurrencyConversionError",
    "PriceProvider",
    "FXProvider",
    "HoldingsProvider",
    "ClassificationProvider",
    "InMemoryPriceProvider",
    "StaticRateFXProvider",
    "InMemoryHoldingsProvider",
    "InMemoryClassificationProvider",
    "set_price_provider",
    "get_price_provider",
    "set_fx_provider",
    "get_fx_provider",
    "set_holdings_provider",
    "get_holdings_provider",
    "set_classification_provider",
    "get_classification_provider",
]
