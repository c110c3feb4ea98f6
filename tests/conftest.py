import copy
from datetime import date

import pytest

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine.data_objects import Classification, Holding, SimulatedPoint
from portfolio_sim_engine.providers import (
    InMemoryClassificationProvider,
    InMemoryHoldingsProvider,
    InMemoryPriceProvider,
    StaticRateFXProvider,
    set_classification_provider,
    set_fx_provider,
    set_holdings_provider,
    set_price_provider,
)

CONFIG_KEYS = (
    "BACKTEST_DEFAULTS",
    "CURRENCY_SETTINGS",
    "GROUPING_DEFAULTS",
    "DATA_FETCH_DEFAULTS",
    "RECOVERY_DEFAULTS",
    "SCENARIO_DEFAULTS",
)

AS_OF = date(2024, 12, 31)


@pytest.fixture(autouse=True)
def isolated_engine_state():
    """Restore config and clear the provider registry around every test."""
    saved = {key: copy.deepcopy(getattr(engine_config, key)) for key in CONFIG_KEYS}
    yield
    engine_config.configure(**saved)
    set_price_provider(None)
    set_fx_provider(None)
    set_holdings_provider(None)
    set_classification_provider(None)


def make_holding(symbol, value, shares=None, cost_basis=None, name="", currency="USD"):
    shares = shares if shares is not None else value / 100.0
    return Holding(
        symbol=symbol,
        shares=shares,
        cost_basis=cost_basis if cost_basis is not None else value,
        current_price=value / shares if shares else 0.0,
        current_value=value,
        currency=currency,
        name=name,
    )


def make_points(pairs):
    """``[(date, value), ...]`` -> SimulatedPoints with cumulative returns."""
    initial = pairs[0][1]
    return [
        SimulatedPoint(
            date=d,
            portfolio_value=v,
            cumulative_return_percent=(v - initial) / initial * 100 if initial > 0 else 0.0,
        )
        for d, v in pairs
    ]


@pytest.fixture
def scenario_b_prices():
    return {
        "AAA": [
            (date(2024, 1, 2), 100.0),
            (date(2024, 1, 3), 110.0),
            (date(2024, 1, 4), 90.0),
            (date(2024, 1, 5), 120.0),
        ]
    }


@pytest.fixture
def two_asset_prices():
    return {
        "AAA": [(date(2024, 1, 2), 100.0), (date(2024, 1, 3), 105.0), (date(2024, 1, 4), 110.0)],
        "BBB": [(date(2024, 1, 2), 50.0), (date(2024, 1, 3), 48.0), (date(2024, 1, 4), 45.0)],
        "^GSPC": [(date(2024, 1, 2), 4000.0), (date(2024, 1, 4), 4040.0)],
    }


@pytest.fixture
def price_provider(two_asset_prices):
    return InMemoryPriceProvider(two_asset_prices)


@pytest.fixture
def fx_provider():
    return StaticRateFXProvider({"USD_CNY": 7.0})


@pytest.fixture
def two_asset_holdings():
    return [
        make_holding("AAA", 600.0, name="Alpha Corp"),
        make_holding("BBB", 400.0, name="Beta Inc"),
    ]


@pytest.fixture
def dashboard_holdings():
    return [
        make_holding("AAPL", 6000.0, shares=30, cost_basis=5000.0, name="Apple"),
        make_holding("MSFT", 3000.0, shares=10, cost_basis=3500.0, name="Microsoft"),
        make_holding("600519.SS", 1000.0, shares=1, cost_basis=800.0, name="Kweichow Moutai"),
        make_holding("CASH_RMB", 500.0, shares=3500, cost_basis=500.0, name="RMB Cash"),
    ]


@pytest.fixture
def classification():
    return Classification.from_dict(
        {
            "portfolios": [
                {"symbol": "AAPL", "assetStyleId": "s1", "assetClass": "Stock"},
                {"symbol": "MSFT", "assetStyleId": "s1", "assetClass": "Stock"},
                {"symbol": "600519.SS", "assetStyleId": "s9", "assetClass": "Stock"},
            ],
            "styles": [{"id": "s1", "name": "Growth"}, {"id": "s2", "name": "Value"}],
        }
    )


@pytest.fixture
def registered_providers(two_asset_holdings, price_provider, fx_provider, classification):
    set_holdings_provider(InMemoryHoldingsProvider({"user-1": two_asset_holdings}))
    set_price_provider(price_provider)
    set_fx_provider(fx_provider)
    set_classification_provider(InMemoryClassificationProvider({"user-1": classification}))
