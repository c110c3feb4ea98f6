import pytest

from conftest import make_holding
from portfolio_sim_engine.currency_bridge import CurrencyBridge
from portfolio_sim_engine.data_objects import Classification
from portfolio_sim_engine.exceptions import ValidationError
from portfolio_sim_engine.grouping import (
    aggregate_groups,
    compute_day_change,
    group_holdings,
    portfolio_totals,
    resolve_group_key,
    validate_group_by,
)


def _groups(holdings, classification, group_by):
    total = portfolio_totals(holdings)["total_value"]
    return aggregate_groups(group_holdings(holdings, classification, group_by), total)


def _as_map(groups):
    return {g.group_name: g.group_value for g in groups}


class TestGroupKeys:
    def test_asset_style_labels(self, dashboard_holdings, classification):
        keys = [resolve_group_key(h, classification, "assetStyle") for h in dashboard_holdings]

        assert keys == ["Growth", "Growth", "Unknown", "Uncategorized"]

    def test_asset_class_labels(self, dashboard_holdings, classification):
        keys = [resolve_group_key(h, classification, "assetClass") for h in dashboard_holdings]

        assert keys == ["Stock", "Stock", "Stock", "Uncategorized"]

    def test_currency_uses_native_currency(self, dashboard_holdings, classification):
        keys = [resolve_group_key(h, classification, "currency") for h in dashboard_holdings]

        assert keys == ["USD", "USD", "CNY", "CNY"]

    def test_none_is_a_single_group(self, dashboard_holdings, classification):
        keys = {resolve_group_key(h, classification, "none") for h in dashboard_holdings}

        assert keys == {"All Holdings"}


class TestAggregateGroups:
    @pytest.mark.parametrize("group_by", ["assetStyle", "assetClass", "currency", "none"])
    def test_values_and_percentages_are_conserved(self, dashboard_holdings, classification, group_by):
        groups = _groups(dashboard_holdings, classification, group_by)

        assert sum(g.group_value for g in groups) == pytest.approx(10500.0)
        assert sum(g.percentage_of_total for g in groups) == pytest.approx(100.0, abs=0.01)
        assert sum(len(g.holdings) for g in groups) == len(dashboard_holdings)

    def test_sorted_by_value_descending(self, dashboard_holdings, classification):
        groups = _groups(dashboard_holdings, classification, "assetStyle")

        assert [g.group_name for g in groups] == ["Growth", "Unknown", "Uncategorized"]
        assert groups[0].percentage_of_total == pytest.approx(9000.0 / 10500.0 * 100)

    def test_style_without_holdings_is_absent(self, dashboard_holdings, classification):
        groups = _groups(dashboard_holdings, classification, "assetStyle")

        assert "Value" not in _as_map(groups)

    def test_currency_groups(self, dashboard_holdings, classification):
        assert _as_map(_groups(dashboard_holdings, classification, "currency")) == {
            "USD": pytest.approx(9000.0),
            "CNY": pytest.approx(1500.0),
        }

    def test_zero_total_gives_zero_percentages(self):
        holdings = [make_holding("AAA", 0.0, shares=0), make_holding("BBB", 0.0, shares=0)]

        groups = _groups(holdings, Classification.empty(), "none")

        assert groups[0].percentage_of_total == 0.0

    def test_missing_classification_groups_as_uncategorized(self, dashboard_holdings):
        groups = _groups(dashboard_holdings, None, "assetStyle")

        assert _as_map(groups) == {"Uncategorized": pytest.approx(10500.0)}


def test_portfolio_totals(dashboard_holdings):
    totals = portfolio_totals(dashboard_holdings)

    assert totals["total_value"] == pytest.approx(10500.0)
    assert totals["total_gain"] == pytest.approx(700.0)
    assert totals["percentage_return"] == pytest.approx(700.0 / 9800.0 * 100)


def test_portfolio_totals_without_cost_basis():
    totals = portfolio_totals([make_holding("AAA", 100.0, cost_basis=0.0)])

    assert totals["percentage_return"] == 0.0


class TestDayChange:
    def test_day_change_with_conversion_and_missing_price(self, dashboard_holdings, fx_provider):
        previous = {"AAPL": 190.0, "600519.SS": 7000.0, "CASH_RMB": 1.0}

        change, pct, warnings = compute_day_change(dashboard_holdings, previous, CurrencyBridge("USD", fx_provider))

        assert change == pytest.approx(300.0)
        assert pct == pytest.approx(300.0 / 10200.0 * 100)
        assert [w.symbol for w in warnings] == ["MSFT"]

    def test_failed_conversion_degrades_to_no_change(self, dashboard_holdings):
        previous = {"AAPL": 200.0, "MSFT": 300.0, "600519.SS": 6000.0, "CASH_RMB": 2.0}

        change, pct, warnings = compute_day_change(dashboard_holdings, previous, CurrencyBridge("USD"))

        assert change == pytest.approx(0.0)
        assert pct == pytest.approx(0.0)
        assert {w.symbol for w in warnings} == {"600519.SS", "CASH_RMB"}

    def test_no_holdings(self):
        assert compute_day_change([], {}, CurrencyBridge("USD"))[:2] == (0.0, 0.0)


def test_invalid_group_by():
    with pytest.raises(ValidationError):
        validate_group_by("sector")
