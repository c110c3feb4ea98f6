import math
from datetime import date

import pytest

from conftest import AS_OF, make_holding
from portfolio_sim_engine import analyze_backtest, run_backtest
from portfolio_sim_engine.backtest_analysis import validate_backtest_params
from portfolio_sim_engine.exceptions import InsufficientDataError, ValidationError
from portfolio_sim_engine.providers import InMemoryPriceProvider

START, END = date(2024, 1, 2), date(2024, 1, 4)


def _run(holdings, provider, benchmark=None, start=START, end=END, currency="USD"):
    return run_backtest(holdings, start, end, currency, benchmark, price_provider=provider, as_of=AS_OF)


class TestValidation:
    def test_normalizes_currency_alias(self):
        assert validate_backtest_params("2024-01-02", "2024-01-04", "rmb", as_of=AS_OF) == (START, END, "CNY")

    def test_start_after_end(self):
        with pytest.raises(ValidationError):
            validate_backtest_params(END, START, "USD", as_of=AS_OF)

    def test_end_in_future(self):
        with pytest.raises(ValidationError):
            validate_backtest_params(START, date(2025, 1, 2), "USD", as_of=AS_OF)

    def test_unsupported_currency(self):
        with pytest.raises(ValidationError):
            validate_backtest_params(START, END, "EUR", as_of=AS_OF)

    def test_window_too_long(self):
        with pytest.raises(ValidationError):
            validate_backtest_params(date(2010, 1, 1), END, "USD", as_of=AS_OF)

    def test_unparseable_date(self):
        with pytest.raises(ValidationError):
            validate_backtest_params("not-a-date", END, "USD", as_of=AS_OF)


class TestRunBacktest:
    def test_full_result(self, two_asset_holdings, price_provider):
        result = _run(two_asset_holdings, price_provider, benchmark="^GSPC")

        assert [p.cumulative_return_percent for p in result.points] == pytest.approx([0.0, 1.4, 2.0])
        assert result.metrics.total_return == pytest.approx(20.0)
        assert result.metrics.excess_return_percent == pytest.approx(1.0)
        assert [c.symbol for c in result.contributions] == ["AAA", "BBB"]
        assert result.benchmark.name == "S&P 500"
        assert [p.benchmark_return_percent for p in result.points] == [0.0, None, pytest.approx(1.0)]
        assert result.excluded_symbols == []
        assert result.analytics["best_day"].date == date(2024, 1, 3)

    def test_symbol_without_data_is_excluded(self, two_asset_holdings, price_provider):
        holdings = two_asset_holdings + [make_holding("ZZZ", 1000.0)]

        result = _run(holdings, price_provider)

        assert result.excluded_symbols == ["ZZZ"]
        assert "ZZZ" not in {c.symbol for c in result.contributions}
        assert result.points[0].portfolio_value == pytest.approx(1000.0)
        assert any(w.symbol == "ZZZ" for w in result.warnings)

    def test_single_date_window(self, two_asset_holdings, price_provider):
        result = _run(two_asset_holdings, price_provider, start=END, end=END)

        assert len(result.points) == 1
        assert result.points[0].cumulative_return_percent == 0.0
        assert result.metrics.max_drawdown_percent == 0.0
        assert result.metrics.volatility_percent == 0.0
        assert result.metrics.sharpe_ratio == 0.0

    def test_benchmark_failure_is_not_fatal(self, two_asset_holdings, two_asset_prices):
        provider = InMemoryPriceProvider(two_asset_prices, failures={"^IXIC": RuntimeError("index feed down")})

        result = _run(two_asset_holdings, provider, benchmark="^IXIC")

        assert result.benchmark is None
        assert result.metrics.excess_return_percent is None
        assert "benchmark" not in result.to_api_response()
        assert any(w.symbol == "^IXIC" for w in result.warnings)

    def test_no_holdings(self, price_provider):
        with pytest.raises(InsufficientDataError):
            _run([], price_provider)

    def test_zero_total_value(self, price_provider):
        with pytest.raises(InsufficientDataError):
            _run([make_holding("AAA", 0.0, shares=0)], price_provider)

    def test_no_usable_prices(self, price_provider):
        with pytest.raises(InsufficientDataError):
            _run([make_holding("ZZZ", 100.0)], price_provider)

    def test_idempotent(self, two_asset_holdings, price_provider):
        first = _run(two_asset_holdings, price_provider, benchmark="^GSPC").to_api_response()
        second = _run(two_asset_holdings, price_provider, benchmark="^GSPC").to_api_response()

        assert first == second


class TestApiResponse:
    def test_shape_and_json_safety(self, two_asset_holdings, price_provider):
        payload = _run(two_asset_holdings, price_provider, benchmark="^GSPC").to_api_response()

        assert set(payload) == {
            "period",
            "currency",
            "performance",
            "metrics",
            "assetContributions",
            "benchmark",
            "analytics",
            "warnings",
            "excludedSymbols",
        }
        assert payload["period"] == {"startDate": "2024-01-02", "endDate": "2024-01-04"}
        assert payload["performance"][0] == {
            "date": "2024-01-02",
            "portfolioValue": pytest.approx(1000.0),
            "portfolioReturn": 0.0,
            "benchmarkReturn": 0.0,
        }
        assert "benchmarkReturn" not in payload["performance"][1]
        assert payload["benchmark"] == {"symbol": "^GSPC", "name": "S&P 500", "totalReturn": pytest.approx(1.0)}
        assert payload["analytics"]["maxDrawdown"]["peakDate"] == "2024-01-02"
        for value in payload["metrics"].values():
            assert math.isfinite(value)

    def test_cli_report_mentions_metrics(self, two_asset_holdings, price_provider):
        report = _run(two_asset_holdings, price_provider, benchmark="^GSPC").to_cli_report()

        assert "Sharpe ratio" in report
        assert "S&P 500" in report
        assert "AAA" in report


class TestAnalyzeBacktest:
    def test_uses_registered_providers(self, registered_providers):
        result = analyze_backtest("user-1", START, END, "USD", as_of=AS_OF)

        assert result.metrics.total_return == pytest.approx(20.0)

    def test_unknown_user_returns_error_payload(self, registered_providers):
        payload = analyze_backtest("nobody", START, END, "USD", as_of=AS_OF)

        assert payload["error_type"] == "InsufficientDataError"
        assert payload["analysis_period"] == {"start_date": "2024-01-02", "end_date": "2024-01-04"}

    def test_validation_error_payload(self, registered_providers):
        payload = analyze_backtest("user-1", START, END, "EUR", as_of=AS_OF)

        assert payload["error_type"] == "ValidationError"

    def test_unconfigured_provider_payload(self):
        payload = analyze_backtest("user-1", START, END, "USD", as_of=AS_OF)

        assert payload["error_type"] == "ProviderNotConfiguredError"


def test_late_listed_symbol_keeps_its_contribution():
    provider = InMemoryPriceProvider(
        {
            "AAA": [("2024-01-01", 100.0), ("2024-03-01", 110.0)],
            "LATE": [("2024-02-15", 50.0), ("2024-03-01", 60.0)],
        }
    )
    holdings = [make_holding("AAA", 500.0), make_holding("LATE", 500.0)]

    result = _run(holdings, provider, start=date(2024, 1, 1), end=date(2024, 3, 1))

    assert result.excluded_symbols == []
    assert {c.symbol for c in result.contributions} == {"AAA", "LATE"}
    assert result.to_api_response()["excludedSymbols"] == []
