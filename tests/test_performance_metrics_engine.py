import math
from datetime import date

import numpy as np
import pytest

from conftest import make_points
from portfolio_sim_engine.performance_metrics_engine import (
    compute_backtest_metrics,
    compute_drawdown_detail,
    compute_performance_analytics,
    compute_recovery_time,
    find_best_and_worst_days,
)


@pytest.fixture
def scenario_b_points():
    return make_points(
        [
            (date(2024, 1, 2), 1000.0),
            (date(2024, 1, 3), 1100.0),
            (date(2024, 1, 4), 900.0),
            (date(2024, 1, 5), 1200.0),
        ]
    )


class TestBacktestMetrics:
    def test_total_return_and_drawdown(self, scenario_b_points):
        metrics = compute_backtest_metrics(scenario_b_points)

        assert metrics.total_return == pytest.approx(200.0)
        assert metrics.total_return_percent == pytest.approx(20.0)
        assert metrics.max_drawdown_percent == pytest.approx(-18.1818, abs=1e-3)

    def test_volatility_is_population_std_annualized(self, scenario_b_points):
        returns = np.array([0.1, -200.0 / 1100.0, 300.0 / 900.0])
        expected = np.std(returns, ddof=0) * np.sqrt(252) * 100

        metrics = compute_backtest_metrics(scenario_b_points)

        assert metrics.volatility_percent == pytest.approx(expected)
        assert metrics.sharpe_ratio == pytest.approx(
            (metrics.annualized_return_percent - 2.0) / metrics.volatility_percent
        )

    def test_annualized_return_uses_calendar_days(self):
        points = make_points([(date(2023, 1, 1), 100.0), (date(2024, 1, 1), 110.0)])

        metrics = compute_backtest_metrics(points)

        assert metrics.annualized_return_percent == pytest.approx(10.0)

    def test_flat_curve_has_zero_volatility_and_sharpe(self):
        points = make_points([(date(2024, 1, d), 500.0) for d in range(2, 8)])

        metrics = compute_backtest_metrics(points)

        assert metrics.volatility_percent == 0.0
        assert metrics.sharpe_ratio == 0.0
        assert metrics.max_drawdown_percent == 0.0

    def test_single_point_is_all_zero(self):
        metrics = compute_backtest_metrics(make_points([(date(2024, 1, 2), 1000.0)]))

        assert metrics.to_dict() == {
            "totalReturn": 0.0,
            "totalReturnPercent": 0.0,
            "annualizedReturn": 0.0,
            "maxDrawdown": 0.0,
            "volatility": 0.0,
            "sharpeRatio": 0.0,
        }

    def test_outputs_are_finite_for_degenerate_curves(self):
        points = make_points([(date(2024, 1, 2), 0.0), (date(2024, 1, 3), 0.0), (date(2024, 1, 4), 10.0)])

        metrics = compute_backtest_metrics(points)

        assert all(math.isfinite(v) for v in metrics.to_dict().values())
        assert metrics.total_return_percent == 0.0

    def test_risk_free_rate_override(self, scenario_b_points):
        metrics = compute_backtest_metrics(scenario_b_points, risk_free_rate_percent=0.0)

        assert metrics.sharpe_ratio == pytest.approx(metrics.annualized_return_percent / metrics.volatility_percent)


def test_best_and_worst_days(scenario_b_points):
    best, worst = find_best_and_worst_days(scenario_b_points)

    assert best.date == date(2024, 1, 5)
    assert best.change == pytest.approx(300.0)
    assert best.change_percent == pytest.approx(33.3333, abs=1e-3)
    assert worst.date == date(2024, 1, 4)
    assert worst.change == pytest.approx(-200.0)


def test_best_and_worst_days_need_two_points():
    assert find_best_and_worst_days(make_points([(date(2024, 1, 2), 1.0)])) == (None, None)


def test_drawdown_detail(scenario_b_points):
    detail = compute_drawdown_detail(scenario_b_points)

    assert detail.percentage == pytest.approx(18.1818, abs=1e-3)
    assert detail.absolute == pytest.approx(200.0)
    assert detail.peak_date == date(2024, 1, 3)
    assert detail.trough_date == date(2024, 1, 4)
    assert detail.peak_value == 1100.0
    assert detail.trough_value == 900.0


class TestRecoveryTime:
    def test_recovered_drawdown(self, scenario_b_points):
        recovery = compute_recovery_time(scenario_b_points)

        assert recovery.status == "recovered"
        assert recovery.days == 1
        assert recovery.average_days == pytest.approx(1.0)

    def test_still_in_drawdown_counts_to_last_point(self):
        points = make_points(
            [(date(2024, 1, 2), 100.0), (date(2024, 1, 3), 120.0), (date(2024, 1, 10), 100.0)]
        )

        recovery = compute_recovery_time(points)

        assert recovery.status == "in_drawdown"
        assert recovery.days == 7
        assert recovery.average_days == 0.0

    def test_shallow_dips_are_ignored(self):
        points = make_points(
            [(date(2024, 1, 2), 100.0), (date(2024, 1, 3), 97.0), (date(2024, 1, 4), 101.0)]
        )

        recovery = compute_recovery_time(points)

        assert recovery.status == "recovered"
        assert recovery.days == 0

    def test_threshold_is_configurable(self):
        points = make_points(
            [(date(2024, 1, 2), 100.0), (date(2024, 1, 3), 97.0), (date(2024, 1, 6), 101.0)]
        )

        recovery = compute_recovery_time(points, threshold_percent=2.0)

        assert recovery.days == 3


def test_performance_analytics_bundle(scenario_b_points):
    analytics = compute_performance_analytics(scenario_b_points)

    assert set(analytics) == {"best_day", "worst_day", "max_drawdown", "recovery_time"}
    assert analytics["recovery_time"].status == "recovered"
