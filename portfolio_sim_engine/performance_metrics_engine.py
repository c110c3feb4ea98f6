"""Shared performance-metrics computation engine for simulated value curves.

Called by:
- ``backtest_analysis.run_backtest`` for the headline metrics block.
- ``compute_performance_analytics`` callers that need best/worst day,
  drawdown detail and recovery statistics.

Contract notes:
- Inputs are ascending ``SimulatedPoint`` sequences in display currency.
- Every numeric output is finite: zero divisions, zero volatility and
  degenerate curves collapse to 0.
- Curves of length <= 1 produce all-zero metrics.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._vendor import finite_or_zero
from portfolio_sim_engine.constants import (
    DAYS_PER_YEAR,
    RECOVERY_STATUS_IN_DRAWDOWN,
    RECOVERY_STATUS_RECOVERED,
)
from portfolio_sim_engine.data_objects import (
    BacktestMetrics,
    DayMetric,
    DrawdownDetail,
    RecoveryMetric,
    SimulatedPoint,
)


def _value_series(points: Sequence[SimulatedPoint]) -> pd.Series:
    return pd.Series(
        [p.portfolio_value for p in points],
        index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in points]),
        dtype=float,
    )


def daily_returns(values: pd.Series) -> pd.Series:
    """Day-over-day simple returns, skipping steps whose previous value is not positive."""
    previous = values.shift(1)
    returns = (values - previous) / previous
    return returns[previous > 0].dropna()


def max_drawdown_percent(values: pd.Series) -> float:
    """Largest peak-to-trough decline, as a non-positive percentage."""
    if values.empty:
        return 0.0
    running_peak = values.cummax()
    drawdowns = ((running_peak - values) / running_peak).where(running_peak > 0, 0.0)
    worst = float(drawdowns.max()) * 100
    return -finite_or_zero(worst) if worst > 0 else 0.0


def compute_backtest_metrics(
    points: Sequence[SimulatedPoint],
    risk_free_rate_percent: Optional[float] = None,
) -> BacktestMetrics:
    """Compute return, drawdown, volatility and Sharpe metrics for a value curve.

    Ownership:
    - This is the canonical metrics engine; orchestrators should not
      duplicate return/volatility/Sharpe logic.

    Formulas:
    - annualized = ((final / initial) ** (365 / calendar_days) - 1) * 100
    - volatility = population std of daily returns * sqrt(252) * 100
    - sharpe = (annualized - risk_free_rate_percent) / volatility
    """
    if len(points) <= 1:
        return BacktestMetrics()

    if risk_free_rate_percent is None:
        risk_free_rate_percent = engine_config.BACKTEST_DEFAULTS["risk_free_rate_percent"]
    trading_days = engine_config.BACKTEST_DEFAULTS["trading_days_per_year"]

    values = _value_series(points)
    initial = float(values.iloc[0])
    final = float(values.iloc[-1])

    total_return = final - initial
    total_return_percent = total_return / initial * 100 if initial > 0 else 0.0

    days = (points[-1].date - points[0].date).days
    annualized = 0.0
    if days > 0 and initial > 0 and final >= 0:
        annualized = (np.power(final / initial, DAYS_PER_YEAR / days) - 1) * 100

    returns = daily_returns(values)
    volatility = 0.0
    if len(returns) > 0:
        volatility = float(np.std(returns.to_numpy(), ddof=0)) * np.sqrt(trading_days) * 100

    volatility = finite_or_zero(volatility)
    annualized = finite_or_zero(annualized)
    sharpe = (annualized - risk_free_rate_percent) / volatility if volatility > 0 else 0.0

    return BacktestMetrics(
        total_return=finite_or_zero(total_return),
        total_return_percent=finite_or_zero(total_return_percent),
        annualized_return_percent=annualized,
        max_drawdown_percent=max_drawdown_percent(values),
        volatility_percent=volatility,
        sharpe_ratio=finite_or_zero(sharpe),
    )


def find_best_and_worst_days(
    points: Sequence[SimulatedPoint],
) -> Tuple[Optional[DayMetric], Optional[DayMetric]]:
    """Largest absolute gain and loss between consecutive points."""
    if len(points) < 2:
        return None, None

    best: Optional[DayMetric] = None
    worst: Optional[DayMetric] = None
    for prev, curr in zip(points, points[1:]):
        change = curr.portfolio_value - prev.portfolio_value
        pct = change / prev.portfolio_value * 100 if prev.portfolio_value > 0 else 0.0
        metric = DayMetric(date=curr.date, change=change, change_percent=pct)
        # strict comparisons: ties keep the earliest date
        if best is None or change > best.change:
            best = metric
        if worst is None or change < worst.change:
            worst = metric
    return best, worst


def compute_drawdown_detail(points: Sequence[SimulatedPoint]) -> DrawdownDetail:
    if not points:
        return DrawdownDetail()

    first = points[0]
    peak, peak_date = first.portfolio_value, first.date
    detail = DrawdownDetail(
        peak_date=first.date,
        trough_date=first.date,
        peak_value=first.portfolio_value,
        trough_value=first.portfolio_value,
    )
    for point in points:
        if point.portfolio_value > peak:
            peak, peak_date = point.portfolio_value, point.date
        if peak <= 0:
            continue
        drawdown = (peak - point.portfolio_value) / peak * 100
        if drawdown > detail.percentage:
            detail = DrawdownDetail(
                percentage=drawdown,
                absolute=peak - point.portfolio_value,
                peak_date=peak_date,
                trough_date=point.date,
                peak_value=peak,
                trough_value=point.portfolio_value,
            )
    return detail


def compute_recovery_time(
    points: Sequence[SimulatedPoint],
    threshold_percent: Optional[float] = None,
) -> RecoveryMetric:
    """
    Recovery statistics for drawdowns deeper than ``threshold_percent``.

    A drawdown starts when the decline from the running peak exceeds the
    threshold and ends at the first new high. ``days`` is the trough-to-recovery
    span of the most recent recovered drawdown, or, while still in drawdown,
    the span from the last peak to the last data point.
    """
    if threshold_percent is None:
        threshold_percent = engine_config.RECOVERY_DEFAULTS["drawdown_threshold_percent"]
    if len(points) <= 1:
        return RecoveryMetric(status=RECOVERY_STATUS_RECOVERED)

    recovered: List[Dict[str, Any]] = []
    peak, peak_date = points[0].portfolio_value, points[0].date
    current: Optional[Dict[str, Any]] = None

    for i, point in enumerate(points):
        if point.portfolio_value > peak:
            if current is not None:
                current["recovery_date"] = point.date
                recovered.append(current)
                current = None
            peak, peak_date = point.portfolio_value, point.date

        if peak <= 0:
            continue
        drawdown = (peak - point.portfolio_value) / peak * 100
        if current is None and drawdown > threshold_percent:
            current = {"peak_date": peak_date, "trough_date": point.date}
        elif current is not None and point.portfolio_value < points[i - 1].portfolio_value:
            current["trough_date"] = point.date

    last = points[-1]
    current_drawdown = (peak - last.portfolio_value) / peak * 100 if peak > 0 else 0.0

    spans = [(dd["recovery_date"] - dd["trough_date"]).days for dd in recovered]
    average_days = float(np.mean(spans)) if spans else 0.0

    if current_drawdown > threshold_percent:
        return RecoveryMetric(
            status=RECOVERY_STATUS_IN_DRAWDOWN,
            days=(last.date - peak_date).days,
            average_days=average_days,
        )
    return RecoveryMetric(
        status=RECOVERY_STATUS_RECOVERED,
        days=spans[-1] if spans else 0,
        average_days=average_days,
    )


def compute_performance_analytics(points: Sequence[SimulatedPoint]) -> Dict[str, Any]:
    """Bundle best/worst day, drawdown detail and recovery time for a curve."""
    best, worst = find_best_and_worst_days(points)
    return {
        "best_day": best,
        "worst_day": worst,
        "max_drawdown": compute_drawdown_detail(points),
        "recovery_time": compute_recovery_time(points),
    }
