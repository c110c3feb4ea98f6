"""Result objects returned by the engine entrypoints.

Each result renders two ways:
- ``to_api_response()``: camelCase, JSON-safe dict for service callers
- ``to_cli_report()``: formatted text for ``run_engine.py``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from portfolio_sim_engine._vendor import make_json_safe
from portfolio_sim_engine.benchmark import BenchmarkComparison
from portfolio_sim_engine.data_objects import AllocationItem, AssetContribution, BacktestMetrics, Group, SimulatedPoint
from portfolio_sim_engine.exceptions import PartialDataWarning


def _warning_strings(warnings: List[PartialDataWarning]) -> List[str]:
    return [str(w) for w in warnings]


def _fmt_money(value: float, currency: str) -> str:
    return f"{value:,.2f} {currency}"


@dataclass
class BacktestResult:
    """
    Historical simulation of the current holdings over ``[start_date, end_date]``.

    ``points`` carry benchmark returns when a benchmark comparison succeeded.
    ``analytics`` holds best/worst day, drawdown detail and recovery time.
    """

    start_date: date
    end_date: date
    currency: str
    points: List[SimulatedPoint]
    metrics: BacktestMetrics
    contributions: List[AssetContribution] = field(default_factory=list)
    benchmark: Optional[BenchmarkComparison] = None
    analytics: Dict[str, Any] = field(default_factory=dict)
    warnings: List[PartialDataWarning] = field(default_factory=list)
    excluded_symbols: List[str] = field(default_factory=list)

    def _analytics_dict(self) -> Dict[str, Any]:
        out = {}
        for key, camel in (
            ("best_day", "bestDay"),
            ("worst_day", "worstDay"),
            ("max_drawdown", "maxDrawdown"),
            ("recovery_time", "recoveryTime"),
        ):
            value = self.analytics.get(key)
            out[camel] = value.to_dict() if value is not None else None
        return out

    def to_api_response(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "period": {"startDate": self.start_date, "endDate": self.end_date},
            "currency": self.currency,
            "performance": [p.to_dict() for p in self.points],
            "metrics": self.metrics.to_dict(),
            "assetContributions": [c.to_dict() for c in self.contributions],
            "analytics": self._analytics_dict(),
            "warnings": _warning_strings(self.warnings),
            "excludedSymbols": list(self.excluded_symbols),
        }
        if self.benchmark is not None:
            payload["benchmark"] = self.benchmark.to_dict()
        return make_json_safe(payload)

    def to_cli_report(self) -> str:
        m = self.metrics
        lines = ["📈 Portfolio Backtest"]
        lines.append("=" * 50)
        lines.append(f"📅 Period: {self.start_date.isoformat()} to {self.end_date.isoformat()}")
        lines.append(f"💱 Currency: {self.currency}")
        lines.append(f"📊 Data points: {len(self.points)}")
        if self.points:
            lines.append(f"💰 Start value: {_fmt_money(self.points[0].portfolio_value, self.currency)}")
            lines.append(f"💰 End value:   {_fmt_money(self.points[-1].portfolio_value, self.currency)}")
        lines.append("")
        lines.append("📊 Metrics")
        lines.append("-" * 50)
        lines.append(f"Total return:       {_fmt_money(m.total_return, self.currency)} ({m.total_return_percent:.2f}%)")
        lines.append(f"Annualized return:  {m.annualized_return_percent:.2f}%")
        lines.append(f"Max drawdown:       {m.max_drawdown_percent:.2f}%")
        lines.append(f"Volatility:         {m.volatility_percent:.2f}%")
        lines.append(f"Sharpe ratio:       {m.sharpe_ratio:.2f}")
        if self.benchmark is not None:
            lines.append(f"Benchmark:          {self.benchmark.name} ({self.benchmark.total_return_percent:.2f}%)")
            if m.excess_return_percent is not None:
                lines.append(f"Excess return:      {m.excess_return_percent:+.2f}%")

        if self.contributions:
            lines.append("")
            lines.append("🧩 Asset Contributions")
            lines.append("-" * 50)
            lines.append(f"{'Symbol':<12}{'Weight':>9}{'Return':>10}{'Contribution':>18}")
            for c in self.contributions:
                lines.append(
                    f"{c.symbol:<12}{c.weight_percent:>8.2f}%{c.return_percent:>9.2f}%"
                    f"{c.contribution_amount:>18,.2f}"
                )

        best, worst = self.analytics.get("best_day"), self.analytics.get("worst_day")
        if best is not None and worst is not None:
            lines.append("")
            lines.append(f"Best day:  {best.date.isoformat()} {best.change:+,.2f} ({best.change_percent:+.2f}%)")
            lines.append(f"Worst day: {worst.date.isoformat()} {worst.change:+,.2f} ({worst.change_percent:+.2f}%)")
        recovery = self.analytics.get("recovery_time")
        if recovery is not None:
            lines.append(f"Recovery:  {recovery.status} ({recovery.days} days, avg {recovery.average_days:.1f})")

        if self.warnings:
            lines.append("")
            lines.append("⚠️  Warnings")
            lines.extend(f"  • {w}" for w in self.warnings)
        return "\n".join(lines)


@dataclass
class GroupedMetricsResult:
    total_value: float
    total_gain: float
    percentage_return: float
    day_change: float
    day_change_percent: float
    groups: List[Group]
    currency: str
    group_by: str
    warnings: List[PartialDataWarning] = field(default_factory=list)

    def to_api_response(self) -> Dict[str, Any]:
        return make_json_safe({
            "totalValue": self.total_value,
            "totalGain": self.total_gain,
            "percentageReturn": self.percentage_return,
            "dayChange": self.day_change,
            "dayChangePercent": self.day_change_percent,
            "groups": [g.to_dict() for g in self.groups],
            "currency": self.currency,
            "groupBy": self.group_by,
            "warnings": _warning_strings(self.warnings),
        })

    def to_cli_report(self) -> str:
        lines = [f"📊 Portfolio Dashboard (grouped by {self.group_by})"]
        lines.append("=" * 50)
        lines.append(f"Total value:  {_fmt_money(self.total_value, self.currency)}")
        lines.append(f"Total gain:   {_fmt_money(self.total_gain, self.currency)} ({self.percentage_return:.2f}%)")
        lines.append(f"Day change:   {_fmt_money(self.day_change, self.currency)} ({self.day_change_percent:+.2f}%)")
        lines.append("")
        for g in self.groups:
            lines.append(f"{g.group_name:<24}{g.group_value:>16,.2f}{g.percentage_of_total:>9.2f}%")
            for h in g.holdings:
                lines.append(f"    {h.symbol:<20}{h.current_value:>16,.2f}")
        return "\n".join(lines)


@dataclass
class DashboardMetricsResult:
    total_value: float
    total_gain: float
    percentage_return: float
    day_change: float
    day_change_percent: float
    allocation: List[AllocationItem]
    currency: str
    warnings: List[PartialDataWarning] = field(default_factory=list)

    def to_api_response(self) -> Dict[str, Any]:
        return make_json_safe({
            "totalValue": self.total_value,
            "totalGain": self.total_gain,
            "percentageReturn": self.percentage_return,
            "dayChange": self.day_change,
            "dayChangePercent": self.day_change_percent,
            "allocation": [a.to_dict() for a in self.allocation],
            "currency": self.currency,
            "warnings": _warning_strings(self.warnings),
        })

    def to_cli_report(self) -> str:
        lines = ["📊 Portfolio Dashboard"]
        lines.append("=" * 50)
        lines.append(f"Total value:  {_fmt_money(self.total_value, self.currency)}")
        lines.append(f"Total gain:   {_fmt_money(self.total_gain, self.currency)} ({self.percentage_return:.2f}%)")
        lines.append(f"Day change:   {_fmt_money(self.day_change, self.currency)} ({self.day_change_percent:+.2f}%)")
        lines.append("")
        for item in self.allocation:
            lines.append(f"{item.symbol:<20}{item.value:>16,.2f}{item.percentage:>9.2f}%")
        return "\n".join(lines)
