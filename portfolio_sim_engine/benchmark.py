"""Benchmark curve construction and merge into a simulated portfolio curve."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from portfolio_sim_engine._logging import engine_logger
from portfolio_sim_engine.constants import benchmark_display_name
from portfolio_sim_engine.currency_bridge import CurrencyBridge
from portfolio_sim_engine.data_objects import SimulatedPoint
from portfolio_sim_engine.exceptions import EngineError, PartialDataWarning
from portfolio_sim_engine.performance_simulator import simulate_portfolio
from portfolio_sim_engine.series_alignment import to_iso


@dataclass(frozen=True)
class BenchmarkComparison:
    symbol: str
    name: str
    total_return_percent: float
    points: Tuple[SimulatedPoint, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "totalReturn": self.total_return_percent,
        }


def compare_to_benchmark(
    benchmark_symbol: str,
    series: Optional[pd.Series],
    start_date: Any,
    end_date: Any,
    total_value: float,
    bridge: CurrencyBridge,
) -> Tuple[Optional[BenchmarkComparison], List[PartialDataWarning]]:
    """Simulate a 100% position in ``benchmark_symbol`` over the same window.

    Failures never propagate: the comparison is ``None`` and a warning
    explains why.
    """
    if series is None or series.empty:
        engine_logger.warning("No benchmark data for %s", benchmark_symbol)
        return None, [PartialDataWarning(benchmark_symbol, "no benchmark data in range", stage="benchmark")]

    try:
        simulation = simulate_portfolio(
            {benchmark_symbol: 1.0},
            {benchmark_symbol: series},
            start_date,
            end_date,
            total_value,
            bridge,
        )
    except EngineError as exc:
        engine_logger.warning("Benchmark %s unavailable: %s", benchmark_symbol, exc)
        return None, [PartialDataWarning(benchmark_symbol, f"benchmark unavailable ({exc.message})", stage="benchmark")]

    warnings = [
        PartialDataWarning(w.symbol, w.reason, stage="benchmark") for w in simulation.warnings
    ]
    comparison = BenchmarkComparison(
        symbol=benchmark_symbol,
        name=benchmark_display_name(benchmark_symbol),
        total_return_percent=simulation.points[-1].cumulative_return_percent,
        points=simulation.points,
    )
    return comparison, warnings


def merge_benchmark_returns(
    points: Sequence[SimulatedPoint],
    benchmark_points: Sequence[SimulatedPoint],
) -> List[SimulatedPoint]:
    """Copy benchmark cumulative returns onto portfolio points with the same date."""
    by_date = {to_iso(p.date): p.cumulative_return_percent for p in benchmark_points}
    return [p.with_benchmark(by_date.get(to_iso(p.date))) for p in points]


def excess_return_percent(points: Sequence[SimulatedPoint], comparison: BenchmarkComparison) -> float:
    if not points:
        return 0.0
    return points[-1].cumulative_return_percent - comparison.total_return_percent
