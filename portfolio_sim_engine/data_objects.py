"""
Core Data Objects Module

Immutable data structures consumed and produced by the simulation and
aggregation pipeline.

Classes:
- Holding: One current position, valued in the caller's display currency
- PricePoint: One dated quote of a historical price series
- SimulatedPoint: One date of the buy-and-hold value curve
- BacktestMetrics: Return/risk statistics of a simulated curve
- AssetContribution: One asset's share of the total simulated return
- Group: Holdings aggregated along one dashboard dimension
- PortfolioEntry / Classification: Style and asset-class metadata per symbol
- DayMetric / DrawdownDetail / RecoveryMetric: Supplementary curve analytics

Every object is created fresh per call and never mutated afterwards; helpers
that "update" a point (e.g. merging benchmark returns) return new instances.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd

from portfolio_sim_engine._ticker import normalize_symbol
from portfolio_sim_engine.exceptions import ValidationError


def coerce_date(value: Any, field_name: str = "date") -> date:
    """Parse ``value`` (str, date, datetime, Timestamp) into a ``date``."""
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return pd.Timestamp(value.strip()).date()
        except (ValueError, TypeError) as exc:
            raise ValidationError(
                f"Invalid {field_name}: {value!r}",
                details={"field": field_name, "value": value},
            ) from exc
    raise ValidationError(
        f"Invalid {field_name}: {value!r}",
        details={"field": field_name, "value": repr(value)},
    )


def _finite(value: Any, field_name: str, symbol: str) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Holding {symbol}: {field_name} must be numeric",
            details={"symbol": symbol, "field": field_name, "value": repr(value)},
        ) from exc
    if not math.isfinite(numeric):
        raise ValidationError(
            f"Holding {symbol}: {field_name} must be finite",
            details={"symbol": symbol, "field": field_name},
        )
    return numeric


@dataclass(frozen=True)
class Holding:
    """
    A user's current position in one symbol.

    ``current_value`` and ``cost_basis`` are expressed in ``currency``, which is
    the display currency the snapshot was requested in, not necessarily the
    symbol's native trading currency.

    Example:
        holding = Holding.from_dict({"symbol": "AAPL", "shares": 10,
                                     "costBasis": 1500, "currentPrice": 190,
                                     "currentValue": 1900, "currency": "USD"})
    """

    symbol: str
    shares: float
    cost_basis: float
    current_price: float
    current_value: float
    currency: str = "USD"
    name: str = ""

    def __post_init__(self) -> None:
        symbol = normalize_symbol(self.symbol)
        if not symbol:
            raise ValidationError("Holding symbol is required")
        object.__setattr__(self, "symbol", symbol)
        for field_name in ("shares", "cost_basis", "current_price", "current_value"):
            object.__setattr__(self, field_name, _finite(getattr(self, field_name), field_name, symbol))
        if self.shares < 0:
            raise ValidationError(
                f"Holding {symbol}: shares must be >= 0",
                details={"symbol": symbol, "shares": self.shares},
            )
        object.__setattr__(self, "currency", str(self.currency or "USD").strip().upper())
        object.__setattr__(self, "name", str(self.name or ""))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Holding":
        """Build from a camelCase (API) or snake_case mapping."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        return cls(
            symbol=pick("symbol", default=""),
            shares=pick("shares", default=0.0),
            cost_basis=pick("costBasis", "cost_basis", default=0.0),
            current_price=pick("currentPrice", "current_price", default=0.0),
            current_value=pick("currentValue", "current_value", default=0.0),
            currency=pick("currency", default="USD"),
            name=pick("name", default=""),
        )

    def to_dict(self) -> Dict[str, Any]:
        gain = self.current_value - self.cost_basis
        return {
            "symbol": self.symbol,
            "name": self.name,
            "shares": self.shares,
            "costBasis": self.cost_basis,
            "currentPrice": self.current_price,
            "currentValue": self.current_value,
            "gainLoss": gain,
            "gainLossPercent": (gain / self.cost_basis * 100) if self.cost_basis > 0 else 0.0,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class PricePoint:
    date: date
    price: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", coerce_date(self.date))
        object.__setattr__(self, "price", float(self.price))


@dataclass(frozen=True)
class SimulatedPoint:
    date: date
    portfolio_value: float
    cumulative_return_percent: float = 0.0
    benchmark_return_percent: Optional[float] = None

    def with_benchmark(self, benchmark_return_percent: Optional[float]) -> "SimulatedPoint":
        return replace(self, benchmark_return_percent=benchmark_return_percent)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "date": self.date,
            "portfolioValue": self.portfolio_value,
            "portfolioReturn": self.cumulative_return_percent,
        }
        if self.benchmark_return_percent is not None:
            out["benchmarkReturn"] = self.benchmark_return_percent
        return out


@dataclass(frozen=True)
class BacktestMetrics:
    total_return: float = 0.0
    total_return_percent: float = 0.0
    annualized_return_percent: float = 0.0
    max_drawdown_percent: float = 0.0
    volatility_percent: float = 0.0
    sharpe_ratio: float = 0.0
    excess_return_percent: Optional[float] = None

    def with_excess_return(self, excess_return_percent: float) -> "BacktestMetrics":
        return replace(self, excess_return_percent=excess_return_percent)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "totalReturn": self.total_return,
            "totalReturnPercent": self.total_return_percent,
            "annualizedReturn": self.annualized_return_percent,
            "maxDrawdown": self.max_drawdown_percent,
            "volatility": self.volatility_percent,
            "sharpeRatio": self.sharpe_ratio,
        }
        if self.excess_return_percent is not None:
            out["excessReturn"] = self.excess_return_percent
        return out


@dataclass(frozen=True)
class AssetContribution:
    symbol: str
    name: str
    weight_percent: float
    return_amount: float
    return_percent: float
    contribution_amount: float
    contribution_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "weight": self.weight_percent,
            "return": self.return_amount,
            "returnPercent": self.return_percent,
            "contribution": self.contribution_amount,
            "contributionPercent": self.contribution_percent,
        }


@dataclass(frozen=True)
class Group:
    group_name: str
    group_value: float
    percentage_of_total: float
    holdings: Tuple[Holding, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groupName": self.group_name,
            "groupValue": self.group_value,
            "percentage": self.percentage_of_total,
            "holdings": [h.to_dict() for h in self.holdings],
        }


@dataclass(frozen=True)
class AllocationItem:
    symbol: str
    value: float
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {"symbol": self.symbol, "value": self.value, "percentage": self.percentage}


@dataclass(frozen=True)
class PortfolioEntry:
    """Per-symbol classification metadata maintained by the user."""

    symbol: str
    asset_style_id: Optional[str] = None
    asset_class: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", normalize_symbol(self.symbol))


@dataclass(frozen=True)
class Classification:
    """
    Classification lookup result: symbol → PortfolioEntry and style id → name.

    Construction methods:
    - from_dict(): accepts ``{"portfolios": [...], "styles": [...]}`` where
      portfolios are mappings with ``symbol`` / ``assetStyleId`` / ``assetClass``
      and styles are ``{"id", "name"}`` mappings or a plain id → name dict.
    """

    portfolios: Dict[str, PortfolioEntry] = field(default_factory=dict)
    styles: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Classification":
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Classification":
        data = data or {}
        portfolios: Dict[str, PortfolioEntry] = {}
        raw_portfolios = data.get("portfolios") or []
        if isinstance(raw_portfolios, Mapping):
            raw_portfolios = [dict(v, symbol=k) for k, v in raw_portfolios.items()]
        for row in raw_portfolios:
            style_id = row.get("assetStyleId", row.get("asset_style_id"))
            entry = PortfolioEntry(
                symbol=row.get("symbol", ""),
                asset_style_id=str(style_id) if style_id not in (None, "") else None,
                asset_class=row.get("assetClass", row.get("asset_class")) or None,
            )
            portfolios[entry.symbol] = entry

        raw_styles = data.get("styles") or {}
        if isinstance(raw_styles, Mapping):
            styles = {str(k): str(v) for k, v in raw_styles.items()}
        else:
            styles = {str(row.get("id")): str(row.get("name", "")) for row in raw_styles}
        return cls(portfolios=portfolios, styles=styles)


@dataclass(frozen=True)
class DayMetric:
    date: date
    change: float
    change_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "change": self.change, "changePercent": self.change_percent}


@dataclass(frozen=True)
class DrawdownDetail:
    percentage: float = 0.0
    absolute: float = 0.0
    peak_date: Optional[date] = None
    trough_date: Optional[date] = None
    peak_value: float = 0.0
    trough_value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "absolute": self.absolute,
            "peakDate": self.peak_date,
            "troughDate": self.trough_date,
            "peakValue": self.peak_value,
            "troughValue": self.trough_value,
        }


@dataclass(frozen=True)
class RecoveryMetric:
    status: str = "recovered"
    days: int = 0
    average_days: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "days": self.days, "averageDays": self.average_days}
