"""Price series alignment and last-known-value price resolution.

Series are pandas Series of float prices indexed by a sorted, de-duplicated
``DatetimeIndex`` (normalized to midnight). Assets trade on different
calendars, so every simulation runs on the union of observed dates and looks
up each asset's price per date with :func:`resolve_price`:

1. exact date match;
2. otherwise the closest strictly-earlier price (forward-fill);
3. otherwise the closest later price within ``future_price_tolerance_days``
   (default 30). This covers simulations whose start date precedes the first
   quote of a newly listed asset. It is an approximation: the asset is treated
   as if bought at a price that did not exist yet on the target date;
4. otherwise ``None``: a data gap for that symbol on that date.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._logging import engine_logger
from portfolio_sim_engine.constants import ISO_DATE_FORMAT
from portfolio_sim_engine.data_objects import PricePoint, coerce_date


def _to_timestamp(value: Any) -> pd.Timestamp:
    return pd.Timestamp(coerce_date(value))


def to_price_series(points: Any, name: Optional[str] = None) -> pd.Series:
    """Convert PricePoints, ``(date, price)`` pairs, or a Series into canonical form.

    Non-positive and NaN prices are dropped; duplicate dates keep the last
    observation.
    """
    if isinstance(points, pd.Series):
        series = points.astype(float).copy()
        series.index = pd.DatetimeIndex([_to_timestamp(ix) for ix in series.index])
    else:
        dates, prices = [], []
        for row in points or []:
            if isinstance(row, PricePoint):
                dt, price = row.date, row.price
            elif isinstance(row, Mapping):
                dt, price = row["date"], row.get("price", row.get("close"))
            else:
                dt, price = row
            dates.append(_to_timestamp(dt))
            prices.append(float(price) if price is not None else float("nan"))
        series = pd.Series(prices, index=pd.DatetimeIndex(dates), dtype=float)

    series = series[series > 0].dropna()
    series = series[~series.index.duplicated(keep="last")].sort_index()
    series.name = name
    return series


def clip_to_window(series: pd.Series, start_date: Any, end_date: Any) -> pd.Series:
    """Keep observations with ``start_date <= date <= end_date``."""
    if series is None or series.empty:
        return pd.Series(dtype=float, name=getattr(series, "name", None))
    start, end = _to_timestamp(start_date), _to_timestamp(end_date)
    return series.loc[(series.index >= start) & (series.index <= end)]


def build_date_axis(
    series_map: Mapping[str, pd.Series],
    start_date: Any,
    end_date: Any,
) -> pd.DatetimeIndex:
    """Union of all observed dates inside the window, ascending."""
    start, end = _to_timestamp(start_date), _to_timestamp(end_date)
    observed: Dict[str, pd.Timestamp] = {}
    for series in series_map.values():
        if series is None or series.empty:
            continue
        for ts in series.index:
            if start <= ts <= end:
                observed.setdefault(ts.strftime(ISO_DATE_FORMAT), ts)
    return pd.DatetimeIndex(sorted(observed.values()))


def resolve_price(
    series: Optional[pd.Series],
    target_date: Any,
    future_tolerance_days: Optional[int] = None,
) -> Optional[float]:
    """Resolve the price for ``target_date`` (see module docstring for the rules)."""
    if series is None or series.empty:
        return None
    if future_tolerance_days is None:
        future_tolerance_days = engine_config.BACKTEST_DEFAULTS["future_price_tolerance_days"]

    target = _to_timestamp(target_date)
    index = series.index

    pos = index.searchsorted(target, side="right")
    if pos > 0:
        # index[pos - 1] is the last date <= target: exact match or forward-fill.
        return float(series.iloc[pos - 1])

    first_date = index[0]
    if first_date - target <= pd.Timedelta(days=future_tolerance_days):
        return float(series.iloc[0])

    engine_logger.debug(
        "No price for %s on %s (first quote %s beyond %d-day tolerance)",
        series.name or "series",
        target.date(),
        first_date.date(),
        future_tolerance_days,
    )
    return None


def earliest_price(series: Optional[pd.Series]) -> Optional[float]:
    if series is None or series.empty:
        return None
    return float(series.iloc[0])


def previous_trading_price(series: Optional[pd.Series]) -> Optional[float]:
    """Price of the trading day before the latest observation.

    The latest point is treated as today's (possibly intraday) quote; the
    previous close is resolved against the remaining history so the future
    fallback can never return today's price.
    """
    if series is None or len(series) < 2:
        return None
    latest = series.index[-1]
    history = series.iloc[:-1]
    return resolve_price(history, latest - timedelta(days=1), future_tolerance_days=0)


def series_map_from_points(price_points: Mapping[str, Iterable[Any]]) -> Dict[str, pd.Series]:
    return {symbol: to_price_series(points, name=symbol) for symbol, points in price_points.items()}


def to_iso(ts: Any) -> str:
    if isinstance(ts, pd.Timestamp):
        return ts.strftime(ISO_DATE_FORMAT)
    if isinstance(ts, date):
        return ts.isoformat()
    return str(ts)
