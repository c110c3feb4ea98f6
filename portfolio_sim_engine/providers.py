"""Provider protocols and registry for external holdings/market/FX data.

The engine never fetches on its own: every read goes through one of the
protocols below, registered with ``set_*_provider`` or passed explicitly to an
entrypoint. In-memory implementations are provided for callers that already
hold the data (and for tests).
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from portfolio_sim_engine._ticker import normalize_currency, normalize_symbol
from portfolio_sim_engine.data_objects import Classification, Holding, PricePoint, coerce_date
from portfolio_sim_engine.exceptions import CurrencyConversionError, ProviderNotConfiguredError


@runtime_checkable
class PriceProvider(Protocol):
    def get_historical_prices(self, symbol: str, start_date: date, end_date: date) -> Sequence[PricePoint]: ...


@runtime_checkable
class FXProvider(Protocol):
    def convert_amount(self, amount: float, from_currency: str, to_currency: str) -> float: ...


@runtime_checkable
class HoldingsProvider(Protocol):
    def get_holdings(self, user_id: str, display_currency: str) -> List[Holding]: ...


@runtime_checkable
class ClassificationProvider(Protocol):
    def get_classification(self, user_id: str) -> Classification: ...


_price_provider: Optional[PriceProvider] = None
_fx_provider: Optional[FXProvider] = None
_holdings_provider: Optional[HoldingsProvider] = None
_classification_provider: Optional[ClassificationProvider] = None


def set_price_provider(provider: Optional[PriceProvider]) -> None:
    global _price_provider
    _price_provider = provider


def get_price_provider() -> PriceProvider:
    if _price_provider is None:
        raise ProviderNotConfiguredError("No price provider configured; call set_price_provider()")
    return _price_provider


def set_fx_provider(provider: Optional[FXProvider]) -> None:
    global _fx_provider
    _fx_provider = provider


def get_fx_provider() -> Optional[FXProvider]:
    return _fx_provider


def set_holdings_provider(provider: Optional[HoldingsProvider]) -> None:
    global _holdings_provider
    _holdings_provider = provider


def get_holdings_provider() -> HoldingsProvider:
    if _holdings_provider is None:
        raise ProviderNotConfiguredError("No holdings provider configured; call set_holdings_provider()")
    return _holdings_provider


def set_classification_provider(provider: Optional[ClassificationProvider]) -> None:
    global _classification_provider
    _classification_provider = provider


def get_classification_provider() -> ClassificationProvider:
    if _classification_provider is None:
        raise ProviderNotConfiguredError(
            "No classification provider configured; call set_classification_provider()"
        )
    return _classification_provider


PriceInput = Union[PricePoint, Tuple[Any, float], Mapping[str, Any]]


def _to_price_point(row: PriceInput) -> PricePoint:
    if isinstance(row, PricePoint):
        return row
    if isinstance(row, Mapping):
        return PricePoint(date=row["date"], price=row.get("price", row.get("close")))
    dt, price = row
    return PricePoint(date=dt, price=price)


class InMemoryPriceProvider:
    """Serves pre-fetched per-symbol price series, filtered to the requested range.

    Symbols listed in ``failures`` raise on fetch, to model a collaborator
    outage for that symbol.
    """

    def __init__(
        self,
        prices: Optional[Mapping[str, Iterable[PriceInput]]] = None,
        failures: Optional[Mapping[str, Exception]] = None,
    ):
        self._prices: Dict[str, List[PricePoint]] = {}
        for symbol, rows in (prices or {}).items():
            points = sorted((_to_price_point(r) for r in rows), key=lambda p: p.date)
            self._prices[normalize_symbol(symbol)] = points
        self._failures = {normalize_symbol(k): v for k, v in (failures or {}).items()}

    def get_historical_prices(self, symbol: str, start_date: date, end_date: date) -> List[PricePoint]:
        key = normalize_symbol(symbol)
        if key in self._failures:
            raise self._failures[key]
        start, end = coerce_date(start_date), coerce_date(end_date)
        return [
            p for p in self._prices.get(key, [])
            if start <= p.date <= end and p.price > 0
        ]


class StaticRateFXProvider:
    """FX provider over a fixed rate table.

    ``rates`` maps ``(from, to)`` pairs (or ``"FROM_TO"`` strings) to the
    multiplier converting one unit of ``from`` into ``to``. Inverse pairs are
    derived automatically. Unsupported pairs raise ``CurrencyConversionError``.
    """

    def __init__(self, rates: Optional[Mapping[Any, float]] = None):
        self._rates: Dict[Tuple[str, str], float] = {}
        for pair, rate in (rates or {}).items():
            if isinstance(pair, str):
                src, dst = pair.replace("/", "_").split("_", 1)
            else:
                src, dst = pair
            src_ccy, dst_ccy = normalize_currency(src), normalize_currency(dst)
            rate = float(rate)
            if rate <= 0:
                raise CurrencyConversionError(f"Invalid FX rate for {src_ccy}->{dst_ccy}: {rate}")
            self._rates[(src_ccy, dst_ccy)] = rate
            self._rates.setdefault((dst_ccy, src_ccy), 1.0 / rate)

    def get_rate(self, from_currency: str, to_currency: str) -> float:
        src, dst = normalize_currency(from_currency), normalize_currency(to_currency)
        if not src or not dst:
            raise CurrencyConversionError("Invalid currency code", details={"from": from_currency, "to": to_currency})
        if src == dst:
            return 1.0
        try:
            return self._rates[(src, dst)]
        except KeyError:
            raise CurrencyConversionError(
                f"Exchange rate not found: {src}->{dst}",
                details={"from": src, "to": dst},
            ) from None

    def convert_amount(self, amount: float, from_currency: str, to_currency: str) -> float:
        return float(amount) * self.get_rate(from_currency, to_currency)


class InMemoryHoldingsProvider:
    def __init__(self, holdings_by_user: Optional[Mapping[str, Iterable[Any]]] = None):
        self._holdings: Dict[str, List[Holding]] = {}
        for user_id, rows in (holdings_by_user or {}).items():
            self._holdings[str(user_id)] = [
                r if isinstance(r, Holding) else Holding.from_dict(r) for r in rows
            ]

    def get_holdings(self, user_id: str, display_currency: str) -> List[Holding]:
        return list(self._holdings.get(str(user_id), []))


class InMemoryClassificationProvider:
    def __init__(self, classification_by_user: Optional[Mapping[str, Any]] = None):
        self._classifications: Dict[str, Classification] = {}
        for user_id, value in (classification_by_user or {}).items():
            self._classifications[str(user_id)] = (
                value if isinstance(value, Classification) else Classification.from_dict(value)
            )

    def get_classification(self, user_id: str) -> Classification:
        return self._classifications.get(str(user_id), Classification.empty())
