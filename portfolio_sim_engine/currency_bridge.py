"""Conversion between a symbol's native currency and the display currency."""

from __future__ import annotations

from typing import Optional

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._ticker import native_currency, normalize_currency
from portfolio_sim_engine.exceptions import CurrencyConversionError, ValidationError
from portfolio_sim_engine.providers import FXProvider, get_fx_provider


def validate_display_currency(currency: Optional[str]) -> str:
    """Normalize ``currency`` (RMB → CNY) and check it is supported."""
    ccy = normalize_currency(currency)
    supported = [normalize_currency(c) for c in engine_config.CURRENCY_SETTINGS["supported_currencies"]]
    if not ccy or ccy not in supported:
        raise ValidationError(
            f"Invalid currency: must be one of {', '.join(supported)}",
            details={"currency": currency, "supported": supported},
        )
    return ccy


class CurrencyBridge:
    """
    Converts amounts for one display currency, delegating rates to an FXProvider.

    Same-currency conversions never touch the provider, so a portfolio held
    entirely in the display currency needs no FX provider at all.
    """

    def __init__(self, display_currency: str, fx_provider: Optional[FXProvider] = None):
        self.display_currency = normalize_currency(display_currency) or display_currency
        self._fx_provider = fx_provider if fx_provider is not None else get_fx_provider()

    def native_currency(self, symbol: str) -> str:
        return native_currency(symbol)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        src, dst = normalize_currency(from_currency), normalize_currency(to_currency)
        if src == dst:
            return float(amount)
        if self._fx_provider is None:
            raise CurrencyConversionError(
                f"No FX provider configured to convert {src}->{dst}",
                details={"from": src, "to": dst},
            )
        try:
            return float(self._fx_provider.convert_amount(amount, src, dst))
        except CurrencyConversionError:
            raise
        except Exception as exc:
            raise CurrencyConversionError(
                f"Failed to convert {src}->{dst}: {exc}",
                details={"from": src, "to": dst},
            ) from exc

    def to_native(self, amount: float, symbol: str) -> float:
        return self.convert(amount, self.display_currency, self.native_currency(symbol))

    def to_display(self, amount: float, symbol: str) -> float:
        return self.convert(amount, self.native_currency(symbol), self.display_currency)
