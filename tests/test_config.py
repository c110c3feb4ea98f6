import pytest

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine._ticker import native_currency, normalize_currency
from portfolio_sim_engine.currency_bridge import CurrencyBridge, validate_display_currency
from portfolio_sim_engine.exceptions import CurrencyConversionError, ValidationError
from portfolio_sim_engine.providers import StaticRateFXProvider


def test_defaults():
    assert engine_config.BACKTEST_DEFAULTS["risk_free_rate_percent"] == 2.0
    assert engine_config.BACKTEST_DEFAULTS["future_price_tolerance_days"] == 30
    assert engine_config.RECOVERY_DEFAULTS["drawdown_threshold_percent"] == 5.0


def test_configure_overrides_values():
    engine_config.configure(RECOVERY_DEFAULTS={"drawdown_threshold_percent": 10.0})

    assert engine_config.RECOVERY_DEFAULTS["drawdown_threshold_percent"] == 10.0


@pytest.mark.parametrize("key", ["NOT_A_KEY", "_DEFAULTS", "configure"])
def test_configure_rejects_unknown_keys(key):
    with pytest.raises(KeyError):
        engine_config.configure(**{key: {}})


class TestCurrencies:
    def test_rmb_is_an_alias_for_cny(self):
        assert normalize_currency("rmb") == "CNY"
        assert validate_display_currency("RMB") == "CNY"

    @pytest.mark.parametrize("currency", ["", None, "EUR"])
    def test_unsupported_display_currency(self, currency):
        with pytest.raises(ValidationError):
            validate_display_currency(currency)

    @pytest.mark.parametrize(
        "symbol,expected",
        [
            ("AAPL", "USD"),
            ("600519.SS", "CNY"),
            ("000001.sz", "CNY"),
            ("CASH_RMB", "CNY"),
            ("CASH_USD", "USD"),
        ],
    )
    def test_native_currency(self, symbol, expected):
        assert native_currency(symbol) == expected

    def test_suffix_map_is_configurable(self):
        engine_config.configure(
            CURRENCY_SETTINGS={
                **engine_config.CURRENCY_SETTINGS,
                "market_suffix_currency": {".HK": "HKD"},
            }
        )

        assert native_currency("0700.HK") == "HKD"
        assert native_currency("600519.SS") == "USD"


class TestCurrencyBridge:
    def test_same_currency_needs_no_provider(self):
        assert CurrencyBridge("USD").to_display(123.0, "AAPL") == 123.0

    def test_inverse_rates_are_derived(self):
        fx = StaticRateFXProvider({"USD_CNY": 8.0})

        assert fx.convert_amount(80.0, "CNY", "USD") == pytest.approx(10.0)
        assert fx.convert_amount(1.0, "USD", "RMB") == pytest.approx(8.0)

    def test_unsupported_pair_raises(self):
        bridge = CurrencyBridge("USD", StaticRateFXProvider({"USD_CNY": 7.0}))

        with pytest.raises(CurrencyConversionError):
            bridge.convert(1.0, "JPY", "USD")

    def test_provider_errors_are_wrapped(self):
        class BrokenFX:
            def convert_amount(self, amount, from_currency, to_currency):
                raise ConnectionError("rate service down")

        with pytest.raises(CurrencyConversionError):
            CurrencyBridge("USD", BrokenFX()).to_display(1.0, "600519.SS")


def test_scenario_defaults():
    assert engine_config.SCENARIO_DEFAULTS["group_by"] == "assetStyle"
    assert engine_config.SCENARIO_DEFAULTS["start_date"] == "2024-01-02"
