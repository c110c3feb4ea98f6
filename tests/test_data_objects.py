import math
from datetime import date

import numpy as np
import pandas as pd
import pytest

from portfolio_sim_engine._vendor import make_json_safe
from portfolio_sim_engine.data_objects import Classification, Holding, coerce_date
from portfolio_sim_engine.exceptions import PartialDataWarning, ValidationError


class TestHolding:
    def test_from_camel_case_dict(self):
        holding = Holding.from_dict(
            {"symbol": " aapl ", "shares": 10, "costBasis": 1500, "currentPrice": 190, "currentValue": 1900}
        )

        assert holding.symbol == "AAPL"
        assert holding.current_value == 1900.0
        assert holding.to_dict()["gainLoss"] == pytest.approx(400.0)

    def test_from_snake_case_dict(self):
        holding = Holding.from_dict({"symbol": "MSFT", "shares": 1, "cost_basis": 10, "current_value": 12})

        assert holding.cost_basis == 10.0
        assert holding.current_value == 12.0

    def test_negative_shares_rejected(self):
        with pytest.raises(ValidationError):
            Holding("AAPL", -1, 0, 0, 0)

    def test_non_finite_values_rejected(self):
        with pytest.raises(ValidationError):
            Holding("AAPL", 1, 0, 0, float("nan"))

    def test_symbol_required(self):
        with pytest.raises(ValidationError):
            Holding("  ", 1, 0, 0, 0)


def test_classification_from_mapping_forms():
    classification = Classification.from_dict(
        {
            "portfolios": {"aapl": {"assetStyleId": 7, "assetClass": "Stock"}},
            "styles": {7: "Growth"},
        }
    )

    entry = classification.portfolios["AAPL"]
    assert entry.asset_style_id == "7"
    assert classification.styles["7"] == "Growth"


@pytest.mark.parametrize(
    "value",
    ["2024-01-02", date(2024, 1, 2), pd.Timestamp("2024-01-02 15:30")],
)
def test_coerce_date(value):
    assert coerce_date(value) == date(2024, 1, 2)


def test_coerce_date_rejects_other_types():
    with pytest.raises(ValidationError):
        coerce_date(20240102)


def test_partial_data_warning_renders_as_text():
    assert str(PartialDataWarning("ZZZ", "no price data in range")) == "ZZZ: no price data in range"


def test_make_json_safe():
    payload = make_json_safe(
        {
            date(2024, 1, 2): np.float64(1.5),
            "nan": float("nan"),
            "inf": np.float64("inf"),
            "when": pd.Timestamp("2024-01-03"),
            "flag": np.bool_(True),
            "count": np.int64(3),
            "rows": (1, 2),
        }
    )

    assert payload == {
        "2024-01-02": 1.5,
        "nan": None,
        "inf": None,
        "when": "2024-01-03",
        "flag": True,
        "count": 3,
        "rows": [1, 2],
    }
    assert not any(isinstance(v, float) and math.isnan(v) for v in payload.values())
