"""Small helpers for JSON-safe serialization/coercion."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd

from portfolio_sim_engine.constants import ISO_DATE_FORMAT


def make_json_safe(obj: Any) -> Any:
    """Recursively convert values into JSON-serializable forms.

    Dates render as ISO ``YYYY-MM-DD``; NaN/Inf become ``None``.
    """
    if isinstance(obj, dict):
        out = {}
        for key, value in obj.items():
            if isinstance(key, (pd.Timestamp, datetime, date)):
                safe_key = _iso_date(key)
            elif isinstance(key, (int, float, str, bool, type(None))):
                safe_key = key
            else:
                safe_key = str(key)
            out[safe_key] = make_json_safe(value)
        return out

    if isinstance(obj, (list, tuple)):
        return [make_json_safe(item) for item in obj]

    if isinstance(obj, pd.DataFrame):
        return make_json_safe(obj.to_dict("records"))

    if isinstance(obj, pd.Series):
        return {_iso_date(k) if isinstance(k, (pd.Timestamp, datetime, date)) else str(k): make_json_safe(v)
                for k, v in obj.to_dict().items()}

    if isinstance(obj, np.ndarray):
        return make_json_safe(obj.tolist())

    if isinstance(obj, np.bool_):
        return bool(obj)

    if isinstance(obj, np.integer):
        return int(obj)

    if isinstance(obj, np.floating):
        obj = float(obj)

    if isinstance(obj, (pd.Timestamp, datetime, date)):
        return _iso_date(obj)

    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None

    if isinstance(obj, (int, str, bool, type(None))):
        return obj

    return str(obj)


def _iso_date(value: Any) -> str:
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.strftime(ISO_DATE_FORMAT)
    return value.isoformat()


def _to_float(value: Any) -> float | None:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def finite_or_zero(value: Any) -> float:
    """Coerce to a finite float; NaN/Inf/invalid collapse to 0.0."""
    numeric = _to_float(value)
    if numeric is None or not math.isfinite(numeric):
        return 0.0
    return numeric
