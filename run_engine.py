#!/usr/bin/env python3
# coding: utf-8

# File: run_engine.py

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd
import yaml

from portfolio_sim_engine import config as engine_config
from portfolio_sim_engine import (
    BacktestResult,
    DashboardMetricsResult,
    GroupedMetricsResult,
    InMemoryClassificationProvider,
    InMemoryHoldingsProvider,
    InMemoryPriceProvider,
    StaticRateFXProvider,
    analyze_backtest,
    analyze_grouped_dashboard,
    get_dashboard_metrics,
    get_holdings_provider,
    set_classification_provider,
    set_fx_provider,
    set_holdings_provider,
    set_price_provider,
)

CLI_USER_ID = "cli"


def _load_price_csv(path: Path):
    """Read a CSV of dated prices; accepts a ``price``, ``close`` or ``Close`` column."""
    df = pd.read_csv(path)
    df.columns = [str(c).strip() for c in df.columns]
    date_col = next((c for c in df.columns if c.lower() == "date"), df.columns[0])
    price_col = next((c for c in ("price", "close", "Close", "adjClose") if c in df.columns), df.columns[-1])
    df[date_col] = pd.to_datetime(df[date_col])
    return list(zip(df[date_col].dt.date, df[price_col].astype(float)))


def load_scenario(scenario_yaml: str) -> Dict[str, Any]:
    """
    Load a YAML scenario and register in-memory providers built from it.

    Scenario keys:
    - holdings: list of holding mappings (camelCase or snake_case)
    - prices: symbol -> list of ``[date, price]`` rows, or a CSV path
      relative to the scenario file
    - fx_rates: ``{"USD_CNY": 7.2, ...}``
    - classification: ``{"portfolios": [...], "styles": [...]}``
    - currency / as_of / start_date / end_date / benchmark (optional)
    """
    path = Path(scenario_yaml)
    with open(path, "r") as f:
        scenario = yaml.safe_load(f) or {}

    prices = {}
    for symbol, rows in (scenario.get("prices") or {}).items():
        if isinstance(rows, str):
            prices[symbol] = _load_price_csv(path.parent / rows)
        else:
            prices[symbol] = rows

    set_holdings_provider(InMemoryHoldingsProvider({CLI_USER_ID: scenario.get("holdings") or []}))
    set_price_provider(InMemoryPriceProvider(prices))
    set_fx_provider(StaticRateFXProvider(scenario.get("fx_rates") or {}))
    set_classification_provider(InMemoryClassificationProvider({CLI_USER_ID: scenario.get("classification") or {}}))
    return scenario


def _emit(result: Union[BacktestResult, GroupedMetricsResult, DashboardMetricsResult, Dict[str, Any]], as_json: bool) -> None:
    if isinstance(result, dict):
        print(f"❌ {result.get('error_type', 'Error')}: {result.get('error')}")
        if as_json:
            print(json.dumps(result, indent=2))
        return
    if as_json:
        print(json.dumps(result.to_api_response(), indent=2))
    else:
        print(result.to_cli_report())


def run_backtest_scenario(
    scenario_yaml: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    currency: Optional[str] = None,
    benchmark: Optional[str] = None,
    *,
    as_json: bool = False,
    return_data: bool = False,
):
    """Backtest the scenario's holdings. Example: python run_engine.py --scenario s.yaml --backtest"""
    scenario = load_scenario(scenario_yaml)
    result = analyze_backtest(
        CLI_USER_ID,
        start or scenario.get("start_date") or engine_config.SCENARIO_DEFAULTS["start_date"],
        end or scenario.get("end_date") or engine_config.SCENARIO_DEFAULTS["end_date"],
        currency or scenario.get("currency") or engine_config.SCENARIO_DEFAULTS["currency"],
        benchmark or scenario.get("benchmark"),
        as_of=scenario.get("as_of"),
    )
    if return_data:
        return result
    _emit(result, as_json)


def run_grouped_scenario(
    scenario_yaml: str,
    group_by: Optional[str] = None,
    currency: Optional[str] = None,
    *,
    as_json: bool = False,
    return_data: bool = False,
):
    """Grouped dashboard for the scenario's holdings."""
    scenario = load_scenario(scenario_yaml)
    result = analyze_grouped_dashboard(
        CLI_USER_ID,
        currency or scenario.get("currency") or engine_config.SCENARIO_DEFAULTS["currency"],
        group_by or engine_config.SCENARIO_DEFAULTS["group_by"],
        as_of=scenario.get("as_of"),
    )
    if return_data:
        return result
    _emit(result, as_json)


def run_dashboard_scenario(
    scenario_yaml: str,
    currency: Optional[str] = None,
    *,
    as_json: bool = False,
    return_data: bool = False,
):
    """Ungrouped dashboard with per-symbol allocation."""
    scenario = load_scenario(scenario_yaml)
    ccy = currency or scenario.get("currency") or engine_config.SCENARIO_DEFAULTS["currency"]
    holdings = get_holdings_provider().get_holdings(CLI_USER_ID, ccy)
    result = get_dashboard_metrics(holdings, ccy, as_of=scenario.get("as_of"))
    if return_data:
        return result
    _emit(result, as_json)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--scenario", type=str, required=True, help="Path to YAML scenario file")
    parser.add_argument("--backtest", action="store_true", help="Run a historical backtest")
    parser.add_argument("--grouped", action="store_true", help="Run the grouped dashboard")
    parser.add_argument("--dashboard", action="store_true", help="Run the ungrouped dashboard")
    parser.add_argument("--start", type=str, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="End date (YYYY-MM-DD)")
    parser.add_argument("--currency", type=str, help="Display currency (USD or CNY/RMB)")
    parser.add_argument("--benchmark", type=str, help="Benchmark symbol, e.g. ^GSPC")
    parser.add_argument("--group-by", type=str, choices=["assetStyle", "assetClass", "currency", "none"],
                        help="Grouping dimension for --grouped")
    parser.add_argument("--json", action="store_true", help="Print the API payload instead of the CLI report")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.grouped:
        run_grouped_scenario(args.scenario, group_by=args.group_by, currency=args.currency, as_json=args.json)
    elif args.dashboard:
        run_dashboard_scenario(args.scenario, currency=args.currency, as_json=args.json)
    else:
        run_backtest_scenario(
            args.scenario,
            start=args.start,
            end=args.end,
            currency=args.currency,
            benchmark=args.benchmark,
            as_json=args.json,
        )
