"""
Core Constants Module

Centralized definitions for grouping dimensions, benchmark display names
and calendar constants used across the engine.
"""

# Grouping Dimensions
# ===================
# Values accepted by the dashboard ``group_by`` parameter.

GROUP_BY_ASSET_STYLE = "assetStyle"
GROUP_BY_ASSET_CLASS = "assetClass"
GROUP_BY_CURRENCY = "currency"
GROUP_BY_NONE = "none"

VALID_GROUP_BY = (
    GROUP_BY_ASSET_STYLE,
    GROUP_BY_ASSET_CLASS,
    GROUP_BY_CURRENCY,
    GROUP_BY_NONE,
)

# Benchmark Display Names
# =======================
# Human-readable names for common index benchmarks.

BENCHMARK_DISPLAY_NAMES = {
    '^GSPC': 'S&P 500',
    '^IXIC': 'NASDAQ',
    '^DJI': 'Dow Jones',
    '000001.SS': 'Shanghai Composite',
    '399001.SZ': 'Shenzhen Component',
}

# Calendar Constants
# ==================

DAYS_PER_YEAR = 365
ISO_DATE_FORMAT = "%Y-%m-%d"

# Recovery status values
RECOVERY_STATUS_RECOVERED = "recovered"
RECOVERY_STATUS_IN_DRAWDOWN = "in_drawdown"


def benchmark_display_name(symbol: str) -> str:
    """Return a display name for ``symbol``; unknown symbols echo back."""
    return BENCHMARK_DISPLAY_NAMES.get(symbol, symbol)
