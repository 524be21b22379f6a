from __future__ import annotations

import math
from datetime import datetime, timezone


def format_price(value: float | int | str | None) -> str:
    """Format a price with two decimals, or 'N/A' when it is not a finite number."""
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return "N/A"
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return f"{value:.2f}"
    return "N/A"


def format_date(ts: int) -> str:
    """Epoch seconds -> UTC calendar date (YYYY-MM-DD)."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")
