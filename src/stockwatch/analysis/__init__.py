"""Trend analysis over stored quote history."""

from stockwatch.analysis.trend import (
    compute_daily_trend,
    percent_change,
    segment_trends,
    trend_sequences_newest_first,
)

__all__ = [
    "compute_daily_trend",
    "percent_change",
    "segment_trends",
    "trend_sequences_newest_first",
]
