# src/core/periods/__init__.py
"""
Периоды отчётности и прогресс целей.
"""

from src.core.periods.resolver import (
    PERIOD_ERROR_MESSAGE,
    Clock,
    PeriodLabel,
    PeriodResolver,
    TimeRange,
    expected_progress_fraction,
    parse_timezone,
    resolve_period,
    utc_now,
)

__all__ = [
    "PERIOD_ERROR_MESSAGE",
    "Clock",
    "PeriodLabel",
    "PeriodResolver",
    "TimeRange",
    "expected_progress_fraction",
    "parse_timezone",
    "resolve_period",
    "utc_now",
]
