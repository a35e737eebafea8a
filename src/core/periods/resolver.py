# src/core/periods/resolver.py
"""
Преобразование символьного периода в полуинтервал [from, to).

Модуль чистый: текущее время передаётся снаружи (clock),
границы считаются в часовом поясе вызывающего.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from fractions import Fraction
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.common.constants import GoalPeriod
from src.common.errors import BadRequestError

Clock = Callable[[], datetime]

# Начало "всего времени" для all_time
EPOCH_START = date(2020, 1, 1)


def utc_now() -> datetime:
    """Часы по умолчанию."""
    return datetime.now(timezone.utc)


class PeriodLabel(str, Enum):
    """Допустимые метки периодов."""
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this_week"
    LAST_WEEK = "last_week"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_YEAR = "this_year"
    ALL_TIME = "all_time"


PERIOD_ERROR_MESSAGE = (
    "period must be: today, yesterday, this_week, last_week, "
    "this_month, last_month, this_year, or all_time"
)


@dataclass(frozen=True)
class TimeRange:
    """Полуинтервал [start, end) в зоне вызывающего."""
    label: str
    start: datetime
    end: datetime


def parse_timezone(name: str | None, default: str = "UTC") -> tzinfo:
    """
    IANA-имя зоны -> tzinfo.

    Raises:
        BadRequestError: неизвестная зона
    """
    zone_name = name or default
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise BadRequestError(f"unknown time zone: {zone_name}")


def _midnight(day: date, tz: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _first_of_previous_month(day: date) -> date:
    if day.month == 1:
        return date(day.year - 1, 12, 1)
    return date(day.year, day.month - 1, 1)


def resolve_period(label: str, now: datetime, tz: tzinfo) -> TimeRange:
    """
    Границы периода для момента now в зоне tz.

    "this_*" и today заканчиваются в now, "last_*" и yesterday заканчиваются
    на начале текущего периода. Неделя начинается с понедельника.

    Raises:
        BadRequestError: неизвестная метка
    """
    try:
        period = PeriodLabel(label)
    except ValueError:
        raise BadRequestError(PERIOD_ERROR_MESSAGE)

    local_now = now.astimezone(tz)
    today = local_now.date()
    start_of_today = _midnight(today, tz)
    monday = today - timedelta(days=today.isoweekday() - 1)
    first_of_month = today.replace(day=1)

    match period:
        case PeriodLabel.TODAY:
            start, end = start_of_today, local_now
        case PeriodLabel.YESTERDAY:
            start, end = _midnight(today - timedelta(days=1), tz), start_of_today
        case PeriodLabel.THIS_WEEK:
            start, end = _midnight(monday, tz), local_now
        case PeriodLabel.LAST_WEEK:
            start, end = _midnight(monday - timedelta(days=7), tz), _midnight(monday, tz)
        case PeriodLabel.THIS_MONTH:
            start, end = _midnight(first_of_month, tz), local_now
        case PeriodLabel.LAST_MONTH:
            start = _midnight(_first_of_previous_month(today), tz)
            end = _midnight(first_of_month, tz)
        case PeriodLabel.THIS_YEAR:
            start, end = _midnight(date(today.year, 1, 1), tz), local_now
        case PeriodLabel.ALL_TIME:
            start, end = _midnight(EPOCH_START, tz), local_now

    # now раньше 2020 года возможен только в тестах
    if start > end:
        start = end
    return TimeRange(label=period.value, start=start, end=end)


def expected_progress_fraction(period: str, now: datetime, tz: tzinfo) -> Fraction:
    """
    Доля периода цели, прошедшая к моменту now.

    daily -> час/24, weekly -> день недели (Пн=1..Вс=7)/7,
    monthly -> число/дней в месяце, иначе 1/2.
    Возвращает точную дробь, чтобы порог сравнивался без погрешности.
    """
    local_now = now.astimezone(tz)
    if period == GoalPeriod.DAILY.value:
        return Fraction(local_now.hour, 24)
    if period == GoalPeriod.WEEKLY.value:
        return Fraction(local_now.isoweekday(), 7)
    if period == GoalPeriod.MONTHLY.value:
        days_in_month = calendar.monthrange(local_now.year, local_now.month)[1]
        return Fraction(local_now.day, days_in_month)
    return Fraction(1, 2)


class PeriodResolver:
    """
    Резолвер с внедрёнными часами и зоной по умолчанию.
    Один экземпляр разделяется всеми сервисами.
    """

    def __init__(self, clock: Clock = utc_now, default_timezone: str = "UTC") -> None:
        self._clock = clock
        self._default_tz = parse_timezone(default_timezone)

    def now(self) -> datetime:
        return self._clock()

    def zone(self, name: str | None = None) -> tzinfo:
        if name is None:
            return self._default_tz
        return parse_timezone(name)

    def resolve(self, label: str, tz_name: str | None = None) -> TimeRange:
        return resolve_period(label, self._clock(), self.zone(tz_name))

    def progress_fraction(self, period: str, tz_name: str | None = None) -> Fraction:
        return expected_progress_fraction(period, self._clock(), self.zone(tz_name))
