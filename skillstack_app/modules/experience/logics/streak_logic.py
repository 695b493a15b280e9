"""
Streak Logic - Pure functions for daily streaks and streak SKP.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.
"""
from datetime import date, datetime, timedelta
from typing import FrozenSet, Iterable, Optional, Union

DateLike = Union[date, datetime, str]

ONE_DAY = timedelta(days=1)
STREAK_MILESTONE_DAYS = 10


def calculate_streak_from_dates(
    activity_dates: Iterable[DateLike],
    today: Optional[date] = None,
    allow_grace_day: bool = True
) -> int:
    """
    Length of the run of consecutive active days that ends today.

    With ``allow_grace_day`` a run ending yesterday still counts, since the
    user may simply not have studied yet today. Payouts pass False.

    Examples:
        >>> days = [date(2024, 1, 3), date(2024, 1, 2), date(2024, 1, 1)]
        >>> calculate_streak_from_dates(days, today=date(2024, 1, 3))
        3
        >>> calculate_streak_from_dates([date(2024, 1, 3), date(2024, 1, 1)], today=date(2024, 1, 3))
        1
        >>> calculate_streak_from_dates([date(2024, 1, 2)], today=date(2024, 1, 3), allow_grace_day=False)
        0
    """
    active_days = _to_day_set(activity_dates)
    if not active_days:
        return 0

    cursor = today or date.today()
    if cursor not in active_days:
        if not allow_grace_day:
            return 0
        cursor -= ONE_DAY

    length = 0
    while cursor in active_days:
        length += 1
        cursor -= ONE_DAY
    return length


def calculate_streak_entitlement(streak_days: int, daily_bonus: float, ten_day_bonus: float) -> int:
    """
    Total SKP owed for a streak: ``daily`` per day plus ``ten_day`` per full 10 days.

    >>> calculate_streak_entitlement(12, 10, 100)
    220
    """
    if streak_days <= 0:
        return 0
    milestones = streak_days // STREAK_MILESTONE_DAYS
    return int(streak_days * daily_bonus) + int(milestones * ten_day_bonus)


def _to_day_set(values: Iterable[DateLike]) -> FrozenSet[date]:
    days = (_normalize_to_date(value) for value in values or ())
    return frozenset(day for day in days if day is not None)


def _normalize_to_date(value) -> Optional[date]:
    # datetime is a date subclass, so it has to be checked first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None
