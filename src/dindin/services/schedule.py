"""Calendar arithmetic for recurring incomes, expenses and reminders."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from dindin.config import get_settings
from dindin.db.kinds import FrequencyKind, ReminderFrequency, normalize_frequency

BIWEEKLY_FALLBACK_DAYS = 15


def _sunday_based_weekday(value: date) -> int:
    # date.weekday() is Monday=0; stored weekdays are Sunday=0
    return (value.weekday() + 1) % 7


def _next_month_day(days: list[int], reference: date) -> date:
    for day in days:
        # relativedelta(day=31) clamps to the last day of the month
        candidate = reference + relativedelta(day=day)
        if candidate > reference:
            return candidate
    return reference + relativedelta(months=1, day=days[0])


def calculate_next_expected_date(
    days: Iterable[int],
    frequency: FrequencyKind | str,
    reference: Optional[date] = None,
) -> date:
    """Return the first payment date strictly after ``reference``.

    Monthly and biweekly sources store days of the month, weekly sources store a
    weekday where 0 is Sunday.
    """

    reference = reference or date.today()
    frequency = normalize_frequency(frequency)
    sorted_days = sorted(int(day) for day in days)
    if not sorted_days:
        raise ValueError("At least one recurring day is required")

    if frequency is FrequencyKind.WEEKLY:
        current = _sunday_based_weekday(reference)
        offsets = [((day % 7) - current) % 7 or 7 for day in sorted_days]
        return reference + timedelta(days=min(offsets))

    if frequency is FrequencyKind.BIWEEKLY and len(sorted_days) < 2:
        return reference + timedelta(days=BIWEEKLY_FALLBACK_DAYS)

    return _next_month_day(sorted_days, reference)


def calculate_next_due_date(due_day: int, reference: Optional[date] = None) -> date:
    """Return the next due date for a monthly bill, clamped to the month end.

    A bill due today is considered already handled, the next occurrence is
    in the following month.
    """

    reference = reference or date.today()
    due_day = min(31, max(1, int(due_day)))
    return _next_month_day([due_day], reference)


def calculate_next_reminder_at(frequency: ReminderFrequency | str, reference: datetime) -> datetime:
    frequency = ReminderFrequency(frequency)
    if frequency is ReminderFrequency.DAILY:
        return reference + timedelta(days=1)
    if frequency is ReminderFrequency.WEEKLY:
        return reference + timedelta(weeks=1)
    return reference + relativedelta(months=1)


def local_timezone() -> ZoneInfo:
    """Timezone the user's calendar days are counted in."""

    return ZoneInfo(get_settings().reminders.timezone)


def local_today() -> date:
    return datetime.now(local_timezone()).date()


__all__ = [
    "calculate_next_due_date",
    "calculate_next_expected_date",
    "calculate_next_reminder_at",
    "local_timezone",
    "local_today",
]
