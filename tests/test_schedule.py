"""Tests for recurring date arithmetic."""
from __future__ import annotations

from datetime import date, datetime

import pytest

from dindin.db.kinds import FrequencyKind, ReminderFrequency, clamp_days
from dindin.services.schedule import (
    calculate_next_due_date,
    calculate_next_expected_date,
    calculate_next_reminder_at,
)

# Friday
REFERENCE = date(2024, 5, 10)


@pytest.mark.parametrize(
    "days, frequency, expected",
    [
        ([15], FrequencyKind.MONTHLY, date(2024, 5, 15)),
        ([10], FrequencyKind.MONTHLY, date(2024, 6, 10)),
        ([5], "monthly", date(2024, 6, 5)),
        ([15, 30], FrequencyKind.BIWEEKLY, date(2024, 5, 15)),
        ([5, 10], FrequencyKind.BIWEEKLY, date(2024, 6, 5)),
        ([20], FrequencyKind.BIWEEKLY, date(2024, 5, 25)),
        ([1], FrequencyKind.WEEKLY, date(2024, 5, 13)),
        ([5], FrequencyKind.WEEKLY, date(2024, 5, 17)),
        ([0], FrequencyKind.WEEKLY, date(2024, 5, 12)),
    ],
)
def test_calculate_next_expected_date(days, frequency, expected) -> None:
    assert calculate_next_expected_date(days, frequency, REFERENCE) == expected


def test_monthly_day_is_clamped_to_month_end() -> None:
    assert calculate_next_expected_date([31], FrequencyKind.MONTHLY, date(2024, 2, 10)) == date(2024, 2, 29)
    assert calculate_next_due_date(31, date(2024, 4, 30)) == date(2024, 5, 31)
    assert calculate_next_due_date(31, date(2023, 1, 31)) == date(2023, 2, 28)


def test_due_today_rolls_to_next_month() -> None:
    assert calculate_next_due_date(10, REFERENCE) == date(2024, 6, 10)
    assert calculate_next_due_date(11, REFERENCE) == date(2024, 5, 11)


def test_unknown_frequency_and_empty_days_are_rejected() -> None:
    with pytest.raises(ValueError):
        calculate_next_expected_date([1], "yearly", REFERENCE)
    with pytest.raises(ValueError):
        calculate_next_expected_date([], FrequencyKind.MONTHLY, REFERENCE)


def test_reminder_intervals() -> None:
    now = datetime(2024, 1, 31, 9, 0)

    assert calculate_next_reminder_at(ReminderFrequency.DAILY, now) == datetime(2024, 2, 1, 9, 0)
    assert calculate_next_reminder_at("weekly", now) == datetime(2024, 2, 7, 9, 0)
    assert calculate_next_reminder_at(ReminderFrequency.MONTHLY, now) == datetime(2024, 2, 29, 9, 0)


def test_clamp_days() -> None:
    assert clamp_days([9, -1], FrequencyKind.WEEKLY) == [6, 0]
    assert clamp_days([0, 40], FrequencyKind.MONTHLY) == [1, 31]
