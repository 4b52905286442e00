"""Enumerations shared by the finance models and the conversation flows."""
from __future__ import annotations

from enum import Enum


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class FrequencyKind(str, Enum):
    """How often a recurring income source pays out."""

    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"


class Personality(str, Enum):
    """Tone the bot uses when talking to a user."""

    FRIENDLY = "friendly"
    SASSY = "sassy"
    PROFESSIONAL = "professional"


class ReminderFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def normalize_frequency(value: str) -> FrequencyKind:
    """Return the canonical frequency for a stored or user supplied value."""

    try:
        return FrequencyKind(value)
    except ValueError as exc:
        raise ValueError(f"Unsupported income frequency: {value}") from exc


def normalize_personality(value: str | None) -> Personality:
    """Unknown or empty personalities fall back to the friendly one."""

    try:
        return Personality(value)
    except ValueError:
        return Personality.FRIENDLY


def clamp_days(days: list[int], frequency: FrequencyKind) -> list[int]:
    """Clamp recurring days into the range valid for ``frequency``."""

    if frequency is FrequencyKind.WEEKLY:
        return [min(6, max(0, int(day))) for day in days]
    return [min(31, max(1, int(day))) for day in days]


__all__ = [
    "FrequencyKind",
    "Personality",
    "ReminderFrequency",
    "TransactionKind",
    "clamp_days",
    "normalize_frequency",
    "normalize_personality",
]
