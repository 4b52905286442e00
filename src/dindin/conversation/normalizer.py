"""Parsing of free-text replies into typed values."""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

SKIP_TOKENS = frozenset({"não", "nao", "n", "no", "0"})
NO_DEADLINE_TOKENS = frozenset({"não", "nao", "n", "no", "sem prazo", "sem data", "indefinido"})

CURRENCY_MARKERS_PATTERN = re.compile(r"r\$|\$|\breais\b|\breal\b|\s+", re.IGNORECASE)
DECIMAL_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")
LEADING_INT_PATTERN = re.compile(r"^\s*(\d+)")
LEADING_EMOJI_PATTERN = re.compile(r"^[^\w\s]+\s*")
MARKDOWN_SPECIAL_PATTERN = re.compile(r"([_*`\[])")
BR_DATE_PATTERN = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")

# Index is the weekday number, 0 = Sunday.
WEEKDAY_NAMES = (
    "Domingo",
    "Segunda-feira",
    "Terça-feira",
    "Quarta-feira",
    "Quinta-feira",
    "Sexta-feira",
    "Sábado",
)

WEEKDAY_KEYWORDS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("segunda",), 1),
    (("terça", "terca"), 2),
    (("quarta",), 3),
    (("quinta",), 4),
    (("sexta",), 5),
    (("sábado", "sabado"), 6),
    (("domingo",), 0),
)


def _normalise(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def parse_currency_amount(text: Optional[str], allow_skip: bool = False) -> Optional[float]:
    """Parse Brazilian style amounts such as ``R$ 150,50``.

    Only the first comma is treated as the decimal separator. Returns ``None``
    when the text is not a plain decimal literal.
    """

    normalised = _normalise(text)
    if allow_skip and normalised in SKIP_TOKENS:
        return 0.0

    cleaned = CURRENCY_MARKERS_PATTERN.sub("", normalised).replace(",", ".", 1)
    if not DECIMAL_PATTERN.fullmatch(cleaned):
        return None

    value = float(cleaned)
    if not math.isfinite(value):
        return None
    return value


def parse_due_day(text: Optional[str]) -> Optional[int]:
    match = LEADING_INT_PATTERN.match(text or "")
    if not match:
        return None
    day = int(match.group(1))
    if 1 <= day <= 31:
        return day
    return None


def _parse_date_value(text: str) -> Optional[date]:
    try:
        if BR_DATE_PATTERN.match(text):
            return datetime.strptime(text, "%d/%m/%Y").date()
        if ISO_DATE_PATTERN.match(text):
            return datetime.strptime(text, "%Y-%m-%d").date()
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def parse_target_date(text: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """Parse a goal deadline.

    "No deadline" answers, unparseable text and dates that are not strictly in
    the future all yield ``None``.
    """

    normalised = _normalise(text)
    if not normalised or normalised in NO_DEADLINE_TOKENS:
        return None

    parsed = _parse_date_value(normalised)
    today = today or date.today()
    if parsed is None or parsed <= today:
        return None
    return parsed


def parse_weekday(text: Optional[str]) -> Optional[int]:
    """Return the weekday index (0 = Sunday) named in ``text``."""

    normalised = _normalise(text)
    for keywords, index in WEEKDAY_KEYWORDS:
        if any(keyword in normalised for keyword in keywords):
            return index
    return None


def parse_yes_no(text: Optional[str]) -> Optional[bool]:
    normalised = _normalise(text)
    if "sim" in normalised:
        return True
    if "não" in normalised or "nao" in normalised:
        return False
    return None


def strip_leading_emoji(text: str) -> str:
    return LEADING_EMOJI_PATTERN.sub("", text.strip(), count=1).strip()


def format_currency(value: float) -> str:
    return f"R$ {float(value):,.2f}"


def escape_markdown(text: str) -> str:
    """Escape the characters legacy Telegram Markdown treats as markup."""

    return MARKDOWN_SPECIAL_PATTERN.sub(r"\\\1", str(text))


def weekday_name(index: int) -> str:
    return WEEKDAY_NAMES[index % 7]


__all__ = [
    "NO_DEADLINE_TOKENS",
    "SKIP_TOKENS",
    "WEEKDAY_NAMES",
    "escape_markdown",
    "format_currency",
    "parse_currency_amount",
    "parse_due_day",
    "parse_target_date",
    "parse_weekday",
    "parse_yes_no",
    "strip_leading_emoji",
    "weekday_name",
]
