"""Collaborator interfaces consumed by the conversation machines."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Protocol, Sequence, Union

from dindin.db.kinds import FrequencyKind, Personality, TransactionKind


@dataclass(frozen=True)
class IncomingMessage:
    """Transport independent view of an inbound text message."""

    user_id: int
    chat_id: int
    text: str
    first_name: Optional[str] = None


@dataclass(frozen=True)
class ReplyKeyboard:
    rows: tuple[tuple[str, ...], ...]
    one_time: bool = True
    resize: bool = True

    @classmethod
    def of(cls, *rows: Sequence[str], one_time: bool = True) -> "ReplyKeyboard":
        return cls(rows=tuple(tuple(row) for row in rows), one_time=one_time)

    @property
    def labels(self) -> list[str]:
        return [label for row in self.rows for label in row]


@dataclass(frozen=True)
class RemoveKeyboard:
    selective: bool = False


REMOVE_KEYBOARD = RemoveKeyboard()

Keyboard = Union[ReplyKeyboard, RemoveKeyboard]


class GoalRecord(Protocol):
    id: int
    title: str
    target_amount: Any
    current_amount: Any
    target_date: Optional[date]
    completed: bool


class IncomeSourceRecord(Protocol):
    name: str
    amount: Any
    frequency: str
    recurring_days: list


class RecurringExpenseRecord(Protocol):
    name: str
    amount: Any
    due_day: int


class CategoryRecord(Protocol):
    id: int
    name: str
    icon: str
    kind: str


class GoalGateway(Protocol):
    async def create_goal(
        self,
        user_id: int,
        title: str,
        target_amount: float,
        initial_amount: float,
        target_date: Optional[date],
        category_id: Optional[int],
    ) -> GoalRecord:
        ...

    async def add_contribution(self, goal_id: int, amount: float, note: str) -> GoalRecord:
        ...


class IncomeGateway(Protocol):
    async def create_income_source(
        self,
        user_id: int,
        name: str,
        amount: float,
        frequency: FrequencyKind,
        days: Sequence[int],
        is_variable: bool,
    ) -> IncomeSourceRecord:
        ...

    async def list_income_sources(self, user_id: int) -> Sequence[IncomeSourceRecord]:
        ...


class ExpenseGateway(Protocol):
    async def create_recurring_expense(
        self,
        user_id: int,
        name: str,
        amount: float,
        due_day: int,
        category_id: Optional[int],
        is_variable: bool,
    ) -> RecurringExpenseRecord:
        ...

    async def list_recurring_expenses(self, user_id: int) -> Sequence[RecurringExpenseRecord]:
        ...


class CategoryGateway(Protocol):
    async def list_categories(self) -> Sequence[CategoryRecord]:
        ...


class UserConfigGateway(Protocol):
    async def get_personality(self, user_id: int) -> Personality:
        ...

    async def save_personality(self, user_id: int, personality: Personality) -> None:
        ...

    async def mark_income_setup_completed(self, user_id: int) -> None:
        ...


class TransactionRecord(Protocol):
    amount: Any
    description: str
    kind: str
    category: Optional[CategoryRecord]


class LedgerGateway(Protocol):
    """Operations the dialog dispatcher performs outside of a conversation."""

    async def get_personality(self, user_id: int) -> Personality:
        ...

    async def record_transaction(
        self,
        user_id: int,
        *,
        amount: float,
        description: str,
        kind: TransactionKind,
        category_name: Optional[str] = None,
    ) -> TransactionRecord:
        ...

    async def list_goals(self, user_id: int) -> Sequence[GoalRecord]:
        ...

    async def contribute_to_goal(self, user_id: int, title: str, amount: float) -> Optional[GoalRecord]:
        ...


class Messenger(Protocol):
    async def send(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None) -> None:
        ...


__all__ = [
    "CategoryGateway",
    "CategoryRecord",
    "ExpenseGateway",
    "GoalGateway",
    "GoalRecord",
    "IncomeGateway",
    "IncomeSourceRecord",
    "IncomingMessage",
    "Keyboard",
    "LedgerGateway",
    "Messenger",
    "REMOVE_KEYBOARD",
    "RecurringExpenseRecord",
    "RemoveKeyboard",
    "ReplyKeyboard",
    "TransactionRecord",
    "UserConfigGateway",
]
