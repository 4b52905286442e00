"""Conversation state records, step enums and their transition tables."""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Mapping, Optional, Union

from pydantic import BaseModel, Field

from dindin.db.kinds import FrequencyKind, Personality


class InvalidTransitionError(ValueError):
    """Raised when a machine tries to move to a step it cannot reach."""


class Flow(str, Enum):
    GOAL_CREATION = "goal_creation"
    INCOME_SETUP = "income_setup"
    EXPENSE_SETUP = "expense_setup"
    PERSONALITY = "personality"


class GoalStep(str, Enum):
    AWAITING_TITLE = "awaiting_title"
    AWAITING_TARGET_AMOUNT = "awaiting_target_amount"
    AWAITING_INITIAL_AMOUNT = "awaiting_initial_amount"
    AWAITING_TARGET_DATE = "awaiting_target_date"
    CONFIRMATION = "confirmation"


class SetupStep(str, Enum):
    INITIAL = "initial"
    AWAITING_INCOME_NAME = "awaiting_income_name"
    AWAITING_INCOME_AMOUNT = "awaiting_income_amount"
    AWAITING_INCOME_FREQUENCY = "awaiting_income_frequency"
    AWAITING_INCOME_DAYS_MONTHLY = "awaiting_income_days_monthly"
    AWAITING_INCOME_DAYS_BIWEEKLY_FIRST = "awaiting_income_days_biweekly_first"
    AWAITING_INCOME_DAYS_BIWEEKLY_SECOND = "awaiting_income_days_biweekly_second"
    AWAITING_INCOME_DAYS_WEEKLY = "awaiting_income_days_weekly"
    AWAITING_ADD_ANOTHER = "awaiting_add_another"
    AWAITING_EXPENSES_DECISION = "awaiting_expenses_decision"
    AWAITING_EXPENSE_NAME = "awaiting_expense_name"
    AWAITING_EXPENSE_AMOUNT = "awaiting_expense_amount"
    AWAITING_EXPENSE_DUE_DAY = "awaiting_expense_due_day"
    AWAITING_EXPENSE_CATEGORY = "awaiting_expense_category"
    AWAITING_ADD_ANOTHER_EXPENSE = "awaiting_add_another_expense"


class PersonalityStep(str, Enum):
    AWAITING_CHOICE = "awaiting_personality_choice"


Step = Union[GoalStep, SetupStep, PersonalityStep]

_GOAL_CHAIN = (
    GoalStep.AWAITING_TITLE,
    GoalStep.AWAITING_TARGET_AMOUNT,
    GoalStep.AWAITING_INITIAL_AMOUNT,
    GoalStep.AWAITING_TARGET_DATE,
    GoalStep.CONFIRMATION,
)

# Goal steps only move forward. Skipping ahead happens when the classifier
# injects a single field out of band.
GOAL_TRANSITIONS: Mapping[GoalStep, frozenset[GoalStep]] = {
    step: frozenset(_GOAL_CHAIN[index + 1 :]) for index, step in enumerate(_GOAL_CHAIN)
}

SETUP_TRANSITIONS: Mapping[SetupStep, frozenset[SetupStep]] = {
    SetupStep.INITIAL: frozenset(
        {SetupStep.AWAITING_INCOME_NAME, SetupStep.AWAITING_EXPENSES_DECISION}
    ),
    SetupStep.AWAITING_INCOME_NAME: frozenset({SetupStep.AWAITING_INCOME_AMOUNT}),
    SetupStep.AWAITING_INCOME_AMOUNT: frozenset({SetupStep.AWAITING_INCOME_FREQUENCY}),
    SetupStep.AWAITING_INCOME_FREQUENCY: frozenset(
        {
            SetupStep.AWAITING_INCOME_DAYS_MONTHLY,
            SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_FIRST,
            SetupStep.AWAITING_INCOME_DAYS_WEEKLY,
        }
    ),
    SetupStep.AWAITING_INCOME_DAYS_MONTHLY: frozenset({SetupStep.AWAITING_ADD_ANOTHER}),
    SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_FIRST: frozenset(
        {SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_SECOND}
    ),
    SetupStep.AWAITING_INCOME_DAYS_BIWEEKLY_SECOND: frozenset({SetupStep.AWAITING_ADD_ANOTHER}),
    SetupStep.AWAITING_INCOME_DAYS_WEEKLY: frozenset({SetupStep.AWAITING_ADD_ANOTHER}),
    SetupStep.AWAITING_ADD_ANOTHER: frozenset(
        {SetupStep.AWAITING_INCOME_NAME, SetupStep.AWAITING_EXPENSES_DECISION}
    ),
    SetupStep.AWAITING_EXPENSES_DECISION: frozenset({SetupStep.AWAITING_EXPENSE_NAME}),
    SetupStep.AWAITING_EXPENSE_NAME: frozenset({SetupStep.AWAITING_EXPENSE_AMOUNT}),
    SetupStep.AWAITING_EXPENSE_AMOUNT: frozenset({SetupStep.AWAITING_EXPENSE_DUE_DAY}),
    SetupStep.AWAITING_EXPENSE_DUE_DAY: frozenset({SetupStep.AWAITING_EXPENSE_CATEGORY}),
    SetupStep.AWAITING_EXPENSE_CATEGORY: frozenset({SetupStep.AWAITING_ADD_ANOTHER_EXPENSE}),
    SetupStep.AWAITING_ADD_ANOTHER_EXPENSE: frozenset({SetupStep.AWAITING_EXPENSE_NAME}),
}

PERSONALITY_TRANSITIONS: Mapping[PersonalityStep, frozenset[PersonalityStep]] = {
    PersonalityStep.AWAITING_CHOICE: frozenset(),
}

EXPENSE_STEPS = frozenset(
    {
        SetupStep.AWAITING_EXPENSE_NAME,
        SetupStep.AWAITING_EXPENSE_AMOUNT,
        SetupStep.AWAITING_EXPENSE_DUE_DAY,
        SetupStep.AWAITING_EXPENSE_CATEGORY,
        SetupStep.AWAITING_ADD_ANOTHER_EXPENSE,
    }
)


def _transitions_for(step: Step) -> Mapping:
    if isinstance(step, GoalStep):
        return GOAL_TRANSITIONS
    if isinstance(step, SetupStep):
        return SETUP_TRANSITIONS
    return PERSONALITY_TRANSITIONS


def validate_step_transition(current: Step, new: Step) -> None:
    """Ensure that ``new`` is reachable from ``current`` in a single advance."""

    allowed = _transitions_for(current).get(current, frozenset())
    if new not in allowed:
        raise InvalidTransitionError(f"Cannot move from '{current.value}' to '{new.value}'")


class GoalDraft(BaseModel):
    title: Optional[str] = None
    target_amount: Optional[float] = None
    initial_amount: float = 0.0
    target_date: Optional[date] = None
    category_id: Optional[int] = None


class IncomeSourceDraft(BaseModel):
    name: Optional[str] = None
    amount: Optional[float] = None
    frequency: Optional[FrequencyKind] = None
    days: list[int] = Field(default_factory=list)


class ExpenseDraft(BaseModel):
    name: Optional[str] = None
    amount: Optional[float] = None
    due_day: Optional[int] = None
    category_id: Optional[int] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationState(BaseModel):
    """Position of one user inside one flow family plus the draft being built."""

    user_id: int
    chat_id: int
    flow: Flow
    step: Step
    personality: Personality = Personality.FRIENDLY
    goal: GoalDraft = Field(default_factory=GoalDraft)
    income: IncomeSourceDraft = Field(default_factory=IncomeSourceDraft)
    expense: ExpenseDraft = Field(default_factory=ExpenseDraft)
    updated_at: datetime = Field(default_factory=_utcnow)

    def advance(self, step: Step, *, flow: Optional[Flow] = None) -> None:
        validate_step_transition(self.step, step)
        self.step = step
        if flow is not None:
            self.flow = flow
        self.updated_at = _utcnow()


__all__ = [
    "ConversationState",
    "EXPENSE_STEPS",
    "ExpenseDraft",
    "Flow",
    "GOAL_TRANSITIONS",
    "GoalDraft",
    "GoalStep",
    "IncomeSourceDraft",
    "InvalidTransitionError",
    "PERSONALITY_TRANSITIONS",
    "PersonalityStep",
    "SETUP_TRANSITIONS",
    "SetupStep",
    "Step",
    "validate_step_transition",
]
