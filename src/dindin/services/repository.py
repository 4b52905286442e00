"""Session-per-call adapter exposing the finance services to the conversation layer."""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dindin.db.kinds import FrequencyKind, Personality, ReminderFrequency, TransactionKind
from dindin.db.models import Category, FinancialGoal, GoalReminder, IncomeSource, RecurringExpense, Transaction
from dindin.db.session import get_session_factory, session_scope
from dindin.services import categories, expenses, goals, income, reports, transactions, users

logger = logging.getLogger(__name__)


class FinanceRepository:
    """Implements the gateway protocols, each call in its own transaction."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    def _scope(self):
        return session_scope(self._session_factory)

    # users

    async def get_or_create_user(
        self,
        telegram_id: int,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> int:
        async with self._scope() as session:
            user = await users.get_or_create_user(
                session, telegram_id, first_name=first_name, last_name=last_name, username=username
            )
            return user.id

    async def get_personality(self, user_id: int) -> Personality:
        async with self._scope() as session:
            return await users.get_personality(session, user_id)

    async def save_personality(self, user_id: int, personality: Personality) -> None:
        async with self._scope() as session:
            await users.save_personality(session, user_id, personality)

    async def mark_income_setup_completed(self, user_id: int) -> None:
        async with self._scope() as session:
            await users.mark_income_setup_completed(session, user_id)

    # categories

    async def list_categories(self) -> Sequence[Category]:
        async with self._scope() as session:
            return await categories.list_categories(session)

    # goals

    async def create_goal(
        self,
        user_id: int,
        title: str,
        target_amount: float,
        initial_amount: float,
        target_date: Optional[date],
        category_id: Optional[int],
    ) -> FinancialGoal:
        async with self._scope() as session:
            goal = await goals.create_goal(
                session,
                user_id,
                title=title,
                target_amount=target_amount,
                target_date=target_date,
                category_id=category_id,
            )
        logger.info(
            "Goal persisted",
            extra={"user_id": user_id, "goal_id": goal.id, "initial_amount": initial_amount},
        )
        return goal

    async def add_contribution(self, goal_id: int, amount: float, note: str) -> FinancialGoal:
        async with self._scope() as session:
            goal = await goals.get_goal(session, goal_id)
            if goal is None:
                raise LookupError(f"Goal {goal_id} does not exist")
            await goals.add_contribution(session, goal, amount, note)
            return goal

    async def list_goals(self, user_id: int) -> Sequence[FinancialGoal]:
        async with self._scope() as session:
            return await goals.list_user_goals(session, user_id)

    async def contribute_to_goal(self, user_id: int, title: str, amount: float) -> Optional[FinancialGoal]:
        """Add ``amount`` to the goal whose title contains ``title``."""

        async with self._scope() as session:
            goal = await goals.find_goal_by_title(session, user_id, title)
            if goal is None:
                return None
            await goals.add_contribution(session, goal, amount)
            return goal

    async def schedule_goal_reminder(
        self, user_id: int, title: str, frequency: ReminderFrequency
    ) -> Optional[GoalReminder]:
        async with self._scope() as session:
            goal = await goals.find_goal_by_title(session, user_id, title)
            if goal is None:
                return None
            return await goals.create_goal_reminder(session, goal, frequency)

    async def find_goal(self, user_id: int, query: str) -> Optional[FinancialGoal]:
        async with self._scope() as session:
            return await goals.find_goal(session, user_id, query)

    async def get_user_goal(self, user_id: int, goal_id: int) -> Optional[FinancialGoal]:
        async with self._scope() as session:
            return await goals.get_user_goal(session, user_id, goal_id)

    async def toggle_goal(self, user_id: int, goal_id: int) -> Optional[FinancialGoal]:
        async with self._scope() as session:
            goal = await goals.get_user_goal(session, user_id, goal_id)
            if goal is None:
                return None
            await goals.toggle_goal_completed(session, goal)
        logger.info("Goal status toggled", extra={"user_id": user_id, "goal_id": goal_id})
        return goal

    async def delete_goal(self, user_id: int, goal_id: int) -> Optional[FinancialGoal]:
        """Delete the goal and return its last state, ``None`` when it is not the user's."""

        async with self._scope() as session:
            goal = await goals.get_user_goal(session, user_id, goal_id)
            if goal is None:
                return None
            await goals.delete_goal(session, goal)
        logger.info("Goal deleted", extra={"user_id": user_id, "goal_id": goal_id})
        return goal

    # reports

    async def period_summary(self, user_id: int, bounds: reports.PeriodBounds) -> reports.PeriodSummary:
        async with self._scope() as session:
            return await reports.build_period_summary(session, user_id, bounds)

    # income and expenses

    async def create_income_source(
        self,
        user_id: int,
        name: str,
        amount: float,
        frequency: FrequencyKind,
        days: Sequence[int],
        is_variable: bool,
    ) -> IncomeSource:
        async with self._scope() as session:
            return await income.create_income_source(
                session,
                user_id,
                name=name,
                amount=amount,
                frequency=frequency,
                days=days,
                is_variable=is_variable,
            )

    async def list_income_sources(self, user_id: int) -> Sequence[IncomeSource]:
        async with self._scope() as session:
            return await income.list_income_sources(session, user_id)

    async def create_recurring_expense(
        self,
        user_id: int,
        name: str,
        amount: float,
        due_day: int,
        category_id: Optional[int],
        is_variable: bool,
    ) -> RecurringExpense:
        async with self._scope() as session:
            return await expenses.create_recurring_expense(
                session,
                user_id,
                name=name,
                amount=amount,
                due_day=due_day,
                category_id=category_id,
                is_variable=is_variable,
            )

    async def list_recurring_expenses(self, user_id: int) -> Sequence[RecurringExpense]:
        async with self._scope() as session:
            return await expenses.list_recurring_expenses(session, user_id)

    # transactions

    async def record_transaction(
        self,
        user_id: int,
        *,
        amount: float,
        description: str,
        kind: TransactionKind,
        category_name: Optional[str] = None,
    ) -> Transaction:
        async with self._scope() as session:
            return await transactions.create_transaction(
                session,
                user_id,
                amount=amount,
                description=description,
                kind=kind,
                category_name=category_name,
            )


__all__ = ["FinanceRepository"]
