"""Recurring expenses such as rent, utilities and subscriptions."""
from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dindin.db.models import RecurringExpense
from dindin.services.schedule import calculate_next_due_date


async def create_recurring_expense(
    session: AsyncSession,
    user_id: int,
    *,
    name: str,
    amount: float,
    due_day: int,
    category_id: Optional[int] = None,
    is_variable: bool = False,
    reference: Optional[date] = None,
) -> RecurringExpense:
    due_day = min(31, max(1, int(due_day)))
    expense = RecurringExpense(
        user_id=user_id,
        name=name,
        amount=amount,
        due_day=due_day,
        category_id=category_id,
        is_variable=is_variable,
        is_active=True,
        next_due_date=calculate_next_due_date(due_day, reference),
    )
    session.add(expense)
    await session.flush()
    return expense


async def list_recurring_expenses(
    session: AsyncSession, user_id: int, *, include_inactive: bool = False
) -> Sequence[RecurringExpense]:
    query = (
        select(RecurringExpense)
        .options(selectinload(RecurringExpense.category))
        .where(RecurringExpense.user_id == user_id)
        .order_by(RecurringExpense.due_day, RecurringExpense.name)
    )
    if not include_inactive:
        query = query.where(RecurringExpense.is_active.is_(True))
    result = await session.execute(query)
    return result.scalars().all()


async def list_expenses_due_by(session: AsyncSession, day: date) -> Sequence[RecurringExpense]:
    """Active expenses due on ``day`` or earlier and not yet rolled forward."""

    result = await session.execute(
        select(RecurringExpense)
        .options(selectinload(RecurringExpense.user))
        .where(RecurringExpense.next_due_date <= day, RecurringExpense.is_active.is_(True))
        .order_by(RecurringExpense.id)
    )
    return result.scalars().all()


def roll_expense_forward(expense: RecurringExpense, reference: date) -> date:
    expense.next_due_date = calculate_next_due_date(expense.due_day, reference)
    return expense.next_due_date


def monthly_expenses(expenses: Sequence[RecurringExpense]) -> float:
    return sum(float(expense.amount) for expense in expenses)


__all__ = [
    "create_recurring_expense",
    "list_expenses_due_by",
    "list_recurring_expenses",
    "monthly_expenses",
    "roll_expense_forward",
]
