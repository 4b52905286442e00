"""Savings goals, their contributions and reminders."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_CEILING, Decimal
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dindin.db.kinds import ReminderFrequency
from dindin.db.models import FinancialGoal, GoalContribution, GoalReminder, User
from dindin.services.schedule import calculate_next_reminder_at


async def create_goal(
    session: AsyncSession,
    user_id: int,
    *,
    title: str,
    target_amount: float,
    target_date: Optional[date] = None,
    category_id: Optional[int] = None,
) -> FinancialGoal:
    if target_amount <= 0:
        raise ValueError("target_amount must be positive")

    goal = FinancialGoal(
        user_id=user_id,
        title=title,
        target_amount=target_amount,
        current_amount=0,
        target_date=target_date,
        category_id=category_id,
        completed=False,
    )
    session.add(goal)
    await session.flush()
    return goal


async def add_contribution(
    session: AsyncSession, goal: FinancialGoal, amount: float, notes: Optional[str] = None
) -> GoalContribution:
    contribution = GoalContribution(goal_id=goal.id, amount=amount, notes=notes)
    session.add(contribution)

    goal.current_amount = Decimal(str(goal.current_amount or 0)) + Decimal(str(amount))
    goal.completed = goal.current_amount >= Decimal(str(goal.target_amount))
    await session.flush()
    return contribution


async def get_goal(session: AsyncSession, goal_id: int) -> Optional[FinancialGoal]:
    return await session.get(FinancialGoal, goal_id)


async def list_user_goals(
    session: AsyncSession, user_id: int, *, include_completed: bool = True
) -> Sequence[FinancialGoal]:
    query = (
        select(FinancialGoal)
        .where(FinancialGoal.user_id == user_id)
        .order_by(FinancialGoal.created_at, FinancialGoal.id)
    )
    if not include_completed:
        query = query.where(FinancialGoal.completed.is_(False))
    result = await session.execute(query)
    return result.scalars().all()


async def find_goal_by_title(session: AsyncSession, user_id: int, title: str) -> Optional[FinancialGoal]:
    """Case-insensitive substring lookup, most recent goal first."""

    pattern = f"%{title.strip().lower()}%"
    result = await session.execute(
        select(FinancialGoal)
        .where(FinancialGoal.user_id == user_id, func.lower(FinancialGoal.title).like(pattern))
        .order_by(FinancialGoal.created_at.desc(), FinancialGoal.id.desc())
    )
    return result.scalars().first()


async def create_goal_reminder(
    session: AsyncSession,
    goal: FinancialGoal,
    frequency: ReminderFrequency | str = ReminderFrequency.WEEKLY,
    *,
    now: Optional[datetime] = None,
) -> GoalReminder:
    frequency = ReminderFrequency(frequency)
    now = now or datetime.now(timezone.utc)
    reminder = GoalReminder(
        goal_id=goal.id,
        frequency=frequency.value,
        next_reminder_at=calculate_next_reminder_at(frequency, now),
        is_active=True,
    )
    session.add(reminder)
    await session.flush()
    return reminder


async def list_due_goal_reminders(session: AsyncSession, now: datetime) -> Sequence[GoalReminder]:
    result = await session.execute(
        select(GoalReminder)
        .options(selectinload(GoalReminder.goal).selectinload(FinancialGoal.user).selectinload(User.config))
        .where(GoalReminder.is_active.is_(True), GoalReminder.next_reminder_at <= now)
        .order_by(GoalReminder.next_reminder_at)
    )
    return result.scalars().all()


def reschedule_goal_reminder(reminder: GoalReminder, now: datetime) -> datetime:
    if reminder.goal is not None and reminder.goal.completed:
        reminder.is_active = False
    reminder.next_reminder_at = calculate_next_reminder_at(reminder.frequency, now)
    return reminder.next_reminder_at


@dataclass(frozen=True)
class GoalStatistics:
    progress: float
    remaining_amount: Decimal
    days_passed: int
    days_remaining: Optional[int]
    estimated_completion: Optional[date]


def goal_statistics(goal: FinancialGoal, today: date) -> GoalStatistics:
    """Progress figures and, at the current saving pace, the expected completion date."""

    target = Decimal(str(goal.target_amount))
    current = Decimal(str(goal.current_amount or 0))
    remaining = max(Decimal("0"), target - current)
    progress = float(current / target * 100) if target > 0 else 0.0

    started = goal.created_at.date() if goal.created_at else today
    days_passed = max(0, (today - started).days)
    days_remaining = max(0, (goal.target_date - today).days) if goal.target_date else None

    estimated = None
    if days_passed > 0 and current > 0 and remaining > 0:
        daily_average = current / days_passed
        estimated = today + timedelta(days=int((remaining / daily_average).to_integral_value(ROUND_CEILING)))
    return GoalStatistics(
        progress=progress,
        remaining_amount=remaining,
        days_passed=days_passed,
        days_remaining=days_remaining,
        estimated_completion=estimated,
    )


async def get_user_goal(session: AsyncSession, user_id: int, goal_id: int) -> Optional[FinancialGoal]:
    """Goal ``goal_id`` when it belongs to ``user_id``."""

    goal = await session.get(FinancialGoal, goal_id)
    if goal is None or goal.user_id != user_id:
        return None
    return goal


async def find_goal(session: AsyncSession, user_id: int, query: str) -> Optional[FinancialGoal]:
    """Resolve ``query`` as a 1-based position in the goal list, then as part of a title."""

    query = query.strip()
    if query.isdigit():
        user_goals = await list_user_goals(session, user_id)
        position = int(query) - 1
        if 0 <= position < len(user_goals):
            return user_goals[position]
    return await find_goal_by_title(session, user_id, query)


async def toggle_goal_completed(session: AsyncSession, goal: FinancialGoal) -> FinancialGoal:
    """Mark the goal completed or reopen it; reminders only run for open goals."""

    goal.completed = not goal.completed
    await session.execute(
        update(GoalReminder).where(GoalReminder.goal_id == goal.id).values(is_active=not goal.completed)
    )
    await session.flush()
    return goal


async def delete_goal(session: AsyncSession, goal: FinancialGoal) -> None:
    """Remove the goal together with its contributions and reminders."""

    await session.execute(delete(GoalContribution).where(GoalContribution.goal_id == goal.id))
    await session.execute(delete(GoalReminder).where(GoalReminder.goal_id == goal.id))
    await session.execute(delete(FinancialGoal).where(FinancialGoal.id == goal.id))
    await session.flush()


__all__ = [
    "GoalStatistics",
    "add_contribution",
    "create_goal",
    "create_goal_reminder",
    "delete_goal",
    "find_goal",
    "find_goal_by_title",
    "get_goal",
    "get_user_goal",
    "goal_statistics",
    "list_due_goal_reminders",
    "list_user_goals",
    "reschedule_goal_reminder",
    "toggle_goal_completed",
]
