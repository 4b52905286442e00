"""Celery tasks for income, expense and goal reminders."""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from aiogram.exceptions import TelegramAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from dindin.config import get_settings
from dindin.conversation.normalizer import escape_markdown, format_currency
from dindin.conversation.responses import get_response, goal_progress_values
from dindin.db.kinds import normalize_personality
from dindin.db.session import get_session
from dindin.services.expenses import list_expenses_due_by, roll_expense_forward
from dindin.services.goals import list_due_goal_reminders, reschedule_goal_reminder
from dindin.services.income import list_income_expected_by, roll_income_forward
from dindin.services.notifications import bot_context, send_notification
from dindin.services.schedule import local_today
from dindin.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

Sender = Callable[[int, str], Awaitable[Optional[bool]]]


def income_reminder_text(name: str, amount: float) -> str:
    name = escape_markdown(name)
    return (
        f"💰 Hoje é o dia de receber *{name}* ({format_currency(amount)}).\n\n"
        "Quando o dinheiro cair, me conte algo como "
        f"'Recebi {float(amount):.2f} de {name}' para eu registrar."
    )


def expense_reminder_text(name: str, amount: float, due_date: date, days_left: int = 1) -> str:
    name = escape_markdown(name)
    if days_left < 0:
        status = f"venceu em {due_date:%d/%m}"
    else:
        when = {0: "hoje", 1: "amanhã"}.get(days_left, f"em {days_left} dias")
        status = f"vence {when}, {due_date:%d/%m}"
    return (
        f"📅 Lembrete: *{name}* ({format_currency(amount)}) {status}.\n\n"
        "Depois de pagar, me conte para eu registrar a despesa."
    )


async def _deliver(send: Sender, telegram_id: Optional[int], text: str) -> bool:
    if telegram_id is None:
        return False
    try:
        delivered = await send(telegram_id, text)
    except TelegramAPIError:
        logger.exception("Failed to deliver reminder", extra={"user_id": telegram_id})
        return False
    return delivered is not False


async def notify_income_and_expenses(
    session: AsyncSession, send: Sender, today: date, expense_lead_days: int = 1
) -> int:
    """Notify income expected by today and expenses due within ``expense_lead_days``.

    Records a missed run left behind are included, and every notified record is rolled
    forward past the window.
    """

    sent = 0
    for source in await list_income_expected_by(session, today):
        if await _deliver(send, source.user.telegram_id, income_reminder_text(source.name, source.amount)):
            sent += 1
        roll_income_forward(source, today)

    window_end = today + timedelta(days=expense_lead_days)
    for expense in await list_expenses_due_by(session, window_end):
        due_date = expense.next_due_date
        text = expense_reminder_text(expense.name, expense.amount, due_date, (due_date - today).days)
        if await _deliver(send, expense.user.telegram_id, text):
            sent += 1
        roll_expense_forward(expense, window_end)

    await session.flush()
    return sent


async def notify_goal_reminders(session: AsyncSession, send: Sender, now: datetime) -> int:
    sent = 0
    for reminder in await list_due_goal_reminders(session, now):
        goal = reminder.goal
        if not goal.completed:
            config = goal.user.config
            personality = normalize_personality(config.personality if config else None)
            values = goal_progress_values(goal.title, goal.target_amount, goal.current_amount, goal.target_date)
            text = get_response(personality, "goal_reminder_notification", **values)
            if await _deliver(send, goal.user.telegram_id, text):
                sent += 1
        reschedule_goal_reminder(reminder, now)

    await session.flush()
    return sent


async def _send_income_and_expense_reminders() -> None:
    lead_days = get_settings().reminders.expense_lead_days
    async with bot_context() as bot, get_session() as session:
        sent = await notify_income_and_expenses(
            session, lambda chat_id, text: send_notification(bot, chat_id, text), local_today(), lead_days
        )
    logger.info("Income and expense reminders sent: %s", sent)


async def _send_goal_reminders() -> None:
    async with bot_context() as bot, get_session() as session:
        sent = await notify_goal_reminders(
            session, lambda chat_id, text: send_notification(bot, chat_id, text), datetime.now(timezone.utc)
        )
    logger.info("Goal reminders sent: %s", sent)


@celery_app.task
def send_income_and_expense_reminders() -> None:
    asyncio.run(_send_income_and_expense_reminders())


@celery_app.task
def send_goal_reminders() -> None:
    asyncio.run(_send_goal_reminders())


__all__ = [
    "notify_goal_reminders",
    "notify_income_and_expenses",
    "send_goal_reminders",
    "send_income_and_expense_reminders",
]
