"""Income and expense reports for the current day, week or month."""
from __future__ import annotations

import logging

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.exc import SQLAlchemyError

from dindin.bot.bot_factory import BotServices
from dindin.bot.utils.incoming import resolve_incoming
from dindin.conversation.responses import render_report
from dindin.services.reports import ReportPeriod, period_bounds
from dindin.services.schedule import local_timezone, local_today

router = Router()
logger = logging.getLogger(__name__)

REPORT_ERROR_MESSAGE = "❌ Ocorreu um erro ao gerar o relatório."

REPORT_COMMANDS = {
    "relatorio": ReportPeriod.MONTH,
    "mes": ReportPeriod.MONTH,
    "semana": ReportPeriod.WEEK,
    "hoje": ReportPeriod.DAY,
}


async def build_report(services: BotServices, user_id: int, period: ReportPeriod) -> str:
    tz = local_timezone()
    bounds = period_bounds(period, local_today(), tz)
    summary = await services.repository.period_summary(user_id, bounds)
    return render_report(bounds.title, summary, tz)


@router.message(Command(*REPORT_COMMANDS))
async def handle_report(message: Message, command: CommandObject, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    period = REPORT_COMMANDS.get(command.command.lower(), ReportPeriod.MONTH)
    try:
        text = await build_report(services, incoming.user_id, period)
    except SQLAlchemyError:
        logger.exception("Report failed", extra={"user_id": incoming.user_id})
        await message.answer(REPORT_ERROR_MESSAGE)
        return
    await message.answer(text)


__all__ = ["REPORT_COMMANDS", "build_report", "router"]
