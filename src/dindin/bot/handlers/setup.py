"""Commands that open or close the onboarding conversations."""
from __future__ import annotations

import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message, ReplyKeyboardRemove

from dindin.bot.bot_factory import BotServices
from dindin.bot.utils.incoming import resolve_incoming

router = Router()
logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Conversa cancelada. Quando quiser, é só me contar sobre suas finanças!"
NOTHING_TO_CANCEL_MESSAGE = "Não há nenhuma conversa em andamento."


@router.message(Command("configurar_renda"))
async def handle_income_setup(message: Message, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    await services.goal_store.delete(incoming.user_id)
    await services.income_machine.start_income_flow(incoming)


@router.message(Command("configurar_despesas"))
async def handle_expense_setup(message: Message, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    await services.goal_store.delete(incoming.user_id)
    await services.income_machine.start_expense_flow(incoming)


@router.message(Command("cancelar"))
async def handle_cancel(message: Message, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    open_flows = [
        await store.get(incoming.user_id) for store in (services.goal_store, services.setup_store)
    ]
    if not any(open_flows):
        await message.answer(NOTHING_TO_CANCEL_MESSAGE, reply_markup=ReplyKeyboardRemove())
        return

    await services.goal_store.delete(incoming.user_id)
    await services.setup_store.delete(incoming.user_id)
    logger.info("Conversation cancelled by user", extra={"user_id": incoming.user_id})
    await message.answer(CANCELLED_MESSAGE, reply_markup=ReplyKeyboardRemove())


__all__ = ["router"]
