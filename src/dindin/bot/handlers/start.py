"""Start and help command handlers."""
from __future__ import annotations

import logging

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from dindin.bot.bot_factory import BotServices
from dindin.bot.menu import render_help
from dindin.bot.utils.incoming import resolve_incoming

router = Router()
logger = logging.getLogger(__name__)


@router.message(CommandStart())
async def handle_start(message: Message, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    await services.goal_store.delete(incoming.user_id)
    logger.info("Onboarding started", extra={"user_id": incoming.user_id})
    await services.personality_machine.start_flow(incoming)


@router.message(Command("ajuda"))
async def handle_help(message: Message) -> None:
    await message.answer(render_help())


__all__ = ["router"]
