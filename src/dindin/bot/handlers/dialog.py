"""Catch-all router for free-text messages."""
from __future__ import annotations

from aiogram import F, Router
from aiogram.types import Message

from dindin.bot.bot_factory import BotServices
from dindin.bot.utils.incoming import resolve_incoming

router = Router()


@router.message(F.text & ~F.text.startswith("/"))
async def handle_text(message: Message, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    await services.dialog.dispatch(incoming)


__all__ = ["router"]
