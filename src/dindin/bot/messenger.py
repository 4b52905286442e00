"""Outbound messages through the aiogram bot."""
from __future__ import annotations

from typing import Optional

from aiogram import Bot

from dindin.bot.keyboards.main import to_markup
from dindin.conversation.ports import Keyboard


class AiogramMessenger:
    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None) -> None:
        await self._bot.send_message(chat_id, text, reply_markup=to_markup(keyboard))


__all__ = ["AiogramMessenger"]
