"""Telegram delivery for the background reminder jobs."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from aiogram import Bot
from aiogram.exceptions import TelegramForbiddenError

from dindin.bot.bot_factory import create_bot

logger = logging.getLogger(__name__)


@asynccontextmanager
async def bot_context() -> AsyncIterator[Bot]:
    """Short-lived bot for a worker run; its HTTP session is closed on exit."""

    bot = create_bot()
    try:
        yield bot
    finally:
        await bot.session.close()


async def send_notification(bot: Bot, telegram_id: int, text: str) -> bool:
    """Send a reminder, returning False when the user has blocked the bot."""

    try:
        await bot.send_message(telegram_id, text)
    except TelegramForbiddenError:
        logger.info("User blocked the bot, reminder dropped", extra={"user_id": telegram_id})
        return False
    return True


__all__ = ["bot_context", "send_notification"]
