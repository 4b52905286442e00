"""Run DinDin with long polling: ``python -m dindin.bot.main``."""
from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher

from dindin.bot.bot_factory import create_bot, create_bot_services, create_dispatcher
from dindin.bot.handlers import dialog, goals, reports, setup, start
from dindin.bot.menu import bot_commands
from dindin.config import get_settings
from dindin.logging import configure_logging

logger = logging.getLogger(__name__)

# the free-text dialog router must stay last so commands are matched first
ROUTERS = (start.router, setup.router, goals.router, reports.router, dialog.router)


def check_configuration() -> None:
    """Fail before touching Telegram when credentials are missing."""

    try:
        settings = get_settings()
    except RuntimeError:
        logger.exception("Refusing to start")
        raise
    configure_logging(settings.logging.level)
    logger.info("Conversations kept in %s storage", settings.conversation.backend)


async def on_startup(bot: Bot) -> None:
    await bot.set_my_commands(bot_commands())
    logger.info("Command menu registered, polling started")


def build_dispatcher(bot: Bot) -> Dispatcher:
    dispatcher = create_dispatcher(*ROUTERS)
    dispatcher.workflow_data["services"] = create_bot_services(bot)
    dispatcher.startup.register(on_startup)
    return dispatcher


async def main() -> None:
    check_configuration()
    bot = create_bot()
    dispatcher = build_dispatcher(bot)
    try:
        await dispatcher.start_polling(bot)
    finally:
        await bot.session.close()
        logger.info("Bot session closed")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())


__all__ = ["build_dispatcher", "main", "on_startup"]
