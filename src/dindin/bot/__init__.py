"""Telegram bot initialization package."""
from dindin.bot.bot_factory import create_bot, create_bot_services, create_dispatcher

__all__ = ["create_bot", "create_bot_services", "create_dispatcher"]
