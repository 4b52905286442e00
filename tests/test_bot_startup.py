"""Tests that verify the bot can be started and shut down gracefully."""
from __future__ import annotations

import asyncio
from importlib import import_module, reload
from types import ModuleType, SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from aiogram import Bot

from dindin.bot.bot_factory import BotServices
from dindin.bot.handlers.goals import parse_reminder_args
from dindin.bot.menu import render_help
from dindin.config import get_settings
from dindin.conversation.store import MemoryConversationStore
from dindin.db.kinds import ReminderFrequency


def _load_bot_main_module() -> ModuleType:
    module = import_module("dindin.bot.main")
    return reload(module)


def test_bot_can_start_polling(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:test-token")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    get_settings.cache_clear()

    bot_main = _load_bot_main_module()

    dispatcher = SimpleNamespace(start_polling=AsyncMock())
    bot = SimpleNamespace(session=SimpleNamespace(close=AsyncMock()))

    monkeypatch.setattr(bot_main, "create_bot", Mock(return_value=bot))
    monkeypatch.setattr(bot_main, "build_dispatcher", Mock(return_value=dispatcher))

    asyncio.run(bot_main.main())

    bot_main.build_dispatcher.assert_called_once_with(bot)
    dispatcher.start_polling.assert_awaited_once_with(bot)
    bot.session.close.assert_awaited_once()


def test_empty_token_refuses_to_start(monkeypatch: pytest.MonkeyPatch) -> None:
    bot_main = _load_bot_main_module()
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "   ")
    get_settings.cache_clear()

    with pytest.raises(RuntimeError):
        asyncio.run(bot_main.main())


def test_dispatcher_injects_services() -> None:
    bot_main = _load_bot_main_module()
    bot = Bot(token="123456:test-token")

    dispatcher = bot_main.build_dispatcher(bot)

    services = dispatcher.workflow_data["services"]
    assert isinstance(services, BotServices)
    assert isinstance(services.goal_store, MemoryConversationStore)
    assert services.goal_store is not services.setup_store
    assert len(dispatcher.sub_routers) == 5


def test_startup_registers_command_menu() -> None:
    bot_main = _load_bot_main_module()
    bot = SimpleNamespace(set_my_commands=AsyncMock())

    asyncio.run(bot_main.on_startup(bot))

    commands = bot.set_my_commands.await_args.args[0]
    assert [command.command for command in commands][:3] == ["start", "metas", "novameta"]
    assert "configurar_despesas" in [command.command for command in commands]


def test_help_escapes_command_underscores() -> None:
    text = render_help()

    assert "/configurar\\_renda" in text
    assert "/ajuda" in text


@pytest.mark.parametrize(
    "args, expected",
    [
        ("Viagem", ("Viagem", ReminderFrequency.WEEKLY)),
        ("Viagem para a praia diário", ("Viagem para a praia", ReminderFrequency.DAILY)),
        ("Carro Mensal", ("Carro", ReminderFrequency.MONTHLY)),
        ("semanal", (None, ReminderFrequency.WEEKLY)),
        (None, (None, ReminderFrequency.WEEKLY)),
    ],
)
def test_parse_reminder_args(args, expected) -> None:
    assert parse_reminder_args(args) == expected
