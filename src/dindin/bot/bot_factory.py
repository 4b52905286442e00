"""Factory helpers for aiogram bot and dispatcher instances."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis
from aiogram import Bot, Dispatcher, Router
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.memory import MemoryStorage

from dindin.bot.messenger import AiogramMessenger
from dindin.config import Settings, get_settings
from dindin.conversation.dispatcher import Analyzer, DialogDispatcher
from dindin.conversation.goals import GoalConversationMachine
from dindin.conversation.income import IncomeConfigMachine
from dindin.conversation.personality import PersonalityMachine
from dindin.conversation.ports import Messenger
from dindin.conversation.store import ConversationStore, MemoryConversationStore, RedisConversationStore
from dindin.services.llm import analyze_message
from dindin.services.repository import FinanceRepository

GOAL_NAMESPACE = "goal"
SETUP_NAMESPACE = "setup"


@dataclass
class BotServices:
    """Everything the handlers need, injected through the dispatcher workflow data."""

    repository: FinanceRepository
    goal_machine: GoalConversationMachine
    income_machine: IncomeConfigMachine
    personality_machine: PersonalityMachine
    dialog: DialogDispatcher
    goal_store: ConversationStore
    setup_store: ConversationStore


def create_bot() -> Bot:
    """Create a :class:`Bot` configured for the current environment."""

    settings = get_settings()
    default_properties = DefaultBotProperties(parse_mode=settings.telegram.parse_mode)
    return Bot(token=settings.telegram.bot_token, default=default_properties)


def create_dispatcher(*routers: Router) -> Dispatcher:
    """Create a :class:`Dispatcher` and attach the provided routers."""

    dispatcher = Dispatcher(storage=MemoryStorage())
    if routers:
        dispatcher.include_routers(*routers)
    return dispatcher


def create_conversation_store(namespace: str, settings: Optional[Settings] = None) -> ConversationStore:
    settings = settings or get_settings()
    ttl = settings.conversation.ttl_seconds
    if settings.conversation.backend == "redis":
        client = aioredis.from_url(settings.redis.dsn, encoding="utf-8", decode_responses=True)
        return RedisConversationStore(client, namespace, ttl)
    return MemoryConversationStore(ttl)


def create_services(
    messenger: Messenger,
    *,
    repository: Optional[FinanceRepository] = None,
    goal_store: Optional[ConversationStore] = None,
    setup_store: Optional[ConversationStore] = None,
    analyzer: Analyzer = analyze_message,
) -> BotServices:
    """Wire the conversation machines to the repository and the messenger."""

    repository = repository or FinanceRepository()
    goal_store = goal_store or create_conversation_store(GOAL_NAMESPACE)
    setup_store = setup_store or create_conversation_store(SETUP_NAMESPACE)

    goal_machine = GoalConversationMachine(goal_store, repository, repository, messenger)
    income_machine = IncomeConfigMachine(setup_store, repository, repository, repository, repository, messenger)
    personality_machine = PersonalityMachine(setup_store, repository, messenger, income_machine)
    dialog = DialogDispatcher(
        (personality_machine, income_machine, goal_machine),
        goal_machine,
        repository,
        messenger,
        analyzer,
    )
    return BotServices(
        repository=repository,
        goal_machine=goal_machine,
        income_machine=income_machine,
        personality_machine=personality_machine,
        dialog=dialog,
        goal_store=goal_store,
        setup_store=setup_store,
    )


def create_bot_services(bot: Bot, **overrides) -> BotServices:
    return create_services(AiogramMessenger(bot), **overrides)


__all__ = [
    "BotServices",
    "create_bot",
    "create_bot_services",
    "create_conversation_store",
    "create_dispatcher",
    "create_services",
]
