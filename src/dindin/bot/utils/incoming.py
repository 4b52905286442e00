"""Conversion of aiogram messages into the conversation layer's message type."""
from __future__ import annotations

from aiogram.types import Message, User

from dindin.conversation.ports import IncomingMessage
from dindin.services.repository import FinanceRepository


async def resolve_user_id(sender: User, repository: FinanceRepository) -> int:
    return await repository.get_or_create_user(
        sender.id,
        first_name=sender.first_name,
        last_name=sender.last_name,
        username=sender.username,
    )


async def resolve_incoming(message: Message, repository: FinanceRepository) -> IncomingMessage:
    """Register the sender if needed and return the message keyed by the internal user id."""

    sender = message.from_user
    user_id = await resolve_user_id(sender, repository)
    return IncomingMessage(
        user_id=user_id,
        chat_id=message.chat.id,
        text=message.text or "",
        first_name=sender.first_name,
    )


__all__ = ["resolve_incoming", "resolve_user_id"]
