"""User and per-user configuration services."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dindin.db.kinds import Personality, normalize_personality
from dindin.db.models import User, UserConfig


async def get_or_create_user(
    session: AsyncSession,
    telegram_id: int,
    *,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    username: Optional[str] = None,
) -> User:
    result = await session.execute(select(User).where(User.telegram_id == telegram_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        telegram_id=telegram_id,
        first_name=first_name,
        last_name=last_name,
        username=username,
    )
    session.add(user)
    await session.flush()
    return user


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    return await session.get(User, user_id)


async def get_or_create_user_config(session: AsyncSession, user_id: int) -> UserConfig:
    result = await session.execute(select(UserConfig).where(UserConfig.user_id == user_id))
    config = result.scalar_one_or_none()
    if config:
        return config

    config = UserConfig(
        user_id=user_id,
        personality=Personality.FRIENDLY.value,
        setup_completed=False,
        income_setup_completed=False,
    )
    session.add(config)
    await session.flush()
    return config


async def get_personality(session: AsyncSession, user_id: int) -> Personality:
    config = await get_or_create_user_config(session, user_id)
    return normalize_personality(config.personality)


async def save_personality(session: AsyncSession, user_id: int, personality: Personality) -> UserConfig:
    config = await get_or_create_user_config(session, user_id)
    config.personality = Personality(personality).value
    config.setup_completed = True
    await session.flush()
    return config


async def mark_income_setup_completed(session: AsyncSession, user_id: int) -> UserConfig:
    config = await get_or_create_user_config(session, user_id)
    config.income_setup_completed = True
    await session.flush()
    return config


__all__ = [
    "get_or_create_user",
    "get_or_create_user_config",
    "get_personality",
    "get_user_by_id",
    "mark_income_setup_completed",
    "save_personality",
]
