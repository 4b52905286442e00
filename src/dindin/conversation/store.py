"""Storage backends for open conversations."""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis.asyncio import Redis

from dindin.conversation.states import ConversationState

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
KEY_PREFIX = "dindin:conversation"


class ConversationStore(Protocol):
    """Mapping from an internal user id to that user's open conversation."""

    async def get(self, user_id: int) -> Optional[ConversationState]:
        ...

    async def set(self, state: ConversationState) -> None:
        ...

    async def delete(self, user_id: int) -> None:
        ...


class MemoryConversationStore:
    """Process-local store that forgets conversations idle for ``ttl_seconds``.

    Every ``set`` refreshes the deadline and moves the entry to the back, so
    entries stay ordered by deadline and ``set`` drops expired ones from the front.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[int, Tuple[ConversationState, float]] = {}

    async def get(self, user_id: int) -> Optional[ConversationState]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        state, expires_at = entry
        if self._clock() >= expires_at:
            logger.info(
                "Conversation expired after inactivity",
                extra={"user_id": user_id, "flow": state.flow.value, "step": state.step.value},
            )
            del self._entries[user_id]
            return None
        return state

    async def set(self, state: ConversationState) -> None:
        now = self._clock()
        self._entries.pop(state.user_id, None)
        self._evict_expired(now)
        self._entries[state.user_id] = (state, now + self._ttl_seconds)

    def _evict_expired(self, now: float) -> None:
        expired = []
        for user_id, (_, expires_at) in self._entries.items():
            if expires_at > now:
                break
            expired.append(user_id)
        for user_id in expired:
            del self._entries[user_id]
        if expired:
            logger.debug("Dropped %s idle conversations", len(expired))

    async def delete(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisConversationStore:
    """Store conversations as JSON documents with a sliding key TTL."""

    def __init__(self, redis: Redis, namespace: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._redis = redis
        self._namespace = namespace
        self._ttl_seconds = ttl_seconds

    def _key(self, user_id: int) -> str:
        return f"{KEY_PREFIX}:{self._namespace}:{user_id}"

    async def get(self, user_id: int) -> Optional[ConversationState]:
        raw = await self._redis.get(self._key(user_id))
        if raw is None:
            return None
        return ConversationState.model_validate_json(raw)

    async def set(self, state: ConversationState) -> None:
        await self._redis.set(self._key(state.user_id), state.model_dump_json(), ex=self._ttl_seconds)

    async def delete(self, user_id: int) -> None:
        await self._redis.delete(self._key(user_id))


__all__ = [
    "ConversationStore",
    "DEFAULT_TTL_SECONDS",
    "MemoryConversationStore",
    "RedisConversationStore",
]
