"""First-contact onboarding: pick how the bot talks, then configure finances."""
from __future__ import annotations

import logging

from dindin.conversation.income import IncomeConfigMachine
from dindin.conversation.ports import REMOVE_KEYBOARD, IncomingMessage, Messenger, ReplyKeyboard, UserConfigGateway
from dindin.conversation.responses import PERSONALITY_LABELS, get_response, match_personality
from dindin.conversation.states import ConversationState, Flow, PersonalityStep
from dindin.conversation.store import ConversationStore
from dindin.db.kinds import Personality

logger = logging.getLogger(__name__)

PERSONALITY_KEYBOARD = ReplyKeyboard.of(*([label] for label in PERSONALITY_LABELS.values()))
CHOICE_REPROMPT = "Por favor, escolha uma das opções de personalidade abaixo:"
GENERIC_ERROR_MESSAGE = (
    "Desculpe, ocorreu um erro ao configurar sua personalidade. Por favor, tente novamente com /start."
)


class PersonalityMachine:
    flows = frozenset({Flow.PERSONALITY})

    def __init__(
        self,
        store: ConversationStore,
        users: UserConfigGateway,
        messenger: Messenger,
        income_machine: IncomeConfigMachine,
    ) -> None:
        self._store = store
        self._users = users
        self._messenger = messenger
        self._income_machine = income_machine

    async def is_user_in_flow(self, user_id: int) -> bool:
        state = await self._store.get(user_id)
        return state is not None and state.flow in self.flows

    async def start_flow(self, message: IncomingMessage) -> None:
        state = ConversationState(
            user_id=message.user_id,
            chat_id=message.chat_id,
            flow=Flow.PERSONALITY,
            step=PersonalityStep.AWAITING_CHOICE,
        )
        await self._store.set(state)
        logger.info("Personality choice started", extra={"user_id": message.user_id})
        text = get_response(Personality.FRIENDLY, "introduction", first_name=message.first_name or "")
        await self._messenger.send(message.chat_id, text, PERSONALITY_KEYBOARD)

    async def handle_message(self, message: IncomingMessage) -> bool:
        state = await self._store.get(message.user_id)
        if state is None or state.flow not in self.flows:
            return False
        if state.step is not PersonalityStep.AWAITING_CHOICE:
            logger.warning(
                "Unknown personality step, clearing state",
                extra={"user_id": message.user_id, "step": str(state.step)},
            )
            await self._store.delete(message.user_id)
            return False

        personality = match_personality(message.text)
        if personality is None:
            await self._messenger.send(message.chat_id, CHOICE_REPROMPT, PERSONALITY_KEYBOARD)
            return True

        try:
            await self._users.save_personality(message.user_id, personality)
        except Exception:
            logger.exception("Failed to save personality", extra={"user_id": message.user_id})
            await self._store.delete(message.user_id)
            await self._messenger.send(message.chat_id, GENERIC_ERROR_MESSAGE, REMOVE_KEYBOARD)
            return True

        logger.info(
            "Personality saved", extra={"user_id": message.user_id, "flow": Flow.PERSONALITY.value}
        )
        await self._store.delete(message.user_id)
        await self._messenger.send(
            message.chat_id, get_response(personality, "personality_confirmation"), REMOVE_KEYBOARD
        )
        await self._income_machine.start_income_flow(message, after_personality=True)
        return True


__all__ = ["PERSONALITY_KEYBOARD", "PersonalityMachine"]
