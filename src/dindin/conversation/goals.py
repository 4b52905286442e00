"""Multi-step creation of savings goals."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from dindin.conversation.normalizer import parse_currency_amount, parse_target_date
from dindin.conversation.ports import GoalGateway, IncomingMessage, Messenger, UserConfigGateway
from dindin.conversation.responses import get_response, goal_progress_values
from dindin.conversation.states import GOAL_TRANSITIONS, ConversationState, Flow, GoalDraft, GoalStep
from dindin.conversation.store import ConversationStore

logger = logging.getLogger(__name__)

INITIAL_CONTRIBUTION_NOTE = "Valor inicial"

NEW_GOAL_PROMPT = (
    "Vamos criar uma nova meta financeira! Por favor, dê um nome para a sua meta. "
    "Por exemplo: 'Celular novo', 'Viagem para a praia', etc."
)
EMPTY_TITLE_PROMPT = (
    "Por favor, dê um nome para a sua meta. Por exemplo: 'Celular novo', 'Viagem para a praia', etc."
)
TARGET_AMOUNT_PROMPT = "Ótimo! Agora, me diga qual é o valor total da meta?"
INVALID_AMOUNT_PROMPT = (
    "Por favor, informe um valor numérico válido maior que zero. Por exemplo: '1500', '2000,50', etc."
)
MISSING_INFO_MESSAGE = (
    "Informações insuficientes para criar a meta. Por favor, inicie novamente com "
    "'Criar meta para [objetivo]'."
)
NO_GOAL_FLOW_MESSAGE = (
    "Não há uma criação de meta em andamento. Para iniciar, diga 'Quero criar uma meta para [objetivo]'."
)
UNKNOWN_INFO_MESSAGE = "Não entendi sua resposta. Por favor, responda à pergunta anterior."
GENERIC_ERROR_MESSAGE = "Desculpe, ocorreu um erro ao criar sua meta. Por favor, tente novamente."

StepHandler = Callable[[ConversationState, IncomingMessage], Awaitable[None]]


class GoalConversationMachine:
    """Collects title, target amount, initial amount and deadline for a new goal."""

    flows = frozenset({Flow.GOAL_CREATION})

    def __init__(
        self,
        store: ConversationStore,
        goals: GoalGateway,
        users: UserConfigGateway,
        messenger: Messenger,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._goals = goals
        self._users = users
        self._messenger = messenger
        self._today = today
        self._handlers: Dict[GoalStep, StepHandler] = {
            GoalStep.AWAITING_TITLE: self._handle_title,
            GoalStep.AWAITING_TARGET_AMOUNT: self._handle_target_amount,
            GoalStep.AWAITING_INITIAL_AMOUNT: self._handle_initial_amount,
            GoalStep.AWAITING_TARGET_DATE: self._handle_target_date,
            GoalStep.CONFIRMATION: self._handle_confirmation,
        }

    async def is_user_in_flow(self, user_id: int) -> bool:
        state = await self._store.get(user_id)
        return state is not None and state.flow in self.flows

    async def start_flow(
        self, message: IncomingMessage, prefill: Optional[Mapping[str, Any]] = None
    ) -> None:
        """Open a goal conversation, skipping the prompts whose answers are known."""

        try:
            personality = await self._users.get_personality(message.user_id)
            draft = GoalDraft(**{key: value for key, value in (prefill or {}).items() if value is not None})
            if draft.title is not None:
                draft.title = draft.title.strip() or None
            if draft.target_amount is not None and draft.target_amount <= 0:
                draft.target_amount = None

            if draft.title and draft.target_amount:
                step = GoalStep.CONFIRMATION
            elif draft.title:
                step = GoalStep.AWAITING_TARGET_AMOUNT
            else:
                step = GoalStep.AWAITING_TITLE

            state = ConversationState(
                user_id=message.user_id,
                chat_id=message.chat_id,
                flow=Flow.GOAL_CREATION,
                step=step,
                personality=personality,
                goal=draft,
            )
            await self._store.set(state)
            logger.info(
                "Goal conversation started",
                extra={"user_id": message.user_id, "flow": state.flow.value, "step": step.value},
            )

            if step is GoalStep.CONFIRMATION:
                await self._handle_confirmation(state, message)
            elif step is GoalStep.AWAITING_TARGET_AMOUNT:
                await self._send(state, get_response(personality, "goal_create_prompt"))
            else:
                await self._send(state, NEW_GOAL_PROMPT)
        except Exception:
            await self._abort(message, "Failed to start goal conversation")

    async def handle_message(self, message: IncomingMessage) -> bool:
        """Apply a reply to the current step.

        Returns False, leaving the state untouched, when there is no goal flow or when
        the target amount cannot be read, so the caller can try the classifier and
        feed the result back through :meth:`handle_goal_info` or :meth:`reprompt`.
        """

        state = await self._store.get(message.user_id)
        if state is None or state.flow not in self.flows:
            return False

        handler = self._handlers.get(state.step) if isinstance(state.step, GoalStep) else None
        if handler is None:
            logger.warning(
                "Unknown goal conversation step, clearing state",
                extra={"user_id": message.user_id, "step": str(state.step)},
            )
            await self._store.delete(message.user_id)
            return False

        if state.step is GoalStep.AWAITING_TARGET_AMOUNT and not self._is_valid_amount(message.text):
            return False

        try:
            await handler(state, message)
        except Exception:
            await self._abort(message, "Goal conversation step failed")
        return True

    async def reprompt(self, message: IncomingMessage) -> None:
        """Ask the current question again after a reply nobody could read."""

        state = await self._store.get(message.user_id)
        if state is None or state.flow not in self.flows:
            return
        if state.step is GoalStep.AWAITING_TARGET_AMOUNT:
            await self._send(state, INVALID_AMOUNT_PROMPT)
        else:
            await self._send(state, self._prompt_for(state))

    async def handle_goal_info(self, message: IncomingMessage, info_type: str, value: Any) -> None:
        """Accept one field extracted by the classifier and resume the chain after it."""

        state = await self._store.get(message.user_id)
        if state is None or state.flow not in self.flows:
            await self._messenger.send(message.chat_id, NO_GOAL_FLOW_MESSAGE)
            return

        try:
            if info_type == "target_amount":
                amount = parse_currency_amount(str(value))
                if amount is None or amount <= 0:
                    await self._send(state, INVALID_AMOUNT_PROMPT)
                    return
                state.goal.target_amount = amount
                await self._resume_at(state, GoalStep.AWAITING_INITIAL_AMOUNT, message)
            elif info_type == "initial_amount":
                state.goal.initial_amount = self._best_effort_amount(str(value))
                await self._resume_at(state, GoalStep.AWAITING_TARGET_DATE, message)
            elif info_type == "target_date":
                state.goal.target_date = parse_target_date(str(value), self._today())
                await self._resume_at(state, GoalStep.CONFIRMATION, message)
            else:
                await self._send(state, UNKNOWN_INFO_MESSAGE)
        except Exception:
            await self._abort(message, "Failed to apply goal info")

    async def _handle_title(self, state: ConversationState, message: IncomingMessage) -> None:
        title = (message.text or "").strip()
        if not title:
            await self._send(state, EMPTY_TITLE_PROMPT)
            return
        state.goal.title = title
        await self._resume_at(state, GoalStep.AWAITING_INITIAL_AMOUNT, message)

    async def _handle_target_amount(self, state: ConversationState, message: IncomingMessage) -> None:
        if not self._is_valid_amount(message.text):
            await self._send(state, INVALID_AMOUNT_PROMPT)
            return
        state.goal.target_amount = parse_currency_amount(message.text)
        await self._resume_at(state, GoalStep.AWAITING_INITIAL_AMOUNT, message)

    async def _handle_initial_amount(self, state: ConversationState, message: IncomingMessage) -> None:
        state.goal.initial_amount = self._best_effort_amount(message.text)
        await self._resume_at(state, GoalStep.AWAITING_TARGET_DATE, message)

    async def _handle_target_date(self, state: ConversationState, message: IncomingMessage) -> None:
        state.goal.target_date = parse_target_date(message.text, self._today())
        await self._resume_at(state, GoalStep.CONFIRMATION, message)

    async def _handle_confirmation(self, state: ConversationState, message: IncomingMessage) -> None:
        draft = state.goal
        if not draft.title or not draft.target_amount:
            await self._store.delete(state.user_id)
            await self._send(state, MISSING_INFO_MESSAGE)
            return

        goal = await self._goals.create_goal(
            state.user_id,
            draft.title,
            draft.target_amount,
            draft.initial_amount,
            draft.target_date,
            draft.category_id,
        )
        current_amount = 0.0
        if draft.initial_amount > 0:
            goal = await self._goals.add_contribution(goal.id, draft.initial_amount, INITIAL_CONTRIBUTION_NOTE)
            current_amount = draft.initial_amount

        await self._store.delete(state.user_id)
        logger.info(
            "Goal created",
            extra={"user_id": state.user_id, "flow": state.flow.value, "step": state.step.value},
        )
        values = goal_progress_values(draft.title, draft.target_amount, current_amount, draft.target_date)
        await self._send(state, get_response(state.personality, "goal_creation_success", **values))

    async def _resume_at(self, state: ConversationState, step: GoalStep, message: IncomingMessage) -> None:
        """Move to ``step`` and ask its question.

        A field injected for a step the flow already passed only updates the draft,
        the current question is asked again. The flow never moves past a missing
        title or target amount.
        """

        if not state.goal.title:
            step = GoalStep.AWAITING_TITLE
        elif not state.goal.target_amount:
            step = GoalStep.AWAITING_TARGET_AMOUNT
        if step is not state.step and step in GOAL_TRANSITIONS[state.step]:
            state.advance(step)
        await self._store.set(state)

        if state.step is GoalStep.CONFIRMATION:
            await self._handle_confirmation(state, message)
        else:
            await self._send(state, self._prompt_for(state))

    @staticmethod
    def _prompt_for(state: ConversationState) -> str:
        if state.step is GoalStep.AWAITING_TITLE:
            return EMPTY_TITLE_PROMPT
        if state.step is GoalStep.AWAITING_TARGET_AMOUNT:
            return TARGET_AMOUNT_PROMPT
        if state.step is GoalStep.AWAITING_INITIAL_AMOUNT:
            return get_response(state.personality, "goal_initial_amount_prompt")
        return get_response(state.personality, "goal_target_date_prompt")

    @staticmethod
    def _is_valid_amount(text: str) -> bool:
        amount = parse_currency_amount(text)
        return amount is not None and amount > 0

    @staticmethod
    def _best_effort_amount(text: str) -> float:
        amount = parse_currency_amount(text, allow_skip=True)
        if amount is None or amount < 0:
            return 0.0
        return amount

    async def _send(self, state: ConversationState, text: str) -> None:
        await self._messenger.send(state.chat_id, text)

    async def _abort(self, message: IncomingMessage, reason: str) -> None:
        logger.exception(reason, extra={"user_id": message.user_id, "flow": Flow.GOAL_CREATION.value})
        await self._store.delete(message.user_id)
        await self._messenger.send(message.chat_id, GENERIC_ERROR_MESSAGE)


__all__ = [
    "GoalConversationMachine",
    "INITIAL_CONTRIBUTION_NOTE",
]
