"""Routing of inbound text between open conversations and message classification."""
from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from dindin.conversation.goals import GoalConversationMachine
from dindin.conversation.normalizer import escape_markdown, format_currency
from dindin.conversation.ports import IncomingMessage, LedgerGateway, Messenger
from dindin.conversation.responses import (
    NO_GOALS_MESSAGE,
    get_response,
    goal_progress_values,
    render_goal_list,
    render_goal_titles,
)
from dindin.db.kinds import TransactionKind
from dindin.services.categories import FALLBACK_CATEGORY_NAME
from dindin.services.llm import AnalysisKind, GoalAction, MessageAnalysis

logger = logging.getLogger(__name__)

CONTRIBUTION_USAGE_MESSAGE = (
    "Por favor, especifique o título da meta e o valor da contribuição. "
    "Por exemplo: 'Adicionar 100 reais na meta Viagem'."
)
GENERIC_ERROR_MESSAGE = (
    "Desculpe, ocorreu um erro ao processar sua mensagem. Por favor, tente novamente mais tarde."
)

Analyzer = Callable[[str, date], Awaitable[MessageAnalysis]]


class ConversationMachine(Protocol):
    async def is_user_in_flow(self, user_id: int) -> bool:
        ...

    async def handle_message(self, message: IncomingMessage) -> bool:
        ...


class DialogDispatcher:
    """Hands a message to the machine owning the user's conversation, else classifies it."""

    def __init__(
        self,
        machines: Sequence[ConversationMachine],
        goal_machine: GoalConversationMachine,
        ledger: LedgerGateway,
        messenger: Messenger,
        analyzer: Analyzer,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._machines = tuple(machines)
        self._goal_machine = goal_machine
        self._ledger = ledger
        self._messenger = messenger
        self._analyzer = analyzer
        self._today = today

    async def dispatch(self, message: IncomingMessage) -> None:
        for machine in self._machines:
            if await machine.is_user_in_flow(message.user_id) and await machine.handle_message(message):
                return

        # a goal flow that declined the reply is waiting for a goal_info answer
        in_goal_flow = await self._goal_machine.is_user_in_flow(message.user_id)
        try:
            analysis = await self._analyzer(message.text, self._today())
        except Exception:
            logger.exception("Message classification failed", extra={"user_id": message.user_id})
            await self._messenger.send(message.chat_id, GENERIC_ERROR_MESSAGE)
            return

        logger.info(
            "Message classified", extra={"user_id": message.user_id, "step": analysis.kind.value}
        )
        if in_goal_flow and not (analysis.kind is AnalysisKind.GOAL_INFO and analysis.info_type):
            await self._goal_machine.reprompt(message)
            return
        try:
            await self._route(message, analysis)
        except Exception:
            logger.exception("Failed to act on classified message", extra={"user_id": message.user_id})
            await self._messenger.send(message.chat_id, GENERIC_ERROR_MESSAGE)

    async def _route(self, message: IncomingMessage, analysis: MessageAnalysis) -> None:
        if analysis.is_transaction:
            await self._record_transaction(message, analysis)
        elif analysis.kind is AnalysisKind.GOAL:
            await self._handle_goal(message, analysis)
        elif analysis.kind is AnalysisKind.GOAL_INFO and analysis.info_type:
            await self._goal_machine.handle_goal_info(message, analysis.info_type, analysis.value)
        else:
            personality = await self._ledger.get_personality(message.user_id)
            await self._messenger.send(message.chat_id, get_response(personality, "not_transaction"))

    async def _record_transaction(self, message: IncomingMessage, analysis: MessageAnalysis) -> None:
        kind = TransactionKind(analysis.transaction_kind)
        description = (analysis.description or message.text).strip()
        transaction = await self._ledger.record_transaction(
            message.user_id,
            amount=analysis.amount,
            description=description,
            kind=kind,
            category_name=analysis.category,
        )
        category = transaction.category
        category_label = f"{category.icon} {category.name}".strip() if category else FALLBACK_CATEGORY_NAME
        key = "income_confirmation" if kind is TransactionKind.INCOME else "expense_confirmation"
        personality = await self._ledger.get_personality(message.user_id)
        text = get_response(
            personality,
            key,
            amount=format_currency(analysis.amount),
            description=description,
            category=category_label,
        )
        await self._messenger.send(message.chat_id, text)

    async def _handle_goal(self, message: IncomingMessage, analysis: MessageAnalysis) -> None:
        if analysis.action is GoalAction.CONTRIBUTE:
            await self._contribute(message, analysis)
        elif analysis.action is GoalAction.QUERY:
            await self._query(message, analysis)
        else:
            await self._goal_machine.start_flow(message, prefill=self._goal_prefill(analysis))

    def _goal_prefill(self, analysis: MessageAnalysis) -> dict:
        target_date: Optional[date] = analysis.target_date
        if target_date is not None and target_date <= self._today():
            target_date = None
        return {
            "title": analysis.title,
            "target_amount": analysis.target_amount,
            "initial_amount": analysis.initial_amount if (analysis.initial_amount or 0) > 0 else None,
            "target_date": target_date,
        }

    async def _contribute(self, message: IncomingMessage, analysis: MessageAnalysis) -> None:
        amount = analysis.contribution_amount
        if not analysis.title or amount is None or amount <= 0:
            await self._messenger.send(message.chat_id, CONTRIBUTION_USAGE_MESSAGE)
            return

        goal = await self._ledger.contribute_to_goal(message.user_id, analysis.title, amount)
        if goal is None:
            await self._send_goal_not_found(message, analysis.title)
            return

        logger.info("Goal contribution recorded", extra={"user_id": message.user_id, "goal_id": goal.id})
        personality = await self._ledger.get_personality(message.user_id)
        values = goal_progress_values(goal.title, goal.target_amount, goal.current_amount, goal.target_date)
        text = get_response(
            personality, "goal_contribution_success", **{**values, "amount": format_currency(amount)}
        )
        if goal.completed:
            text += get_response(personality, "goal_completed")
        await self._messenger.send(message.chat_id, text)

    async def _query(self, message: IncomingMessage, analysis: MessageAnalysis) -> None:
        goals = await self._ledger.list_goals(message.user_id)
        if analysis.title:
            needle = analysis.title.strip().lower()
            matching = [goal for goal in goals if needle in goal.title.lower()]
            if goals and not matching:
                await self._send_goal_not_found(message, analysis.title, goals)
                return
            goals = matching
        await self._messenger.send(message.chat_id, render_goal_list(goals))

    async def _send_goal_not_found(
        self, message: IncomingMessage, title: str, goals: Optional[Sequence] = None
    ) -> None:
        if goals is None:
            goals = await self._ledger.list_goals(message.user_id)
        if not goals:
            await self._messenger.send(message.chat_id, NO_GOALS_MESSAGE)
            return
        await self._messenger.send(
            message.chat_id,
            f'Não encontrei nenhuma meta com o nome "{escape_markdown(title)}". Suas metas atuais são:\n'
            f"{render_goal_titles(goals)}",
        )


__all__ = ["ConversationMachine", "DialogDispatcher"]
