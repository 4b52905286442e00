"""Goal related commands."""
from __future__ import annotations

import logging
from typing import Optional

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

from dindin.bot.bot_factory import BotServices
from dindin.bot.keyboards.main import goal_actions_menu, goal_delete_confirmation
from dindin.bot.utils.incoming import resolve_incoming, resolve_user_id
from dindin.conversation.normalizer import escape_markdown
from dindin.conversation.responses import (
    REMINDER_FREQUENCY_LABELS,
    get_response,
    render_goal_details,
    render_goal_list,
)
from dindin.db.kinds import ReminderFrequency
from dindin.services.goals import goal_statistics
from dindin.services.schedule import local_today

router = Router()
logger = logging.getLogger(__name__)

REMINDER_USAGE_MESSAGE = (
    "Informe a meta e, se quiser, a frequência. Exemplo: /lembrete Viagem semanal "
    "(diário, semanal ou mensal)."
)
GOAL_DETAILS_USAGE_MESSAGE = "Informe o número ou o nome da meta. Exemplo: /metadetalhes 1 ou /metadetalhes Viagem"
GOAL_NOT_FOUND_MESSAGE = 'Não encontrei nenhuma meta com o nome "{title}". Use /metas para ver suas metas.'

FREQUENCY_WORDS = {
    "diario": ReminderFrequency.DAILY,
    "diário": ReminderFrequency.DAILY,
    "diariamente": ReminderFrequency.DAILY,
    "semanal": ReminderFrequency.WEEKLY,
    "semanalmente": ReminderFrequency.WEEKLY,
    "mensal": ReminderFrequency.MONTHLY,
    "mensalmente": ReminderFrequency.MONTHLY,
}


def parse_reminder_args(args: Optional[str]) -> tuple[Optional[str], ReminderFrequency]:
    """Split ``"<title> [frequency]"``; the frequency defaults to weekly."""

    words = (args or "").split()
    frequency = ReminderFrequency.WEEKLY
    if words and words[-1].lower() in FREQUENCY_WORDS:
        frequency = FREQUENCY_WORDS[words.pop().lower()]
    title = " ".join(words).strip()
    return title or None, frequency


@router.message(Command("metas"))
async def handle_goals(message: Message, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    goals = await services.repository.list_goals(incoming.user_id)
    await message.answer(render_goal_list(goals))


@router.message(Command("novameta"))
async def handle_new_goal(message: Message, command: CommandObject, services: BotServices) -> None:
    incoming = await resolve_incoming(message, services.repository)
    await services.setup_store.delete(incoming.user_id)
    title = (command.args or "").strip() or None
    await services.goal_machine.start_flow(incoming, prefill={"title": title})


@router.message(Command("lembrete"))
async def handle_goal_reminder(message: Message, command: CommandObject, services: BotServices) -> None:
    title, frequency = parse_reminder_args(command.args)
    if title is None:
        await message.answer(REMINDER_USAGE_MESSAGE)
        return

    incoming = await resolve_incoming(message, services.repository)
    reminder = await services.repository.schedule_goal_reminder(incoming.user_id, title, frequency)
    if reminder is None:
        await message.answer(GOAL_NOT_FOUND_MESSAGE.format(title=escape_markdown(title)))
        return

    logger.info("Goal reminder scheduled", extra={"user_id": incoming.user_id, "goal_id": reminder.goal_id})
    personality = await services.repository.get_personality(incoming.user_id)
    await message.answer(
        get_response(personality, "goal_reminder_success", frequency=REMINDER_FREQUENCY_LABELS[frequency])
    )


def parse_goal_callback(data: Optional[str]) -> tuple[str, Optional[int]]:
    """Split ``"<action>:<goal id>"``; the id is ``None`` when missing or not numeric."""

    action, _, raw_id = (data or "").partition(":")
    return action, int(raw_id) if raw_id.isdigit() else None


def goal_details_view(goal) -> tuple[str, InlineKeyboardMarkup]:
    text = render_goal_details(goal, goal_statistics(goal, local_today()))
    return text, goal_actions_menu(goal.id, goal.completed)


@router.message(Command("metadetalhes"))
async def handle_goal_details(message: Message, command: CommandObject, services: BotServices) -> None:
    query = (command.args or "").strip()
    if not query:
        await message.answer(GOAL_DETAILS_USAGE_MESSAGE)
        return

    incoming = await resolve_incoming(message, services.repository)
    goal = await services.repository.find_goal(incoming.user_id, query)
    if goal is None:
        await message.answer(GOAL_NOT_FOUND_MESSAGE.format(title=escape_markdown(query)))
        return

    text, keyboard = goal_details_view(goal)
    await message.answer(text, reply_markup=keyboard)


@router.callback_query(F.data.startswith("goal_"))
async def handle_goal_action(callback: CallbackQuery, services: BotServices) -> None:
    action, goal_id = parse_goal_callback(callback.data)
    if goal_id is None:
        await callback.answer("Erro: identificador da meta não encontrado.", show_alert=True)
        return

    user_id = await resolve_user_id(callback.from_user, services.repository)
    goal = await services.repository.get_user_goal(user_id, goal_id)
    if goal is None:
        await callback.answer("Esta meta não foi encontrada ou não pertence a você.", show_alert=True)
        return

    title = escape_markdown(goal.title)
    if action == "goal_toggle":
        goal = await services.repository.toggle_goal(user_id, goal_id)
        await callback.answer(
            "Meta marcada como concluída! 🎉" if goal.completed else "Meta reaberta para contribuições"
        )
        text, keyboard = goal_details_view(goal)
        await callback.message.edit_text(text, reply_markup=keyboard)
    elif action == "goal_delete":
        await callback.answer()
        await callback.message.answer(
            f'Tem certeza que deseja excluir a meta "{title}"? Esta ação não pode ser desfeita.',
            reply_markup=goal_delete_confirmation(goal_id),
        )
    elif action == "goal_delete_confirm":
        await services.repository.delete_goal(user_id, goal_id)
        await callback.answer("Meta excluída com sucesso")
        await callback.message.edit_text(f'A meta "{title}" foi excluída permanentemente.')
    elif action == "goal_delete_cancel":
        await callback.answer("Operação cancelada")
        await callback.message.edit_text(f'A exclusão da meta "{title}" foi cancelada.')
    else:
        logger.warning("Unknown goal action %s", action, extra={"user_id": user_id, "goal_id": goal_id})
        await callback.answer("Ação não reconhecida")


__all__ = ["goal_details_view", "parse_goal_callback", "parse_reminder_args", "router"]
