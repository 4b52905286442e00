"""aiogram markup: conversation keyboards and the inline goal action menus."""
from __future__ import annotations

from typing import Optional, Union

from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)

from dindin.conversation.ports import Keyboard, RemoveKeyboard, ReplyKeyboard


def reply_keyboard(keyboard: ReplyKeyboard) -> ReplyKeyboardMarkup:
    """Return the reply keyboard markup for ``keyboard``."""

    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=label) for label in row] for row in keyboard.rows],
        resize_keyboard=keyboard.resize,
        one_time_keyboard=keyboard.one_time,
    )


def to_markup(keyboard: Optional[Keyboard]) -> Union[ReplyKeyboardMarkup, ReplyKeyboardRemove, None]:
    if keyboard is None:
        return None
    if isinstance(keyboard, RemoveKeyboard):
        return ReplyKeyboardRemove(selective=keyboard.selective)
    return reply_keyboard(keyboard)


def goal_actions_menu(goal_id: int, completed: bool) -> InlineKeyboardMarkup:
    buttons = [
        [
            InlineKeyboardButton(
                text="Reabrir meta" if completed else "Marcar concluída",
                callback_data=f"goal_toggle:{goal_id}",
            ),
            InlineKeyboardButton(text="Excluir meta", callback_data=f"goal_delete:{goal_id}"),
        ]
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def goal_delete_confirmation(goal_id: int) -> InlineKeyboardMarkup:
    buttons = [
        [
            InlineKeyboardButton(text="Sim, excluir", callback_data=f"goal_delete_confirm:{goal_id}"),
            InlineKeyboardButton(text="Não, cancelar", callback_data=f"goal_delete_cancel:{goal_id}"),
        ]
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


__all__ = ["goal_actions_menu", "goal_delete_confirmation", "reply_keyboard", "to_markup"]
