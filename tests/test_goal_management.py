"""Goal details, completion toggling and deletion."""
from __future__ import annotations

import asyncio
from datetime import date, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dindin.bot.handlers.goals import (
    GOAL_DETAILS_USAGE_MESSAGE,
    handle_goal_action,
    handle_goal_details,
    parse_goal_callback,
)
from dindin.conversation.responses import render_goal_details
from dindin.db.kinds import ReminderFrequency
from dindin.db.models import Base, GoalContribution, GoalReminder
from dindin.db.session import session_scope
from dindin.services.goals import goal_statistics
from dindin.services.repository import FinanceRepository


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


def _goal(**overrides) -> SimpleNamespace:
    values = {
        "id": 5,
        "title": "Viagem",
        "target_amount": 1000,
        "current_amount": 200,
        "target_date": date(2024, 7, 1),
        "created_at": datetime(2024, 5, 1, 12, 0),
        "completed": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_goal_statistics_forecast_completion_at_current_pace() -> None:
    statistics = goal_statistics(_goal(), date(2024, 5, 11))

    assert statistics.progress == 20.0
    assert statistics.days_passed == 10
    assert statistics.days_remaining == 51
    assert statistics.estimated_completion == date(2024, 6, 20)


def test_goal_statistics_without_savings_has_no_forecast() -> None:
    statistics = goal_statistics(_goal(current_amount=0, target_date=None), date(2024, 5, 11))

    assert statistics.days_remaining is None
    assert statistics.estimated_completion is None
    assert float(statistics.remaining_amount) == 1000


def test_goal_details_rendering() -> None:
    goal = _goal(title="Viagem_2024")

    text = render_goal_details(goal, goal_statistics(goal, date(2024, 5, 11)))

    assert text.startswith("🎯 *Meta: Viagem\\_2024*")
    assert "*Data alvo:* 01/07/2024 (faltam 51 dias)" in text
    assert "*Valor restante:* R$ 800.00" in text
    assert "*Previsão de conclusão:* 20/06/2024 (no ritmo atual)" in text
    assert text.endswith("💪 Toda jornada começa com o primeiro passo!")


def test_goal_management_workflow() -> None:
    async def runner() -> None:
        engine, factory = await _session_factory()
        repository = FinanceRepository(factory)
        user_id = await repository.get_or_create_user(321)
        stranger_id = await repository.get_or_create_user(654)

        trip = await repository.create_goal(user_id, "Viagem", 1000.0, 0.0, None, None)
        car = await repository.create_goal(user_id, "Carro novo", 20000.0, 0.0, None, None)
        await repository.add_contribution(trip.id, 100.0, "Valor inicial")
        await repository.schedule_goal_reminder(user_id, "viagem", ReminderFrequency.WEEKLY)

        assert (await repository.find_goal(user_id, "1")).id == trip.id
        assert (await repository.find_goal(user_id, "2")).id == car.id
        assert (await repository.find_goal(user_id, "carro")).id == car.id
        assert await repository.find_goal(user_id, "7") is None
        assert await repository.get_user_goal(stranger_id, trip.id) is None
        assert await repository.toggle_goal(stranger_id, trip.id) is None

        assert (await repository.toggle_goal(user_id, trip.id)).completed
        async with session_scope(factory) as session:
            reminders = (await session.execute(select(GoalReminder))).scalars().all()
            assert [reminder.is_active for reminder in reminders] == [False]

        assert not (await repository.toggle_goal(user_id, trip.id)).completed
        async with session_scope(factory) as session:
            reminders = (await session.execute(select(GoalReminder))).scalars().all()
            assert [reminder.is_active for reminder in reminders] == [True]

        assert await repository.delete_goal(stranger_id, trip.id) is None
        deleted = await repository.delete_goal(user_id, trip.id)
        assert deleted.title == "Viagem"
        assert await repository.get_user_goal(user_id, trip.id) is None
        async with session_scope(factory) as session:
            for model in (GoalContribution, GoalReminder):
                count = await session.execute(select(func.count()).select_from(model))
                assert count.scalar_one() == 0
        assert [goal.title for goal in await repository.list_goals(user_id)] == ["Carro novo"]

        await engine.dispose()

    asyncio.run(runner())


@pytest.mark.parametrize(
    "data, expected",
    [
        ("goal_toggle:12", ("goal_toggle", 12)),
        ("goal_delete_confirm:3", ("goal_delete_confirm", 3)),
        ("goal_toggle:abc", ("goal_toggle", None)),
        ("goal_toggle", ("goal_toggle", None)),
        (None, ("", None)),
    ],
)
def test_parse_goal_callback(data, expected) -> None:
    assert parse_goal_callback(data) == expected


def _sender() -> SimpleNamespace:
    return SimpleNamespace(id=42, first_name="Ana", last_name=None, username=None)


def _message(text: str) -> SimpleNamespace:
    return SimpleNamespace(from_user=_sender(), chat=SimpleNamespace(id=42), text=text, answer=AsyncMock())


def _callback(data: str) -> SimpleNamespace:
    return SimpleNamespace(
        data=data,
        from_user=_sender(),
        answer=AsyncMock(),
        message=SimpleNamespace(answer=AsyncMock(), edit_text=AsyncMock()),
    )


def _services(**repository_methods) -> SimpleNamespace:
    repository = SimpleNamespace(get_or_create_user=AsyncMock(return_value=7), **repository_methods)
    return SimpleNamespace(repository=repository)


def test_details_command_shows_actions() -> None:
    services = _services(find_goal=AsyncMock(return_value=_goal()))
    message = _message("/metadetalhes 1")

    asyncio.run(handle_goal_details(message, SimpleNamespace(args="1"), services))

    services.repository.find_goal.assert_awaited_once_with(7, "1")
    keyboard = message.answer.await_args.kwargs["reply_markup"]
    assert [button.callback_data for button in keyboard.inline_keyboard[0]] == ["goal_toggle:5", "goal_delete:5"]


def test_details_command_without_arguments_explains_usage() -> None:
    services = _services(find_goal=AsyncMock())
    message = _message("/metadetalhes")

    asyncio.run(handle_goal_details(message, SimpleNamespace(args=None), services))

    message.answer.assert_awaited_once_with(GOAL_DETAILS_USAGE_MESSAGE)
    services.repository.find_goal.assert_not_awaited()


def test_toggle_callback_refreshes_the_details() -> None:
    services = _services(
        get_user_goal=AsyncMock(return_value=_goal()),
        toggle_goal=AsyncMock(return_value=_goal(completed=True)),
    )
    callback = _callback("goal_toggle:5")

    asyncio.run(handle_goal_action(callback, services))

    services.repository.toggle_goal.assert_awaited_once_with(7, 5)
    callback.answer.assert_awaited_once_with("Meta marcada como concluída! 🎉")
    keyboard = callback.message.edit_text.await_args.kwargs["reply_markup"]
    assert keyboard.inline_keyboard[0][0].text == "Reabrir meta"


def test_delete_asks_for_confirmation_first() -> None:
    services = _services(get_user_goal=AsyncMock(return_value=_goal()), delete_goal=AsyncMock())
    callback = _callback("goal_delete:5")

    asyncio.run(handle_goal_action(callback, services))

    services.repository.delete_goal.assert_not_awaited()
    text = callback.message.answer.await_args.args[0]
    keyboard = callback.message.answer.await_args.kwargs["reply_markup"]
    assert "Tem certeza" in text
    assert keyboard.inline_keyboard[0][0].callback_data == "goal_delete_confirm:5"


def test_confirmed_delete_removes_the_goal() -> None:
    services = _services(get_user_goal=AsyncMock(return_value=_goal()), delete_goal=AsyncMock())
    callback = _callback("goal_delete_confirm:5")

    asyncio.run(handle_goal_action(callback, services))

    services.repository.delete_goal.assert_awaited_once_with(7, 5)
    assert "excluída permanentemente" in callback.message.edit_text.await_args.args[0]


@pytest.mark.parametrize("data", ["goal_toggle:abc", "goal_toggle:99"])
def test_callbacks_for_unknown_goals_are_refused(data: str) -> None:
    services = _services(get_user_goal=AsyncMock(return_value=None), toggle_goal=AsyncMock())
    callback = _callback(data)

    asyncio.run(handle_goal_action(callback, services))

    services.repository.toggle_goal.assert_not_awaited()
    assert callback.answer.await_args.kwargs == {"show_alert": True}
