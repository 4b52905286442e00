"""Tests for the goal creation conversation."""
from __future__ import annotations

import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from dindin.conversation.goals import (
    EMPTY_TITLE_PROMPT,
    GENERIC_ERROR_MESSAGE,
    INVALID_AMOUNT_PROMPT,
    INITIAL_CONTRIBUTION_NOTE,
    MISSING_INFO_MESSAGE,
    NEW_GOAL_PROMPT,
    NO_GOAL_FLOW_MESSAGE,
    TARGET_AMOUNT_PROMPT,
    UNKNOWN_INFO_MESSAGE,
    GoalConversationMachine,
)
from dindin.conversation.states import ConversationState, Flow, GoalStep, SetupStep
from dindin.conversation.store import MemoryConversationStore
from dindin.db.kinds import Personality

TODAY = date(2024, 5, 10)


@pytest.fixture
def machine(goal_store, finance, messenger) -> GoalConversationMachine:
    return GoalConversationMachine(goal_store, finance, finance, messenger, today=lambda: TODAY)


def _run(coro):
    return asyncio.run(coro)


def test_full_goal_conversation(machine, goal_store, finance, messenger, make_message) -> None:
    async def runner() -> None:
        await machine.start_flow(make_message("/novameta"))
        assert messenger.last_text == NEW_GOAL_PROMPT

        assert await machine.handle_message(make_message("  Viagem  "))
        assert messenger.last_text == TARGET_AMOUNT_PROMPT

        assert not await machine.handle_message(make_message("três mil"))
        state = await goal_store.get(1)
        assert state.step is GoalStep.AWAITING_TARGET_AMOUNT
        assert messenger.last_text == TARGET_AMOUNT_PROMPT

        await machine.handle_message(make_message("R$ 3000,00"))
        await machine.handle_message(make_message("500"))
        await machine.handle_message(make_message("25/12/2024"))

    _run(runner())

    goal = finance.goals[1]
    assert goal.title == "Viagem"
    assert goal.target_amount == 3000.0
    assert goal.target_date == date(2024, 12, 25)
    assert goal.current_amount == 500.0
    assert finance.contributions == [(1, 500.0, INITIAL_CONTRIBUTION_NOTE)]
    assert "Meta criada com sucesso" in messenger.last_text
    assert "Data alvo: 25/12/2024" in messenger.last_text
    assert _run(goal_store.get(1)) is None


def test_every_accepted_reply_sends_one_message(machine, messenger, make_message) -> None:
    async def runner() -> None:
        await machine.start_flow(make_message("/novameta"))
        for text in ("Carro", "20000", "não", "sem data"):
            before = len(messenger.sent)
            await machine.handle_message(make_message(text))
            assert len(messenger.sent) == before + 1

    _run(runner())


@pytest.mark.parametrize("token", ["não", "nao", "n", "no", "0", "talvez"])
def test_initial_amount_is_best_effort(machine, goal_store, make_message, token: str) -> None:
    async def runner() -> ConversationState:
        await machine.start_flow(make_message("x"), prefill={"title": "Casa"})
        await machine.handle_message(make_message("1000"))
        await machine.handle_message(make_message(token))
        return await goal_store.get(1)

    state = _run(runner())
    assert state.step is GoalStep.AWAITING_TARGET_DATE
    assert state.goal.initial_amount == 0.0


def test_past_date_is_dropped_and_goal_still_created(machine, finance, make_message) -> None:
    async def runner() -> None:
        await machine.start_flow(make_message("x"), prefill={"title": "Casa"})
        await machine.handle_message(make_message("1000"))
        await machine.handle_message(make_message("0"))
        await machine.handle_message(make_message("09/05/2024"))

    _run(runner())
    assert finance.goals[1].target_date is None
    assert finance.contributions == []


def test_numeric_reply_is_read_by_the_current_step(machine, goal_store, finance, make_message) -> None:
    async def runner() -> None:
        await machine.start_flow(make_message("x"), prefill={"title": "Casa"})
        await machine.handle_message(make_message("100"))
        await machine.handle_message(make_message("0"))
        await machine.handle_message(make_message("100"))

    _run(runner())
    goal = finance.goals[1]
    assert goal.target_amount == 100.0
    assert goal.target_date is None


def test_fast_path_sends_only_the_confirmation(machine, finance, messenger, make_message) -> None:
    _run(machine.start_flow(make_message("meta"), prefill={"title": "Viagem", "target_amount": 3000}))

    assert len(messenger.sent) == 1
    assert "Viagem" in messenger.last_text
    assert NEW_GOAL_PROMPT not in messenger.texts
    assert finance.goals[1].target_amount == 3000


def test_title_only_prefill_uses_personality_prompt(machine, finance, messenger, make_message) -> None:
    finance.personalities[1] = Personality.PROFESSIONAL
    _run(machine.start_flow(make_message("meta"), prefill={"title": "Notebook", "target_amount": None}))

    assert "Inicializando procedimento" in messenger.last_text


def test_empty_title_reprompts(machine, goal_store, make_message) -> None:
    async def runner() -> ConversationState:
        await machine.start_flow(make_message("/novameta"))
        await machine.handle_message(make_message("   "))
        return await goal_store.get(1)

    assert _run(runner()).step is GoalStep.AWAITING_TITLE


def test_confirmation_without_required_fields_aborts(machine, goal_store, messenger, make_message) -> None:
    state = ConversationState(user_id=1, chat_id=100, flow=Flow.GOAL_CREATION, step=GoalStep.CONFIRMATION)

    async def runner() -> None:
        await goal_store.set(state)
        await machine.handle_message(make_message("ok"))

    _run(runner())
    assert messenger.last_text == MISSING_INFO_MESSAGE
    assert _run(goal_store.get(1)) is None


def test_collaborator_failure_clears_state(machine, goal_store, finance, messenger, make_message) -> None:
    finance.failing.add("create_goal")

    async def runner() -> None:
        await machine.start_flow(make_message("x"), prefill={"title": "Casa"})
        await machine.handle_message(make_message("1000"))
        await machine.handle_message(make_message("0"))
        assert await machine.handle_message(make_message("sem data"))

    _run(runner())
    assert messenger.last_text == GENERIC_ERROR_MESSAGE
    assert _run(goal_store.get(1)) is None


def test_unknown_step_falls_through(machine, goal_store, make_message) -> None:
    state = ConversationState(user_id=1, chat_id=100, flow=Flow.GOAL_CREATION, step=SetupStep.INITIAL)

    async def runner() -> bool:
        await goal_store.set(state)
        return await machine.handle_message(make_message("oi"))

    assert _run(runner()) is False
    assert _run(goal_store.get(1)) is None


def test_message_without_open_flow_is_not_consumed(machine, make_message) -> None:
    assert _run(machine.handle_message(make_message("oi"))) is False
    assert _run(machine.is_user_in_flow(1)) is False


def test_goal_info_resumes_after_the_injected_field(machine, goal_store, messenger, make_message) -> None:
    async def runner() -> ConversationState:
        await machine.start_flow(make_message("x"), prefill={"title": "Moto"})
        await machine.handle_goal_info(make_message("12 mil"), "target_amount", "12000")
        return await goal_store.get(1)

    state = _run(runner())
    assert state.goal.target_amount == 12000.0
    assert state.step is GoalStep.AWAITING_INITIAL_AMOUNT
    assert "guardado" in messenger.last_text


def test_goal_info_target_date_completes_goal(machine, finance, make_message) -> None:
    async def runner() -> None:
        await machine.start_flow(make_message("x"), prefill={"title": "Moto"})
        await machine.handle_goal_info(make_message("y"), "target_amount", 12000)
        await machine.handle_goal_info(make_message("y"), "initial_amount", "2000")
        await machine.handle_goal_info(make_message("y"), "target_date", "2025-03-01")

    _run(runner())
    goal = finance.goals[1]
    assert goal.target_date == date(2025, 3, 1)
    assert goal.current_amount == 2000.0


def test_goal_info_for_passed_step_reasks_current_question(machine, goal_store, messenger, make_message) -> None:
    async def runner() -> ConversationState:
        await machine.start_flow(make_message("x"), prefill={"title": "Moto"})
        await machine.handle_message(make_message("5000"))
        await machine.handle_message(make_message("0"))
        await machine.handle_goal_info(make_message("y"), "target_amount", "6000")
        return await goal_store.get(1)

    state = _run(runner())
    assert state.goal.target_amount == 6000.0
    assert state.step is GoalStep.AWAITING_TARGET_DATE
    assert "Até quando" in messenger.last_text


def test_goal_info_edge_cases(machine, messenger, make_message) -> None:
    _run(machine.handle_goal_info(make_message("y"), "target_amount", "100"))
    assert messenger.last_text == NO_GOAL_FLOW_MESSAGE

    async def runner() -> None:
        await machine.start_flow(make_message("x"), prefill={"title": "Moto"})
        await machine.handle_goal_info(make_message("y"), "color", "azul")

    _run(runner())
    assert messenger.last_text == UNKNOWN_INFO_MESSAGE


def test_unreadable_amount_is_left_for_the_classifier(machine, goal_store, messenger, make_message) -> None:
    async def runner() -> bool:
        await machine.start_flow(make_message("x"), prefill={"title": "Carro"})
        messenger.clear()
        consumed = await machine.handle_message(make_message("uns cinco mil reais"))
        await machine.reprompt(make_message("uns cinco mil reais"))
        return consumed

    assert _run(runner()) is False
    assert messenger.texts == [INVALID_AMOUNT_PROMPT]
    assert _run(goal_store.get(1)).step is GoalStep.AWAITING_TARGET_AMOUNT


@pytest.mark.parametrize("prefill, expected_step, expected_prompt", [
    ({}, GoalStep.AWAITING_TITLE, EMPTY_TITLE_PROMPT),
    ({"title": "Moto"}, GoalStep.AWAITING_TARGET_AMOUNT, TARGET_AMOUNT_PROMPT),
])
def test_early_target_date_is_kept_until_required_fields_arrive(
    machine, goal_store, finance, messenger, make_message, prefill, expected_step, expected_prompt
) -> None:
    async def runner() -> ConversationState:
        await machine.start_flow(make_message("x"), prefill=prefill)
        await machine.handle_goal_info(make_message("y"), "target_date", "2025-03-01")
        return await goal_store.get(1)

    state = _run(runner())
    assert state.step is expected_step
    assert state.goal.target_date == date(2025, 3, 1)
    assert messenger.last_text == expected_prompt
    assert finance.goals == {}


def test_known_target_amount_is_not_asked_twice(machine, goal_store, make_message) -> None:
    async def runner() -> ConversationState:
        await machine.start_flow(make_message("x"))
        await machine.handle_goal_info(make_message("y"), "target_amount", "8000")
        await machine.handle_message(make_message("Moto"))
        return await goal_store.get(1)

    state = _run(runner())
    assert state.goal.target_amount == 8000.0
    assert state.step is GoalStep.AWAITING_INITIAL_AMOUNT


def test_goal_title_is_markdown_escaped_in_confirmation(machine, messenger, make_message) -> None:
    _run(machine.start_flow(make_message("meta"), prefill={"title": "Viagem_2025", "target_amount": 3000}))

    assert "*Viagem\\_2025*" in messenger.last_text


def test_abandoned_goal_conversation_never_persists(finance, messenger, make_message) -> None:
    clock = SimpleNamespace(now=0.0)
    store = MemoryConversationStore(ttl_seconds=60, clock=lambda: clock.now)
    machine = GoalConversationMachine(store, finance, finance, messenger, today=lambda: TODAY)

    async def runner() -> None:
        await machine.start_flow(make_message("/novameta"))
        for reply in ("Viagem", "3000", "500"):
            await machine.handle_message(make_message(reply))
        state = await store.get(1)
        assert state.step is GoalStep.AWAITING_TARGET_DATE
        assert (state.goal.title, state.goal.target_amount, state.goal.initial_amount) == ("Viagem", 3000.0, 500.0)

        clock.now += 61
        assert await store.get(1) is None

    _run(runner())
    assert finance.goals == {}
    assert finance.contributions == []
