"""Tests for the first-contact personality choice."""
from __future__ import annotations

import asyncio

import pytest

from dindin.conversation.income import START_AFTER_PERSONALITY_MESSAGE, IncomeConfigMachine
from dindin.conversation.personality import (
    CHOICE_REPROMPT,
    GENERIC_ERROR_MESSAGE,
    PERSONALITY_KEYBOARD,
    PersonalityMachine,
)
from dindin.conversation.ports import REMOVE_KEYBOARD
from dindin.conversation.states import Flow, SetupStep
from dindin.db.kinds import Personality


@pytest.fixture
def machine(setup_store, finance, messenger) -> PersonalityMachine:
    income = IncomeConfigMachine(setup_store, finance, finance, finance, finance, messenger)
    return PersonalityMachine(setup_store, finance, messenger, income)


def test_start_greets_user_and_offers_choices(machine, messenger, make_message) -> None:
    asyncio.run(machine.start_flow(make_message("/start", first_name="Bia")))

    assert messenger.last_text.startswith("Olá, Bia!")
    assert messenger.last_keyboard == PERSONALITY_KEYBOARD
    assert len(PERSONALITY_KEYBOARD.rows) == 3


def test_choice_is_saved_and_income_setup_follows(machine, setup_store, finance, messenger, make_message) -> None:
    async def runner() -> None:
        await machine.start_flow(make_message("/start"))
        assert await machine.handle_message(make_message("😜 Debochado e Engraçado"))

    asyncio.run(runner())

    assert finance.personalities[1] is Personality.SASSY
    assert "debochado" in messenger.texts[-2]
    assert messenger.sent[-2][2] == REMOVE_KEYBOARD
    assert messenger.last_text == START_AFTER_PERSONALITY_MESSAGE

    state = asyncio.run(setup_store.get(1))
    assert state.flow is Flow.INCOME_SETUP
    assert state.step is SetupStep.INITIAL


def test_unrecognised_choice_reprompts(machine, setup_store, messenger, make_message) -> None:
    async def runner() -> bool:
        await machine.start_flow(make_message("/start"))
        return await machine.handle_message(make_message("tanto faz"))

    assert asyncio.run(runner()) is True
    assert messenger.last_text == CHOICE_REPROMPT
    assert asyncio.run(machine.is_user_in_flow(1)) is True


def test_save_failure_clears_state(machine, setup_store, finance, messenger, make_message) -> None:
    finance.failing.add("save_personality")

    async def runner() -> None:
        await machine.start_flow(make_message("/start"))
        await machine.handle_message(make_message("profissional"))

    asyncio.run(runner())
    assert messenger.last_text == GENERIC_ERROR_MESSAGE
    assert asyncio.run(setup_store.get(1)) is None


def test_income_flow_is_not_claimed_by_personality_machine(machine, make_message) -> None:
    async def runner() -> bool:
        await machine.start_flow(make_message("/start"))
        await machine.handle_message(make_message("amigável"))
        return await machine.handle_message(make_message("sim"))

    assert asyncio.run(runner()) is False
