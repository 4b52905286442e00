"""Shared pytest fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

root = Path(__file__).resolve().parents[1]
src_path = str(root / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-token")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("POSTGRES_HOST", "127.0.0.1")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_USER", "postgres")
os.environ.setdefault("POSTGRES_PASSWORD", "postgres")
os.environ.setdefault("POSTGRES_DB", "dindin")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:6379/0")
os.environ.setdefault("CONVERSATION_BACKEND", "memory")

import pytest

from dindin.config import get_settings
from dindin.conversation.ports import IncomingMessage
from dindin.conversation.store import MemoryConversationStore
from dindin.db.kinds import Personality, TransactionKind


@pytest.fixture(autouse=True)
def _ensure_test_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Populate required environment variables for tests and reset cached settings."""

    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", os.environ["TELEGRAM_BOT_TOKEN"])
    monkeypatch.setenv("OPENAI_API_KEY", os.environ["OPENAI_API_KEY"])
    monkeypatch.setenv("POSTGRES_HOST", os.environ["POSTGRES_HOST"])
    monkeypatch.setenv("POSTGRES_PORT", os.environ["POSTGRES_PORT"])
    monkeypatch.setenv("POSTGRES_USER", os.environ["POSTGRES_USER"])
    monkeypatch.setenv("POSTGRES_PASSWORD", os.environ["POSTGRES_PASSWORD"])
    monkeypatch.setenv("POSTGRES_DB", os.environ["POSTGRES_DB"])
    monkeypatch.setenv("REDIS_URL", os.environ["REDIS_URL"])
    monkeypatch.setenv("CONVERSATION_BACKEND", "memory")

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class RecordingMessenger:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str, object]] = []

    async def send(self, chat_id: int, text: str, keyboard: object = None) -> None:
        self.sent.append((chat_id, text, keyboard))

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]

    @property
    def last_text(self) -> str:
        return self.sent[-1][1]

    @property
    def last_keyboard(self) -> object:
        return self.sent[-1][2]

    def clear(self) -> None:
        self.sent.clear()


class FakeFinance:
    """In-memory stand-in for every gateway the conversation layer talks to."""

    def __init__(self) -> None:
        self.goals: dict[int, SimpleNamespace] = {}
        self.contributions: list[tuple[int, float, Optional[str]]] = []
        self.income_sources: list[dict] = []
        self.expenses: list[dict] = []
        self.transactions: list[dict] = []
        self.personalities: dict[int, Personality] = {}
        self.income_setup_completed: set[int] = set()
        self.categories = [
            SimpleNamespace(id=1, name="Moradia", icon="🏠", kind="expense"),
            SimpleNamespace(id=2, name="Assinaturas", icon="📺", kind="expense"),
            SimpleNamespace(id=3, name="Lazer", icon="🎮", kind="expense"),
            SimpleNamespace(id=4, name="Salário", icon="💰", kind="income"),
        ]
        self.failing: set[str] = set()

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise RuntimeError(f"{name} failed")

    async def get_personality(self, user_id: int) -> Personality:
        self._check("get_personality")
        return self.personalities.get(user_id, Personality.FRIENDLY)

    async def save_personality(self, user_id: int, personality: Personality) -> None:
        self._check("save_personality")
        self.personalities[user_id] = personality

    async def mark_income_setup_completed(self, user_id: int) -> None:
        self._check("mark_income_setup_completed")
        self.income_setup_completed.add(user_id)

    async def list_categories(self):
        self._check("list_categories")
        return list(self.categories)

    async def create_goal(self, user_id, title, target_amount, initial_amount, target_date, category_id):
        self._check("create_goal")
        goal = SimpleNamespace(
            id=len(self.goals) + 1,
            user_id=user_id,
            title=title,
            target_amount=target_amount,
            current_amount=0.0,
            target_date=target_date,
            category_id=category_id,
            completed=False,
        )
        self.goals[goal.id] = goal
        return goal

    async def add_contribution(self, goal_id, amount, note):
        self._check("add_contribution")
        goal = self.goals[goal_id]
        goal.current_amount += amount
        goal.completed = goal.current_amount >= goal.target_amount
        self.contributions.append((goal_id, amount, note))
        return goal

    async def list_goals(self, user_id):
        return [goal for goal in self.goals.values() if goal.user_id == user_id]

    async def contribute_to_goal(self, user_id, title, amount):
        self._check("contribute_to_goal")
        for goal in reversed(list(self.goals.values())):
            if goal.user_id == user_id and title.lower() in goal.title.lower():
                return await self.add_contribution(goal.id, amount, None)
        return None

    async def create_income_source(self, user_id, name, amount, frequency, days, is_variable):
        self._check("create_income_source")
        record = {
            "user_id": user_id,
            "name": name,
            "amount": amount,
            "frequency": frequency.value,
            "days": list(days),
            "is_variable": is_variable,
        }
        self.income_sources.append(record)
        return SimpleNamespace(name=name, amount=amount, frequency=frequency.value, recurring_days=list(days))

    async def list_income_sources(self, user_id):
        return [
            SimpleNamespace(name=item["name"], amount=item["amount"])
            for item in self.income_sources
            if item["user_id"] == user_id
        ]

    async def create_recurring_expense(self, user_id, name, amount, due_day, category_id, is_variable):
        self._check("create_recurring_expense")
        record = {
            "user_id": user_id,
            "name": name,
            "amount": amount,
            "due_day": due_day,
            "category_id": category_id,
            "is_variable": is_variable,
        }
        self.expenses.append(record)
        return SimpleNamespace(name=name, amount=amount, due_day=due_day)

    async def list_recurring_expenses(self, user_id):
        return [
            SimpleNamespace(name=item["name"], amount=item["amount"], due_day=item["due_day"])
            for item in self.expenses
            if item["user_id"] == user_id
        ]

    async def record_transaction(self, user_id, *, amount, description, kind, category_name=None):
        self._check("record_transaction")
        category = next(
            (
                item
                for item in self.categories
                if category_name and category_name.lower() in item.name.lower()
            ),
            None,
        )
        record = {
            "user_id": user_id,
            "amount": amount,
            "description": description,
            "kind": TransactionKind(kind).value,
            "category": category,
        }
        self.transactions.append(record)
        return SimpleNamespace(amount=amount, description=description, kind=record["kind"], category=category)


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def finance() -> FakeFinance:
    return FakeFinance()


@pytest.fixture
def goal_store() -> MemoryConversationStore:
    return MemoryConversationStore()


@pytest.fixture
def setup_store() -> MemoryConversationStore:
    return MemoryConversationStore()


@pytest.fixture
def make_message():
    def _make(text: str, user_id: int = 1, chat_id: int = 100, first_name: str = "Ana") -> IncomingMessage:
        return IncomingMessage(user_id=user_id, chat_id=chat_id, text=text, first_name=first_name)

    return _make
