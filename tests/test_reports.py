"""Period reports: bounds, aggregation and the rendered summary."""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dindin.bot.handlers.reports import REPORT_ERROR_MESSAGE, handle_report
from dindin.conversation.responses import render_report
from dindin.db.kinds import TransactionKind
from dindin.db.models import Base
from dindin.db.session import session_scope
from dindin.services.categories import seed_default_categories
from dindin.services.reports import PeriodSummary, ReportPeriod, period_bounds
from dindin.services.repository import FinanceRepository
from dindin.services.transactions import create_transaction
from dindin.services.users import get_or_create_user

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.mark.parametrize(
    "period, today, first, last, title",
    [
        (ReportPeriod.DAY, date(2024, 5, 15), date(2024, 5, 15), date(2024, 5, 16), "Hoje (15/05/2024)"),
        (ReportPeriod.WEEK, date(2024, 5, 15), date(2024, 5, 12), date(2024, 5, 19), "Semana (12/05 - 18/05)"),
        (ReportPeriod.WEEK, date(2024, 5, 12), date(2024, 5, 12), date(2024, 5, 19), "Semana (12/05 - 18/05)"),
        (ReportPeriod.MONTH, date(2024, 2, 10), date(2024, 2, 1), date(2024, 3, 1), "Mês de fevereiro/2024"),
    ],
)
def test_period_bounds(period, today, first, last, title) -> None:
    bounds = period_bounds(period, today, SAO_PAULO)

    assert bounds.start == datetime(first.year, first.month, first.day, tzinfo=SAO_PAULO)
    assert bounds.end == datetime(last.year, last.month, last.day, tzinfo=SAO_PAULO)
    assert bounds.title == title


def test_monthly_report_groups_by_category_in_local_time() -> None:
    async def runner():
        engine, factory = await _session_factory()
        async with session_scope(factory) as session:
            await seed_default_categories(session)
            user = await get_or_create_user(session, 901)
            other = await get_or_create_user(session, 902)
            entries = [
                (user.id, 32.5, "Almoço", TransactionKind.EXPENSE, "aliment", datetime(2024, 5, 3, 15)),
                (user.id, 120.0, "Mercado", TransactionKind.EXPENSE, "aliment", datetime(2024, 5, 20, 12)),
                (user.id, 45.0, "Uber", TransactionKind.EXPENSE, "transporte", datetime(2024, 5, 21, 9)),
                (user.id, 2500.0, "Salário", TransactionKind.INCOME, "sal", datetime(2024, 5, 5, 12)),
                # still May 31st in São Paulo
                (user.id, 10.0, "Café", TransactionKind.EXPENSE, "aliment", datetime(2024, 6, 1, 2)),
                (user.id, 80.0, "Cinema", TransactionKind.EXPENSE, "lazer", datetime(2024, 4, 30, 12)),
                (other.id, 999.0, "Show", TransactionKind.EXPENSE, "lazer", datetime(2024, 5, 10, 12)),
            ]
            for user_id, amount, description, kind, category, moment in entries:
                await create_transaction(
                    session,
                    user_id,
                    amount=amount,
                    description=description,
                    kind=kind,
                    category_name=category,
                    transaction_date=moment.replace(tzinfo=timezone.utc),
                )
            user_id = user.id

        bounds = period_bounds(ReportPeriod.MONTH, date(2024, 5, 15), SAO_PAULO)
        summary = await FinanceRepository(factory).period_summary(user_id, bounds)
        await engine.dispose()
        return bounds, summary

    bounds, summary = asyncio.run(runner())

    assert summary.income == Decimal("2500")
    assert summary.expense == Decimal("207.5")
    assert summary.balance == Decimal("2292.5")
    expenses = summary.categories_of(TransactionKind.EXPENSE)
    assert [(category.name, category.total) for category in expenses] == [
        ("Alimentação", Decimal("162.5")),
        ("Transporte", Decimal("45")),
    ]
    assert [transaction.description for transaction in summary.transactions] == [
        "Café",
        "Uber",
        "Mercado",
        "Salário",
        "Almoço",
    ]

    text = render_report(bounds.title, summary, SAO_PAULO)
    assert text.startswith("📊 *Relatório Financeiro - Mês de maio/2024*")
    assert "🏦 *Saldo:* R$ 2,292.50" in text
    assert "✅ Suas finanças estão positivas!" in text
    assert "🍔 Alimentação: R$ 162.50" in text
    assert "💸 31/05 - 🍔 Café: R$ 10.00" in text
    assert "Show" not in text
    assert "Cinema" not in text


def test_report_without_transactions() -> None:
    text = render_report("Hoje (15/05/2024)", PeriodSummary(), SAO_PAULO)

    assert "📭 Não há transações registradas neste período." in text
    assert "Detalhamento" not in text
    assert text.endswith("💡 *Dica:* Use /ajuda para ver os comandos disponíveis.")


def test_negative_balance_warns_and_recent_list_is_capped() -> None:
    transactions = [
        SimpleNamespace(
            kind="expense",
            amount=Decimal("10"),
            description=f"gasto_{index}",
            transaction_date=datetime(2024, 5, 10, 12),
            category=None,
        )
        for index in range(12)
    ]
    summary = PeriodSummary(expense=Decimal("120"), transactions=transactions)

    text = render_report("Semana (12/05 - 18/05)", summary, timezone.utc)

    assert "⚠️ Cuidado! Suas despesas estão maiores que suas receitas." in text
    assert "gasto\\_9" in text
    assert "gasto\\_10" not in text


def _report_message(text: str) -> SimpleNamespace:
    sender = SimpleNamespace(id=42, first_name="Ana", last_name=None, username=None)
    return SimpleNamespace(from_user=sender, chat=SimpleNamespace(id=42), text=text, answer=AsyncMock())


def test_report_command_picks_the_period() -> None:
    repository = SimpleNamespace(
        get_or_create_user=AsyncMock(return_value=7), period_summary=AsyncMock(return_value=PeriodSummary())
    )
    message = _report_message("/semana")

    asyncio.run(handle_report(message, SimpleNamespace(command="semana"), SimpleNamespace(repository=repository)))

    user_id, bounds = repository.period_summary.await_args.args
    assert user_id == 7
    assert bounds.title.startswith("Semana (")
    assert message.answer.await_args.args[0].startswith("📊 *Relatório Financeiro - Semana")


def test_report_command_reports_database_failures() -> None:
    repository = SimpleNamespace(
        get_or_create_user=AsyncMock(return_value=7),
        period_summary=AsyncMock(side_effect=SQLAlchemyError("connection lost")),
    )
    message = _report_message("/relatorio")

    asyncio.run(handle_report(message, SimpleNamespace(command="relatorio"), SimpleNamespace(repository=repository)))

    message.answer.assert_awaited_once_with(REPORT_ERROR_MESSAGE)
