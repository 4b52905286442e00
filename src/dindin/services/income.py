"""Recurring income sources."""
from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dindin.db.kinds import FrequencyKind, clamp_days, normalize_frequency
from dindin.db.models import IncomeSource
from dindin.services.schedule import calculate_next_expected_date


async def create_income_source(
    session: AsyncSession,
    user_id: int,
    *,
    name: str,
    amount: float,
    frequency: FrequencyKind | str,
    days: Sequence[int],
    is_variable: bool = False,
    reference: Optional[date] = None,
) -> IncomeSource:
    if not days:
        raise ValueError("At least one recurring day is required")

    frequency = normalize_frequency(frequency)
    normalized_days = clamp_days(list(days), frequency)
    source = IncomeSource(
        user_id=user_id,
        name=name,
        amount=amount,
        frequency=frequency.value,
        recurring_days=normalized_days,
        is_variable=is_variable,
        next_expected_date=calculate_next_expected_date(normalized_days, frequency, reference),
    )
    session.add(source)
    await session.flush()
    return source


async def list_income_sources(session: AsyncSession, user_id: int) -> Sequence[IncomeSource]:
    result = await session.execute(
        select(IncomeSource).where(IncomeSource.user_id == user_id).order_by(IncomeSource.name)
    )
    return result.scalars().all()


async def list_income_expected_by(session: AsyncSession, day: date) -> Sequence[IncomeSource]:
    """Sources expected on ``day`` or earlier, including ones a missed run left behind."""

    result = await session.execute(
        select(IncomeSource)
        .options(selectinload(IncomeSource.user))
        .where(IncomeSource.next_expected_date <= day)
        .order_by(IncomeSource.id)
    )
    return result.scalars().all()


def roll_income_forward(source: IncomeSource, reference: date) -> date:
    source.next_expected_date = calculate_next_expected_date(
        source.recurring_days, source.frequency, reference
    )
    return source.next_expected_date


def monthly_income(sources: Sequence[IncomeSource]) -> float:
    """Sum of the configured amounts, one payment per source per month."""

    return sum(float(source.amount) for source in sources)


__all__ = [
    "create_income_source",
    "list_income_expected_by",
    "list_income_sources",
    "monthly_income",
    "roll_income_forward",
]
