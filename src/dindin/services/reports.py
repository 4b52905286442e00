"""Income and expense summaries for a day, week or month."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dindin.db.kinds import TransactionKind
from dindin.db.models import Transaction

MONTH_NAMES = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)
UNCATEGORISED = "Sem categoria"


class ReportPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class PeriodBounds:
    """Half-open ``[start, end)`` interval in the user's timezone."""

    start: datetime
    end: datetime
    title: str


@dataclass
class CategoryTotal:
    name: str
    icon: str
    kind: TransactionKind
    total: Decimal = Decimal("0")


@dataclass
class PeriodSummary:
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    categories: list[CategoryTotal] = field(default_factory=list)
    transactions: Sequence[Transaction] = ()

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense

    def categories_of(self, kind: TransactionKind) -> list[CategoryTotal]:
        """Categories of ``kind``, largest total first."""

        selected = [category for category in self.categories if category.kind is kind]
        return sorted(selected, key=lambda category: category.total, reverse=True)


def period_bounds(period: ReportPeriod | str, today: date, tz: tzinfo) -> PeriodBounds:
    """Day, Sunday-based week or calendar month containing ``today``."""

    period = ReportPeriod(period)
    if period is ReportPeriod.DAY:
        first, last = today, today
        title = f"Hoje ({today:%d/%m/%Y})"
    elif period is ReportPeriod.WEEK:
        first = today - timedelta(days=(today.weekday() + 1) % 7)
        last = first + timedelta(days=6)
        title = f"Semana ({first:%d/%m} - {last:%d/%m})"
    else:
        first = today.replace(day=1)
        last = first + relativedelta(months=1, days=-1)
        title = f"Mês de {MONTH_NAMES[today.month - 1]}/{today.year}"

    start = datetime.combine(first, time.min, tzinfo=tz)
    end = datetime.combine(last + timedelta(days=1), time.min, tzinfo=tz)
    return PeriodBounds(start=start, end=end, title=title)


async def list_transactions_between(
    session: AsyncSession, user_id: int, start: datetime, end: datetime
) -> Sequence[Transaction]:
    """Transactions inside ``[start, end)``, newest first."""

    result = await session.execute(
        select(Transaction)
        .options(selectinload(Transaction.category))
        .where(
            Transaction.user_id == user_id,
            Transaction.transaction_date >= start.astimezone(timezone.utc),
            Transaction.transaction_date < end.astimezone(timezone.utc),
        )
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    )
    return result.scalars().all()


def summarize(transactions: Sequence[Transaction]) -> PeriodSummary:
    summary = PeriodSummary(transactions=transactions)
    by_category: dict[tuple[str, TransactionKind], CategoryTotal] = {}
    for transaction in transactions:
        kind = TransactionKind(transaction.kind)
        amount = Decimal(str(transaction.amount))
        if kind is TransactionKind.INCOME:
            summary.income += amount
        else:
            summary.expense += amount

        name = transaction.category.name if transaction.category else UNCATEGORISED
        icon = transaction.category.icon if transaction.category else ""
        total = by_category.setdefault((name, kind), CategoryTotal(name=name, icon=icon, kind=kind))
        total.total += amount

    summary.categories = list(by_category.values())
    return summary


async def build_period_summary(session: AsyncSession, user_id: int, bounds: PeriodBounds) -> PeriodSummary:
    transactions = await list_transactions_between(session, user_id, bounds.start, bounds.end)
    return summarize(transactions)


__all__ = [
    "CategoryTotal",
    "PeriodBounds",
    "PeriodSummary",
    "ReportPeriod",
    "build_period_summary",
    "list_transactions_between",
    "period_bounds",
    "summarize",
]
