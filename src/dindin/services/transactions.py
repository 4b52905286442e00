"""One-off income and expense records."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dindin.db.kinds import TransactionKind
from dindin.db.models import Transaction
from dindin.services.categories import get_category_by_name


async def create_transaction(
    session: AsyncSession,
    user_id: int,
    *,
    amount: float,
    description: str,
    kind: TransactionKind | str,
    category_name: Optional[str] = None,
    transaction_date: Optional[datetime] = None,
) -> Transaction:
    kind = TransactionKind(kind)
    if amount <= 0:
        raise ValueError("amount must be positive")

    category = await get_category_by_name(session, category_name, kind)
    transaction = Transaction(
        user_id=user_id,
        category_id=category.id if category else None,
        category=category,
        amount=amount,
        description=description,
        kind=kind.value,
        transaction_date=transaction_date or datetime.now(timezone.utc),
    )
    session.add(transaction)
    await session.flush()
    return transaction


__all__ = ["create_transaction"]
