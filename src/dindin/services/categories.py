"""Category catalog used for transactions and recurring expenses."""
from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dindin.db.kinds import TransactionKind
from dindin.db.models import Category

FALLBACK_CATEGORY_NAME = "Outros"

DEFAULT_CATEGORIES: tuple[tuple[str, str, TransactionKind], ...] = (
    ("Alimentação", "🍔", TransactionKind.EXPENSE),
    ("Transporte", "🚗", TransactionKind.EXPENSE),
    ("Moradia", "🏠", TransactionKind.EXPENSE),
    ("Contas", "💡", TransactionKind.EXPENSE),
    ("Saúde", "💊", TransactionKind.EXPENSE),
    ("Educação", "📚", TransactionKind.EXPENSE),
    ("Lazer", "🎮", TransactionKind.EXPENSE),
    ("Compras", "🛍️", TransactionKind.EXPENSE),
    ("Assinaturas", "📺", TransactionKind.EXPENSE),
    (FALLBACK_CATEGORY_NAME, "📦", TransactionKind.EXPENSE),
    ("Salário", "💰", TransactionKind.INCOME),
    ("Freelance", "💻", TransactionKind.INCOME),
    ("Investimentos", "📈", TransactionKind.INCOME),
    ("Presente", "🎁", TransactionKind.INCOME),
    (FALLBACK_CATEGORY_NAME, "📦", TransactionKind.INCOME),
)


async def seed_default_categories(session: AsyncSession) -> int:
    """Insert the default catalog entries that are not present yet.

    Returns the number of categories created.
    """

    result = await session.execute(select(Category.name, Category.kind))
    existing = {(name, kind) for name, kind in result.all()}

    created = 0
    for name, icon, kind in DEFAULT_CATEGORIES:
        if (name, kind.value) in existing:
            continue
        session.add(Category(name=name, icon=icon, kind=kind.value))
        created += 1

    await session.flush()
    return created


async def list_categories(session: AsyncSession) -> Sequence[Category]:
    result = await session.execute(select(Category).order_by(Category.name))
    return result.scalars().all()


async def get_category_by_name(
    session: AsyncSession, name: Optional[str], kind: TransactionKind
) -> Optional[Category]:
    """Find a category whose name contains ``name``, falling back to "Outros"."""

    if name and name.strip():
        pattern = f"%{name.strip().lower()}%"
        result = await session.execute(
            select(Category)
            .where(func.lower(Category.name).like(pattern), Category.kind == kind.value)
            .order_by(Category.id)
        )
        category = result.scalars().first()
        if category is not None:
            return category

    result = await session.execute(
        select(Category).where(Category.name == FALLBACK_CATEGORY_NAME, Category.kind == kind.value)
    )
    return result.scalars().first()


__all__ = [
    "DEFAULT_CATEGORIES",
    "FALLBACK_CATEGORY_NAME",
    "get_category_by_name",
    "list_categories",
    "seed_default_categories",
]
