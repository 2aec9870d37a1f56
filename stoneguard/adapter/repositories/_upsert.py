"""
INSERT .. ON CONFLICT DO NOTHING across dialects.
"""

from typing import Any, Dict, Sequence, Type

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession


async def insert_ignore(
    session: AsyncSession,
    model: Type[SQLModel],
    values: Dict[str, Any],
    conflict_columns: Sequence[str],
) -> None:
    """Insert a row unless one with the same conflict columns already exists."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        stmt = postgresql_insert(model).values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        await session.exec(stmt)
        return
    if dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        await session.exec(stmt)
        return

    # Other backends: a savepoint absorbs the unique violation
    try:
        async with session.begin_nested():
            await session.exec(insert(model).values(**values))
    except IntegrityError:
        pass
