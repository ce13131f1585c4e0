import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from starpath.database.engine import engine


logger = logging.getLogger(__name__)


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded state after commit; services return rows they just committed."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async_session_maker = make_session_maker(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session.

    Services commit each atomic unit themselves. Whatever is still pending
    when a request fails is rolled back here.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            logger.debug("Rolling back request session after error")
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
