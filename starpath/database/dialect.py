"""Dialect-aware building blocks for atomic writes.

The engine relies on ``INSERT ... ON CONFLICT`` for every idempotent write.
PostgreSQL and SQLite both support it, but SQLAlchemy exposes it through
dialect-specific ``insert`` constructs.
"""

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.exceptions import StoreUnavailableError


logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def conflict_insert(session: AsyncSession, table: Table) -> Any:
    """Return an insert construct that supports ``on_conflict_*`` for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    msg = f"Unsupported database dialect for conflict-aware inserts: {dialect}"
    raise RuntimeError(msg)


def store_operation(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Map transient database failures to ``StoreUnavailableError``.

    Integrity errors pass through untouched; callers that rely on uniqueness
    handle them explicitly.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except IntegrityError:
            raise
        except (OperationalError, DBAPIError) as e:
            logger.warning(f"Store unavailable during {func.__qualname__}: {e}")
            msg = "Progress store is temporarily unavailable"
            raise StoreUnavailableError(msg) from e

    return wrapper
