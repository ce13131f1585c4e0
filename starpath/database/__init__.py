from .base import Base
from .engine import engine
from .session import DbSession, async_session_maker, get_db_session, make_session_maker


__all__ = [
    "Base",
    "DbSession",
    "async_session_maker",
    "engine",
    "get_db_session",
    "make_session_maker",
]
