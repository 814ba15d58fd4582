"""
Database Connection Module
Builds the SQLAlchemy async engine used by the relational DAO.
"""

import logging
from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

sql_logger = logging.getLogger("pizza_service.sql")


# Base class for all our models
class Base(DeclarativeBase):
    pass


def connect_args_for(url: URL, connect_timeout: int) -> dict[str, Any]:
    """Driver keyword for the connect timeout differs between backends."""
    if url.get_backend_name() == "sqlite":
        return {"timeout": connect_timeout}
    return {"connect_timeout": connect_timeout}


def create_engine(url: URL, connect_timeout: int, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine without pooling.

    Every session opened on it gets a brand new connection that is closed
    when the session ends.
    """
    engine = create_async_engine(
        url,
        echo=echo,
        poolclass=NullPool,
        connect_args=connect_args_for(url, connect_timeout),
    )
    event.listen(engine.sync_engine, "before_cursor_execute", _log_statement)
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Objects remain accessible after commit
    )


def _log_statement(conn, cursor, statement: str, parameters: Optional[Any], context, executemany: bool) -> None:
    if sql_logger.isEnabledFor(logging.DEBUG):
        sql_logger.debug(
            statement,
            extra={"log_type": "sql", "payload": {"params": repr(parameters)}},
        )
