"""Async SQLAlchemy engine, declarative base and the per-request session."""

import logging

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from leave_engine.common.exceptions import EngineError
from leave_engine.config import settings

logger = logging.getLogger(__name__)

# Deterministic names for constraints and indexes the models leave unnamed
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _engine_options(url: str) -> dict:
    # SQLite (local runs) has no connection pool sizing
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.ENVIRONMENT == "development",
    **_engine_options(settings.DATABASE_URL),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all leave engine models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


async def get_db() -> AsyncSession:
    """FastAPI dependency: one session and transaction per request.

    Engine errors are expected outcomes (rendered as problem details) and
    roll back quietly; anything else is logged with its traceback.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except EngineError:
            await session.rollback()
            raise
        except Exception:
            logger.exception("Rolling back request transaction")
            await session.rollback()
            raise
        finally:
            await session.close()
