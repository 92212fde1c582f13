# feedy/database.py
import logging
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_engine_and_sessions(
    database_url: str, echo: bool = False
) -> Tuple[AsyncEngine, sessionmaker]:
    logger.debug("Using DATABASE_URL: %s", database_url)

    # echo=True logs every SQL statement SQLAlchemy emits; keep it off in production
    engine = create_async_engine(database_url, echo=echo)

    session_factory = sessionmaker(
        autoflush=False, bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    return engine, session_factory


async def create_db_and_tables(engine: AsyncEngine) -> None:
    """
    Creates the collection tables that do not exist yet. Managed deployments
    run the Alembic migrations instead; this only fills the gaps for local
    and test databases.
    """
    # Registers the mapped classes on Base.metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
