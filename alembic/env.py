# alembic/env.py
import logging
import os
import sys
from logging.config import fileConfig

from sqlalchemy import create_engine

from alembic import context

# Make the project root importable so `feedy` resolves when alembic runs from
# a checkout. The 'alembic' directory sits one level below the project root.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Importing feedy.config loads the project-root .env, so DATABASE_URL is set here too
from feedy.config import Settings  # noqa: E402
from feedy.database import Base  # noqa: E402
from feedy import models  # noqa: E402,F401

config = context.config

# Python logging from alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

DATABASE_URL = Settings.from_env().database_url


def sync_database_url(url: str) -> str:
    """Alembic runs schema operations synchronously, so drop the async driver suffix."""
    for async_driver in ("+asyncpg", "+aiosqlite"):
        if async_driver in url:
            return url.replace(async_driver, "")
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just a URL, so no DBAPI has to be
    available. Calls to context.execute() emit the SQL to the script output.
    """
    offline_url = sync_database_url(DATABASE_URL)
    logger.info("Offline migrations for %s", offline_url)
    context.configure(
        url=offline_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a synchronous engine."""
    online_url = sync_database_url(DATABASE_URL)
    logger.info("Online migrations for %s", online_url)
    connectable = create_engine(online_url)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
