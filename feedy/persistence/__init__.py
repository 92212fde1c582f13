import logging

from ..config import BACKEND_DOCUMENT, BACKEND_LOCAL, BACKEND_TREE, Settings
from ..errors import PersistenceError
from .base import BaseDatabase
from .document_store import DocumentStoreDatabase
from .local_store import LocalDatabase
from .tree_store import TreeStoreClient, TreeStoreDatabase

logger = logging.getLogger(__name__)

__all__ = [
    "BaseDatabase",
    "DocumentStoreDatabase",
    "LocalDatabase",
    "TreeStoreClient",
    "TreeStoreDatabase",
    "build_database",
    "open_database",
]


def build_local_database(settings: Settings) -> LocalDatabase:
    return LocalDatabase(
        settings.local_store_path,
        seed=settings.mock_seed,
        feedback_count=settings.mock_feedback_count,
        default_limit=settings.feedback_fetch_limit,
    )


def build_database(settings: Settings) -> BaseDatabase:
    """The only place that knows which adapter backs which setting."""
    if settings.backend == BACKEND_DOCUMENT:
        return DocumentStoreDatabase(
            settings.database_url,
            echo=settings.sql_echo,
            default_limit=settings.feedback_fetch_limit,
        )
    if settings.backend == BACKEND_TREE:
        if not settings.tree_store_url:
            raise PersistenceError("TREE_STORE_URL is not set")
        client = TreeStoreClient(settings.tree_store_url, auth_token=settings.tree_store_auth_token)
        return TreeStoreDatabase(client, default_limit=settings.feedback_fetch_limit)
    if settings.backend == BACKEND_LOCAL:
        return build_local_database(settings)
    raise ValueError(f"Unknown backend: {settings.backend}")


async def open_database(settings: Settings) -> BaseDatabase:
    """Builds and initialises the configured backend, falling back to local mock data."""
    database = None
    try:
        database = build_database(settings)
        await database.init()
        logger.info("Using %s backend", database.backend_name)
        return database
    except PersistenceError as e:
        logger.warning("Backend %s unavailable (%s), switching to offline mock data", settings.backend, e)
        if database is not None:
            await database.close()

    fallback = build_local_database(settings)
    await fallback.init()
    return fallback
