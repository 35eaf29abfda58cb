"""Factory functions for the project repository.

SQLite is used for local development and tests, PostgreSQL in production;
the database type is taken from the URL scheme.
"""

import logging
import os
from typing import Optional

from .repository import ProjectRepositoryInterface, SQLAlchemyProjectRepository

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./airtime.db"


def redact_database_url(database_url: str) -> str:
    """Return the URL with any credentials replaced, safe for logs."""
    if "@" not in database_url:
        return database_url
    scheme, _, rest = database_url.partition("://")
    return f"{scheme}://...@{rest.rsplit('@', 1)[-1]}"


def create_repository(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    create_tables: bool = False,
) -> ProjectRepositoryInterface:
    """
    Create a project repository for a database URL.

    Parameters:
        database_url (Optional[str]): SQLAlchemy URL; `DATABASE_URL` or the local SQLite default when None.
        pool_size (int): Connection pool size, PostgreSQL only.
        max_overflow (int): Extra connections above the pool, PostgreSQL only.
        echo (bool): Log every SQL statement.
        create_tables (bool): Create missing tables with `create_all` instead of waiting for Alembic.

    Returns:
        ProjectRepositoryInterface: The configured repository.
    """
    database_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    logger.info(f"Creating project repository: {redact_database_url(database_url)}")

    repository = SQLAlchemyProjectRepository(
        database_url=database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
    )
    if create_tables:
        repository.create_tables()
    return repository


def create_repository_from_config(config, create_tables: bool = False) -> ProjectRepositoryInterface:
    """Create a repository from the `DATABASE_URL` and `DB_*` settings on a Config."""
    return create_repository(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        echo=config.DB_ECHO,
        create_tables=create_tables,
    )
