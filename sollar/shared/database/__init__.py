"""Database access for Sollar services.

Provides connection pooling, health checks, read-only repository base
classes and paginated scans over PostgreSQL.
"""

from .connection import (
    DatabaseConfig,
    ConnectionManager,
    get_connection_manager,
)
from .repository import (
    BaseRepository,
    RepositoryError,
    DataRetrievalError,
)
from .pagination import iter_pages, DEFAULT_PAGE_SIZE

__all__ = [
    "DatabaseConfig",
    "ConnectionManager",
    "get_connection_manager",
    "BaseRepository",
    "RepositoryError",
    "DataRetrievalError",
    "iter_pages",
    "DEFAULT_PAGE_SIZE",
]
