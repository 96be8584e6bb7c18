"""Base repository pattern for read-only survey data access.

The analytics core never writes: responses are bulk-inserted at submission
time by the survey front end. Repositories here expose lookups and bounded
page reads only.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class DataRetrievalError(RepositoryError):
    """A read failed part-way through a paginated scan.

    Attributes:
        offset: Offset of the page that failed
    """

    def __init__(self, message: str, offset: int = 0):
        super().__init__(message)
        self.offset = offset


class BaseRepository(ABC, Generic[T]):
    """Abstract read-only repository.

    Subclasses provide the column list and row conversion while inheriting:
    - Connection management
    - Error wrapping into RepositoryError
    - Logging patterns
    """

    columns: Sequence[str] = ("id",)

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        """Initialize repository.

        Args:
            connection_manager: Database connection manager
            table_name: Name of the database table
        """
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert database row (in `columns` order) to entity."""
        pass

    @property
    def _select_list(self) -> str:
        return ", ".join(self.columns)

    def _fetch(self, query: str, params: Sequence[Any], one: bool = False):
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, tuple(params))
                    return cur.fetchone() if one else cur.fetchall()
        except RepositoryError:
            raise
        except Exception as e:
            logger.error(
                "REPOSITORY_READ_FAILED",
                extra={"table_name": self.table_name, "error": str(e)}
            )
            raise RepositoryError(f"Failed to read {self.table_name}: {e}") from e

    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Find entity by ID.

        Returns:
            Entity if found, None otherwise
        """
        row = self._fetch(
            f"SELECT {self._select_list} FROM {self.table_name} WHERE id = %s",
            (entity_id,),
            one=True,
        )
        if row is None:
            return None
        return self._row_to_entity(row)

    def find_page(
        self,
        where: str,
        params: Sequence[Any],
        limit: int,
        offset: int,
        order_by: str = "id",
    ) -> List[T]:
        """Read one bounded page of entities matching a filter.

        A stable order_by is required so consecutive offsets never
        overlap or skip rows.

        Args:
            where: SQL filter with %s placeholders
            params: Values for the placeholders
            limit: Page size
            offset: Rows to skip

        Returns:
            List of entities, at most `limit` long
        """
        rows = self._fetch(
            f"SELECT {self._select_list} FROM {self.table_name} "
            f"WHERE {where} ORDER BY {order_by} LIMIT %s OFFSET %s",
            (*params, limit, offset),
        )
        return [self._row_to_entity(row) for row in rows]

    def find_where(self, where: str, params: Sequence[Any], order_by: str = "id") -> List[T]:
        """Read every entity matching a filter (small reference tables only)."""
        rows = self._fetch(
            f"SELECT {self._select_list} FROM {self.table_name} "
            f"WHERE {where} ORDER BY {order_by}",
            params,
        )
        return [self._row_to_entity(row) for row in rows]

    def count(self, where: str = "TRUE", params: Sequence[Any] = ()) -> int:
        """Count entities matching a filter."""
        row = self._fetch(
            f"SELECT COUNT(*) FROM {self.table_name} WHERE {where}",
            params,
            one=True,
        )
        return row[0] if row else 0
