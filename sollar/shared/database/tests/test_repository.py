"""Tests for base repository pattern."""
import pytest
from unittest.mock import MagicMock
from dataclasses import dataclass

from sollar.shared.database.repository import (
    BaseRepository,
    RepositoryError,
    DataRetrievalError,
)


@dataclass
class SampleEntity:
    """Entity for repository tests."""
    id: str
    name: str
    value: int


class SampleRepository(BaseRepository[SampleEntity]):
    """Concrete repository for testing."""

    columns = ("id", "name", "value")

    def _row_to_entity(self, row: tuple) -> SampleEntity:
        return SampleEntity(id=row[0], name=row[1], value=row[2])


@pytest.fixture
def cursor():
    return MagicMock()


@pytest.fixture
def connection_manager(cursor):
    """Connection manager whose connection yields the mock cursor."""
    manager = MagicMock()
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    manager.get_connection.return_value.__enter__.return_value = conn
    return manager


@pytest.fixture
def repository(connection_manager):
    return SampleRepository(connection_manager, "sample_table")


class TestRepositoryExceptions:
    """Tests for repository exception classes."""

    def test_repository_error(self):
        error = RepositoryError("Test error")
        assert str(error) == "Test error"

    def test_data_retrieval_error_carries_offset(self):
        error = DataRetrievalError("Page read failed", offset=2000)
        assert isinstance(error, RepositoryError)
        assert error.offset == 2000


class TestBaseRepository:
    """Tests for BaseRepository class."""

    def test_initialization(self, repository):
        assert repository.table_name == "sample_table"

    def test_find_by_id_returns_entity(self, repository, cursor):
        cursor.fetchone.return_value = ("id_1", "first", 42)

        entity = repository.find_by_id("id_1")

        assert entity == SampleEntity(id="id_1", name="first", value=42)
        query, params = cursor.execute.call_args.args
        assert "SELECT id, name, value FROM sample_table WHERE id = %s" in query
        assert params == ("id_1",)

    def test_find_by_id_returns_none_when_missing(self, repository, cursor):
        cursor.fetchone.return_value = None

        assert repository.find_by_id("missing") is None

    def test_find_page_appends_limit_and_offset(self, repository, cursor):
        cursor.fetchall.return_value = [("a", "x", 1), ("b", "y", 2)]

        entities = repository.find_page(
            "value > %s", (0,), limit=2, offset=4, order_by="value, id"
        )

        assert [e.id for e in entities] == ["a", "b"]
        query, params = cursor.execute.call_args.args
        assert "WHERE value > %s ORDER BY value, id LIMIT %s OFFSET %s" in query
        assert params == (0, 2, 4)

    def test_find_where_reads_every_row(self, repository, cursor):
        cursor.fetchall.return_value = [("a", "x", 1)]

        entities = repository.find_where("name = %s", ("x",))

        assert entities == [SampleEntity(id="a", name="x", value=1)]

    def test_count(self, repository, cursor):
        cursor.fetchone.return_value = (7,)

        assert repository.count() == 7

    def test_count_returns_zero_without_row(self, repository, cursor):
        cursor.fetchone.return_value = None

        assert repository.count() == 0

    def test_driver_error_wrapped(self, repository, cursor):
        cursor.execute.side_effect = Exception("relation does not exist")

        with pytest.raises(RepositoryError, match="sample_table"):
            repository.find_by_id("id_1")

    def test_repository_error_not_rewrapped(self, repository, cursor):
        cursor.execute.side_effect = DataRetrievalError("gone", offset=500)

        with pytest.raises(DataRetrievalError):
            repository.find_by_id("id_1")
