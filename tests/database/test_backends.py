"""
Tests for the backend registry and the dialect-specific statements.
"""

import os
import struct
from unittest.mock import patch

import pytest
from sqlalchemy.dialects import postgresql, sqlite

from poistore.database.backends import (
    PostgresBackend,
    SQLiteBackend,
    StoreBackend,
    get_backend,
    register_backend,
)
from poistore.database.connection import create_store_engine
from poistore.database.models import PoiIndexEntry
from poistore.database.repositories import TagRepository
from poistore.database.schema import REQUIRED_TABLES
from poistore.exceptions import StoreOpenError
from poistore.models import BoundingBox
from poistore.settings import StoreSettings, reset_settings


class TestRegistry:
    """Test suite for backend lookup by name."""

    def test_get_backend(self):
        assert isinstance(get_backend("sqlite"), SQLiteBackend)
        assert isinstance(get_backend("PostgreSQL"), PostgresBackend)

    def test_invalid_backend(self):
        with pytest.raises(ValueError, match="Available backends"):
            get_backend("oracle")

    def test_register_backend(self):
        class MemoryBackend(SQLiteBackend):
            name = "memory-test"

        register_backend("memory-test", MemoryBackend)
        assert isinstance(get_backend("memory-test"), MemoryBackend)


class TestSQLiteBackend:
    """Test suite for SQLiteBackend."""

    def test_database_url(self, tmp_path):
        backend = SQLiteBackend()
        path = tmp_path / "pois.sqlite"
        assert backend.get_database_url(str(path), False) == f"sqlite+aiosqlite:///{path.as_posix()}"
        read_only = backend.get_database_url(str(path), True)
        assert read_only.startswith("sqlite+aiosqlite:///file:")
        assert read_only.endswith("?mode=ro&uri=true")

    def test_check_location(self, tmp_path):
        backend = SQLiteBackend()
        backend.check_location(str(tmp_path / "new.sqlite"), False)
        with pytest.raises(StoreOpenError):
            backend.check_location(str(tmp_path), False)
        with pytest.raises(StoreOpenError):
            backend.check_location(str(tmp_path / "new.sqlite"), True)

    def test_index_upsert_replaces(self):
        sql = str(SQLiteBackend().upsert_index_statement(PoiIndexEntry.__table__).compile(
            dialect=sqlite.dialect()
        ))
        assert sql.startswith("INSERT OR REPLACE INTO poi_index")
        assert "ON CONFLICT" not in sql

    def test_search_box_widens_min_edges(self):
        """It should lower min edges to a float32 value the index can compare against."""
        bbox = BoundingBox(min_latitude=10.1, min_longitude=-151.21, max_latitude=11.0, max_longitude=-151.0)
        widened = SQLiteBackend().search_box(bbox)

        assert widened.min_latitude < 10.1
        assert widened.min_latitude == pytest.approx(10.1, abs=1e-5)
        assert struct.unpack("<f", struct.pack("<f", widened.min_latitude))[0] == widened.min_latitude
        assert widened.min_longitude < -151.21
        assert widened.min_longitude == pytest.approx(-151.21, abs=1e-4)
        assert widened.max_latitude == 11.0
        assert widened.max_longitude == -151.0

    def test_search_box_stays_in_range(self):
        bbox = BoundingBox(min_latitude=-90, min_longitude=-180, max_latitude=0, max_longitude=0)
        widened = SQLiteBackend().search_box(bbox)
        assert widened.min_latitude == -90
        assert widened.min_longitude == -180

    def test_unbounded_limit(self):
        assert SQLiteBackend().unbounded_limit == -1


class TestPostgresBackend:
    """Test suite for PostgresBackend statements; no server is needed."""

    def test_url_from_settings(self):
        settings = StoreSettings(
            _env_file=None,
            postgres_host="db",
            postgres_port=5433,
            postgres_database="pois",
            postgres_user="me",
            postgres_password="secret",
        )
        url = PostgresBackend().get_database_url("", False, settings)
        assert url == "postgresql+asyncpg://me:secret@db:5433/pois"

    def test_url_passthrough(self):
        url = "postgresql+asyncpg://u:p@host/db"
        assert PostgresBackend().get_database_url(url, False) == url

    def test_connection_options(self):
        backend = PostgresBackend()
        assert backend.connection_options(True) == {"postgresql_readonly": True}
        assert backend.connection_options(False) == {}

    def test_index_upsert(self):
        sql = str(PostgresBackend().upsert_index_statement(PoiIndexEntry.__table__).compile(
            dialect=postgresql.dialect()
        ))
        assert "ON CONFLICT (id) DO UPDATE" in sql

    def test_tag_statements_compile(self):
        """It should build the normalizer's upserts with the PostgreSQL dialect."""
        repo = TagRepository(connection=None, backend=PostgresBackend())
        dialect = postgresql.dialect()
        assert "ON CONFLICT (key) DO NOTHING" in str(repo._insert_key.compile(dialect=dialect))
        assert "ON CONFLICT (value) DO NOTHING" in str(repo._insert_value.compile(dialect=dialect))
        assert "ON CONFLICT (id, key) DO UPDATE" in str(repo._insert_data.compile(dialect=dialect))

    def test_count_tables_statement(self):
        sql = str(PostgresBackend().count_tables_statement(REQUIRED_TABLES).compile(
            dialect=postgresql.dialect()
        ))
        assert "information_schema.tables" in sql
        assert "current_schema()" in sql

    def test_unbounded_limit(self):
        assert PostgresBackend().unbounded_limit is None

    def test_search_box_is_unchanged(self):
        bbox = BoundingBox(min_latitude=10.1, min_longitude=20.3, max_latitude=11.0, max_longitude=21.0)
        assert PostgresBackend().search_box(bbox) == bbox

    @pytest.mark.asyncio
    async def test_engine_uses_the_given_settings(self):
        """It should build the engine URL from the settings passed in, not the global ones."""
        settings = StoreSettings(
            _env_file=None,
            postgres_host="custom-db",
            postgres_database="custom",
            postgres_user="me",
        )
        with patch.dict(os.environ, {"POSTGRES_HOST": "global-db"}):
            reset_settings()
            try:
                engine = create_store_engine(PostgresBackend(), "", False, settings)
            finally:
                reset_settings()
        try:
            assert engine.url.host == "custom-db"
            assert engine.url.database == "custom"
            assert engine.url.username == "me"
        finally:
            await engine.dispose()


def test_backends_are_store_backends():
    assert issubclass(SQLiteBackend, StoreBackend)
    assert issubclass(PostgresBackend, StoreBackend)
