"""
PostgreSQL backend (asyncpg driver).
"""

from typing import Any, Dict, Iterable

from sqlalchemy import Table, column, func, select, table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.sql import Executable

from poistore.database.backends.base import StoreBackend

_information_tables = table(
    "tables",
    column("table_name"),
    column("table_schema"),
    schema="information_schema",
)


class PostgresBackend(StoreBackend):
    """Store backed by a PostgreSQL schema."""

    name = "postgresql"
    # LIMIT NULL is LIMIT ALL
    unbounded_limit = None

    def get_database_url(self, location: str, read_only: bool, settings: Any = None) -> str:
        if location and location.startswith("postgresql"):
            return location
        if settings is None:
            from poistore.settings import get_settings
            settings = get_settings()
        return settings.get_postgres_url()

    def engine_options(self, settings: Any) -> Dict[str, Any]:
        return {
            "pool_size": settings.postgres_pool_size,
            "max_overflow": 0,
            "pool_pre_ping": True,
        }

    def connection_options(self, read_only: bool) -> Dict[str, Any]:
        if read_only:
            return {"postgresql_readonly": True}
        return {}

    def insert(self, table: Table):
        return pg_insert(table)

    def count_tables_statement(self, table_names: Iterable[str]) -> Executable:
        return (
            select(func.count(_information_tables.c.table_name))
            .where(_information_tables.c.table_schema == func.current_schema())
            .where(_information_tables.c.table_name.in_(list(table_names)))
        )
