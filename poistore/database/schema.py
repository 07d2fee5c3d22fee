"""
Schema management: creation and validation of the seven POI store tables.
"""
import logging
from typing import Tuple

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from poistore.database.backends.base import StoreBackend
from poistore.database.connection import Base
from poistore.database.models import PoiIndexEntry
from poistore.exceptions import SchemaError

logger = logging.getLogger(__name__)

# Tables a valid store must contain
REQUIRED_TABLES: Tuple[str, ...] = (
    "metadata",
    "poi_categories",
    "poi_data",
    "poi_index",
    "poi_cmap",
    "poi_tagkeys",
    "poi_tagvalues",
)


class SchemaManager:
    """Creates and validates the table set of a POI store."""

    def __init__(self, backend: StoreBackend):
        self.backend = backend

    async def count_tables(self, connection: AsyncConnection) -> int:
        """Count how many of the required tables exist."""
        try:
            result = await connection.execute(
                self.backend.count_tables_statement(REQUIRED_TABLES)
            )
        except SQLAlchemyError as e:
            raise SchemaError(f"Cannot inspect store tables: {e}") from e
        return int(result.scalar_one() or 0)

    async def is_valid(self, connection: AsyncConnection) -> bool:
        """
        Check that every required table is present.

        Only table names are verified, not their columns.
        """
        found = await self.count_tables(connection)
        if found != len(REQUIRED_TABLES):
            logger.debug(f"Store has {found} of {len(REQUIRED_TABLES)} required tables")
        return found == len(REQUIRED_TABLES)

    async def create_tables(self, connection: AsyncConnection) -> None:
        """
        Drop (when present) and recreate all required tables.

        Destructive: existing POI data is lost. The caller is responsible for
        the surrounding transaction.

        Raises:
            SchemaError: If a DROP or CREATE statement fails
        """
        try:
            await connection.run_sync(self._recreate)
        except SQLAlchemyError as e:
            raise SchemaError(f"Cannot create store tables: {e}") from e
        logger.info(f"Created POI store schema ({self.backend.name})")

    def _recreate(self, connection: Connection) -> None:
        preparer = connection.dialect.identifier_preparer
        for name in REQUIRED_TABLES:
            connection.exec_driver_sql(f"DROP TABLE IF EXISTS {preparer.quote(name)}")

        index_table = PoiIndexEntry.__table__
        Base.metadata.create_all(
            connection,
            tables=[t for t in Base.metadata.sorted_tables if t is not index_table],
            checkfirst=False,
        )
        self.backend.create_spatial_index(connection, index_table)
