"""
Backend adapter interface.

The persistence engine is written once against SQLAlchemy; an adapter only
supplies what differs between engines: connection URL, dialect-specific
INSERT constructs, the spatial index DDL and catalog queries.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import Table, bindparam
from sqlalchemy.engine import Connection
from sqlalchemy.sql import Executable

from poistore.models import BoundingBox


class StoreBackend(ABC):
    """
    Abstract base class for backing store engines.

    Attributes:
        name: Backend identifier used in settings (POI_STORE_BACKEND)
        unbounded_limit: Value bound to ``LIMIT`` when a search has no limit
    """

    name: str = ""
    unbounded_limit: Optional[int] = None

    @abstractmethod
    def get_database_url(self, location: str, read_only: bool, settings: Any = None) -> str:
        """
        Build the SQLAlchemy async URL for a store location.

        Args:
            location: File path or DSN, depending on the backend
            read_only: Whether the store must be opened read-only
            settings: StoreSettings of the manager; the global settings when None
        """
        pass

    def check_location(self, location: str, read_only: bool) -> None:
        """
        Validate a location before connecting.

        Raises:
            StoreOpenError: If the location cannot hold a store
        """
        return None

    def engine_options(self, settings: Any) -> Dict[str, Any]:
        """Extra keyword arguments for create_async_engine."""
        return {}

    def connection_options(self, read_only: bool) -> Dict[str, Any]:
        """Execution options applied to the manager's connection."""
        return {}

    def search_box(self, bbox: BoundingBox) -> BoundingBox:
        """
        Return the box actually bound to a rectangle search.

        Backends whose index stores coordinates with less precision widen
        the box so points on its edges are still found.
        """
        return bbox

    @abstractmethod
    def insert(self, table: Table):
        """Return the dialect INSERT construct (supports on_conflict_* clauses)."""
        pass

    @abstractmethod
    def count_tables_statement(self, table_names: Iterable[str]) -> Executable:
        """Return a statement selecting how many of ``table_names`` exist."""
        pass

    def create_spatial_index(self, connection: Connection, table: Table) -> None:
        """
        Create the spatial index table.

        The default is a regular table with a composite B-tree index, which
        answers the point-in-box range query without R-tree support.
        Runs inside ``AsyncConnection.run_sync``.
        """
        table.create(connection)

    def upsert_index_statement(self, table: Table) -> Executable:
        """
        Return the statement replacing a POI's index row.

        Bound parameters: poi_id, min_lat, max_lat, min_lon, max_lon.
        """
        stmt = self.insert(table).values(self.index_row_parameters())
        return stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "minLat": stmt.excluded["minLat"],
                "maxLat": stmt.excluded["maxLat"],
                "minLon": stmt.excluded["minLon"],
                "maxLon": stmt.excluded["maxLon"],
            },
        )

    @staticmethod
    def index_row_parameters() -> Dict[str, Any]:
        return {
            "id": bindparam("poi_id"),
            "minLat": bindparam("min_lat"),
            "maxLat": bindparam("max_lat"),
            "minLon": bindparam("min_lon"),
            "maxLon": bindparam("max_lon"),
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
