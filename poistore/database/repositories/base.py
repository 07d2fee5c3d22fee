"""
Base repository shared by the POI store repositories.
"""
from sqlalchemy.ext.asyncio import AsyncConnection

from poistore.database.backends.base import StoreBackend


class BaseRepository:
    """
    Base repository bound to one connection.

    Repositories never begin or commit transactions; the persistence manager
    owns the transaction boundaries.
    """

    def __init__(self, connection: AsyncConnection, backend: StoreBackend):
        """
        Initialize repository with connection and backend.

        Args:
            connection: SQLAlchemy async connection
            backend: Adapter providing dialect-specific statements
        """
        self.connection = connection
        self.backend = backend
