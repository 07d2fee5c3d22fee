"""
Spatial index repository: one degenerate rectangle per POI.
"""
from typing import Iterable, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncConnection

from poistore.database.backends.base import StoreBackend
from poistore.database.models import PoiIndexEntry
from poistore.database.repositories.base import BaseRepository
from poistore.models import PointOfInterest

_index = PoiIndexEntry.__table__

# (id, latitude, longitude)
Location = Tuple[int, float, float]


class SpatialIndexRepository(BaseRepository):
    """Repository for ``poi_index``."""

    def __init__(self, connection: AsyncConnection, backend: StoreBackend):
        super().__init__(connection, backend)
        self._upsert = backend.upsert_index_statement(_index)

    async def upsert(self, pois: Iterable[PointOfInterest]) -> None:
        """Write (or replace) the index rows of the given POIs."""
        rows = [
            {
                "poi_id": poi.id,
                "min_lat": poi.latitude,
                "max_lat": poi.latitude,
                "min_lon": poi.longitude,
                "max_lon": poi.longitude,
            }
            for poi in pois
        ]
        if rows:
            await self.connection.execute(self._upsert, rows)

    async def find_location(self, poi_id: int) -> Optional[Location]:
        """
        Get the coordinates of a POI.

        Returns:
            (id, latitude, longitude), or None if the POI is not indexed
        """
        result = await self.connection.execute(
            select(*location_columns()).where(PoiIndexEntry.id == poi_id)
        )
        row = result.first()
        if row is None:
            return None
        return int(row[0]), float(row[1]), float(row[2])

    async def delete(self, poi_id: int) -> int:
        result = await self.connection.execute(delete(_index).where(_index.c.id == poi_id))
        return result.rowcount or 0

    async def count(self) -> int:
        result = await self.connection.execute(select(func.count()).select_from(_index))
        return result.scalar_one()


def location_columns():
    """
    Columns yielding (id, latitude, longitude) from an index row.

    The R*Tree stores 32-bit floats rounded outwards, so the centre of the
    stored rectangle is closer to the inserted point than either corner.
    """
    return (
        PoiIndexEntry.id,
        ((PoiIndexEntry.min_lat + PoiIndexEntry.max_lat) / 2).label("latitude"),
        ((PoiIndexEntry.min_lon + PoiIndexEntry.max_lon) / 2).label("longitude"),
    )
