"""
Metadata repository: store-level name/value pairs.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select

from poistore.database.models import MetadataEntry
from poistore.database.repositories.base import BaseRepository

_metadata = MetadataEntry.__table__


class MetadataRepository(BaseRepository):
    """Repository for the ``metadata`` table."""

    async def find_all(self) -> List[Tuple[str, Optional[str]]]:
        result = await self.connection.execute(select(MetadataEntry.name, MetadataEntry.value))
        return [(row.name, row.value) for row in result.all()]

    async def set(self, name: str, value: Optional[str]) -> None:
        """Insert or replace a metadata entry."""
        stmt = self.backend.insert(_metadata).values(name=name, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={"value": stmt.excluded["value"]},
        )
        await self.connection.execute(stmt)
