"""
Tag repository: normalizes tags into the key/value dictionaries.
"""
import logging
from typing import FrozenSet, Iterable, List

from sqlalchemy import bindparam, delete, select
from sqlalchemy.ext.asyncio import AsyncConnection

from poistore.database.backends.base import StoreBackend
from poistore.database.models import PoiTag, TagKey, TagValue
from poistore.database.repositories.base import BaseRepository
from poistore.models import Tag

logger = logging.getLogger(__name__)

_tagkeys = TagKey.__table__
_tagvalues = TagValue.__table__
_data = PoiTag.__table__


class TagRepository(BaseRepository):
    """
    Repository for tag dictionaries and POI tag associations.

    Keys and values are stored once each; ``poi_data`` refers to them by id.
    """

    def __init__(self, connection: AsyncConnection, backend: StoreBackend):
        super().__init__(connection, backend)

        self._insert_key = (
            backend.insert(_tagkeys)
            .values({"key": bindparam("tag_key")})
            .on_conflict_do_nothing(index_elements=["key"])
        )
        self._insert_value = (
            backend.insert(_tagvalues)
            .values({"value": bindparam("tag_value")})
            .on_conflict_do_nothing(index_elements=["value"])
        )

        insert_data = backend.insert(_data).values({
            "id": bindparam("poi_id"),
            "key": select(TagKey.id)
            .where(TagKey.key == bindparam("tag_key"))
            .scalar_subquery(),
            "value": select(TagValue.id)
            .where(TagValue.value == bindparam("tag_value"))
            .scalar_subquery(),
        })
        # A later tag with the same key replaces the earlier value
        self._insert_data = insert_data.on_conflict_do_update(
            index_elements=["id", "key"],
            set_={"value": insert_data.excluded["value"]},
        )

    async def insert_tags(self, poi_id: int, tags: Iterable[Tag]) -> None:
        """
        Store the tags of a POI.

        Args:
            poi_id: POI identifier
            tags: Tags to associate; for repeated keys the last one wins
        """
        tags = list(tags)
        if not tags:
            return

        await self.connection.execute(
            self._insert_key, [{"tag_key": tag.key} for tag in tags]
        )
        await self.connection.execute(
            self._insert_value, [{"tag_value": tag.value} for tag in tags]
        )
        await self.connection.execute(
            self._insert_data,
            [
                {"poi_id": poi_id, "tag_key": tag.key, "tag_value": tag.value}
                for tag in tags
            ],
        )

    async def find_tags_by_id(self, poi_id: int) -> FrozenSet[Tag]:
        """
        Rebuild the tags of a POI from the dictionaries.

        Args:
            poi_id: POI identifier

        Returns:
            The POI's tags (empty if it has none or does not exist)
        """
        result = await self.connection.execute(
            select(TagKey.key, TagValue.value)
            .select_from(PoiTag)
            .join(TagKey, TagKey.id == PoiTag.key)
            .join(TagValue, TagValue.id == PoiTag.value)
            .where(PoiTag.id == poi_id)
        )
        return frozenset(Tag(key=key, value=value) for key, value in result.all())

    async def delete_tags(self, poi_id: int) -> int:
        """Delete a POI's tag associations; dictionary rows are kept."""
        result = await self.connection.execute(delete(_data).where(_data.c.id == poi_id))
        return result.rowcount or 0

    async def find_unreferenced_key_ids(self) -> List[int]:
        """Ids of dictionary keys no association row refers to."""
        result = await self.connection.execute(
            select(TagKey.id).where(TagKey.id.not_in(select(PoiTag.key)))
        )
        return list(result.scalars().all())

    async def find_unreferenced_value_ids(self) -> List[int]:
        """Ids of dictionary values no association row refers to."""
        result = await self.connection.execute(
            select(TagValue.id).where(TagValue.id.not_in(select(PoiTag.value)))
        )
        return list(result.scalars().all())

    async def delete_unreferenced_keys(self) -> int:
        """
        Remove dictionary keys that no POI uses any more.

        Returns:
            Number of deleted rows
        """
        result = await self.connection.execute(
            delete(_tagkeys).where(_tagkeys.c.id.not_in(select(_data.c.key)))
        )
        return result.rowcount or 0

    async def delete_unreferenced_values(self) -> int:
        """
        Remove dictionary values that no POI uses any more.

        Returns:
            Number of deleted rows
        """
        result = await self.connection.execute(
            delete(_tagvalues).where(_tagvalues.c.id.not_in(select(_data.c.value)))
        )
        return result.rowcount or 0
