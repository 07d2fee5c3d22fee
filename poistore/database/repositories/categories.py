"""
Category repositories: the category tree table and POI category associations.
"""
import logging
from typing import TYPE_CHECKING, FrozenSet, Iterable, List

from sqlalchemy import delete, insert, select

from poistore.database.models import CategoryRow, PoiCategoryMap
from poistore.database.repositories.base import BaseRepository
from poistore.models import PoiCategory

if TYPE_CHECKING:
    from poistore.categories.manager import CategoryManager

logger = logging.getLogger(__name__)

_categories = CategoryRow.__table__
_cmap = PoiCategoryMap.__table__


class CategoryRepository(BaseRepository):
    """Repository for the ``poi_categories`` tree."""

    async def find_all(self) -> List[PoiCategory]:
        """Load every category row."""
        result = await self.connection.execute(
            select(CategoryRow.id, CategoryRow.name, CategoryRow.parent)
            .order_by(CategoryRow.id)
        )
        return [
            PoiCategory(
                id=row.id,
                title=row.name or "",
                # Roots are written with a NULL or negative parent
                parent_id=row.parent if row.parent is not None and row.parent >= 0 else None,
            )
            for row in result.all()
        ]

    async def insert_categories(self, categories: Iterable[PoiCategory]) -> int:
        """
        Insert category rows.

        Returns:
            Number of inserted rows
        """
        rows = [
            {"id": c.id, "name": c.title, "parent": c.parent_id}
            for c in categories
        ]
        if not rows:
            return 0
        await self.connection.execute(insert(_categories), rows)
        return len(rows)


class CategoryMapRepository(BaseRepository):
    """Repository for POI-to-category associations (``poi_cmap``)."""

    async def insert_categories(self, poi_id: int, categories: Iterable[PoiCategory]) -> None:
        """
        Associate a POI with its categories.

        A duplicate (poi_id, category) pair violates the primary key; the
        caller must pass distinct categories.
        """
        rows = [{"id": poi_id, "category": category.id} for category in categories]
        if rows:
            await self.connection.execute(insert(_cmap), rows)

    async def find_category_ids(self, poi_id: int) -> List[int]:
        result = await self.connection.execute(
            select(PoiCategoryMap.category).where(PoiCategoryMap.id == poi_id)
        )
        return list(result.scalars().all())

    async def find_categories_by_id(
        self, poi_id: int, category_manager: "CategoryManager"
    ) -> FrozenSet[PoiCategory]:
        """
        Resolve the categories of a POI.

        Raises:
            UnknownCategoryError: If an associated id is not a known category
        """
        category_ids = await self.find_category_ids(poi_id)
        return frozenset(
            category_manager.get_category_by_id(category_id) for category_id in category_ids
        )

    async def delete_categories(self, poi_id: int) -> int:
        """Delete a POI's category associations."""
        result = await self.connection.execute(delete(_cmap).where(_cmap.c.id == poi_id))
        return result.rowcount or 0
