"""
Category manager: resolves category ids against the store's category tree.
"""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncConnection

from poistore.database.backends.base import StoreBackend
from poistore.database.repositories.categories import CategoryRepository
from poistore.exceptions import UnknownCategoryError
from poistore.models import PoiCategory

logger = logging.getLogger(__name__)


class CategoryManager:
    """
    In-memory view of the ``poi_categories`` tree.

    The tree is small and read on every POI materialization, so it is loaded
    once when the store opens and reloaded after categories are inserted.
    """

    def __init__(self, categories: Iterable[PoiCategory] = ()):
        self._by_id: Dict[int, PoiCategory] = {}
        self._children: Dict[Optional[int], List[int]] = {}
        self._index(categories)

    def _index(self, categories: Iterable[PoiCategory]) -> None:
        self._by_id = {}
        self._children = {}
        for category in categories:
            self._by_id[category.id] = category
        for category in self._by_id.values():
            parent = category.parent_id if category.parent_id in self._by_id else None
            self._children.setdefault(parent, []).append(category.id)
        for ids in self._children.values():
            ids.sort()

    async def load(self, connection: AsyncConnection, backend: StoreBackend) -> None:
        """(Re)load every category from the ``poi_categories`` table."""
        categories = await CategoryRepository(connection, backend).find_all()
        self._index(categories)
        logger.debug(f"Loaded {len(self._by_id)} POI categories")

    @property
    def categories(self) -> List[PoiCategory]:
        return [self._by_id[category_id] for category_id in sorted(self._by_id)]

    def get_category_by_id(self, category_id: int) -> PoiCategory:
        """
        Resolve a category id.

        Raises:
            UnknownCategoryError: If no category has this id
        """
        try:
            return self._by_id[category_id]
        except KeyError:
            raise UnknownCategoryError(category_id) from None

    def get_category_by_title(self, title: str) -> Optional[PoiCategory]:
        for category in self.categories:
            if category.title == title:
                return category
        return None

    def root_categories(self) -> List[PoiCategory]:
        return [self._by_id[i] for i in self._children.get(None, [])]

    def children(self, category_id: int) -> List[PoiCategory]:
        self.get_category_by_id(category_id)
        return [self._by_id[i] for i in self._children.get(category_id, [])]

    def descendants(self, category_id: int) -> List[PoiCategory]:
        """All categories below ``category_id``, breadth first, excluding itself."""
        result = []
        pending = list(self._children.get(self.get_category_by_id(category_id).id, []))
        while pending:
            current = pending.pop(0)
            result.append(self._by_id[current])
            pending.extend(self._children.get(current, []))
        return result

    def __contains__(self, category_id: int) -> bool:
        return category_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)
