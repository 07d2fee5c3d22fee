"""
Category filters restricting rectangle searches.
"""
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, Set, Union

from poistore.categories.manager import CategoryManager
from poistore.models import PoiCategory


class CategoryFilter(ABC):
    """Predicate over categories used to narrow a spatial search."""

    @abstractmethod
    def accepted_ids(self, category_manager: CategoryManager) -> FrozenSet[int]:
        """
        Ids of every accepted category.

        A POI passes the filter when any of its categories is in this set.
        """
        pass

    def is_accepted(self, category: PoiCategory, category_manager: CategoryManager) -> bool:
        return category.id in self.accepted_ids(category_manager)


class WhitelistCategoryFilter(CategoryFilter):
    """
    Accepts the whitelisted categories and all of their descendants.

    An empty whitelist accepts nothing.
    """

    def __init__(self, categories: Iterable[Union[PoiCategory, int]] = ()):
        self._whitelist: Set[int] = set()
        for category in categories:
            self.add_category(category)

    def add_category(self, category: Union[PoiCategory, int]) -> "WhitelistCategoryFilter":
        category_id = category.id if isinstance(category, PoiCategory) else int(category)
        self._whitelist.add(category_id)
        return self

    @property
    def whitelist(self) -> FrozenSet[int]:
        return frozenset(self._whitelist)

    def accepted_ids(self, category_manager: CategoryManager) -> FrozenSet[int]:
        """
        Raises:
            UnknownCategoryError: If a whitelisted id is not in the tree
        """
        accepted = set()
        for category_id in self._whitelist:
            accepted.add(category_id)
            accepted.update(c.id for c in category_manager.descendants(category_id))
        return frozenset(accepted)
